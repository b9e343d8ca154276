"""folio-gallery: gallery persistence and cross-context sync for a portfolio site."""

__version__ = "0.1.0"
