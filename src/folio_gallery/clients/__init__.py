"""Clients for external services."""

from folio_gallery.clients.gallery_api import GalleryApiClient

__all__ = ["GalleryApiClient"]
