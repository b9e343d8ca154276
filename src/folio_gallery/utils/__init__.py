"""Utility modules for folio-gallery."""

from folio_gallery.utils.clock import now_ms
from folio_gallery.utils.media import (
    DataUri,
    build_data_uri,
    file_to_data_uri,
    is_data_uri,
    parse_data_uri,
    probe_image_format,
)

__all__ = [
    "DataUri",
    "build_data_uri",
    "file_to_data_uri",
    "is_data_uri",
    "now_ms",
    "parse_data_uri",
    "probe_image_format",
]
