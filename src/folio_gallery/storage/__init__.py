"""Durable key-value storage."""

from folio_gallery.storage.keys import (
    GALLERY_KEY,
    LAST_UPDATED_KEY,
    TOMBSTONES_KEY,
    WATCHED_KEYS,
)
from folio_gallery.storage.kv import KeyValueStorage, StoredRecord, item_size

__all__ = [
    "GALLERY_KEY",
    "LAST_UPDATED_KEY",
    "TOMBSTONES_KEY",
    "WATCHED_KEYS",
    "KeyValueStorage",
    "StoredRecord",
    "item_size",
]
