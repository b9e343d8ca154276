"""Database models and enums for folio-gallery."""

from folio_gallery.models.base import Base
from folio_gallery.models.enums import ApiSyncStatus, ChangeKind, RefreshStatus
from folio_gallery.models.storage_item import StorageItem

__all__ = [
    "ApiSyncStatus",
    "Base",
    "ChangeKind",
    "RefreshStatus",
    "StorageItem",
]
