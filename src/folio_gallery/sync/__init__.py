"""Cross-context synchronization of the gallery list."""

from folio_gallery.sync.coordinator import GallerySync
from folio_gallery.sync.events import ChangeBus, ChangeNotification, Listener
from folio_gallery.sync.watcher import StorageWatcher

__all__ = [
    "ChangeBus",
    "ChangeNotification",
    "GallerySync",
    "Listener",
    "StorageWatcher",
]
