"""Gallery Store and entry schemas.

Main entry point:
    from folio_gallery.gallery import GalleryStore

    store = GalleryStore(storage, ImageBlobStore(storage))
    await store.load()
"""

from folio_gallery.gallery.defaults import default_entries
from folio_gallery.gallery.merge import dedupe_entries, merge_entry_lists, pick_newer
from folio_gallery.gallery.schemas import EntryInput, GalleryEntry, new_entry_id
from folio_gallery.gallery.store import ApiSyncOutcome, GalleryStore, RefreshOutcome

__all__ = [
    "ApiSyncOutcome",
    "EntryInput",
    "GalleryEntry",
    "GalleryStore",
    "RefreshOutcome",
    "dedupe_entries",
    "default_entries",
    "merge_entry_lists",
    "new_entry_id",
    "pick_newer",
]
