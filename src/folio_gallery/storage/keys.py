"""Durable storage keys owned by the Gallery Store."""

from typing import Final

GALLERY_KEY: Final[str] = "gallery"
LAST_UPDATED_KEY: Final[str] = "gallery-last-updated"
# id → epoch ms of deletion, so merging a stale list cannot resurrect entries
TOMBSTONES_KEY: Final[str] = "gallery-deleted"

# Keys whose changes by another context trigger a reload
WATCHED_KEYS: Final[tuple[str, ...]] = (GALLERY_KEY, LAST_UPDATED_KEY)
