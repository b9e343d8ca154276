"""Error taxonomy for the gallery persistence layer.

- NotFoundError: an operation referenced an entry id that does not exist.
  Surfaces to the caller.
- StorageFailure: a durable write (or compression) failed after retry.
  Entry-level callers get it only when the entry list itself could not be
  persisted; image storage failures degrade to a default image instead.
- ParseFailure: durable data was present but not valid JSON or not the
  expected shape. Swallowed by the store and treated as "no data".
"""

from __future__ import annotations


class GalleryError(Exception):
    """Base class for gallery persistence errors."""


class NotFoundError(GalleryError):
    """No gallery entry has the requested id."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Gallery entry not found: {entry_id}")
        self.entry_id = entry_id


class StorageFailure(GalleryError):
    """Durable storage rejected or failed a write."""


class QuotaExceededError(StorageFailure):
    """The write would push durable storage past its configured capacity."""

    def __init__(self, key: str, required: int, quota: int) -> None:
        super().__init__(
            f"Storage quota exceeded writing {key!r}: {required} bytes needed, quota is {quota}"
        )
        self.key = key
        self.required = required
        self.quota = quota


class ParseFailure(GalleryError):
    """Stored data could not be decoded into the expected shape."""


class ImageCompressionError(StorageFailure):
    """An inline image could not be decoded or re-encoded."""
