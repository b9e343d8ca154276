"""Built-in gallery installed when durable storage holds no usable list."""

from __future__ import annotations

from folio_gallery.gallery.schemas import GalleryEntry
from folio_gallery.images.bundled import BUNDLED_IMAGES


def default_entries() -> list[GalleryEntry]:
    """The four placeholder entries, `default-1` through `default-4`.

    They carry no timestamps, so any stored version of the same id wins a merge.
    """
    entries: list[GalleryEntry] = []
    for index, (key, path) in enumerate(BUNDLED_IMAGES.items(), start=1):
        entries.append(
            GalleryEntry(
                id=key,
                title=f"Image {index}",
                description=f"Description {index}",
                alt=f"Gallery image {index}",
                image_ref=path,
            )
        )
    return entries
