"""Built-in placeholder images shipped with the site.

The default gallery entries point at these, and the blob store resolves their
keys to these paths when no blob was ever stored for them.
"""

from __future__ import annotations

from typing import Final

BUNDLED_IMAGES: Final[dict[str, str]] = {
    "default-1": "/assets/gallery/1.webp",
    "default-2": "/assets/gallery/2.webp",
    "default-3": "/assets/gallery/3.webp",
    "default-4": "/assets/gallery/4.webp",
}


def bundled_image(key: str) -> str | None:
    """Path of the bundled image for a default-placeholder key, or None."""
    return BUNDLED_IMAGES.get(key)
