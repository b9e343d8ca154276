"""Pydantic schemas for gallery entries.

Entries reach the store from three places (the remote API, durable storage
written by older clients, and callers) with inconsistent field names:
`_id` vs `id`, `imageUrl` vs `src` vs `imageRef`, `lastUpdated`,
`createdAt`. All of them are normalized here, at the model boundary, into one
shape; nothing downstream looks at source-specific names.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, model_validator

from folio_gallery.utils.clock import Clock, now_ms

INDIRECT_PREFIX: Final[str] = "img:"

# Source field name → canonical field name, in priority order per target
_ID_ALIASES: Final[tuple[str, ...]] = ("id", "_id")
_IMAGE_ALIASES: Final[tuple[str, ...]] = ("image_ref", "imageRef", "imageUrl", "image_url", "src")
_LAST_UPDATED_ALIASES: Final[tuple[str, ...]] = ("last_updated", "lastUpdated")

_ID_ALPHABET: Final[str] = string.digits + string.ascii_lowercase


def new_entry_id(clock: Clock = now_ms) -> str:
    """Fresh entry id: creation time plus a random base-36 suffix."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"gallery-{clock()}-{suffix}"


def indirect_ref(key: str) -> str:
    """`img:<key>` reference pointing into the Image Blob Store."""
    return f"{INDIRECT_PREFIX}{key}"


def blob_key_of(image_ref: str | None) -> str | None:
    """Blob key of an indirect reference, or None for direct paths/URLs."""
    if image_ref and image_ref.startswith(INDIRECT_PREFIX):
        return image_ref[len(INDIRECT_PREFIX) :] or None
    return None


def _first_present(data: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = data.get(name)
        if value not in (None, ""):
            return value
    return None


def _to_epoch_ms(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return int(text)
        try:
            return int(datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp() * 1000)
        except ValueError:
            return None
    return None


def normalize_fields(data: Any) -> Any:
    """Map source-specific field names onto the canonical entry fields.

    Only keys that were present in the input are emitted, so pydantic's
    `model_fields_set` still tells supplied fields apart from defaults.
    """
    if not isinstance(data, dict):
        return data

    out: dict[str, Any] = {}
    entry_id = _first_present(data, _ID_ALIASES)
    if entry_id is not None:
        out["id"] = str(entry_id)

    for name in ("title", "description", "alt"):
        if name in data and data[name] is not None:
            out[name] = str(data[name])

    image_ref = _first_present(data, _IMAGE_ALIASES)
    if image_ref is not None:
        out["image_ref"] = str(image_ref)

    timestamp = _to_epoch_ms(data.get("timestamp"))
    if timestamp is None:
        timestamp = _to_epoch_ms(data.get("createdAt"))
    if timestamp is not None:
        out["timestamp"] = timestamp

    last_updated = _to_epoch_ms(_first_present(data, _LAST_UPDATED_ALIASES))
    if last_updated is not None:
        out["last_updated"] = last_updated

    return out


class GalleryEntry(BaseModel):
    """A titled image record as held by the Gallery Store."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1, description="Primary key, stable for the entry's lifetime")
    title: str = "Untitled"
    description: str = ""
    alt: str = ""
    image_ref: str = Field(default="", description="Direct path/URL or `img:<key>` reference")
    timestamp: int | None = Field(default=None, description="Creation time, epoch ms")
    last_updated: int | None = Field(default=None, description="Last update time, epoch ms")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        return normalize_fields(data)

    @property
    def version(self) -> int:
        """Tie-break for last-write-wins merges."""
        if self.last_updated is not None:
            return self.last_updated
        if self.timestamp is not None:
            return self.timestamp
        return 0

    @property
    def blob_key(self) -> str | None:
        """Blob store key when `image_ref` is an indirect reference."""
        return blob_key_of(self.image_ref)


class EntryInput(BaseModel):
    """Caller-supplied entry fields for add/update. Everything is optional."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    title: str | None = None
    description: str | None = None
    alt: str | None = None
    image_ref: str | None = None
    timestamp: int | None = None
    last_updated: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        return normalize_fields(data)

    def supplied(self) -> dict[str, Any]:
        """Only the fields the caller actually set."""
        return self.model_dump(exclude_unset=True, exclude_none=True)
