"""Data URI handling and image format probing.

Inline images reach the gallery as data URIs (`data:image/png;base64,...`).
This module splits them into MIME type and bytes, rebuilds them, and detects
the actual image format from magic bytes, since the declared MIME type is
whatever the client claimed.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from pathlib import Path
from typing import Final
from urllib.parse import unquote_to_bytes

DATA_URI_PREFIX: Final[str] = "data:"

# Magic byte signatures for image formats Pillow can decode
# Format: (magic_bytes, offset, format_name)
_MAGIC_SIGNATURES: Final[list[tuple[bytes, int, str]]] = [
    (b"\xff\xd8\xff", 0, "jpeg"),
    (b"\x89PNG\r\n\x1a\n", 0, "png"),
    (b"GIF87a", 0, "gif"),
    (b"GIF89a", 0, "gif"),
    (b"BM", 0, "bmp"),
    (b"II*\x00", 0, "tiff"),
    (b"MM\x00*", 0, "tiff"),
]

# Extension to format mapping (fallback for file paths without readable headers)
_EXTENSION_MAP: Final[dict[str, str]] = {
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".png": "png",
    ".gif": "gif",
    ".webp": "webp",
    ".bmp": "bmp",
    ".tiff": "tiff",
    ".tif": "tiff",
}

_FORMAT_MIME: Final[dict[str, str]] = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
}


@dataclass(frozen=True)
class DataUri:
    """A decoded data URI."""

    mime_type: str
    data: bytes


def is_data_uri(value: str | None) -> bool:
    """True if `value` is an inline data URI rather than a path or URL."""
    return value is not None and value.startswith(DATA_URI_PREFIX)


def parse_data_uri(value: str) -> DataUri:
    """Decode a data URI into MIME type and raw bytes.

    Supports both base64 and percent-encoded payloads.

    Raises:
        ValueError: If the value is not a well-formed data URI.
    """
    if not is_data_uri(value):
        raise ValueError("Not a data URI")

    header, sep, payload = value[len(DATA_URI_PREFIX) :].partition(",")
    if not sep:
        raise ValueError("Data URI has no payload separator")

    params = header.split(";")
    mime_type = params[0] or "text/plain"
    if "base64" in params[1:]:
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
    else:
        data = unquote_to_bytes(payload)

    return DataUri(mime_type=mime_type, data=data)


def build_data_uri(data: bytes, mime_type: str) -> str:
    """Encode bytes as a base64 data URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def probe_image_format(data: bytes) -> str | None:
    """Detect the image format from magic bytes.

    Returns:
        Format name ("jpeg", "png", ...) or None if unrecognized.
    """
    # RIFF container: only WEBP is an image
    if data.startswith(b"RIFF") and len(data) >= 12:
        return "webp" if data[8:12] == b"WEBP" else None

    for magic, offset, fmt in _MAGIC_SIGNATURES:
        if len(data) >= offset + len(magic) and data[offset : offset + len(magic)] == magic:
            return fmt

    return None


def mime_for_path(path: str | Path) -> str | None:
    """Guess an image MIME type from a file path, header first, extension second."""
    path = Path(path)
    fmt: str | None = None
    if path.is_file():
        with path.open("rb") as f:
            fmt = probe_image_format(f.read(32))
    if fmt is None:
        fmt = _EXTENSION_MAP.get(path.suffix.lower())
    return _FORMAT_MIME.get(fmt) if fmt else None


def file_to_data_uri(path: str | Path) -> str:
    """Read an image file into a data URI, the shape UI uploads arrive in.

    Raises:
        ValueError: If the file is not a recognizable image.
    """
    path = Path(path)
    mime_type = mime_for_path(path)
    if mime_type is None:
        raise ValueError(f"Not a recognized image file: {path}")
    return build_data_uri(path.read_bytes(), mime_type)
