"""Image re-encoding to bound blob size.

Decodes an inline image, scales it down to a maximum width (keeping the
aspect ratio) and re-encodes it as JPEG at a fixed quality. Images narrower
than the maximum are re-encoded at their original size.
"""

from __future__ import annotations

import io

from PIL import Image, ImageOps, UnidentifiedImageError

from folio_gallery.errors import ImageCompressionError
from folio_gallery.utils.media import build_data_uri, parse_data_uri, probe_image_format

DEFAULT_MAX_WIDTH = 800
DEFAULT_QUALITY = 0.7

_OUTPUT_MIME = "image/jpeg"


def jpeg_quality(quality: float) -> int:
    """Map a 0-1 quality (canvas convention) onto Pillow's 1-95 JPEG scale."""
    return max(1, min(95, round(quality * 100)))


def scaled_size(width: int, height: int, max_width: int) -> tuple[int, int]:
    """Target dimensions for an image constrained to `max_width`."""
    if width <= max_width:
        return width, height
    ratio = max_width / width
    return max_width, max(1, round(height * ratio))


def compress_image(
    data: bytes,
    *,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: float = DEFAULT_QUALITY,
) -> bytes:
    """Re-encode raw image bytes as a width-bounded JPEG.

    Raises:
        ImageCompressionError: If the bytes are not a decodable image.
    """
    if probe_image_format(data) is None:
        raise ImageCompressionError("Unrecognized image format")

    try:
        with Image.open(io.BytesIO(data)) as img:
            # Apply EXIF orientation the way browsers do before drawing
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGB")  # JPEG has no alpha channel

            size = scaled_size(img.width, img.height, max_width)
            if size != img.size:
                img = img.resize(size, Image.Resampling.LANCZOS)

            out = io.BytesIO()
            img.save(out, format="JPEG", quality=jpeg_quality(quality), optimize=True)
            return out.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageCompressionError(f"Failed to re-encode image: {e}") from e


def compress_data_uri(
    data_uri: str,
    *,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: float = DEFAULT_QUALITY,
) -> str:
    """Compress an image data URI, returning a JPEG data URI.

    Raises:
        ImageCompressionError: If the URI is malformed or not an image.
    """
    try:
        parsed = parse_data_uri(data_uri)
    except ValueError as e:
        raise ImageCompressionError(str(e)) from e

    compressed = compress_image(parsed.data, max_width=max_width, quality=quality)
    return build_data_uri(compressed, _OUTPUT_MIME)


def image_dimensions(data_uri: str) -> tuple[int, int]:
    """Decoded (width, height) of an image data URI.

    Raises:
        ImageCompressionError: If the URI is malformed or not an image.
    """
    try:
        parsed = parse_data_uri(data_uri)
        with Image.open(io.BytesIO(parsed.data)) as img:
            return img.size
    except (ValueError, UnidentifiedImageError, OSError) as e:
        raise ImageCompressionError(f"Failed to decode image: {e}") from e
