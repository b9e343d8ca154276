"""Image Blob Store and image compression.

Main entry point:
    from folio_gallery.images import ImageBlobStore

    images = ImageBlobStore(storage)
    result = await images.store_image("g1", data_uri)
"""

from folio_gallery.images.blob_store import (
    IMAGE_KEY_PREFIX,
    METADATA_KEY_PREFIX,
    ImageBlobStore,
    ImageStoreResult,
    StoredImage,
)
from folio_gallery.images.bundled import BUNDLED_IMAGES, bundled_image
from folio_gallery.images.compression import compress_data_uri, compress_image, image_dimensions

__all__ = [
    "BUNDLED_IMAGES",
    "IMAGE_KEY_PREFIX",
    "METADATA_KEY_PREFIX",
    "ImageBlobStore",
    "ImageStoreResult",
    "StoredImage",
    "bundled_image",
    "compress_data_uri",
    "compress_image",
    "image_dimensions",
]
