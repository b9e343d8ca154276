"""Image Blob Store: compressed image payloads kept outside the entry list.

Blobs live in the shared key-value storage under `gallery-img-<key>`, with a
JSON metadata record under `gallery-meta-<key>`. The entry list is the source
of truth for which images should exist; this store is a best-effort cache for
their content. Every write path tolerates partial failure: a rejected write
triggers eviction of the oldest blobs and one retry, and nothing here raises
to the caller.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from folio_gallery.config import settings
from folio_gallery.errors import ImageCompressionError, StorageFailure
from folio_gallery.images.bundled import bundled_image
from folio_gallery.images.compression import compress_data_uri
from folio_gallery.storage import KeyValueStorage
from folio_gallery.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)

IMAGE_KEY_PREFIX = "gallery-img-"
METADATA_KEY_PREFIX = "gallery-meta-"

Compressor = Callable[[str], str]


@dataclass(frozen=True)
class StoredImage:
    """An image resolved from the blob store."""

    data: str
    """Compressed data URI, or a bundled image path for default placeholders."""

    metadata: dict[str, Any]
    is_default: bool = False


@dataclass
class ImageStoreResult:
    """Outcome of store_image. Truthy only when the blob was written."""

    key: str
    ok: bool
    evicted: list[str] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]
    original_size: int = 0
    stored_size: int = 0
    metadata_written: bool = False
    error: str | None = None

    def __bool__(self) -> bool:
        return self.ok


def image_key(key: str) -> str:
    return f"{IMAGE_KEY_PREFIX}{key}"


def metadata_key(key: str) -> str:
    return f"{METADATA_KEY_PREFIX}{key}"


class ImageBlobStore:
    """Compress, store, retrieve and evict image blobs keyed by entry id.

    Usage:
        images = ImageBlobStore(storage)
        result = await images.store_image("g1", data_uri, {"title": "Sunset"})
        if result:
            stored = await images.get_image("g1")
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        max_width: int | None = None,
        quality: float | None = None,
        eviction_batch: int | None = None,
        compressor: Compressor | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._storage = storage
        self._eviction_batch = (
            eviction_batch if eviction_batch is not None else settings.eviction_batch
        )
        self._compress = compressor or functools.partial(
            compress_data_uri,
            max_width=max_width or settings.image_max_width,
            quality=quality if quality is not None else settings.image_quality,
        )
        self._clock = clock

    async def store_image(
        self,
        key: str,
        data_uri: str,
        metadata: dict[str, Any] | None = None,
    ) -> ImageStoreResult:
        """Compress `data_uri` and store it under `key`.

        On a rejected write, evicts up to `eviction_batch` of the oldest other
        blobs and retries once. Never raises.
        """
        if not key:
            logger.error("[IMAGES] cannot store image: no key provided")
            return ImageStoreResult(key=key, ok=False, error="no key provided")
        if not data_uri:
            logger.error("[IMAGES] cannot store image %s: no image data", key)
            return ImageStoreResult(key=key, ok=False, error="no image data")

        try:
            compressed = await asyncio.to_thread(self._compress, data_uri)
        except ImageCompressionError as e:
            logger.error("[IMAGES] compression failed for %s: %s", key, e)
            return ImageStoreResult(key=key, ok=False, original_size=len(data_uri), error=str(e))

        result = ImageStoreResult(
            key=key, ok=False, original_size=len(data_uri), stored_size=len(compressed)
        )
        logger.debug(
            "[IMAGES] %s: %d chars → %d chars compressed", key, len(data_uri), len(compressed)
        )

        try:
            await self._storage.set_item(image_key(key), compressed)
        except StorageFailure as e:
            logger.warning("[IMAGES] write rejected for %s (%s), evicting old images", key, e)
            result.evicted = await self.evict_oldest(self._eviction_batch, exclude=key)
            try:
                await self._storage.set_item(image_key(key), compressed)
            except StorageFailure as retry_error:
                logger.error("[IMAGES] failed to store %s after eviction: %s", key, retry_error)
                result.error = str(retry_error)
                return result

        record = {**(metadata or {}), "timestamp": self._clock(), "original_key": key}
        try:
            await self._storage.set_item(metadata_key(key), json.dumps(record))
            result.metadata_written = True
        except StorageFailure as e:
            # The image data matters more than its metadata
            logger.warning("[IMAGES] metadata write failed for %s: %s", key, e)

        result.ok = True
        logger.info("[IMAGES] stored %s (%d chars)", key, len(compressed))
        return result

    async def get_image(self, key: str) -> StoredImage | None:
        """Return the blob for `key`, or None.

        Default-placeholder keys with no stored blob resolve to bundled images.
        A successful read stamps `last_accessed` in the metadata (best-effort).
        """
        if not key:
            return None

        try:
            data = await self._storage.get_item(image_key(key))
        except StorageFailure as e:
            logger.error("[IMAGES] failed to read %s: %s", key, e)
            return None

        if data is None:
            bundled = bundled_image(key)
            if bundled is not None:
                return StoredImage(
                    data=bundled,
                    metadata={"is_default": True, "original_key": key},
                    is_default=True,
                )
            return None

        metadata = await self._read_metadata(key) or {}
        metadata["last_accessed"] = self._clock()
        try:
            await self._storage.set_item(metadata_key(key), json.dumps(metadata))
        except StorageFailure as e:
            logger.debug("[IMAGES] could not stamp last_accessed for %s: %s", key, e)

        return StoredImage(data=data, metadata=metadata)

    async def remove_image(self, key: str) -> bool:
        """Delete the blob and its metadata. Idempotent; always True."""
        for storage_key in (image_key(key), metadata_key(key)):
            try:
                await self._storage.remove_item(storage_key)
            except StorageFailure as e:
                logger.warning("[IMAGES] failed to remove %s: %s", storage_key, e)
        logger.info("[IMAGES] removed %s", key)
        return True

    async def list_images(self) -> list[str]:
        """Keys of every stored blob."""
        try:
            keys = await self._storage.keys(prefix=IMAGE_KEY_PREFIX)
        except StorageFailure as e:
            logger.error("[IMAGES] failed to list images: %s", e)
            return []
        return [k[len(IMAGE_KEY_PREFIX) :] for k in keys]

    async def evict_oldest(self, count: int, *, exclude: str | None = None) -> list[str]:
        """Remove up to `count` blobs with the oldest metadata timestamps.

        Blobs without readable metadata rank as timestamp 0. Failures to
        remove a blob are logged and skipped.

        Returns:
            Keys that were evicted.
        """
        if count <= 0:
            return []

        ranked: list[tuple[int, str]] = []
        for key in await self.list_images():
            if key == exclude:
                continue
            metadata = await self._read_metadata(key) or {}
            timestamp = metadata.get("timestamp")
            ranked.append((timestamp if isinstance(timestamp, int) else 0, key))
        ranked.sort()

        evicted: list[str] = []
        for _, key in ranked[:count]:
            try:
                await self._storage.remove_item(image_key(key))
                await self._storage.remove_item(metadata_key(key))
            except StorageFailure as e:
                logger.warning("[IMAGES] eviction of %s failed: %s", key, e)
                continue
            evicted.append(key)
            logger.info("[IMAGES] evicted %s to free up space", key)
        return evicted

    async def _read_metadata(self, key: str) -> dict[str, Any] | None:
        try:
            raw = await self._storage.get_item(metadata_key(key))
        except StorageFailure as e:
            logger.warning("[IMAGES] failed to read metadata for %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("[IMAGES] metadata for %s is not valid JSON", key)
            return None
        return parsed if isinstance(parsed, dict) else None
