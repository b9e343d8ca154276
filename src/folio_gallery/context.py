"""Wiring for one gallery context: storage, blob store, API client and sync."""

from __future__ import annotations

import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from folio_gallery.clients.gallery_api import GalleryApiClient
from folio_gallery.config import settings
from folio_gallery.db import async_session_factory
from folio_gallery.gallery.store import GalleryStore
from folio_gallery.images import ImageBlobStore
from folio_gallery.storage import KeyValueStorage
from folio_gallery.sync import GallerySync, StorageWatcher


def new_context_id(prefix: str = "ctx") -> str:
    """Writer id for a new context, unique across processes."""
    return f"{prefix}-{secrets.token_hex(4)}"


def build_store(
    context_id: str,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    api: GalleryApiClient | None = None,
) -> GalleryStore:
    """A Gallery Store for `context_id` over the configured storage (not yet loaded)."""
    storage = KeyValueStorage(
        session_factory or async_session_factory,
        writer_id=context_id,
        quota_bytes=settings.storage_quota_bytes,
    )
    return GalleryStore(storage, ImageBlobStore(storage), api=api)


@asynccontextmanager
async def open_gallery(
    prefix: str = "ctx",
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    watch: bool = False,
) -> AsyncIterator[GalleryStore]:
    """Load a store and keep it synchronized until the block exits.

    The remote API is used when `api_base_url` is configured. With `watch`,
    writes by other contexts are picked up by polling.
    """
    api = GalleryApiClient() if settings.api_base_url else None
    store = build_store(new_context_id(prefix), session_factory, api=api)
    try:
        await store.load()
        watcher = StorageWatcher(store.storage, store.bus) if watch else None
        async with GallerySync(store, watcher):
            yield store
    finally:
        if api is not None:
            await api.aclose()
