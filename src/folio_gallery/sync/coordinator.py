"""Keeps one context's Gallery Store in step with every other context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from folio_gallery.models.enums import ChangeKind
from folio_gallery.sync.events import ChangeNotification
from folio_gallery.sync.watcher import StorageWatcher

if TYPE_CHECKING:
    from folio_gallery.gallery.store import GalleryStore

logger = logging.getLogger(__name__)


class GallerySync:
    """Refreshes a store from durable storage whenever anything changes.

    Same-context writes arrive on the store's bus directly; writes from other
    contexts arrive through the StorageWatcher. Either way the reaction is a
    full refresh_from_storage(). REFRESHED notifications are what a refresh
    itself publishes, so they are not reacted to.

    Usage:
        async with GallerySync(store, StorageWatcher(storage, store.bus)):
            ...
    """

    def __init__(self, store: GalleryStore, watcher: StorageWatcher | None = None) -> None:
        self._store = store
        self._watcher = watcher
        self._unsubscribe = store.bus.subscribe(self._on_change)
        self.refresh_count = 0

    async def __aenter__(self) -> GallerySync:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        if self._watcher is not None:
            await self._watcher.prime()
            self._watcher.start()

    async def close(self) -> None:
        self._unsubscribe()
        if self._watcher is not None:
            await self._watcher.stop()

    async def _on_change(self, notification: ChangeNotification) -> None:
        if notification.kind is ChangeKind.REFRESHED:
            return
        outcome = await self._store.refresh_from_storage()
        self.refresh_count += 1
        logger.debug(
            "[SYNC] %s after %s from %s: %s",
            self._store.context_id,
            notification.kind.value,
            notification.origin,
            outcome.status.value,
        )
