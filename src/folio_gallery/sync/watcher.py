"""Detects writes made to durable storage by other contexts.

Contexts share one database but no process, so there is nothing to push a
notification across. The watcher polls the watched keys, remembers a
signature of each, and publishes EXTERNAL_CHANGE when a key was rewritten by
a writer other than its own context. Writes made by the owning context are
already announced on the bus and are ignored here.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Sequence

from folio_gallery.config import settings
from folio_gallery.errors import StorageFailure
from folio_gallery.models.enums import ChangeKind
from folio_gallery.storage import WATCHED_KEYS, KeyValueStorage, StoredRecord
from folio_gallery.sync.events import ChangeBus, ChangeNotification

logger = logging.getLogger(__name__)

Signature = tuple[str, int, int]


def _signature(record: StoredRecord | None) -> Signature | None:
    if record is None:
        return None
    return (record.writer_id, record.updated_at, hash(record.value))


class StorageWatcher:
    """Polls watched keys and announces foreign writes on a ChangeBus.

    Usage:
        watcher = StorageWatcher(storage, store.bus)
        watcher.start()
        ...
        await watcher.stop()
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        bus: ChangeBus,
        *,
        keys: Sequence[str] = WATCHED_KEYS,
        interval: float | None = None,
    ) -> None:
        self._storage = storage
        self._bus = bus
        self._keys = tuple(keys)
        self._interval = interval if interval is not None else settings.watch_interval_seconds
        self._seen: dict[str, Signature | None] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def prime(self) -> None:
        """Record the current state without announcing it."""
        for key in self._keys:
            self._seen[key] = _signature(await self._storage.get_record(key))

    async def poll_once(self) -> bool:
        """Check every watched key once. Returns True if a foreign write was announced."""
        if not self._seen:
            await self.prime()
            return False

        changed_by: str | None = None
        for key in self._keys:
            record = await self._storage.get_record(key)
            signature = _signature(record)
            if signature == self._seen.get(key):
                continue
            self._seen[key] = signature
            if record is not None and record.writer_id != self._storage.writer_id:
                changed_by = record.writer_id
            elif record is None:
                # A removal carries no writer, so it can only have come from outside
                changed_by = changed_by or "unknown"

        if changed_by is None:
            return False

        logger.info("[SYNC] %s saw external write by %s", self._storage.writer_id, changed_by)
        await self._bus.publish(
            ChangeNotification(kind=ChangeKind.EXTERNAL_CHANGE, origin=changed_by)
        )
        return True

    async def run(self) -> None:
        """Poll until cancelled. Storage errors are logged and polling continues."""
        logger.debug("[SYNC] watching %s every %.2fs", ", ".join(self._keys), self._interval)
        while True:
            try:
                await self.poll_once()
            except StorageFailure as e:
                logger.warning("[SYNC] poll failed: %s", e)
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        """Run the poll loop as a background task on the current event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
