"""Durable key-value storage shared by every gallery context.

A small string-keyed store with get/set/remove/enumerate semantics on top of
one SQL table. Capacity is finite: writes that would push the total stored
size past the quota are rejected with QuotaExceededError, which callers must
tolerate (there are no transactions spanning several keys).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from folio_gallery.errors import QuotaExceededError, StorageFailure
from folio_gallery.models import StorageItem
from folio_gallery.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredRecord:
    """A stored value together with who wrote it and when."""

    key: str
    value: str
    writer_id: str
    updated_at: int


def item_size(key: str, value: str) -> int:
    """Size a key/value pair counts against the quota (characters, like localStorage)."""
    return len(key) + len(value)


class KeyValueStorage:
    """String key-value storage backed by the `storage_items` table.

    Usage:
        storage = KeyValueStorage(async_session_factory, writer_id="ctx-1")
        await storage.set_item("gallery", "[]")
        raw = await storage.get_item("gallery")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        writer_id: str,
        quota_bytes: int | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._session_factory = session_factory
        self._quota = quota_bytes
        self._clock = clock
        self.writer_id = writer_id

    async def get_item(self, key: str) -> str | None:
        """Return the value stored under `key`, or None."""
        record = await self.get_record(key)
        return record.value if record else None

    async def get_record(self, key: str) -> StoredRecord | None:
        """Return the full record stored under `key`, or None."""
        try:
            async with self._session_factory() as session:
                item = await session.get(StorageItem, key)
                if item is None:
                    return None
                return StoredRecord(
                    key=item.key,
                    value=item.value,
                    writer_id=item.writer_id,
                    updated_at=item.updated_at,
                )
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to read {key!r}: {e}") from e

    async def set_item(self, key: str, value: str) -> None:
        """Insert or overwrite `key`.

        Raises:
            QuotaExceededError: The write would exceed the storage quota.
            StorageFailure: The database rejected the write.
        """
        size = item_size(key, value)
        try:
            async with self._session_factory() as session, session.begin():
                existing = await session.get(StorageItem, key)
                if self._quota is not None:
                    used = await session.scalar(
                        select(func.coalesce(func.sum(StorageItem.size_bytes), 0))
                    )
                    required = int(used or 0) - (existing.size_bytes if existing else 0) + size
                    if required > self._quota:
                        raise QuotaExceededError(key, required, self._quota)

                if existing is None:
                    session.add(
                        StorageItem(
                            key=key,
                            value=value,
                            writer_id=self.writer_id,
                            updated_at=self._clock(),
                            size_bytes=size,
                        )
                    )
                else:
                    existing.value = value
                    existing.writer_id = self.writer_id
                    existing.updated_at = self._clock()
                    existing.size_bytes = size
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to write {key!r}: {e}") from e

    async def remove_item(self, key: str) -> None:
        """Delete `key`. Removing a missing key is a no-op."""
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(delete(StorageItem).where(StorageItem.key == key))
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to remove {key!r}: {e}") from e

    async def keys(self, prefix: str | None = None) -> list[str]:
        """Enumerate stored keys, optionally restricted to a prefix."""
        stmt = select(StorageItem.key).order_by(StorageItem.key)
        if prefix:
            stmt = stmt.where(StorageItem.key.startswith(prefix, autoescape=True))
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to enumerate keys: {e}") from e

    async def usage_bytes(self) -> int:
        """Total size of everything stored, as counted against the quota."""
        async with self._session_factory() as session:
            used = await session.scalar(select(func.coalesce(func.sum(StorageItem.size_bytes), 0)))
        return int(used or 0)

    async def clear(self) -> None:
        """Remove every key."""
        async with self._session_factory() as session, session.begin():
            await session.execute(delete(StorageItem))
        logger.info("[STORAGE] cleared all keys")
