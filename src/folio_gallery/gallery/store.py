"""Gallery Store: the authoritative entry list for one context.

Each context (process, worker, CLI invocation) owns one GalleryStore. The
store keeps the ordered entry list in memory, persists it to the shared
durable storage after every change, and publishes a ChangeNotification on
its bus. Writes go:

    normalize entry → inline image? → ImageBlobStore (img:<id> or default path)
                    → update in-memory list → merge with stored list by LWW,
                      minus tombstoned ids → write `gallery`
                    → write `gallery-last-updated` → publish notification

Concurrent contexts are reconciled by last-write-wins on
`last_updated ?? timestamp ?? 0` and by re-reading durable storage on every
notification (see folio_gallery.sync). There is no cross-context locking.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from folio_gallery.config import settings
from folio_gallery.errors import NotFoundError, ParseFailure, StorageFailure
from folio_gallery.gallery.defaults import default_entries
from folio_gallery.gallery.merge import (
    decode_gallery,
    decode_tombstones,
    drop_deleted,
    encode_gallery,
    merge_entry_lists,
    prune_tombstones,
)
from folio_gallery.gallery.schemas import EntryInput, GalleryEntry, indirect_ref, new_entry_id
from folio_gallery.images import ImageBlobStore
from folio_gallery.models.enums import ApiSyncStatus, ChangeKind, RefreshStatus
from folio_gallery.storage import GALLERY_KEY, LAST_UPDATED_KEY, TOMBSTONES_KEY, KeyValueStorage
from folio_gallery.sync.events import ChangeBus, ChangeNotification, Listener
from folio_gallery.utils.clock import Clock, now_ms
from folio_gallery.utils.media import is_data_uri

if TYPE_CHECKING:
    from folio_gallery.clients.gallery_api import GalleryApiClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshOutcome:
    """Result of refresh_from_storage."""

    status: RefreshStatus
    count: int = 0
    error: str | None = None


@dataclass(frozen=True)
class ApiSyncOutcome:
    """Result of sync_from_api."""

    status: ApiSyncStatus
    pulled: int = 0


def _as_input(entry: EntryInput | GalleryEntry | Mapping[str, Any]) -> EntryInput:
    if isinstance(entry, EntryInput):
        return entry
    if isinstance(entry, GalleryEntry):
        return EntryInput.model_validate(entry.model_dump(exclude_unset=True))
    return EntryInput.model_validate(dict(entry))


class GalleryStore:
    """Ordered, durable, deduplicated list of gallery entries.

    Usage:
        store = GalleryStore(storage, ImageBlobStore(storage))
        await store.load()
        entry = await store.add({"title": "Sunset", "imageRef": data_uri})
        await store.update({"id": entry.id, "title": "Dusk"})
        await store.delete(entry.id)
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        images: ImageBlobStore,
        *,
        bus: ChangeBus | None = None,
        api: GalleryApiClient | None = None,
        default_image_path: str | None = None,
        tombstone_retention_ms: int | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._storage = storage
        self._images = images
        self._api = api
        self._default_image = default_image_path or settings.default_image_path
        self._tombstone_retention_ms = (
            tombstone_retention_ms
            if tombstone_retention_ms is not None
            else settings.tombstone_retention_seconds * 1000
        )
        self._clock = clock
        self._entries: list[GalleryEntry] = []
        self.bus = bus or ChangeBus()
        self.last_update: int = clock()  # moves on every persist and refresh

    @property
    def context_id(self) -> str:
        return self._storage.writer_id

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    @property
    def images(self) -> ImageBlobStore:
        return self._images

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Observe changes (and with them `last_update`). Returns an unsubscribe function."""
        return self.bus.subscribe(listener)

    # ── Queries ──────────────────────────────────────────────────────────────

    def list(self) -> list[GalleryEntry]:
        """Current entries, most recently added first."""
        return list(self._entries)

    def get(self, entry_id: str) -> GalleryEntry:
        """Entry with `entry_id`.

        Raises:
            NotFoundError: No entry has that id.
        """
        index = self._index_of(entry_id)
        if index is None:
            raise NotFoundError(entry_id)
        return self._entries[index]

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def load(self) -> list[GalleryEntry]:
        """Adopt the stored list, or install the default gallery.

        A stored list is adopted when it parses and holds at least one valid
        entry. Entries whose `img:` blob has gone missing are pointed at the
        default image. Otherwise the four default entries are installed and
        persisted (a persistence failure there is logged, not raised).
        """
        entries: list[GalleryEntry] = []
        try:
            raw = await self._storage.get_item(GALLERY_KEY)
            if raw is not None:
                entries = decode_gallery(raw)
        except ParseFailure as e:
            logger.error("[STORE] stored gallery unreadable, using defaults: %s", e)
        except StorageFailure as e:
            logger.error("[STORE] could not read stored gallery, using defaults: %s", e)

        if entries:
            self._entries = [await self._with_live_blob(e) for e in entries]
            self.last_update = self._clock()
            logger.info("[STORE] %s loaded %d entries", self.context_id, len(self._entries))
            return self.list()

        logger.info("[STORE] %s installing default gallery", self.context_id)
        self._entries = default_entries()
        try:
            await self._persist(ChangeKind.ADDED, revived=[e.id for e in self._entries])
        except StorageFailure as e:
            logger.error("[STORE] could not save default gallery: %s", e)
        return self.list()

    # ── Mutations ────────────────────────────────────────────────────────────

    async def add(self, entry: EntryInput | GalleryEntry | Mapping[str, Any]) -> GalleryEntry:
        """Add an entry, or replace the entry with the same id in place.

        Missing fields get defaults: id (generated), title "Untitled",
        description "", alt = title, timestamp = now. An inline data URI is
        moved into the Image Blob Store and replaced by `img:<id>`; if that
        fails the default image path is used instead.

        Raises:
            StorageFailure: The list could not be persisted. The in-memory
                list has been updated regardless.
        """
        fields = _as_input(entry).supplied()
        entry_id = fields.get("id") or new_entry_id(self._clock)
        title = fields.get("title") or "Untitled"
        new_entry = GalleryEntry(
            id=entry_id,
            title=title,
            description=fields.get("description") or "",
            alt=fields.get("alt") or title,
            image_ref=fields.get("image_ref") or "",
            timestamp=fields.get("timestamp") or self._clock(),
            last_updated=fields.get("last_updated"),
        )
        new_entry = await self._store_inline_image(new_entry, fallback=self._default_image)
        if not new_entry.image_ref:
            new_entry = new_entry.model_copy(update={"image_ref": self._default_image})

        # Looked up after the image await; other tasks may have changed the list
        index = self._index_of(entry_id)
        if index is None:
            self._entries.insert(0, new_entry)
        else:
            previous = self._entries[index]
            self._entries[index] = new_entry
            await self._drop_stale_blob(previous, new_entry)
        logger.info("[STORE] %s added %s", self.context_id, entry_id)

        if self._api is not None:
            await self._api.create_entry(new_entry)
        await self._persist(ChangeKind.ADDED, entry_id, revived=(entry_id,))
        return new_entry

    async def update(self, entry: EntryInput | GalleryEntry | Mapping[str, Any]) -> GalleryEntry:
        """Merge the supplied fields over an existing entry.

        Stamps `last_updated = now`. An inline data URI is stored like in
        add(); if storing fails the previous image reference is kept.

        Raises:
            NotFoundError: No entry has the given id.
            StorageFailure: The list could not be persisted.
        """
        fields = _as_input(entry).supplied()
        entry_id = fields.pop("id", "")
        index = self._index_of(entry_id)
        if index is None:
            logger.warning("[STORE] update of unknown entry %s", entry_id)
            raise NotFoundError(entry_id)

        existing = self._entries[index]
        # Creation time is immutable; the update time is always ours
        fields.pop("timestamp", None)
        fields.pop("last_updated", None)

        updated = existing.model_copy(update={**fields, "last_updated": self._clock()})
        updated = await self._store_inline_image(updated, fallback=existing.image_ref)

        # The entry may have been deleted or moved while the image was stored
        index = self._index_of(entry_id)
        if index is None:
            logger.warning("[STORE] %s was deleted during its update", entry_id)
            if updated.blob_key is not None:
                await self._images.remove_image(updated.blob_key)
            raise NotFoundError(entry_id)
        current = self._entries[index]
        self._entries[index] = updated
        await self._drop_stale_blob(current, updated)
        logger.info("[STORE] %s updated %s", self.context_id, entry_id)

        if self._api is not None:
            await self._api.update_entry(updated)
        await self._persist(ChangeKind.UPDATED, entry_id)
        return updated

    async def delete(self, entry_id: str) -> None:
        """Remove an entry and its stored image.

        Raises:
            NotFoundError: No entry has that id.
            StorageFailure: The list could not be persisted.
        """
        index = self._index_of(entry_id)
        if index is None:
            logger.warning("[STORE] delete of unknown entry %s", entry_id)
            raise NotFoundError(entry_id)

        removed = self._entries.pop(index)
        if removed.blob_key is not None:
            await self._images.remove_image(removed.blob_key)
        logger.info("[STORE] %s deleted %s", self.context_id, entry_id)

        if self._api is not None:
            await self._api.delete_entry(entry_id)
        await self._persist(ChangeKind.DELETED, entry_id, buried=removed)

    # ── Synchronization ──────────────────────────────────────────────────────

    async def refresh_from_storage(self) -> RefreshOutcome:
        """Reload the list from durable storage, deduplicating by last-write-wins.

        Never raises. Unreadable or malformed data is logged and the
        in-memory list is left unchanged.
        """
        try:
            raw = await self._storage.get_item(GALLERY_KEY)
        except StorageFailure as e:
            logger.error("[STORE] refresh failed reading storage: %s", e)
            return RefreshOutcome(RefreshStatus.STORAGE_ERROR, len(self._entries), str(e))

        if raw is None:
            logger.debug("[STORE] refresh: no stored gallery")
            return RefreshOutcome(RefreshStatus.NO_DATA, len(self._entries))

        try:
            entries = decode_gallery(raw)
        except ParseFailure as e:
            logger.error("[STORE] refresh: %s", e)
            return RefreshOutcome(RefreshStatus.PARSE_FAILED, len(self._entries), str(e))

        self._entries = entries
        self.last_update = self._clock()
        logger.debug("[STORE] %s refreshed, %d entries", self.context_id, len(entries))
        await self.bus.publish(ChangeNotification(kind=ChangeKind.REFRESHED, origin=self.context_id))
        return RefreshOutcome(RefreshStatus.REFRESHED, len(entries))

    async def sync_from_api(self) -> ApiSyncOutcome:
        """Pull entries from the remote API and merge them in by last-write-wins.

        Returns DISABLED without an API client and UNAVAILABLE when the API
        cannot be reached; neither raises.

        Raises:
            StorageFailure: The merged list could not be persisted.
        """
        if self._api is None:
            return ApiSyncOutcome(ApiSyncStatus.DISABLED)

        remote = await self._api.list_entries()
        if remote is None:
            logger.warning("[STORE] remote gallery unavailable, keeping local entries")
            return ApiSyncOutcome(ApiSyncStatus.UNAVAILABLE)

        self._entries = merge_entry_lists(self._entries, remote)
        await self._persist(ChangeKind.EXTERNAL_CHANGE)
        logger.info("[STORE] merged %d remote entries", len(remote))
        return ApiSyncOutcome(ApiSyncStatus.SYNCED, pulled=len(remote))

    # ── Internals ────────────────────────────────────────────────────────────

    def _index_of(self, entry_id: str | None) -> int | None:
        if not entry_id:
            return None
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return i
        return None

    async def _store_inline_image(self, entry: GalleryEntry, *, fallback: str) -> GalleryEntry:
        """Move an inline data URI into the blob store, rewriting `image_ref`."""
        if not is_data_uri(entry.image_ref):
            return entry

        result = await self._images.store_image(
            entry.id,
            entry.image_ref,
            {"title": entry.title, "description": entry.description, "alt": entry.alt},
        )
        if result:
            return entry.model_copy(update={"image_ref": indirect_ref(entry.id)})

        logger.warning("[STORE] image for %s not stored (%s), using %s", entry.id, result.error, fallback)
        return entry.model_copy(update={"image_ref": fallback})

    async def _with_live_blob(self, entry: GalleryEntry) -> GalleryEntry:
        """Point entries whose blob has disappeared at the default image."""
        key = entry.blob_key
        if key is None or await self._images.get_image(key) is not None:
            return entry
        logger.warning("[STORE] image missing for %s, using default image", key)
        return entry.model_copy(update={"image_ref": self._default_image})

    async def _drop_stale_blob(self, old: GalleryEntry, new: GalleryEntry) -> None:
        """Remove the old entry's blob once nothing references it."""
        if old.blob_key is not None and new.blob_key != old.blob_key:
            await self._images.remove_image(old.blob_key)

    async def _persist(
        self,
        kind: ChangeKind,
        entry_id: str | None = None,
        *,
        buried: GalleryEntry | None = None,
        revived: Iterable[str] = (),
    ) -> None:
        """Merge with durable storage, write the list and marker, then notify.

        Entries other contexts persisted since our last read are merged in by
        last-write-wins, so a stale context cannot roll back a newer write.
        Tombstones keep deleted ids from coming back through that merge and
        are dropped once older than the retention window.
        """
        try:
            stored_raw = await self._storage.get_item(GALLERY_KEY)
            tombstones = decode_tombstones(await self._storage.get_item(TOMBSTONES_KEY))
        except StorageFailure as e:
            logger.error("[STORE] failed to read gallery before persisting: %s", e)
            raise

        stored: list[GalleryEntry] = []
        if stored_raw is not None:
            try:
                stored = decode_gallery(stored_raw)
            except ParseFailure as e:
                logger.warning("[STORE] overwriting unreadable stored gallery: %s", e)

        tombstones_changed = False
        if buried is not None:
            tombstones[buried.id] = max(self._clock(), buried.version)
            tombstones_changed = True
        for revived_id in revived:
            if tombstones.pop(revived_id, None) is not None:
                tombstones_changed = True
        live = prune_tombstones(tombstones, older_than=self._clock() - self._tombstone_retention_ms)
        if len(live) < len(tombstones):
            tombstones_changed = True
        tombstones = live

        self._entries = drop_deleted(merge_entry_lists(self._entries, stored), tombstones)
        payload = encode_gallery(self._entries)
        stamp = self._clock()
        try:
            if tombstones_changed:
                await self._storage.set_item(TOMBSTONES_KEY, json.dumps(tombstones))
            await self._storage.set_item(GALLERY_KEY, payload)
            await self._storage.set_item(LAST_UPDATED_KEY, str(stamp))
        except StorageFailure as e:
            logger.error("[STORE] failed to persist gallery (%d chars): %s", len(payload), e)
            raise

        self.last_update = stamp
        await self.bus.publish(
            ChangeNotification(kind=kind, origin=self.context_id, entry_id=entry_id)
        )
