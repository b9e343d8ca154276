"""Last-write-wins deduplication of gallery entries.

Two entries sharing an id are resolved by `last_updated ?? timestamp ?? 0`:
the greater one wins and the loser is discarded whole (no field-level merge).
On a tie the entry seen first is kept. The winner takes the position of the
first occurrence, so list order is stable across merges.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from folio_gallery.errors import ParseFailure
from folio_gallery.gallery.schemas import GalleryEntry

logger = logging.getLogger(__name__)


def pick_newer(current: GalleryEntry, candidate: GalleryEntry) -> GalleryEntry:
    """The winner between two versions of the same entry."""
    return candidate if candidate.version > current.version else current


def dedupe_entries(entries: Iterable[GalleryEntry]) -> list[GalleryEntry]:
    """Collapse entries sharing an id, keeping the newest version of each."""
    unique: dict[str, GalleryEntry] = {}
    for entry in entries:
        existing = unique.get(entry.id)
        if existing is None:
            unique[entry.id] = entry
            continue
        logger.debug("Duplicate entry %s, keeping most recent", entry.id)
        unique[entry.id] = pick_newer(existing, entry)
    return list(unique.values())


def merge_entry_lists(
    local: Iterable[GalleryEntry], incoming: Iterable[GalleryEntry]
) -> list[GalleryEntry]:
    """Merge another list (durable storage, remote API) into `local`.

    Ids present in both resolve by last-write-wins and keep their local
    position. Entries only in `incoming` are interleaved by creation time,
    newest first, so entries added elsewhere land where they were added.
    """
    local = dedupe_entries(local)
    incoming = dedupe_entries(incoming)
    theirs = {e.id: e for e in incoming}
    resolved = [pick_newer(e, theirs[e.id]) if e.id in theirs else e for e in local]

    local_ids = {e.id for e in local}
    extras = [e for e in incoming if e.id not in local_ids]

    merged: list[GalleryEntry] = []
    i = j = 0
    while i < len(resolved) and j < len(extras):
        if (extras[j].timestamp or 0) > (resolved[i].timestamp or 0):
            merged.append(extras[j])
            j += 1
        else:
            merged.append(resolved[i])
            i += 1
    merged.extend(resolved[i:])
    merged.extend(extras[j:])
    return merged


def drop_deleted(entries: Iterable[GalleryEntry], tombstones: dict[str, int]) -> list[GalleryEntry]:
    """Remove entries deleted at or after their last write."""
    return [e for e in entries if e.version > tombstones.get(e.id, -1)]


def prune_tombstones(tombstones: dict[str, int], *, older_than: int) -> dict[str, int]:
    """Drop tombstones recorded before `older_than` (epoch ms)."""
    return {k: v for k, v in tombstones.items() if v >= older_than}


def decode_tombstones(raw: str | None) -> dict[str, int]:
    """Parse the id → deleted-at map. Malformed data counts as no tombstones."""
    if not raw:
        return {}
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored tombstones are not valid JSON, ignoring")
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {str(k): v for k, v in parsed.items() if isinstance(v, int)}


def encode_gallery(entries: Iterable[GalleryEntry]) -> str:
    """Serialize an entry list for durable storage (deduplicated)."""
    return json.dumps([e.model_dump(mode="json") for e in dedupe_entries(entries)])


def decode_gallery(raw: str) -> list[GalleryEntry]:
    """Parse a stored entry list and deduplicate it.

    Items that are not valid entries are skipped with a warning.

    Raises:
        ParseFailure: If `raw` is not JSON or not a JSON array.
    """
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseFailure(f"Stored gallery is not valid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise ParseFailure(f"Stored gallery is a {type(parsed).__name__}, expected a list")

    entries: list[GalleryEntry] = []
    for item in parsed:
        try:
            entries.append(GalleryEntry.model_validate(item))
        except ValidationError:
            logger.warning("Skipping invalid gallery item: %r", item)
    return dedupe_entries(entries)
