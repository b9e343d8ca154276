"""Enumerations for the folio-gallery data model."""

from enum import Enum


class ChangeKind(str, Enum):
    """What happened to the gallery list.

    Listeners always re-read durable storage; the kind only tells them why.
    """

    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"
    EXTERNAL_CHANGE = "external_change"  # Another context wrote the durable keys
    REFRESHED = "refreshed"  # In-memory list reloaded from durable storage


class RefreshStatus(str, Enum):
    """Result of reloading the gallery list from durable storage."""

    REFRESHED = "refreshed"
    NO_DATA = "no_data"  # Nothing stored under the gallery key
    PARSE_FAILED = "parse_failed"  # Stored data was not a valid gallery list
    STORAGE_ERROR = "storage_error"  # Durable storage could not be read


class ApiSyncStatus(str, Enum):
    """Result of pulling entries from the remote gallery API."""

    SYNCED = "synced"
    DISABLED = "disabled"  # No API client configured
    UNAVAILABLE = "unavailable"  # Transport or HTTP error
