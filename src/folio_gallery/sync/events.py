"""In-process change notifications.

A ChangeNotification carries only what happened (its kind), which entry it
concerned and which context caused it. It never carries entry data:
listeners always re-read durable storage, which avoids partial-update and
ordering bugs from stale event payloads.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from folio_gallery.models.enums import ChangeKind
from folio_gallery.utils.clock import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeNotification:
    """Something changed the gallery list."""

    kind: ChangeKind
    origin: str
    """Context id of the writer."""

    entry_id: str | None = None
    at: int = field(default_factory=now_ms)


Listener = Callable[[ChangeNotification], Awaitable[None] | None]


class ChangeBus:
    """Publish/subscribe for ChangeNotifications within one context.

    Listeners may be plain functions or coroutines. A failing listener is
    logged and does not stop delivery to the others or fail the publisher.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def publish(self, notification: ChangeNotification) -> None:
        """Deliver `notification` to every listener, in subscription order."""
        for listener in list(self._listeners):
            try:
                result = listener(notification)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "[SYNC] listener failed handling %s from %s",
                    notification.kind.value,
                    notification.origin,
                )
