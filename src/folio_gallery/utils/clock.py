"""Wall-clock helpers. Timestamps are integer epoch milliseconds throughout."""

from __future__ import annotations

import time
from collections.abc import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)
