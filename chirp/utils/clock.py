"""Clock collaborator: sleeping and time reads go through here so tests can fake them."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

__all__ = ["Clock", "SystemClock"]


@runtime_checkable
class Clock(Protocol):
    """Delay and time-read primitive used by retry loops."""

    def sleep(self, seconds: float) -> None: ...  # noqa: E704

    def monotonic(self) -> float: ...  # noqa: E704

    def now(self) -> datetime: ...  # noqa: E704


class SystemClock:
    """Real wall-clock implementation."""

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
