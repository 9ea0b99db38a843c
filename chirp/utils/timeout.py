"""
Timeout Race Primitive.

Runs a blocking call on a daemon thread and waits for it up to a hard
deadline.  The sync Supabase client offers no cancellation, so a call that
misses its deadline keeps running in the background; its eventual result
is dropped on the floor and never reaches the caller.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional, TypeVar

from chirp.errors import OperationTimeoutError

__all__ = ["run_with_timeout"]

T = TypeVar("T")


class _Outcome:
    """Single-assignment box shared between the caller and the worker."""

    __slots__ = ("value", "error", "settled")

    def __init__(self) -> None:
        self.value: Optional[object] = None
        self.error: Optional[BaseException] = None
        self.settled: threading.Event = threading.Event()


def run_with_timeout(
    operation: Callable[[], T],
    timeout_ms: int,
    *,
    name: str = "timed-call",
) -> T:
    """Run *operation* and return its result, or fail after *timeout_ms*.

    Args:
        operation: Zero-argument callable performing the network call.
            Must be safe to abandon: nothing may rely on side effects of
            a call that missed its deadline.
        timeout_ms: Deadline in milliseconds.  Must be positive.
        name: Label used for the worker thread and the timeout error.

    Returns:
        Whatever *operation* returned, when it settled in time.

    Raises:
        OperationTimeoutError: *operation* did not settle within the deadline.
        ValueError: *timeout_ms* is not positive.
        Exception: Whatever *operation* raised, when it settled in time.
    """
    if timeout_ms <= 0:
        raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")

    outcome = _Outcome()

    def _worker() -> None:
        try:
            outcome.value = operation()
        except BaseException as exc:  # noqa: BLE001 - re-raised on the caller's thread
            outcome.error = exc
        finally:
            outcome.settled.set()

    worker = threading.Thread(target=_worker, name=name, daemon=True)
    worker.start()

    if not outcome.settled.wait(timeout_ms / 1000.0):
        raise OperationTimeoutError(name, timeout_ms)

    if outcome.error is not None:
        raise outcome.error
    return outcome.value  # type: ignore[return-value]
