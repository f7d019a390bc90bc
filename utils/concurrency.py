import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, TypeVar

from config import settings
from exceptions import StageTimeoutError, UnitCancelledError

T = TypeVar("T")

_executor: ThreadPoolExecutor | None = None


def stage_executor() -> ThreadPoolExecutor:
    """Shared pool for delegated calls, capped at settings.stage_threads."""
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=settings.stage_threads, thread_name_prefix="pinch-stage"
        )
    return _executor


class CancellationToken:
    """Per-unit cancellation flag checked at every suspension point."""

    def __init__(self):
        self._cancelled = False
        self.reason = ""

    def cancel(self, reason: str = "Cancelled") -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise UnitCancelledError(self.reason or "Cancelled")


async def run_stage(
    name: str,
    func: Callable[..., T],
    *args,
    timeout: float | None = None,
    token: CancellationToken | None = None,
) -> T:
    """Run a blocking collaborator call on the stage pool, bounded by a timeout.

    The token is checked before the call and again once it returns, so a
    cancelled unit never continues past a suspension point.

    A timeout abandons the await, not the call: Python threads cannot be
    interrupted, so a stalled call keeps its pool thread until it returns.
    The pool size caps how many such threads can pile up across retries.

    Raises:
        UnitCancelledError: If the token was cancelled.
        StageTimeoutError: If the call exceeds the timeout.
            Defaults to settings.stage_timeout_seconds.
    """
    if timeout is None:
        timeout = settings.stage_timeout_seconds
    if token is not None:
        token.raise_if_cancelled()

    loop = asyncio.get_running_loop()
    call = loop.run_in_executor(stage_executor(), functools.partial(func, *args))
    try:
        result = await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError:
        raise StageTimeoutError(
            f"Stage {name} timed out after {timeout}s",
            stage=name,
            timeout=timeout,
        )

    if token is not None:
        token.raise_if_cancelled()
    return result


async def checkpoint(token: CancellationToken | None) -> None:
    """Yield to the event loop, then honour cancellation."""
    await asyncio.sleep(0)
    if token is not None:
        token.raise_if_cancelled()
