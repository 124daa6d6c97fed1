import asyncio
from typing import Awaitable, Callable

from subconscious.errors import (
    PollingCancelledError,
    PollingTimeoutError,
    SleepCancelledError,
)
from subconscious.models import TERMINAL_STATUSES, Run

DEFAULT_INTERVAL_SECONDS = 1.0


async def sleep(seconds: float, signal: asyncio.Event | None = None) -> None:
    """Wait `seconds`, or raise `SleepCancelledError` as soon as `signal` is set.

    Returning normally always means the full delay elapsed.
    """
    if signal is None:
        await asyncio.sleep(seconds)
        return
    if signal.is_set():
        raise SleepCancelledError("Sleep aborted")
    try:
        await asyncio.wait_for(signal.wait(), timeout=seconds)
    except TimeoutError:
        return
    raise SleepCancelledError("Sleep aborted")


async def poll_until_complete(
    fetch: Callable[[], Awaitable[Run]],
    *,
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    max_attempts: int | None = None,
    signal: asyncio.Event | None = None,
) -> Run:
    """Call `fetch` until the run reaches a terminal status."""
    if max_attempts is not None and max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    attempts = 0
    while True:
        if signal is not None and signal.is_set():
            raise PollingCancelledError("Polling aborted")

        run = await fetch()
        if run.status in TERMINAL_STATUSES:
            return run

        attempts += 1
        if max_attempts is not None and attempts >= max_attempts:
            raise PollingTimeoutError(f"Polling exceeded max attempts ({max_attempts})")

        await sleep(interval_seconds, signal)
