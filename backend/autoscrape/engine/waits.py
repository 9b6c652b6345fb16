"""Timed waits that honour a cancellation token.

Every wait polls the token at a fixed interval, so cancellation latency is
bounded by that interval plus the step's own timeout.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar

from autoscrape.engine.cancellation import CancellationToken
from autoscrape.exceptions import StepTimeoutError, UserCancelled, UserSkipped

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 0.1


async def run_step(
    awaitable: Awaitable[T],
    token: CancellationToken,
    timeout: float | None,
    name: str = "step",
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    skippable: bool = False,
) -> T:
    """
    Await ``awaitable`` with a timeout while watching ``token``.

    Raises StepTimeoutError when the timeout elapses, UserCancelled when the
    session is cancelled and, for skippable steps, UserSkipped when the
    operator skips the current provider. The underlying task is cancelled in
    all three cases.
    """
    task = asyncio.ensure_future(awaitable)
    deadline = None if timeout is None else time.monotonic() + timeout
    try:
        token.raise_if_cancelled()
        while True:
            wait_for = poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise StepTimeoutError(f"timeout waiting for {name} after {timeout:.1f}s")
                wait_for = min(poll_interval, remaining)
            done, _ = await asyncio.wait({task}, timeout=wait_for)
            if done:
                return task.result()
            if token.cancelled:
                raise UserCancelled("Automation cancelled")
            if skippable and token.skip_requested:
                token.consume_skip()
                raise UserSkipped("user skipped")
    finally:
        if not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, Exception) as e:
                logger.debug(f"Abandoned {name}: {type(e).__name__}")


async def wait_until(
    condition: Callable[[], bool],
    token: CancellationToken,
    timeout: float | None,
    name: str = "condition",
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    skippable: bool = False,
) -> None:
    """Poll ``condition`` until it holds."""
    deadline = None if timeout is None else time.monotonic() + timeout
    while True:
        token.raise_if_cancelled()
        if skippable:
            token.raise_if_skipped()
        if condition():
            return
        if deadline is not None and time.monotonic() >= deadline:
            raise StepTimeoutError(f"timeout waiting for {name} after {timeout:.1f}s")
        await asyncio.sleep(poll_interval)


async def sleep(seconds: float, token: CancellationToken, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
    """Cancellable sleep."""
    deadline = time.monotonic() + seconds
    while True:
        token.raise_if_cancelled()
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return
        await asyncio.sleep(min(poll_interval, remaining))
