"""Bounded parallel execution with per-item timeouts and shared cancellation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TypeVar

from wikigen.generation.errors import FanOutCancelledError
from wikigen.models import TaskStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

ItemCallback = Callable[[T, TaskStatus], None]


class FanOutOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ItemFailure:
    """Why one item did not succeed."""

    item: str
    status: TaskStatus
    message: str


@dataclass
class FanOutResult:
    """Tally of a fan-out.

    Attributes:
        total: Number of items submitted.
        succeeded: Items whose worker returned.
        failed: Items whose worker raised.
        timed_out: Items that exceeded the per-item timeout.
        failures: One entry per failed or timed out item.
        cancelled: Whether the fan-out was cancelled before finishing.
    """

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    failures: list[ItemFailure] = field(default_factory=list)
    cancelled: bool = False

    @property
    def finished(self) -> int:
        return self.succeeded + self.failed + self.timed_out

    @property
    def outcome(self) -> FanOutOutcome:
        if self.cancelled:
            return FanOutOutcome.CANCELLED
        if self.failed + self.timed_out == 0:
            return FanOutOutcome.SUCCEEDED
        if self.succeeded == 0:
            return FanOutOutcome.FAILED
        return FanOutOutcome.PARTIAL


async def fan_out(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[object]],
    parallel_count: int,
    timeout_seconds: Optional[float],
    cancel_event: Optional[asyncio.Event] = None,
    name: Callable[[T], str] = str,
    on_item_done: Optional[ItemCallback[T]] = None,
) -> FanOutResult:
    """Run ``worker`` over ``items`` with at most ``parallel_count`` in flight.

    A failure or timeout of one item is recorded and never affects the
    others. Setting ``cancel_event`` stops in-flight items at their next
    await and keeps queued items from starting.

    Args:
        items: Work items.
        worker: Coroutine function run once per item.
        parallel_count: Maximum concurrently running workers.
        timeout_seconds: Wall-clock limit per item, None for no limit.
        cancel_event: Shared cancellation signal.
        name: Label of an item in logs and failures.
        on_item_done: Called with each item and its final status.

    Returns:
        The tally, once every item finished.

    Raises:
        FanOutCancelledError: If ``cancel_event`` was set before every item
            finished. The partial tally is attached.
    """
    if parallel_count < 1:
        raise ValueError("parallel_count must be at least 1")

    result = FanOutResult(total=len(items))
    semaphore = asyncio.Semaphore(parallel_count)

    def finish(item: T, status: TaskStatus, message: str = "") -> None:
        # Runs between awaits on the loop thread, so plain increments are atomic
        if status is TaskStatus.SUCCEEDED:
            result.succeeded += 1
        elif status is TaskStatus.TIMED_OUT:
            result.timed_out += 1
            result.failures.append(ItemFailure(name(item), status, message))
        else:
            result.failed += 1
            result.failures.append(ItemFailure(name(item), status, message))
        if on_item_done is not None:
            on_item_done(item, status)

    async def run_item(item: T) -> None:
        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                return
            label = name(item)
            timer = asyncio.timeout(timeout_seconds)
            try:
                async with timer:
                    await worker(item)
            except TimeoutError as e:
                if not timer.expired():
                    logger.error(f"{label} failed: {e}")
                    finish(item, TaskStatus.FAILED, str(e) or "Timed out")
                    return
                message = f"Timed out after {timeout_seconds:.0f}s"
                logger.error(f"{label}: {message}")
                finish(item, TaskStatus.TIMED_OUT, message)
            except Exception as e:
                logger.error(f"{label} failed: {e}")
                finish(item, TaskStatus.FAILED, str(e))
            else:
                logger.debug(f"{label} completed")
                finish(item, TaskStatus.SUCCEEDED)

    async def run_all() -> None:
        async with asyncio.TaskGroup() as group:
            for item in items:
                group.create_task(run_item(item))

    if not items:
        return result

    if cancel_event is None:
        await run_all()
        return result

    work = asyncio.ensure_future(run_all())
    watcher = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not work.done():
            work.cancel()
        await asyncio.gather(work, watcher, return_exceptions=True)

    if work.cancelled() or (cancel_event.is_set() and result.finished < result.total):
        result.cancelled = True
        logger.warning(
            f"Fan-out cancelled with {result.finished}/{result.total} items finished"
        )
        raise FanOutCancelledError(result)
    work.result()
    return result
