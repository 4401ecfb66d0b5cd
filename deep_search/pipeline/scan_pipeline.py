"""Bounded-concurrency task runner with cooperative cancellation.

Items are scheduled one at a time as asyncio tasks; at most ``concurrency``
are in flight. Before each item is scheduled the optional
``on_before_each_item`` hook is awaited, which is where callers implement
pause/resume throttling.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ..search_logging import LogCategory, get_category_logger

T = TypeVar("T")

logger = get_category_logger(LogCategory.PIPELINE)


class ScanSignal:
    """Cooperative cancellation token shared by everything in one run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str | None = None) -> None:
        """Abort the run. Idempotent; the first reason is kept."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Block until the signal is aborted."""
        await self._event.wait()


@dataclass
class PipelineStats:
    """Outcome counters of one pipeline run.

    Attributes:
        total: Number of items submitted.
        scheduled: Items actually started.
        completed: Items whose operation returned normally.
        failed: Items whose operation raised.
        aborted: Whether the signal stopped scheduling early.
        errors: Error messages of failed items.
        duration_ms: Wall time of the run.
    """

    total: int = 0
    scheduled: int = 0
    completed: int = 0
    failed: int = 0
    aborted: bool = False
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def settled(self) -> int:
        return self.completed + self.failed


class ScanPipeline(Generic[T]):
    """Apply an async operation across items with bounded concurrency.

    Example:
        >>> pipeline = ScanPipeline(concurrency=4)
        >>> stats = await pipeline.run(files, scan_file, signal=signal)
        >>> print(f"{stats.completed}/{stats.total} files scanned")
    """

    def __init__(self, concurrency: int = 4):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency

    async def run(
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[None]],
        *,
        concurrency: int | None = None,
        signal: ScanSignal | None = None,
        on_before_each_item: Callable[[], Awaitable[None]] | None = None,
    ) -> PipelineStats:
        """Run ``operation`` over ``items``.

        Scheduling stops as soon as ``signal`` is aborted. Items already in
        flight are awaited so no task outlives the run; they are expected to
        check the signal themselves and bail early.

        Args:
            items: Items to process, in scheduling order.
            operation: Per-item coroutine function. Exceptions are caught
                and counted, never propagated.
            concurrency: Override of the pipeline's default bound.
            signal: Cancellation token checked before and after every hook.
            on_before_each_item: Awaited before each item is scheduled.

        Returns:
            PipelineStats describing the run.
        """
        limit = max(1, concurrency or self.concurrency)
        stats = PipelineStats(total=len(items))
        in_flight: set[asyncio.Task[None]] = set()
        start_time = time.perf_counter()

        for item in items:
            if signal is not None and signal.aborted:
                break
            if on_before_each_item is not None:
                await on_before_each_item()
                if signal is not None and signal.aborted:
                    break

            task = asyncio.create_task(self._run_item(item, operation, stats))
            in_flight.add(task)
            stats.scheduled += 1

            if len(in_flight) >= limit:
                _, in_flight = await asyncio.wait(
                    in_flight, return_when=asyncio.FIRST_COMPLETED
                )

        if in_flight:
            await asyncio.wait(in_flight)

        stats.aborted = signal is not None and signal.aborted
        stats.duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Pipeline settled {stats.settled}/{stats.total} items "
            f"({stats.failed} failed, aborted={stats.aborted})",
            extra={"duration_ms": stats.duration_ms, "operation": "pipeline_run"},
        )
        return stats

    @staticmethod
    async def _run_item(
        item: T,
        operation: Callable[[T], Awaitable[None]],
        stats: PipelineStats,
    ) -> None:
        try:
            await operation(item)
            stats.completed += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            stats.failed += 1
            stats.errors.append(f"{item}: {e}")
            logger.warning(f"Pipeline item {item} failed: {e}")
