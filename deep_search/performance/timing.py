"""Timing utilities for scan runs.

- PerformanceTimer context manager for code block timing
- PerformanceAggregator for per-operation statistics (reads, matching)
"""

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from ..search_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.PERFORMANCE)


class PerformanceTimer:
    """Context manager for timing code blocks.

    The duration is available as an attribute after the context exits.

    Example:
        >>> with PerformanceTimer("search_run") as timer:
        ...     await workflow.run(params)
        >>> print(f"Searched in {timer.duration_ms:.2f}ms")
    """

    def __init__(self, operation_name: str, auto_log: bool = True):
        self.operation_name = operation_name
        self.auto_log = auto_log
        self.start_time: float = 0
        self.end_time: float = 0
        self.duration_ms: float = 0

    def __enter__(self) -> "PerformanceTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.end_time = time.perf_counter()
        self.duration_ms = (self.end_time - self.start_time) * 1000

        if not self.auto_log:
            return

        extra = {"duration_ms": self.duration_ms, "operation": self.operation_name}
        if exc_type is None:
            logger.debug(
                f"[PERF] {self.operation_name}: {self.duration_ms:.2f}ms", extra=extra
            )
        else:
            logger.error(
                f"[PERF] {self.operation_name} failed after {self.duration_ms:.2f}ms",
                extra=extra,
            )


class PerformanceAggregator:
    """Aggregate timing data across many files.

    Example:
        >>> perf = PerformanceAggregator()
        >>> with perf.track("read_file"):
        ...     content = await service.read_file(file_id)
        >>> perf.log_report()
    """

    def __init__(self) -> None:
        self.timings: dict[str, list[float]] = {}

    @contextmanager
    def track(self, operation_name: str) -> Generator[None, None, None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(operation_name, (time.perf_counter() - start) * 1000)

    def record(self, operation_name: str, duration_ms: float) -> None:
        self.timings.setdefault(operation_name, []).append(duration_ms)

    def report(self) -> dict[str, dict[str, float]]:
        """Statistics per operation: count, total_ms, avg_ms, min_ms, max_ms."""
        report: dict[str, dict[str, float]] = {}
        for op_name, times in self.timings.items():
            if times:
                report[op_name] = {
                    "count": len(times),
                    "total_ms": sum(times),
                    "avg_ms": sum(times) / len(times),
                    "min_ms": min(times),
                    "max_ms": max(times),
                }
        return report

    def log_report(self, level: int = logging.INFO) -> None:
        report = self.report()
        if not report:
            logger.log(level, "[PERF] No performance data collected")
            return

        logger.log(level, "=== Performance Report ===")
        for op_name, stats in sorted(report.items()):
            logger.log(
                level,
                f"  {op_name}: {stats['count']:.0f} calls, "
                f"avg={stats['avg_ms']:.2f}ms, "
                f"total={stats['total_ms']:.2f}ms, "
                f"max={stats['max_ms']:.2f}ms"
            )

    def reset(self) -> None:
        self.timings.clear()
