"""Timing utilities used to report scan performance."""

from .timing import PerformanceAggregator, PerformanceTimer

__all__ = ["PerformanceTimer", "PerformanceAggregator"]
