"""Metrics collection for job-step runs."""

import logging
import time
from collections import defaultdict
from typing import Any, Dict, Optional


class MetricsCollector:
    """
    Collects timers, counters and metric series for one job step.
    Implements IMetricsCollector protocol.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._start_time = clock()
        self._timers: Dict[str, float] = {}
        self._metrics: Dict[str, Any] = defaultdict(list)
        self._counters: Dict[str, int] = defaultdict(int)

    def start_timer(self, name: str) -> None:
        """Start a named timer."""
        self._timers[name] = self._clock()

    def stop_timer(self, name: str) -> float:
        """
        Stop a named timer and return elapsed time.

        Raises:
            KeyError: If timer was not started
        """
        if name not in self._timers:
            raise KeyError(f"Timer '{name}' was not started")

        elapsed = self._clock() - self._timers.pop(name)
        self.record_metric(f"{name}_duration", elapsed)
        return elapsed

    def record_metric(self, name: str, value: Any) -> None:
        """Record a metric value."""
        self._metrics[name].append(value)

    def increment_counter(self, name: str, amount: int = 1) -> None:
        """Increment a counter."""
        self._counters[name] += amount

    def get_counter(self, name: str) -> int:
        """Get counter value."""
        return self._counters.get(name, 0)

    def get_metric(self, name: str) -> list:
        """Get all values for a metric."""
        return self._metrics.get(name, [])

    def get_summary(self) -> Dict[str, Any]:
        """
        Get summary of all metrics.

        Numeric series are reduced to count/sum/avg/min/max; anything else is
        reported verbatim.
        """
        summary = {
            "total_elapsed": self.elapsed_time(),
            "counters": dict(self._counters),
            "metrics": {}
        }

        for name, values in self._metrics.items():
            if not values:
                continue
            if all(isinstance(v, (int, float)) for v in values):
                summary["metrics"][name] = {
                    "count": len(values),
                    "sum": sum(values),
                    "avg": sum(values) / len(values),
                    "min": min(values),
                    "max": max(values),
                }
            else:
                summary["metrics"][name] = {
                    "count": len(values),
                    "values": values
                }

        return summary

    def elapsed_time(self) -> float:
        """Get total elapsed time since initialization."""
        return self._clock() - self._start_time

    def reset(self) -> None:
        """Reset all metrics and timers."""
        self._start_time = self._clock()
        self._timers.clear()
        self._metrics.clear()
        self._counters.clear()

    def log_summary(self, logger: logging.Logger, title: Optional[str] = None) -> None:
        """Write a compact summary of all metrics to the given logger."""
        summary = self.get_summary()
        logger.info(f"{title or 'Metrics'}: total elapsed {summary['total_elapsed']:.2f}s")

        for name, value in summary['counters'].items():
            logger.info(f"  {name}: {value}")

        for name, data in summary['metrics'].items():
            if 'avg' in data:
                logger.info(
                    f"  {name}: count={data['count']} avg={data['avg']:.3f} "
                    f"min={data['min']:.3f} max={data['max']:.3f}"
                )
