"""Shared utilities package."""

from jobstep.shared.logging import setup_logger, get_logger, level_for_debug
from jobstep.shared.retry import retry_with_backoff, RetryStrategy
from jobstep.shared.metrics import MetricsCollector
from jobstep.shared.types import PathLike, ProgressCallback

__all__ = [
    "setup_logger",
    "get_logger",
    "level_for_debug",
    "retry_with_backoff",
    "RetryStrategy",
    "MetricsCollector",
    "PathLike",
    "ProgressCallback",
]
