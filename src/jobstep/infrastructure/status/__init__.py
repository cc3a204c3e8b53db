"""Progress aggregation and status persistence."""

from jobstep.infrastructure.status.progress import (
    ProgressReporter,
    compute_incremental_progress,
    compute_step_progress,
    progress_log_interval_minutes,
)
from jobstep.infrastructure.status.status_file import StatusFile, ABORT_FILE_NAME

__all__ = [
    "ProgressReporter",
    "compute_incremental_progress",
    "compute_step_progress",
    "progress_log_interval_minutes",
    "StatusFile",
    "ABORT_FILE_NAME",
]
