"""Monotonic progress aggregation and rate-limited status persistence."""

import time
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from jobstep.domain.models import JobStepContext, ParseResult, ProgressState, StatusSnapshot
from jobstep.domain.protocols import IStatusSink
from jobstep.shared.logging import get_logger


def compute_incremental_progress(
    start_pct: float,
    end_pct: float,
    subtask_pct: Optional[float] = None,
    items_processed: Optional[int] = None,
    total_items: Optional[int] = None,
) -> float:
    """
    Map a subtask's progress into the [start_pct, end_pct] band.

    Progress comes either from ``subtask_pct`` (0-100) or from
    ``items_processed`` / ``total_items``; the result is clamped to the band.
    """
    if items_processed is not None and total_items is not None:
        fraction = items_processed / total_items if total_items > 0 else 0.0
    elif subtask_pct is not None:
        fraction = subtask_pct / 100.0
    else:
        fraction = 0.0

    fraction = min(1.0, max(0.0, fraction))
    return start_pct + (end_pct - start_pct) * fraction


def compute_step_progress(current_step: int, total_steps: int, subtask_pct: float) -> float:
    """Overall percent complete when ``current_step`` (1-based) of ``total_steps`` is running."""
    if total_steps <= 0:
        return 0.0
    start = (current_step - 1) * 100.0 / total_steps
    end = current_step * 100.0 / total_steps
    return compute_incremental_progress(start, end, subtask_pct)


def progress_log_interval_minutes(debug_level: int) -> int:
    """How often a running tool's progress is logged."""
    if debug_level >= 5:
        return 1
    if debug_level == 4:
        return 5
    if debug_level == 3:
        return 15
    if debug_level == 2:
        return 30
    return 60


class ProgressReporter:
    """
    Owns the ProgressState of one job step.

    Reported progress never decreases: each update maps the tool-local
    percentage into the step's band and keeps the larger of that and the
    current value. Status snapshots are written at most once per
    ``status_interval_seconds``; ``finalize()`` always writes the last value.
    """

    def __init__(
        self,
        context: JobStepContext,
        sink: Optional[IStatusSink] = None,
        band: Tuple[float, float] = (0.0, 100.0),
        status_interval_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        start, end = band
        if not 0 <= start <= end <= 100:
            raise ValueError(f"Invalid progress band: {band}")
        self.context = context
        self.sink = sink
        self.band = (float(start), float(end))
        self.status_interval_seconds = status_interval_seconds
        self._clock = clock
        self._state = ProgressState(percent_complete=self.band[0])
        self._last_write: Optional[float] = None
        self._last_log: Optional[float] = None
        self._core_usage = 0.0
        self._operation = context.job_step.tool_name
        self._logger = get_logger(self.__class__.__name__)

    @property
    def state(self) -> ProgressState:
        """A copy of the current progress state."""
        return self._state.snapshot()

    @property
    def percent_complete(self) -> float:
        return self._state.percent_complete

    def set_operation(self, label: str) -> None:
        self._operation = label

    def set_core_usage(self, cores: float) -> None:
        self._core_usage = cores

    def map_to_band(self, tool_percent: float) -> float:
        return compute_incremental_progress(self.band[0], self.band[1], tool_percent)

    def update(self, parsed: ParseResult) -> float:
        """Fold one parse result into the state and return the new percentage."""
        self._state.last_parse_timestamp = datetime.now(timezone.utc)
        if parsed.error_message:
            self._state.last_error_message = parsed.error_message

        if parsed.progress is not None:
            mapped = self.map_to_band(parsed.progress)
            self._state.percent_complete = max(self._state.percent_complete, mapped)

        self._maybe_log_progress()
        self._maybe_write_status()
        return self._state.percent_complete

    def report_tool_percent(self, tool_percent: float) -> float:
        """Progress callback for in-process tools."""
        return self.update(ParseResult(progress=tool_percent))

    def finalize(self, percent: Optional[float] = None, operation: Optional[str] = None) -> float:
        """Write the final status unconditionally."""
        if percent is not None:
            self._state.percent_complete = max(self._state.percent_complete, percent)
        if operation:
            self._operation = operation
        self._write_status()
        return self._state.percent_complete

    def _maybe_write_status(self) -> None:
        now = self._clock()
        if self._last_write is not None and now - self._last_write < self.status_interval_seconds:
            return
        self._write_status()

    def _write_status(self) -> None:
        self._last_write = self._clock()
        if self.sink is None:
            return
        job_step = self.context.job_step
        self.sink.write(StatusSnapshot(
            job=job_step.job,
            step=job_step.step,
            tool=job_step.tool_name,
            percent_complete=self._state.percent_complete,
            current_operation=self._operation,
            core_usage=self._core_usage,
            most_recent_error=self._state.last_error_message or "",
        ))

    def _maybe_log_progress(self) -> None:
        now = self._clock()
        interval = progress_log_interval_minutes(self.context.debug_level) * 60
        if self._last_log is None:
            self._last_log = now
            return
        if now - self._last_log < interval:
            return
        self._last_log = now
        job_step = self.context.job_step
        self._logger.info(
            f"... {self._state.percent_complete:.1f}% complete for "
            f"{job_step.tool_name}, job {job_step.job}"
        )
