"""Tests for ProgressReporter and progress helpers."""

import pytest

from jobstep.domain.models import ParseResult
from jobstep.infrastructure.status.progress import (
    ProgressReporter,
    compute_incremental_progress,
    compute_step_progress,
    progress_log_interval_minutes,
)


class RecordingSink:
    def __init__(self):
        self.snapshots = []

    def write(self, snapshot):
        self.snapshots.append(snapshot)

    def abort_requested(self):
        return False


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_reported_progress_never_decreases(make_context):
    reporter = ProgressReporter(make_context(), band=(0, 100), status_interval_seconds=0)

    observed = [reporter.update(ParseResult(progress=p)) for p in (10, 50, 20, 80)]

    assert observed == [10, 50, 50, 80]


def test_progress_is_mapped_into_band(make_context):
    reporter = ProgressReporter(make_context(), band=(5, 95))

    assert reporter.percent_complete == 5
    assert reporter.update(ParseResult(progress=50)) == pytest.approx(50)
    assert reporter.update(ParseResult(progress=100)) == pytest.approx(95)


def test_missing_progress_keeps_current_value(make_context):
    reporter = ProgressReporter(make_context(), band=(0, 100))
    reporter.update(ParseResult(progress=40))
    assert reporter.update(ParseResult()) == 40


def test_error_message_is_remembered(make_context):
    reporter = ProgressReporter(make_context())
    reporter.update(ParseResult(error_message="Error: out of memory"))
    reporter.update(ParseResult(progress=3))

    state = reporter.state
    assert state.last_error_message == "Error: out of memory"
    assert state.last_parse_timestamp is not None


def test_state_accessor_returns_a_copy(make_context):
    reporter = ProgressReporter(make_context())
    state = reporter.state
    state.percent_complete = 99
    assert reporter.percent_complete == 0


def test_status_writes_are_rate_limited(make_context):
    sink = RecordingSink()
    clock = FakeClock()
    reporter = ProgressReporter(make_context(), sink=sink, status_interval_seconds=10, clock=clock)

    reporter.update(ParseResult(progress=10))
    clock.now += 3
    reporter.update(ParseResult(progress=20))
    clock.now += 8
    reporter.update(ParseResult(progress=30))

    assert [s.percent_complete for s in sink.snapshots] == [10, 30]


def test_finalize_always_writes(make_context):
    sink = RecordingSink()
    clock = FakeClock()
    reporter = ProgressReporter(make_context(), sink=sink, status_interval_seconds=60, clock=clock)

    reporter.update(ParseResult(progress=10))
    reporter.update(ParseResult(progress=60))
    reporter.finalize(100, operation="Complete")

    assert sink.snapshots[-1].percent_complete == 100
    assert sink.snapshots[-1].current_operation == "Complete"
    assert sink.snapshots[-1].job == 1


def test_invalid_band_rejected(make_context):
    with pytest.raises(ValueError):
        ProgressReporter(make_context(), band=(90, 10))


def test_compute_incremental_progress():
    assert compute_incremental_progress(1, 99, 50) == pytest.approx(50)
    assert compute_incremental_progress(10, 20, items_processed=5, total_items=10) == pytest.approx(15)
    assert compute_incremental_progress(10, 20, items_processed=5, total_items=0) == 10
    assert compute_incremental_progress(0, 50, 150) == 50


def test_compute_step_progress():
    assert compute_step_progress(2, 4, 50) == pytest.approx(37.5)
    assert compute_step_progress(1, 0, 50) == 0


@pytest.mark.parametrize("debug_level,minutes", [(5, 1), (4, 5), (3, 15), (2, 30), (1, 60), (0, 60)])
def test_progress_log_interval(debug_level, minutes):
    assert progress_log_interval_minutes(debug_level) == minutes
