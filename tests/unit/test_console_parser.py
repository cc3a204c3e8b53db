"""Tests for ConsoleOutputParser."""

import pytest

from jobstep.infrastructure.parsing.console_parser import (
    ConsoleOutputParser,
    PEAK_CREATION_PATTERN,
)


@pytest.fixture
def parser():
    return ConsoleOutputParser()


def test_last_match_wins(parser):
    result = parser.parse_lines(["10% finished", "45% finished", "30% finished"])
    assert result.progress == 30.0
    assert result.error_message is None


def test_decimal_progress_with_trailing_text(parser):
    result = parser.parse_lines([
        "Processing file",
        "11.7% finished: Processing scan 2100",
        "31.2% finished: Processing scan 5600",
    ])
    assert result.progress == pytest.approx(31.2)


def test_no_signal_is_not_an_error(parser):
    result = parser.parse_lines(["starting", "loading data"])
    assert result.progress is None
    assert result.error_message is None


def test_reparse_of_unchanged_file_is_idempotent(parser, tmp_path):
    console = tmp_path / "console.txt"
    console.write_text("5% finished\n62.5% finished\nError: disk full\n")

    first = parser.parse_file(console)
    second = parser.parse_file(console)

    assert first == second
    assert first.progress == 62.5


def test_error_capture_joins_following_lines_and_drops_separators(parser):
    result = parser.parse_lines([
        "50% finished",
        "ERROR: unable to open file",
        "==========",
        "",
        "  at Reader.Open()",
        "75% finished",
    ])
    assert result.error_message == "ERROR: unable to open file; at Reader.Open(); 75% finished"
    # Lines after the error token belong to the message
    assert result.progress == 50.0


def test_error_token_must_start_the_line(parser):
    result = parser.parse_lines(["no error here", "   error: indented still counts"])
    assert result.error_message == "error: indented still counts"


def test_non_numeric_percent_yields_no_update():
    parser = ConsoleOutputParser(r"(?P<pct>\S+)% finished", debug_level=5)
    result = parser.parse_lines(["10% finished", "abc% finished"])
    assert result.progress is None


def test_peak_creation_pattern():
    parser = ConsoleOutputParser(PEAK_CREATION_PATTERN)
    result = parser.parse_lines([
        "Peak creation progress: 0%",
        "Peak creation progress: 2%",
        "Peak creation progress: 2%",
        "Peak creation progress: 3%",
    ])
    assert result.progress == 3.0


def test_pattern_without_named_group():
    parser = ConsoleOutputParser(r"Progress (\d+)")
    assert parser.parse_lines(["Progress 42"]).progress == 42.0


def test_missing_file_yields_nothing(parser, tmp_path):
    result = parser.parse_file(tmp_path / "missing.txt")
    assert result.progress is None
    assert not result.has_error
