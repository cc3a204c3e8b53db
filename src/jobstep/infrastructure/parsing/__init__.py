"""Console output parsing."""

from jobstep.infrastructure.parsing.console_parser import (
    ConsoleOutputParser,
    PERCENT_FINISHED_PATTERN,
    PEAK_CREATION_PATTERN,
)

__all__ = ["ConsoleOutputParser", "PERCENT_FINISHED_PATTERN", "PEAK_CREATION_PATTERN"]
