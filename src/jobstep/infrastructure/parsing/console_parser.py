"""Extraction of progress and error signals from tool console output."""

import re
from pathlib import Path
from typing import Optional, Pattern, Sequence, Union

from jobstep.domain.models import ParseResult
from jobstep.shared.logging import get_logger

PERCENT_FINISHED_PATTERN = r"(?P<pct>[0-9.]+)% finished"
PEAK_CREATION_PATTERN = r"Peak creation progress: (?P<pct>\d+)%"

_SEPARATOR = re.compile(r"^=+$")
_ERROR_TOKEN = "error"


class ConsoleOutputParser:
    """
    Converts a tool's console output into a progress percentage and an error message.

    Every call re-reads all lines from the start; the parser keeps no position
    between calls, so parsing the same content twice gives the same answer.

    Progress: the last line matching ``progress_pattern`` wins, even when an
    earlier line reported a larger value. The pattern must define a ``pct``
    group (or a first capture group) holding the percentage.

    Errors: the first line starting with "error" (case-insensitive) opens error
    capture; it and every later non-blank line, except separator lines made only
    of ``=``, are joined with "; ".
    """

    def __init__(
        self,
        progress_pattern: Union[str, Pattern[str]] = PERCENT_FINISHED_PATTERN,
        debug_level: int = 1,
        encoding: str = "utf-8",
    ):
        if isinstance(progress_pattern, str):
            progress_pattern = re.compile(progress_pattern, re.IGNORECASE)
        self.progress_pattern = progress_pattern
        self.debug_level = debug_level
        self.encoding = encoding
        self._logger = get_logger(self.__class__.__name__)

    def parse_file(self, path: Path) -> ParseResult:
        """Parse a console output file; a missing file yields no information."""
        path = Path(path)
        if not path.exists():
            if self.debug_level >= 4:
                self._logger.debug(f"Console output file not found yet: {path}")
            return ParseResult()

        with open(path, "r", encoding=self.encoding, errors="replace") as f:
            lines = f.read().splitlines()
        return self.parse_lines(lines)

    def parse_text(self, text: str) -> ParseResult:
        return self.parse_lines(text.splitlines())

    def parse_lines(self, lines: Sequence[str]) -> ParseResult:
        last_match: Optional[str] = None
        error_lines = []
        capturing = False

        for raw in lines:
            line = raw.rstrip("\r\n")
            stripped = line.strip()

            if capturing:
                if stripped and not _SEPARATOR.match(stripped):
                    error_lines.append(stripped)
                continue

            if stripped.lower().startswith(_ERROR_TOKEN):
                capturing = True
                error_lines.append(stripped)
                continue

            match = self.progress_pattern.search(line)
            if match:
                last_match = self._percent_text(match)

        return ParseResult(
            progress=self._to_percent(last_match),
            error_message="; ".join(error_lines) or None,
        )

    @staticmethod
    def _percent_text(match) -> str:
        if "pct" in match.re.groupindex:
            return match.group("pct")
        return match.group(1) if match.re.groups else match.group(0)

    def _to_percent(self, text: Optional[str]) -> Optional[float]:
        if text is None:
            return None
        try:
            return float(text)
        except ValueError:
            if self.debug_level >= 4:
                self._logger.debug(f"Ignoring non-numeric progress value: {text!r}")
            return None
