"""Protocol definitions for dependency inversion."""

from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

from .models import (
    CloseoutCode,
    FileRules,
    InProcessInvocation,
    JobStepContext,
    Outcome,
    ParseResult,
    ProcessInvocation,
    ProcessRunResult,
    StatusSnapshot,
    TransferResult,
)

Invocation = Union[ProcessInvocation, InProcessInvocation]


class IResourceStager(Protocol):
    """Interface for acquiring the inputs a tool needs before it runs."""

    def stage(self, context: JobStepContext) -> CloseoutCode:
        """Copy or verify the step's inputs in the working directory."""
        ...


class IConsoleParser(Protocol):
    """Interface for extracting progress and errors from console output."""

    def parse_lines(self, lines: Sequence[str]) -> ParseResult:
        ...

    def parse_file(self, path: Path) -> ParseResult:
        ...


class IToolPlugin(Protocol):
    """Capabilities a tool plugin supplies to the job-step executor."""

    tool_name: str

    def stage_resources(self, context: JobStepContext) -> CloseoutCode:
        """Acquire the step's inputs; never starts the tool."""
        ...

    def build_invocation(self, context: JobStepContext) -> Invocation:
        """Build the command line (or library call) for the tool."""
        ...

    def console_parser(self, context: JobStepContext) -> IConsoleParser:
        """Parser for the tool's console output."""
        ...

    def classify_outcome(
        self,
        context: JobStepContext,
        run_result: ProcessRunResult,
        parsed: ParseResult,
    ) -> Outcome:
        """Decide Success, Failure or NoData once the tool has exited."""
        ...

    def file_rules(self, context: JobStepContext) -> FileRules:
        """Rules partitioning the working directory into results."""
        ...

    def results_dir_name(self, context: JobStepContext) -> Optional[str]:
        """Results directory name, or None for the default."""
        ...


class IStatusSink(Protocol):
    """Interface for persisting status snapshots (fire-and-forget)."""

    def write(self, snapshot: StatusSnapshot) -> None:
        ...

    def abort_requested(self) -> bool:
        """True once an external abort request has been observed."""
        ...


class IArchiver(Protocol):
    """Interface for copying failed results to the failure archive."""

    def archive(self, source_dir: Path, context: JobStepContext,
                target_name: Optional[str] = None) -> Optional[Path]:
        """Copy source_dir to the archive root; return the archived path."""
        ...


class ITransfer(Protocol):
    """Interface for delivering results to the shared destination."""

    def destination_for(self, results_dir_name: str) -> str:
        """Destination a results directory with this name is delivered to."""
        ...

    def transfer(self, source_dir: Path, destination: str) -> TransferResult:
        """Copy every file under source_dir to destination.

        Raises:
            TransferError: If any file could not be delivered
        """
        ...


class IMetricsCollector(Protocol):
    """Interface for collecting metrics."""

    def start_timer(self, name: str) -> None:
        """Start a named timer."""
        ...

    def stop_timer(self, name: str) -> float:
        """Stop a named timer and return elapsed time."""
        ...

    def record_metric(self, name: str, value: float) -> None:
        """Record a metric value."""
        ...

    def increment_counter(self, name: str, amount: int = 1) -> None:
        """Increment a counter."""
        ...

    def get_summary(self) -> dict:
        """Get summary of all metrics."""
        ...

    def elapsed_time(self) -> float:
        """Get total elapsed time since start."""
        ...

    def log_summary(self, logger, title: Optional[str] = None) -> None:
        """Write the summary to a logger."""
        ...
