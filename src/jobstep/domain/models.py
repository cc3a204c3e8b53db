"""Domain models for job-step execution."""

import shlex
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Set, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from jobstep.infrastructure.config.loader import ManagerConfig


class CloseoutCode(Enum):
    """Result code returned by the resource-acquisition collaborator."""

    SUCCESS = "success"
    FAILED = "failed"
    NO_PARAM_FILE = "no_param_file"
    FILE_NOT_FOUND = "file_not_found"
    NO_DATA = "no_data"


class ExecutorState(Enum):
    """States of the job-step executor."""

    INITIALIZING = "initializing"
    RESOURCES_STAGED = "resources_staged"
    TOOL_RUNNING = "tool_running"
    COMPLETED = "completed"
    RESULTS_PACKAGED = "results_packaged"
    DONE = "done"


class OutcomeKind(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NO_DATA = "no_data"


class FailureKind(Enum):
    RESOURCE = "resource"
    LAUNCH = "launch"
    PROCESS_EXIT = "process_exit"
    SILENT = "silent"
    POSTCONDITION = "postcondition"
    TRANSFER = "transfer"
    ABORTED = "aborted"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class JobStep:
    """One unit of pipeline work assigned to run one analysis tool."""

    job: int
    step: int
    tool_name: str
    work_dir: Path
    debug_level: int = 1
    dataset: str = ""
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.job <= 0:
            raise ValueError("Job number must be positive")
        if self.step <= 0:
            raise ValueError("Step number must be positive")
        if not self.tool_name:
            raise ValueError("Tool name is required")
        if not 0 <= self.debug_level <= 5:
            raise ValueError(f"Debug level must be between 0 and 5, got: {self.debug_level}")

    @property
    def description(self) -> str:
        return f"job {self.job}, step {self.step}"

    def get_param(self, name: str, default: Any = None) -> Any:
        """Get a job parameter, falling back to default when undefined."""
        value = self.parameters.get(name)
        if value is None or value == "":
            return default
        return value


@dataclass(frozen=True)
class JobStepContext:
    """Everything a component needs to know about the step it works on."""

    job_step: JobStep
    debug_level: int
    config: Optional["ManagerConfig"] = None
    executable_path: Optional[Path] = None

    @classmethod
    def for_step(cls, job_step: JobStep, config: Optional["ManagerConfig"] = None,
                 executable_path: Optional[Path] = None) -> "JobStepContext":
        return cls(job_step=job_step, debug_level=job_step.debug_level,
                   config=config, executable_path=executable_path)

    @property
    def work_dir(self) -> Path:
        return self.job_step.work_dir

    def with_debug_level(self, debug_level: int) -> "JobStepContext":
        """Return a copy with the debug level raised to at least debug_level."""
        return replace(self, debug_level=max(self.debug_level, debug_level))


@dataclass(frozen=True)
class ProcessInvocation:
    """External command line derived from a job step."""

    executable: Path
    arguments: Tuple[str, ...]
    work_dir: Path
    program_name: str = ""
    console_output_path: Optional[Path] = None
    write_console_output_to_file: bool = True
    cache_standard_output: bool = False
    echo_output_to_console: bool = True
    create_no_window: bool = True
    console_output_includes_command_line: bool = True
    env: Optional[Mapping[str, str]] = None

    @property
    def name(self) -> str:
        return self.program_name or Path(self.executable).name

    @property
    def command(self) -> Tuple[str, ...]:
        return (str(self.executable),) + tuple(self.arguments)

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)


@dataclass(frozen=True)
class InProcessInvocation:
    """A library call run inside the worker instead of a child process.

    ``func`` receives the working directory and a progress callback accepting
    a tool-local percentage; it returns an exit code (0 for success).
    """

    func: Callable[[Path, Callable[[float], None]], int]
    work_dir: Path
    program_name: str
    console_output_path: Optional[Path] = None

    @property
    def name(self) -> str:
        return self.program_name


@dataclass(frozen=True)
class ProcessRunResult:
    """What the process supervisor observed during one run."""

    exit_code: Optional[int]
    timed_out: bool = False
    aborted: bool = False
    pid: int = 0
    start_time: Optional[datetime] = None
    stop_time: Optional[datetime] = None
    console_output: str = ""

    @property
    def runtime_seconds(self) -> float:
        if self.start_time is None or self.stop_time is None:
            return 0.0
        return (self.stop_time - self.start_time).total_seconds()

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.aborted


@dataclass(frozen=True)
class ParseResult:
    """Signals extracted from one pass over a tool's console output."""

    progress: Optional[float] = None
    error_message: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return bool(self.error_message)


@dataclass
class ProgressState:
    """Mutable progress owned by a single progress reporter."""

    percent_complete: float = 0.0
    last_parse_timestamp: Optional[datetime] = None
    last_error_message: Optional[str] = None

    def snapshot(self) -> "ProgressState":
        return replace(self)


@dataclass(frozen=True)
class StatusSnapshot:
    """Status written to the status sink."""

    job: int
    step: int
    tool: str
    percent_complete: float
    current_operation: str
    core_usage: float = 0.0
    most_recent_error: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "step": self.step,
            "tool": self.tool,
            "percent_complete": round(self.percent_complete, 2),
            "current_operation": self.current_operation,
            "core_usage": round(self.core_usage, 2),
            "most_recent_error": self.most_recent_error,
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
        }


def _is_vim_swap_file(name: str) -> bool:
    lower = name.lower()
    return lower.startswith(".") and (lower.endswith(".swp") or lower.endswith(".swo"))


def _has_invalid_characters(name: str) -> bool:
    return any(ord(ch) <= 31 or ord(ch) >= 128 for ch in name)


@dataclass
class FileRules:
    """Per-plugin rules deciding which working-directory files become results.

    All comparisons are case-insensitive. Skip extensions may be real extensions
    or any file-name suffix such as ``_peaks.txt``.
    """

    skip_names: Set[str] = field(default_factory=set)
    skip_extensions: Set[str] = field(default_factory=set)
    keep_names: Set[str] = field(default_factory=set)
    delete_before_archive: Set[str] = field(default_factory=set)

    def __post_init__(self):
        self.skip_names = {n.lower() for n in self.skip_names}
        self.skip_extensions = {e.lower() for e in self.skip_extensions}
        self.keep_names = {n.lower() for n in self.keep_names}
        self.delete_before_archive = {n.lower() for n in self.delete_before_archive}

    def add_skip_name(self, name: str) -> None:
        self.skip_names.add(name.lower())

    def add_skip_extension(self, extension: str) -> None:
        self.skip_extensions.add(extension.lower())

    def add_keep_name(self, name: str) -> None:
        self.keep_names.add(name.lower())

    def add_delete_before_archive(self, name: str) -> None:
        self.delete_before_archive.add(name.lower())

    def copy(self) -> "FileRules":
        return FileRules(
            skip_names=set(self.skip_names),
            skip_extensions=set(self.skip_extensions),
            keep_names=set(self.keep_names),
            delete_before_archive=set(self.delete_before_archive),
        )

    def classify(self, name: str) -> str:
        """Return 'keep', 'skip' or 'move' for a file name."""
        lower = name.lower()
        if _is_vim_swap_file(name) or _has_invalid_characters(name):
            return "skip"
        if lower in self.keep_names:
            return "keep"
        if lower in self.skip_names:
            return "skip"
        if any(lower.endswith(ext) for ext in self.skip_extensions):
            return "skip"
        return "move"


@dataclass(frozen=True)
class ResultFileSet:
    """Files present in the working directory when the outcome was decided."""

    work_dir: Path
    keep: Tuple[Path, ...] = ()
    skip: Tuple[Path, ...] = ()
    default_move: Tuple[Path, ...] = ()

    @property
    def transferable(self) -> Tuple[Path, ...]:
        return self.keep + self.default_move

    @property
    def all_files(self) -> Tuple[Path, ...]:
        return self.keep + self.skip + self.default_move


@dataclass(frozen=True)
class Outcome:
    """Final classification of a job step; produced exactly once per step."""

    kind: OutcomeKind
    reason: str = ""
    failure_kind: Optional[FailureKind] = None
    exit_code: Optional[int] = None
    final_location: Optional[str] = None

    @classmethod
    def success(cls, reason: str = "") -> "Outcome":
        return cls(kind=OutcomeKind.SUCCESS, reason=reason)

    @classmethod
    def no_data(cls, reason: str) -> "Outcome":
        return cls(kind=OutcomeKind.NO_DATA, reason=reason)

    @classmethod
    def failure(cls, failure_kind: FailureKind, reason: str,
                exit_code: Optional[int] = None) -> "Outcome":
        return cls(kind=OutcomeKind.FAILURE, reason=reason,
                   failure_kind=failure_kind, exit_code=exit_code)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "Outcome":
        return cls.failure(
            getattr(exc, "failure_kind", FailureKind.UNEXPECTED),
            str(exc) or exc.__class__.__name__,
            exit_code=getattr(exc, "exit_code", None),
        )

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.kind is OutcomeKind.FAILURE

    @property
    def success_or_no_data(self) -> bool:
        return self.kind in (OutcomeKind.SUCCESS, OutcomeKind.NO_DATA)

    def with_location(self, location) -> "Outcome":
        return replace(self, final_location=str(location) if location is not None else None)


@dataclass
class TransferResult:
    """Result of delivering a results directory."""

    success: bool
    destination: str = ""
    files_copied: int = 0
    files_failed: int = 0
    size_bytes: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None
