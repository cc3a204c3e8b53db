"""Domain exceptions for the job-step pipeline."""

from typing import Optional

from jobstep.domain.models import FailureKind


class DomainException(Exception):
    """Base exception for all domain errors."""

    failure_kind = FailureKind.UNEXPECTED


class ResourceError(DomainException):
    """Raised when required inputs could not be staged before the tool runs."""

    failure_kind = FailureKind.RESOURCE


class LaunchError(DomainException):
    """Raised when the external program cannot be started."""

    failure_kind = FailureKind.LAUNCH


class ProcessExitError(DomainException):
    """Raised when the external program exits with a non-zero code."""

    failure_kind = FailureKind.PROCESS_EXIT

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        self.exit_code = exit_code


class SilentFailure(DomainException):
    """Raised when a tool exits with code 0 but reported an error on the console."""

    failure_kind = FailureKind.SILENT


class PostconditionError(DomainException):
    """Raised when the tool's primary output is missing, empty or malformed."""

    failure_kind = FailureKind.POSTCONDITION


class ToolAbortedError(DomainException):
    """Raised when the tool was killed (abort request or max runtime)."""

    failure_kind = FailureKind.ABORTED


class TransferError(DomainException):
    """Raised when results could not be delivered to the shared destination."""

    failure_kind = FailureKind.TRANSFER


class ArchiveError(DomainException):
    """Raised when failed results could not be archived."""
    pass


class ConfigurationError(DomainException):
    """Raised when configuration is invalid."""
    pass


class ExecutorStateError(DomainException):
    """Raised when an executor is driven outside its state machine."""
    pass


class PluginNotAvailableError(DomainException):
    """Raised when requested tool plugin is not available."""
    pass
