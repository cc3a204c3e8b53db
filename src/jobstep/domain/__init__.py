"""Domain layer package."""

from .models import (
    CloseoutCode,
    ExecutorState,
    FailureKind,
    FileRules,
    InProcessInvocation,
    JobStep,
    JobStepContext,
    Outcome,
    OutcomeKind,
    ParseResult,
    ProcessInvocation,
    ProcessRunResult,
    ProgressState,
    ResultFileSet,
    StatusSnapshot,
    TransferResult,
)
from .exceptions import (
    DomainException,
    ResourceError,
    LaunchError,
    ProcessExitError,
    SilentFailure,
    PostconditionError,
    ToolAbortedError,
    TransferError,
    ArchiveError,
    ConfigurationError,
    ExecutorStateError,
    PluginNotAvailableError,
)
from .protocols import (
    IResourceStager,
    IConsoleParser,
    IToolPlugin,
    IStatusSink,
    IArchiver,
    ITransfer,
    IMetricsCollector,
)

__all__ = [
    # Models
    "CloseoutCode",
    "ExecutorState",
    "FailureKind",
    "FileRules",
    "InProcessInvocation",
    "JobStep",
    "JobStepContext",
    "Outcome",
    "OutcomeKind",
    "ParseResult",
    "ProcessInvocation",
    "ProcessRunResult",
    "ProgressState",
    "ResultFileSet",
    "StatusSnapshot",
    "TransferResult",
    # Exceptions
    "DomainException",
    "ResourceError",
    "LaunchError",
    "ProcessExitError",
    "SilentFailure",
    "PostconditionError",
    "ToolAbortedError",
    "TransferError",
    "ArchiveError",
    "ConfigurationError",
    "ExecutorStateError",
    "PluginNotAvailableError",
    # Protocols
    "IResourceStager",
    "IConsoleParser",
    "IToolPlugin",
    "IStatusSink",
    "IArchiver",
    "ITransfer",
    "IMetricsCollector",
]
