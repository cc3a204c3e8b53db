"""Application layer: the job-step executor, tool plugins and their factories."""

from jobstep.application.executor import JobStepExecutor
from jobstep.application.factories import (
    PluginFactory,
    create_packager,
    create_status_sink,
    create_transfer,
)

__all__ = [
    "JobStepExecutor",
    "PluginFactory",
    "create_packager",
    "create_status_sink",
    "create_transfer",
]
