"""Generic plugin running any configured external command."""

import shlex
from pathlib import Path
from typing import Any, List, Optional, Sequence

from jobstep.domain.models import FileRules, JobStepContext, ProcessInvocation

from .base import CONSOLE_OUTPUT_SUFFIX, ToolPlugin


def as_list(value: Any) -> List[str]:
    """Job parameters may hold a list or a comma-separated string."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


class CommandPlugin(ToolPlugin):
    """
    Runs an arbitrary command described entirely by job parameters.

    Recognized parameters: ``executable``, ``arguments`` (list, or a string
    split with shell rules), ``inputs``, ``primary_output``,
    ``progress_pattern``, ``console_output``, ``skip_extensions``,
    ``skip_names``, ``keep_names`` and ``results_dir_name``.
    """

    name = "command"

    def __init__(self, program_name: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        if program_name:
            self.program_name = program_name

    @staticmethod
    def _param(context: JobStepContext, key: str, default: Any = None) -> Any:
        return context.job_step.get_param(key, default)

    def input_files(self, context: JobStepContext) -> Sequence[str]:
        return as_list(self._param(context, "inputs"))

    def console_output_path(self, context: JobStepContext) -> Path:
        name = self._param(context, "console_output")
        if not name:
            name = f"{self.display_name(context)}{CONSOLE_OUTPUT_SUFFIX}"
        return context.work_dir / name

    def progress_pattern_for(self, context: JobStepContext) -> str:
        return self._param(context, "progress_pattern", self.progress_pattern)

    def primary_output(self, context: JobStepContext) -> Optional[Path]:
        name = self._param(context, "primary_output")
        return context.work_dir / name if name else None

    def build_invocation(self, context: JobStepContext) -> ProcessInvocation:
        arguments = self._param(context, "arguments", [])
        if isinstance(arguments, str):
            arguments = shlex.split(arguments)
        return self.make_invocation(context, arguments)

    def file_rules(self, context: JobStepContext) -> FileRules:
        return FileRules(
            skip_names=set(as_list(self._param(context, "skip_names"))),
            skip_extensions=set(as_list(self._param(context, "skip_extensions"))),
            keep_names=set(as_list(self._param(context, "keep_names"))),
        )

    def results_dir_name(self, context: JobStepContext) -> Optional[str]:
        return self._param(context, "results_dir_name")
