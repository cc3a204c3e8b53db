"""Plugin running a Python callable in-process instead of an external tool."""

from pathlib import Path
from typing import Callable, Optional, Sequence

from jobstep.domain.models import FileRules, InProcessInvocation, JobStepContext
from jobstep.shared.types import ProgressCallback

from .base import ToolPlugin

ToolFunction = Callable[[Path, ProgressCallback], int]


class CallablePlugin(ToolPlugin):
    """
    Wraps a library call as a job step.

    ``func(work_dir, progress)`` runs synchronously in the worker; it reports
    tool-local progress (0-100) through ``progress`` and returns an exit code,
    0 for success. The result is classified exactly like an external tool.
    """

    name = "callable"

    def __init__(
        self,
        func: ToolFunction,
        program_name: Optional[str] = None,
        primary_output: Optional[str] = None,
        inputs: Sequence[str] = (),
        skip_extensions: Sequence[str] = (),
        **kwargs,
    ):
        super().__init__(**kwargs)
        if not callable(func):
            raise TypeError("func must be callable")
        self.func = func
        self.program_name = program_name or getattr(func, "__name__", "callable")
        self._primary_output = primary_output
        self._inputs = tuple(inputs)
        self._skip_extensions = tuple(skip_extensions)

    def input_files(self, context: JobStepContext) -> Sequence[str]:
        return self._inputs

    def primary_output(self, context: JobStepContext) -> Optional[Path]:
        return context.work_dir / self._primary_output if self._primary_output else None

    def build_invocation(self, context: JobStepContext) -> InProcessInvocation:
        return InProcessInvocation(
            func=self.func,
            work_dir=context.work_dir,
            program_name=self.display_name(context),
        )

    def file_rules(self, context: JobStepContext) -> FileRules:
        return FileRules(skip_extensions=set(self._skip_extensions))
