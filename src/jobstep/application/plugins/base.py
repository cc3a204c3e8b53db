"""Base tool plugin: the per-tool capabilities the job-step executor relies on."""

import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from jobstep.domain.exceptions import LaunchError
from jobstep.domain.models import (
    CloseoutCode,
    FailureKind,
    FileRules,
    InProcessInvocation,
    JobStepContext,
    Outcome,
    ParseResult,
    ProcessInvocation,
    ProcessRunResult,
)
from jobstep.domain.protocols import IResourceStager
from jobstep.infrastructure.parsing.console_parser import (
    ConsoleOutputParser,
    PERCENT_FINISHED_PATTERN,
)
from jobstep.infrastructure.resources.stager import LocalResourceStager
from jobstep.shared.logging import get_logger

Invocation = Union[ProcessInvocation, InProcessInvocation]

CONSOLE_OUTPUT_SUFFIX = "_ConsoleOutput.txt"


class ToolPlugin(ABC):
    """
    Abstract base class for tool plugins.

    A plugin stages the step's inputs, builds the invocation of its tool,
    classifies the finished run and supplies the rules that decide which files
    are results. The executor owns the lifecycle; plugins never start, poll or
    package anything themselves.

    The default ``classify_outcome`` applies the rules shared by every tool:
    killed runs, non-zero exit codes, errors reported on the console with a
    zero exit code, and a missing or empty ``primary_output``.
    """

    #: Registry name
    name: str = ""
    #: Display name used in messages and as the default console file prefix
    program_name: str = ""
    #: Executable looked up on PATH when nothing else is configured
    executable_name: str = ""
    progress_pattern: str = PERCENT_FINISHED_PATTERN
    progress_band: Tuple[float, float] = (1.0, 99.0)

    def __init__(self, stager: Optional[IResourceStager] = None):
        self._stager = stager
        self._logger = get_logger(self.__class__.__name__)

    @property
    def tool_name(self) -> str:
        return self.program_name or self.name

    @classmethod
    def is_available(cls) -> bool:
        """Check if this plugin can run in the current environment."""
        return True

    # Resources

    def input_files(self, context: JobStepContext) -> Sequence[str]:
        """Names of files that must be present in the working directory."""
        return ()

    def param_file(self, context: JobStepContext) -> Optional[str]:
        return None

    def stage_resources(self, context: JobStepContext) -> CloseoutCode:
        stager = self._stager or LocalResourceStager(
            file_names=self.input_files(context),
            source_dir=context.job_step.get_param("input_folder"),
            param_file=self.param_file(context),
        )
        return stager.stage(context)

    # Invocation

    @abstractmethod
    def build_invocation(self, context: JobStepContext) -> Invocation:
        """
        Build the tool invocation for this step.

        Raises:
            LaunchError: If the tool cannot be located
        """
        pass

    def display_name(self, context: JobStepContext) -> str:
        return self.program_name or context.job_step.tool_name

    def console_output_path(self, context: JobStepContext) -> Path:
        return context.work_dir / f"{self.display_name(context)}{CONSOLE_OUTPUT_SUFFIX}"

    def progress_pattern_for(self, context: JobStepContext) -> str:
        return self.progress_pattern

    def console_parser(self, context: JobStepContext) -> ConsoleOutputParser:
        return ConsoleOutputParser(self.progress_pattern_for(context), debug_level=context.debug_level)

    def resolve_executable(self, context: JobStepContext) -> Path:
        """
        Locate the tool: explicit context path, then the manager's tool paths,
        then the ``executable`` job parameter, then PATH.
        """
        if context.executable_path:
            return Path(context.executable_path)

        if context.config is not None:
            configured = context.config.tool_path(self.name) or context.config.tool_path(self.tool_name)
            if configured:
                return configured

        param = context.job_step.get_param("executable")
        if param:
            return Path(str(param))

        if self.executable_name:
            found = shutil.which(self.executable_name)
            if found:
                return Path(found)

        raise LaunchError(f"Cannot determine the path to {self.display_name(context)}")

    def make_invocation(self, context: JobStepContext, arguments: Sequence[str]) -> ProcessInvocation:
        return ProcessInvocation(
            executable=self.resolve_executable(context),
            arguments=tuple(str(a) for a in arguments),
            work_dir=context.work_dir,
            program_name=self.display_name(context),
            console_output_path=self.console_output_path(context),
        )

    # Outcome

    def primary_output(self, context: JobStepContext) -> Optional[Path]:
        """File the tool must produce for the run to count as a success."""
        return None

    def classify_outcome(
        self,
        context: JobStepContext,
        run_result: ProcessRunResult,
        parsed: ParseResult,
    ) -> Outcome:
        name = self.display_name(context)

        if run_result.timed_out:
            return Outcome.failure(FailureKind.ABORTED, f"{name} exceeded the maximum runtime and was killed")
        if run_result.aborted:
            return Outcome.failure(FailureKind.ABORTED, f"{name} was aborted")

        if run_result.exit_code != 0:
            reason = f"{name} returned a non-zero exit code: {run_result.exit_code}"
            if parsed.has_error:
                reason += f" ({parsed.error_message})"
            return Outcome.failure(FailureKind.PROCESS_EXIT, reason, exit_code=run_result.exit_code)

        if parsed.has_error:
            return Outcome.failure(
                FailureKind.SILENT,
                f"Call to {name} failed (but exit code is 0): {parsed.error_message}",
                exit_code=0,
            )

        output = self.primary_output(context)
        if output is not None:
            if not output.exists():
                return Outcome.failure(FailureKind.POSTCONDITION,
                                       f"{output.name} file was not created by {name}")
            if output.stat().st_size == 0:
                return Outcome.failure(FailureKind.POSTCONDITION,
                                       f"{output.name} file created by {name} is empty")

        return Outcome.success()

    # Packaging

    def file_rules(self, context: JobStepContext) -> FileRules:
        return FileRules()

    def results_dir_name(self, context: JobStepContext) -> Optional[str]:
        """Name of the results directory; None for ``<Tool>_Job<job>_Step<step>``."""
        return None
