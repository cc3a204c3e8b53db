"""Job-step executor: the lifecycle state machine every tool plugin runs through."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from jobstep.domain.exceptions import DomainException, ExecutorStateError, ResourceError
from jobstep.domain.models import (
    CloseoutCode,
    ExecutorState,
    FailureKind,
    FileRules,
    InProcessInvocation,
    JobStepContext,
    Outcome,
    ParseResult,
    ProcessInvocation,
    ProcessRunResult,
    ProgressState,
)
from jobstep.domain.protocols import IMetricsCollector, IStatusSink, IToolPlugin
from jobstep.infrastructure.process.supervisor import ProcessSupervisor
from jobstep.infrastructure.results.packager import ResultPackager, default_results_dir_name
from jobstep.infrastructure.status.progress import ProgressReporter
from jobstep.shared.logging import get_logger
from jobstep.shared.metrics import MetricsCollector


class JobStepExecutor:
    """
    Runs one job step through its lifecycle::

        INITIALIZING -> RESOURCES_STAGED -> TOOL_RUNNING -> COMPLETED
                     -> RESULTS_PACKAGED -> DONE

    Staging failures skip the tool entirely. Every error raised along the way
    is folded into the returned Outcome; ``run()`` itself only raises when it
    is called a second time. The executor never retries a phase; the stager,
    archiver and transfer collaborators retry each file copy themselves.
    """

    def __init__(
        self,
        plugin: IToolPlugin,
        context: JobStepContext,
        packager: ResultPackager,
        status_sink: Optional[IStatusSink] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        metrics: Optional[IMetricsCollector] = None,
        progress_band: Optional[Tuple[float, float]] = None,
    ):
        self.plugin = plugin
        self.context = context
        self.packager = packager
        self.status_sink = status_sink
        self.metrics = metrics or MetricsCollector()
        self._logger = get_logger(self.__class__.__name__)

        config = context.config
        self.supervisor = supervisor or ProcessSupervisor(
            poll_interval_seconds=config.poll_interval_seconds if config else 15.0,
            max_runtime_seconds=config.max_runtime_seconds if config else 0,
            debug_level=context.debug_level,
        )

        band = progress_band or (config.progress_band if config else None)
        if band is None:
            band = getattr(plugin, "progress_band", (0.0, 100.0))
        self.reporter = ProgressReporter(
            context,
            sink=status_sink,
            band=band,
            status_interval_seconds=config.status_interval_seconds if config else 10.0,
        )

        self._state = ExecutorState.INITIALIZING
        self._started = False
        self._abort_requested = False
        self.run_result: Optional[ProcessRunResult] = None

    @property
    def state(self) -> ExecutorState:
        return self._state

    @property
    def progress(self) -> ProgressState:
        return self.reporter.state

    def abort(self) -> None:
        """Kill the running tool at the next poll."""
        self._abort_requested = True
        self.supervisor.abort()

    def run(self) -> Outcome:
        """
        Execute the step and return its single Outcome.

        Raises:
            ExecutorStateError: If the executor has already been run
        """
        if self._started:
            raise ExecutorStateError(
                f"Executor for {self.context.job_step.description} has already been run"
            )
        self._started = True

        job_step = self.context.job_step
        self._logger.info(f"Starting {job_step.tool_name} for {job_step.description}")
        self.metrics.start_timer("job_step")

        try:
            outcome, rules = self._run_tool()
        except DomainException as e:
            self._logger.error(f"{job_step.tool_name} failed: {e}")
            outcome, rules = Outcome.from_exception(e), self._file_rules()
        except Exception as e:
            self._logger.exception(f"Unexpected error running {job_step.tool_name}: {e}")
            outcome, rules = Outcome.from_exception(e), self._file_rules()
        self._state = ExecutorState.COMPLETED

        outcome = self._package(outcome, rules)
        self._state = ExecutorState.RESULTS_PACKAGED

        self.reporter.finalize(
            percent=100.0 if outcome.success_or_no_data else None,
            operation="Complete" if outcome.success_or_no_data else "Failed",
        )
        self.metrics.stop_timer("job_step")
        self._state = ExecutorState.DONE

        self._log_outcome(outcome)
        self.metrics.log_summary(self._logger, title=f"{job_step.tool_name} metrics")
        return outcome

    def _run_tool(self) -> Tuple[Outcome, FileRules]:
        context = self.context

        self.metrics.start_timer("staging")
        try:
            closeout = self.plugin.stage_resources(context)
        except OSError as e:
            raise ResourceError(f"Resource staging failed: {e}") from e
        finally:
            self.metrics.stop_timer("staging")
        if closeout is CloseoutCode.NO_DATA:
            return Outcome.no_data("No data to process"), self._file_rules()
        if closeout is not CloseoutCode.SUCCESS:
            return Outcome.failure(
                FailureKind.RESOURCE,
                f"Resource staging failed: {closeout.value}",
            ), self._file_rules()
        self._state = ExecutorState.RESOURCES_STAGED

        invocation = self.plugin.build_invocation(context)
        if context.debug_level >= 1 and isinstance(invocation, ProcessInvocation):
            self._logger.info(invocation.command_line)

        self._state = ExecutorState.TOOL_RUNNING
        self.reporter.set_operation(f"Running {invocation.name}")
        self.metrics.start_timer("tool")
        try:
            if isinstance(invocation, InProcessInvocation):
                run_result, parsed = self._run_in_process(invocation)
            else:
                run_result, parsed = self._run_process(invocation)
        finally:
            self.metrics.stop_timer("tool")
        self.run_result = run_result

        if parsed.error_message:
            self._logger.error(parsed.error_message)

        outcome = self.plugin.classify_outcome(context, run_result, parsed)

        # Evaluated after exit so the tool's own writes are finished
        rules = self._file_rules()
        console_path = getattr(invocation, "console_output_path", None)
        if outcome.success_or_no_data and console_path is not None:
            rules.add_skip_name(Path(console_path).name)
        return outcome, rules

    def _run_process(self, invocation: ProcessInvocation) -> Tuple[ProcessRunResult, ParseResult]:
        parser = self.plugin.console_parser(self.context)
        console_path = invocation.console_output_path

        for tick in self.supervisor.ticks(invocation):
            self.metrics.increment_counter("polls")
            self.metrics.record_metric("core_usage", tick.core_usage)
            self.reporter.set_core_usage(tick.core_usage)

            if console_path is not None:
                self.reporter.update(parser.parse_file(console_path))
            else:
                self.reporter.update(ParseResult())

            if self._abort_requested or (self.status_sink and self.status_sink.abort_requested()):
                self.supervisor.abort()

        run_result = self.supervisor.result
        if console_path is not None and Path(console_path).exists():
            parsed = parser.parse_file(console_path)
        else:
            parsed = parser.parse_text(run_result.console_output)
        self.reporter.update(parsed)
        return run_result, parsed

    def _run_in_process(self, invocation: InProcessInvocation) -> Tuple[ProcessRunResult, ParseResult]:
        started = datetime.now(timezone.utc)
        exit_code = invocation.func(invocation.work_dir, self.reporter.report_tool_percent)
        run_result = ProcessRunResult(
            exit_code=0 if exit_code is None else int(exit_code),
            start_time=started,
            stop_time=datetime.now(timezone.utc),
        )

        parsed = ParseResult()
        if invocation.console_output_path is not None:
            parsed = self.plugin.console_parser(self.context).parse_file(invocation.console_output_path)
            self.reporter.update(parsed)
        return run_result, parsed

    def _file_rules(self) -> FileRules:
        try:
            return self.plugin.file_rules(self.context).copy()
        except Exception as e:
            self._logger.exception(f"Error building file rules; using defaults: {e}")
            return FileRules()

    def _package(self, outcome: Outcome, rules: FileRules) -> Outcome:
        self.reporter.set_operation("Packaging results")
        self.metrics.start_timer("packaging")
        try:
            results_dir_name = self.plugin.results_dir_name(self.context)
            packaged = self.packager.package(self.context, outcome, rules, results_dir_name)
        except Exception as e:
            # The outcome already decided must survive a packaging error
            self._logger.exception(f"Error packaging results: {e}")
            packaged = outcome if outcome.is_failure else self._archive_after_error(e, rules)
        self.metrics.stop_timer("packaging")
        return packaged

    def _archive_after_error(self, error: Exception, rules: FileRules) -> Outcome:
        failure = Outcome.from_exception(error)
        try:
            name = self.plugin.results_dir_name(self.context) or default_results_dir_name(self.context)
            location = self.packager.package_failure(self.context, rules, name)
        except Exception as e:
            self._logger.exception(f"Error archiving failed results: {e}")
            return failure
        return failure.with_location(location)

    def _log_outcome(self, outcome: Outcome) -> None:
        job_step = self.context.job_step
        if outcome.is_failure:
            self._logger.error(
                f"{job_step.tool_name} failed for {job_step.description} "
                f"[{outcome.failure_kind.value}]: {outcome.reason}"
            )
        else:
            where = f"; results at {outcome.final_location}" if outcome.final_location else ""
            self._logger.info(
                f"{job_step.tool_name} {outcome.kind.value} for {job_step.description}{where}"
            )
