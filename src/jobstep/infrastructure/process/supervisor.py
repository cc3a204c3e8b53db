"""Supervision of one external analysis tool per job step."""

import os
import subprocess
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Callable, Iterator, Optional

import psutil

from jobstep.domain.exceptions import LaunchError
from jobstep.domain.models import ProcessInvocation, ProcessRunResult
from jobstep.shared.logging import get_logger

MIN_POLL_INTERVAL_SECONDS = 0.25
MIN_MAX_RUNTIME_SECONDS = 15


@dataclass(frozen=True)
class SupervisorTick:
    """One poll of a still-running child process."""

    pid: int
    elapsed_seconds: float
    core_usage: float


class ProcessSupervisor:
    """
    Starts one external executable and polls it until it exits.

    The supervisor is pull-based: ``ticks()`` is a generator that yields a
    ``SupervisorTick`` after every poll interval the child spends running, which
    is the single point where the caller parses output or writes status.
    ``run()`` drains the generator for callers that only need the result.

    Output is redirected either straight to the console output file, or to a
    temporary cache that is flushed to the console output file on every tick and
    at exit, so there is always one canonical console file to parse.
    """

    def __init__(
        self,
        poll_interval_seconds: float = 15.0,
        max_runtime_seconds: int = 0,
        debug_level: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.poll_interval_seconds = max(MIN_POLL_INTERVAL_SECONDS, float(poll_interval_seconds))
        if 0 < max_runtime_seconds < MIN_MAX_RUNTIME_SECONDS:
            max_runtime_seconds = MIN_MAX_RUNTIME_SECONDS
        self.max_runtime_seconds = max(0, int(max_runtime_seconds))
        self.debug_level = debug_level
        self._clock = clock
        self._logger = get_logger(self.__class__.__name__)
        self._abort_requested = False
        self._result: Optional[ProcessRunResult] = None

    @property
    def result(self) -> Optional[ProcessRunResult]:
        """Result of the last completed run, or None while running."""
        return self._result

    def abort(self) -> None:
        """Ask the supervisor to kill the child at the next poll."""
        self._abort_requested = True

    def run(self, invocation: ProcessInvocation) -> ProcessRunResult:
        """Run the invocation to completion and return what was observed."""
        for _ in self.ticks(invocation):
            pass
        return self._result

    def ticks(self, invocation: ProcessInvocation) -> Iterator[SupervisorTick]:
        """
        Start the child and yield once per poll interval while it runs.

        Raises:
            LaunchError: If the executable is missing or cannot be started
        """
        self._result = None
        self._abort_requested = False
        self._validate(invocation)

        console_file = self._open_console_file(invocation)
        cache_file = tempfile.TemporaryFile() if invocation.cache_standard_output else None
        cache_offset = 0

        try:
            process = self._start(invocation, console_file, cache_file)
        except LaunchError:
            self._close(console_file, cache_file)
            raise

        start_time = datetime.now(timezone.utc)
        started = self._clock()
        monitor = self._monitor_for(process.pid)
        timed_out = False
        aborted = False
        exit_code: Optional[int] = None

        self._logger.info(f"Started {invocation.name} (pid {process.pid})")
        if self.debug_level >= 2:
            self._logger.debug(f"Command: {invocation.command_line}")

        try:
            while True:
                elapsed = self._clock() - started
                if self._abort_requested:
                    self._logger.warning(f"Abort requested; killing {invocation.name} (pid {process.pid})")
                    aborted = True
                    exit_code = self._kill(process)
                    break
                if self.max_runtime_seconds and elapsed >= self.max_runtime_seconds:
                    self._logger.warning(
                        f"{invocation.name} exceeded the maximum runtime of "
                        f"{self.max_runtime_seconds} seconds; killing pid {process.pid}"
                    )
                    timed_out = True
                    aborted = True
                    exit_code = self._kill(process)
                    break

                try:
                    exit_code = process.wait(timeout=self._next_wait(elapsed))
                    break
                except subprocess.TimeoutExpired:
                    pass

                if cache_file is not None:
                    cache_offset = self._flush_cache(cache_file, cache_offset, console_file)

                yield SupervisorTick(
                    pid=process.pid,
                    elapsed_seconds=self._clock() - started,
                    core_usage=self._sample_core_usage(monitor),
                )
        finally:
            if process.poll() is None:
                # Generator closed before the child exited
                aborted = True
                exit_code = self._kill(process)

            cached_text = ""
            if cache_file is not None:
                self._flush_cache(cache_file, cache_offset, console_file)
                cache_file.seek(0)
                cached_text = cache_file.read().decode("utf-8", errors="replace")
            self._close(console_file, cache_file)

            self._result = ProcessRunResult(
                exit_code=exit_code,
                timed_out=timed_out,
                aborted=aborted,
                pid=process.pid,
                start_time=start_time,
                stop_time=datetime.now(timezone.utc),
                console_output=cached_text,
            )

        self._log_finished(invocation, self._result)

    def _next_wait(self, elapsed: float) -> float:
        wait = self.poll_interval_seconds
        if self.max_runtime_seconds:
            wait = min(wait, max(MIN_POLL_INTERVAL_SECONDS, self.max_runtime_seconds - elapsed))
        return wait

    def _validate(self, invocation: ProcessInvocation) -> None:
        if not str(invocation.executable or "").strip():
            raise LaunchError("Executable path is empty")
        executable = Path(invocation.executable)
        if executable.parent != Path(".") and not executable.exists():
            raise LaunchError(f"Executable not found: {executable}")
        if not Path(invocation.work_dir).is_dir():
            raise LaunchError(f"Working directory not found: {invocation.work_dir}")

    def _open_console_file(self, invocation: ProcessInvocation) -> Optional[IO[bytes]]:
        if invocation.console_output_path is None:
            return None
        # Cached output is always flushed to the console file for parsing
        if not (invocation.write_console_output_to_file or invocation.cache_standard_output):
            return None
        console_file = open(invocation.console_output_path, "wb")
        if invocation.console_output_includes_command_line:
            console_file.write((invocation.command_line + os.linesep).encode("utf-8"))
            console_file.flush()
        return console_file

    def _start(self, invocation: ProcessInvocation, console_file, cache_file) -> subprocess.Popen:
        if cache_file is not None:
            stdout = cache_file
        elif console_file is not None:
            stdout = console_file
        elif invocation.echo_output_to_console:
            stdout = None
        else:
            stdout = subprocess.DEVNULL

        creationflags = 0
        if invocation.create_no_window and os.name == "nt":
            creationflags = getattr(subprocess, "CREATE_NO_WINDOW", 0)

        env = None
        if invocation.env:
            env = os.environ.copy()
            env.update(invocation.env)

        try:
            return subprocess.Popen(
                list(invocation.command),
                cwd=str(invocation.work_dir),
                stdin=subprocess.DEVNULL,
                stdout=stdout,
                stderr=subprocess.STDOUT if stdout is not None else None,
                env=env,
                creationflags=creationflags,
            )
        except OSError as e:
            self._logger.error(f"Failed to start {invocation.name}: {e}")
            raise LaunchError(f"Failed to start {invocation.name}: {e}") from e

    @staticmethod
    def _flush_cache(cache_file: IO[bytes], offset: int, console_file: Optional[IO[bytes]]) -> int:
        cache_file.seek(offset)
        data = cache_file.read()
        if data and console_file is not None:
            console_file.write(data)
            console_file.flush()
        return offset + len(data)

    @staticmethod
    def _close(*handles) -> None:
        for handle in handles:
            if handle is not None:
                handle.close()

    def _kill(self, process: subprocess.Popen) -> Optional[int]:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        return process.wait()

    def _monitor_for(self, pid: int) -> Optional[psutil.Process]:
        try:
            monitor = psutil.Process(pid)
            monitor.cpu_percent(interval=None)
            return monitor
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return None

    def _sample_core_usage(self, monitor: Optional[psutil.Process]) -> float:
        """Cores in use by the child since the previous sample."""
        if monitor is None:
            return 0.0
        try:
            return monitor.cpu_percent(interval=None) / 100.0
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return 0.0

    def _log_finished(self, invocation: ProcessInvocation, result: ProcessRunResult) -> None:
        runtime = f"{result.runtime_seconds:.1f}s"
        if result.timed_out:
            self._logger.error(f"{invocation.name} timed out after {runtime}")
        elif result.aborted:
            self._logger.error(f"{invocation.name} aborted after {runtime}")
        elif result.exit_code != 0:
            self._logger.error(f"{invocation.name} exited with code {result.exit_code} after {runtime}")
        else:
            self._logger.info(f"{invocation.name} finished after {runtime}")

        if invocation.echo_output_to_console and result.console_output:
            for line in result.console_output.splitlines():
                self._logger.debug(f"[{invocation.name}] {line}")
