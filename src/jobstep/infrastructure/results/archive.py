"""Failure archive: preserves a failed step's working files for diagnosis."""

import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from jobstep.domain.exceptions import ArchiveError
from jobstep.domain.models import JobStepContext
from jobstep.shared.logging import get_logger
from jobstep.shared.retry import RetryStrategy

INFO_FILE_PREFIX = "FailedResultsFolderInfo_"


class FailedResultsArchiver:
    """
    Copies a directory into the failed-results root.

    Next to each archived directory an info file
    ``FailedResultsFolderInfo_<name>.txt`` records when and why it was archived.
    Archived directories whose info file is older than ``retain_days`` are
    removed on every archive call and their info file is renamed ``x_<info>``.
    """

    def __init__(
        self,
        archive_root: Path,
        retain_days: int = 31,
        retry: Optional[RetryStrategy] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.archive_root = Path(archive_root)
        self.retain_days = retain_days
        self.retry = retry or RetryStrategy(max_attempts=3, backoff_seconds=2.0, exponential=False)
        self._clock = clock
        self._logger = get_logger(self.__class__.__name__)

    def archive(self, source_dir: Path, context: JobStepContext,
                target_name: Optional[str] = None) -> Optional[Path]:
        """
        Copy every file under ``source_dir`` to ``<archive_root>/<target_name>``.

        Returns:
            The archived directory

        Raises:
            ArchiveError: If the archive root is unusable or a file could not be copied
        """
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise ArchiveError(f"Nothing to archive, directory not found: {source_dir}")

        name = target_name or source_dir.name
        target = self.archive_root / name

        try:
            self.archive_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveError(f"Cannot create failed results folder {self.archive_root}: {e}") from e

        self.purge_expired()

        if target.exists():
            self._logger.info(f"Replacing existing failed results folder {target}")
            shutil.rmtree(target, ignore_errors=True)

        self._logger.info(f"Copying results to failed results folder {target}")
        failures: List[str] = []
        copied = 0
        for path in sorted(source_dir.rglob("*")):
            if not path.is_file():
                continue
            destination = target / path.relative_to(source_dir)
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                self.retry.execute(shutil.copy2, path, destination)
                copied += 1
                if context.debug_level >= 2:
                    self._logger.debug(f"Archived {path.name}")
            except OSError as e:
                failures.append(f"{path.name}: {e}")

        self._write_info_file(name, target, context)

        if failures:
            raise ArchiveError(
                f"Failed to archive {len(failures)} file(s) to {target}: " + "; ".join(failures)
            )

        self._logger.info(f"Archived {copied} file(s) to {target}")
        return target

    def purge_expired(self) -> List[Path]:
        """Delete archived directories older than the retention window."""
        removed: List[Path] = []
        if not self.archive_root.is_dir():
            return removed

        threshold = self._clock() - self.retain_days * 86400
        for info_file in sorted(self.archive_root.glob(INFO_FILE_PREFIX + "*.txt")):
            if info_file.stat().st_mtime >= threshold:
                continue
            folder_name = info_file.stem[len(INFO_FILE_PREFIX):]
            folder = self.archive_root / folder_name
            if folder.is_dir():
                self._logger.info(f"Deleting old failed results folder {folder}")
                shutil.rmtree(folder, ignore_errors=True)
                removed.append(folder)
            try:
                os.replace(info_file, info_file.with_name("x_" + info_file.name))
            except OSError as e:
                self._logger.warning(f"Could not rename {info_file}: {e}")
        return removed

    def _write_info_file(self, name: str, target: Path, context: JobStepContext) -> None:
        job_step = context.job_step
        info_file = self.archive_root / f"{INFO_FILE_PREFIX}{name}.txt"
        lines = [
            f"Date\t{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"ResultsFolderName\t{name}",
            f"ResultsFolderPath\t{target}",
            f"Job\t{job_step.job}",
            f"Step\t{job_step.step}",
            f"Tool\t{job_step.tool_name}",
            f"Dataset\t{job_step.dataset}",
            f"WorkDir\t{job_step.work_dir}",
            f"DebugLevel\t{context.debug_level}",
        ]
        try:
            info_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as e:
            self._logger.warning(f"Could not write {info_file}: {e}")
