"""Result packaging: archive on failure, transfer on success."""

import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from jobstep.domain.exceptions import ArchiveError, TransferError
from jobstep.domain.models import FileRules, JobStepContext, Outcome, ResultFileSet
from jobstep.domain.protocols import IArchiver, ITransfer
from jobstep.shared.logging import get_logger

WORKDIR_INVENTORY_FILE = "_WorkDir_File_Info_.tsv"
ARCHIVE_DEBUG_LEVEL = 2


def default_results_dir_name(context: JobStepContext) -> str:
    job_step = context.job_step
    return f"{job_step.tool_name}_Job{job_step.job}_Step{job_step.step}"


class ResultPackager:
    """
    Disposes of a finished step's working directory.

    Failure: known-bad artifacts named by the plugin are deleted, an inventory of
    the working directory is written, and everything left is archived. Archive
    problems are logged and never change the Failure outcome.

    Success (or NoData): files are partitioned by the plugin's FileRules; files
    to keep or move go into a results directory inside the working directory,
    which is then delivered by the transfer collaborator. A transfer failure
    turns the outcome into a Failure and the results directory is archived.
    """

    def __init__(self, archiver: IArchiver, transfer: Optional[ITransfer] = None):
        self.archiver = archiver
        self.transfer = transfer
        self._logger = get_logger(self.__class__.__name__)

    def collect(self, work_dir: Path, rules: FileRules) -> ResultFileSet:
        """Partition the files directly under work_dir into keep, skip and move."""
        keep: List[Path] = []
        skip: List[Path] = []
        move: List[Path] = []
        for path in sorted(Path(work_dir).iterdir()):
            if not path.is_file():
                continue
            disposition = rules.classify(path.name)
            if disposition == "keep":
                keep.append(path)
            elif disposition == "skip":
                skip.append(path)
            else:
                move.append(path)
        return ResultFileSet(work_dir=Path(work_dir), keep=tuple(keep),
                             skip=tuple(skip), default_move=tuple(move))

    def package(
        self,
        context: JobStepContext,
        outcome: Outcome,
        rules: FileRules,
        results_dir_name: Optional[str] = None,
    ) -> Outcome:
        """Archive or transfer the step's files and return the final outcome."""
        name = results_dir_name or default_results_dir_name(context)
        if outcome.success_or_no_data:
            return self._package_success(context, outcome, rules, name)

        location = self.package_failure(context, rules, name)
        return outcome.with_location(location)

    def package_failure(self, context: JobStepContext, rules: FileRules, name: str) -> Optional[Path]:
        work_dir = context.work_dir
        if not work_dir.is_dir():
            self._logger.warning(f"Working directory not found, nothing to archive: {work_dir}")
            return None

        self._delete_known_bad_files(work_dir, rules)
        self._write_inventory(work_dir)
        return self._archive(work_dir, context, name)

    def _package_success(self, context: JobStepContext, outcome: Outcome,
                         rules: FileRules, name: str) -> Outcome:
        file_set = self.collect(context.work_dir, rules)
        results_dir = context.work_dir / name
        results_dir.mkdir(parents=True, exist_ok=True)

        for path in file_set.transferable:
            self._move(path, results_dir / path.name)

        if context.debug_level >= 2:
            skipped = ", ".join(p.name for p in file_set.skip) or "none"
            self._logger.debug(f"Files not transferred: {skipped}")

        if self.transfer is None:
            self._logger.info(f"No transfer configured; results left in {results_dir}")
            return outcome.with_location(results_dir)

        destination = self.transfer.destination_for(name)
        try:
            result = self.transfer.transfer(results_dir, destination)
        except TransferError as e:
            self._logger.error(f"Transfer of results to {destination} failed: {e}")
            archived = self._archive(results_dir, context, name)
            return Outcome.from_exception(e).with_location(archived)

        self._logger.info(
            f"Transferred {result.files_copied} file(s) ({result.size_bytes} bytes) to {result.destination}"
        )
        return outcome.with_location(result.destination)

    def _archive(self, source_dir: Path, context: JobStepContext, name: str) -> Optional[Path]:
        try:
            return self.archiver.archive(
                source_dir, context.with_debug_level(ARCHIVE_DEBUG_LEVEL), target_name=name
            )
        except (ArchiveError, OSError) as e:
            self._logger.error(f"Error archiving failed results for {context.job_step.description}: {e}")
            return None

    def _delete_known_bad_files(self, work_dir: Path, rules: FileRules) -> None:
        if not rules.delete_before_archive:
            return
        for path in work_dir.iterdir():
            if not path.is_file() or path.name.lower() not in rules.delete_before_archive:
                continue
            try:
                path.unlink()
                self._logger.info(f"Deleted {path.name} before archiving")
            except OSError as e:
                self._logger.warning(f"Could not delete {path.name} before archiving: {e}")

    def _write_inventory(self, work_dir: Path) -> None:
        lines = ["Date\tSize\tFile\tSubdirectory"]
        for path in sorted(work_dir.rglob("*")):
            if not path.is_file() or path.name == WORKDIR_INVENTORY_FILE:
                continue
            stat = path.stat()
            modified = datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S")
            subdir = path.parent.relative_to(work_dir).as_posix()
            lines.append(f"{modified}\t{stat.st_size}\t{path.name}\t{'' if subdir == '.' else subdir}")
        try:
            (work_dir / WORKDIR_INVENTORY_FILE).write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as e:
            self._logger.warning(f"Could not write {WORKDIR_INVENTORY_FILE}: {e}")

    def _move(self, source: Path, target: Path) -> None:
        try:
            shutil.move(str(source), str(target))
        except OSError as e:
            self._logger.warning(f"Move of {source.name} failed ({e}); copying instead")
            shutil.copy2(source, target)
