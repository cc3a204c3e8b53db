"""Resource acquisition: makes a step's inputs available in its working directory."""

import shutil
from pathlib import Path
from typing import Optional, Sequence

from jobstep.domain.models import CloseoutCode, JobStepContext
from jobstep.shared.logging import get_logger
from jobstep.shared.retry import RetryStrategy
from jobstep.shared.types import PathLike


class LocalResourceStager:
    """
    Copies input files into the working directory.

    Files already present in the working directory are used as they are;
    otherwise they are copied from ``source_dir``. A missing parameter file
    yields NO_PARAM_FILE and any other missing input FILE_NOT_FOUND.
    """

    def __init__(
        self,
        file_names: Sequence[str] = (),
        source_dir: Optional[PathLike] = None,
        param_file: Optional[str] = None,
        retry: Optional[RetryStrategy] = None,
    ):
        self.file_names = tuple(file_names)
        self.source_dir = Path(source_dir) if source_dir else None
        self.param_file = param_file
        self.retry = retry or RetryStrategy(max_attempts=3, backoff_seconds=2.0, exponential=False)
        self._logger = get_logger(self.__class__.__name__)

    def stage(self, context: JobStepContext) -> CloseoutCode:
        work_dir = context.work_dir
        work_dir.mkdir(parents=True, exist_ok=True)

        if self.param_file and not self._ensure(self.param_file, work_dir):
            self._logger.error(f"Parameter file not found: {self.param_file}")
            return CloseoutCode.NO_PARAM_FILE

        for name in self.file_names:
            if not self._ensure(name, work_dir):
                self._logger.error(f"Input file not found: {name}")
                return CloseoutCode.FILE_NOT_FOUND

        if context.debug_level >= 2 and self.file_names:
            self._logger.debug(f"Staged {', '.join(self.file_names)} in {work_dir}")
        return CloseoutCode.SUCCESS

    def _ensure(self, name: str, work_dir: Path) -> bool:
        target = work_dir / name
        if target.exists():
            return True
        if self.source_dir is None:
            return False

        source = self.source_dir / name
        if not source.exists():
            return False

        self._logger.info(f"Copying {source} to {work_dir}")
        if source.is_dir():
            self.retry.execute(shutil.copytree, source, target)
        else:
            self.retry.execute(shutil.copy2, source, target)
        return True
