"""JSON status file written for the manager that dispatches job steps."""

import json
import os
import tempfile
from pathlib import Path
from typing import List

from jobstep.domain.models import StatusSnapshot
from jobstep.shared.logging import get_logger
from jobstep.shared.types import PathLike

ABORT_FILE_NAME = "AbortProcessingNow.txt"


class StatusFile:
    """
    Status sink backed by a JSON file.

    Writes are atomic (temp file + rename) and fire-and-forget: an I/O error is
    logged and the run continues. An ``AbortProcessingNow.txt`` file placed
    beside the status file is taken as an abort request and renamed to
    ``AbortProcessingNow.txt.done``.
    """

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self.abort_path = self.path.parent / ABORT_FILE_NAME
        self.history: List[StatusSnapshot] = []
        self._abort_seen = False
        self._logger = get_logger(self.__class__.__name__)

    def write(self, snapshot: StatusSnapshot) -> None:
        self.history.append(snapshot)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=self.path.name + ".", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            self._logger.warning(f"Could not write status file {self.path}: {e}")

    def abort_requested(self) -> bool:
        if self._abort_seen:
            return True
        if not self.abort_path.exists():
            return False

        self._abort_seen = True
        self._logger.warning(f"Found {self.abort_path}; aborting processing")
        done_path = self.abort_path.with_name(self.abort_path.name + ".done")
        try:
            os.replace(self.abort_path, done_path)
        except OSError as e:
            self._logger.warning(f"Could not rename {self.abort_path}: {e}")
        return True
