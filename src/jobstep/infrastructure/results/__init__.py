"""Result packaging, failure archive and transfer."""

from jobstep.infrastructure.results.archive import FailedResultsArchiver, INFO_FILE_PREFIX
from jobstep.infrastructure.results.packager import (
    ResultPackager,
    WORKDIR_INVENTORY_FILE,
    default_results_dir_name,
)
from jobstep.infrastructure.results.transfer import DirectoryTransfer, S3Transfer

__all__ = [
    "FailedResultsArchiver",
    "INFO_FILE_PREFIX",
    "ResultPackager",
    "WORKDIR_INVENTORY_FILE",
    "default_results_dir_name",
    "DirectoryTransfer",
    "S3Transfer",
]
