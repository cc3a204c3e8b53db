"""Tests for FailedResultsArchiver."""

import os
import time
from unittest.mock import patch

import pytest

from jobstep.domain.exceptions import ArchiveError
from jobstep.infrastructure.results.archive import FailedResultsArchiver, INFO_FILE_PREFIX
from jobstep.shared.retry import RetryStrategy


@pytest.fixture
def populated_work_dir(work_dir):
    (work_dir / "result.tsv").write_bytes(bytes(range(256)) * 4)
    (work_dir / "Tool_ConsoleOutput.txt").write_text("Error: disk full\n")
    (work_dir / "sub").mkdir()
    (work_dir / "sub" / "detail.log").write_text("nested")
    return work_dir


def _tree(root):
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in root.rglob("*") if p.is_file()
    }


def test_archive_preserves_files_byte_for_byte(tmp_path, populated_work_dir, make_context):
    before = _tree(populated_work_dir)
    archiver = FailedResultsArchiver(tmp_path / "failed")

    target = archiver.archive(populated_work_dir, make_context(), target_name="Tool_Job1_Step1")

    assert target == tmp_path / "failed" / "Tool_Job1_Step1"
    assert _tree(target) == before


def test_archive_writes_info_file(tmp_path, populated_work_dir, make_context):
    archiver = FailedResultsArchiver(tmp_path / "failed")

    archiver.archive(populated_work_dir, make_context(dataset="QC_Sample"), target_name="Tool_Job1_Step1")

    info = (tmp_path / "failed" / f"{INFO_FILE_PREFIX}Tool_Job1_Step1.txt").read_text()
    assert "Job\t1" in info
    assert "Dataset\tQC_Sample" in info


def test_archive_replaces_previous_copy(tmp_path, populated_work_dir, make_context):
    stale = tmp_path / "failed" / "Tool_Job1_Step1"
    stale.mkdir(parents=True)
    (stale / "stale.txt").write_text("old")

    target = FailedResultsArchiver(tmp_path / "failed").archive(
        populated_work_dir, make_context(), target_name="Tool_Job1_Step1")

    assert not (target / "stale.txt").exists()


def test_expired_archives_are_purged(tmp_path, make_context, populated_work_dir):
    root = tmp_path / "failed"
    old = root / "Old_Job1_Step1"
    old.mkdir(parents=True)
    (old / "x.txt").write_text("x")
    info = root / f"{INFO_FILE_PREFIX}Old_Job1_Step1.txt"
    info.write_text("Date\t2000-01-01")
    forty_days_ago = time.time() - 40 * 86400
    os.utime(info, (forty_days_ago, forty_days_ago))

    FailedResultsArchiver(root, retain_days=31).archive(populated_work_dir, make_context(),
                                                        target_name="New_Job2_Step1")

    assert not old.exists()
    assert (root / f"x_{INFO_FILE_PREFIX}Old_Job1_Step1.txt").exists()
    assert (root / "New_Job2_Step1").is_dir()


def test_missing_source_raises(tmp_path, make_context):
    with pytest.raises(ArchiveError):
        FailedResultsArchiver(tmp_path / "failed").archive(tmp_path / "nope", make_context())


def test_copy_failure_raises_after_retries(tmp_path, populated_work_dir, make_context):
    sleeps = []
    archiver = FailedResultsArchiver(
        tmp_path / "failed",
        retry=RetryStrategy(max_attempts=2, backoff_seconds=0, jitter=False, sleep=sleeps.append),
    )
    with patch("jobstep.infrastructure.results.archive.shutil.copy2", side_effect=OSError("share offline")):
        with pytest.raises(ArchiveError, match="share offline"):
            archiver.archive(populated_work_dir, make_context())
    assert sleeps
