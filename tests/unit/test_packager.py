"""Tests for ResultPackager."""

from unittest.mock import Mock

import pytest

from jobstep.domain.exceptions import ArchiveError, TransferError
from jobstep.domain.models import FailureKind, FileRules, Outcome, OutcomeKind, TransferResult
from jobstep.infrastructure.results.archive import FailedResultsArchiver
from jobstep.infrastructure.results.packager import (
    ARCHIVE_DEBUG_LEVEL,
    WORKDIR_INVENTORY_FILE,
    ResultPackager,
    default_results_dir_name,
)
from jobstep.infrastructure.results.transfer import DirectoryTransfer


@pytest.fixture
def step_files(work_dir):
    (work_dir / "input.raw").write_bytes(b"r" * 50)
    (work_dir / "result.tsv").write_bytes(b"x" * 120)
    (work_dir / "FakeTool_ConsoleOutput.txt").write_text("Percent complete: 100\n")
    (work_dir / "params.xml").write_text("<p/>")
    return work_dir


@pytest.fixture
def rules():
    return FileRules(
        skip_names={"FakeTool_ConsoleOutput.txt", "params.xml"},
        skip_extensions={".raw"},
        keep_names={"params.xml"},
    )


def test_default_results_dir_name(make_context):
    assert default_results_dir_name(make_context()) == "FakeTool_Job1_Step1"


def test_collect_partitions_files(step_files, rules):
    packager = ResultPackager(archiver=Mock())

    file_set = packager.collect(step_files, rules)

    assert [p.name for p in file_set.keep] == ["params.xml"]
    assert sorted(p.name for p in file_set.skip) == ["FakeTool_ConsoleOutput.txt", "input.raw"]
    assert [p.name for p in file_set.default_move] == ["result.tsv"]
    assert len(file_set.all_files) == 4


def test_success_transfers_keep_and_move(tmp_path, step_files, rules, make_context):
    transfer = DirectoryTransfer(tmp_path / "share")
    packager = ResultPackager(archiver=Mock(), transfer=transfer)

    outcome = packager.package(make_context(), Outcome.success(), rules)

    delivered = tmp_path / "share" / "FakeTool_Job1_Step1"
    assert outcome.is_success
    assert outcome.final_location == str(delivered)
    assert sorted(p.name for p in delivered.iterdir()) == ["params.xml", "result.tsv"]
    assert (step_files / "input.raw").exists()
    assert not (step_files / "result.tsv").exists()


def test_no_data_is_transferred_like_success(tmp_path, step_files, rules, make_context):
    packager = ResultPackager(archiver=Mock(), transfer=DirectoryTransfer(tmp_path / "share"))

    outcome = packager.package(make_context(), Outcome.no_data("no spectra"), rules)

    assert outcome.kind is OutcomeKind.NO_DATA
    assert (tmp_path / "share" / "FakeTool_Job1_Step1" / "result.tsv").exists()


def test_success_without_transfer_leaves_results_in_work_dir(step_files, rules, make_context):
    outcome = ResultPackager(archiver=Mock()).package(
        make_context(), Outcome.success(), rules, results_dir_name="Custom")

    assert outcome.final_location == str(step_files / "Custom")
    assert (step_files / "Custom" / "result.tsv").exists()


def test_transfer_failure_becomes_transfer_failure_and_archives(step_files, rules, make_context):
    archiver = Mock()
    archiver.archive.return_value = step_files / "archived"
    transfer = Mock()
    transfer.destination_for.return_value = "//share/FakeTool_Job1_Step1"
    transfer.transfer.side_effect = TransferError("share unreachable")

    outcome = ResultPackager(archiver=archiver, transfer=transfer).package(
        make_context(), Outcome.success(), rules)

    assert outcome.is_failure
    assert outcome.failure_kind is FailureKind.TRANSFER
    assert "share unreachable" in outcome.reason
    archived_dir = archiver.archive.call_args.args[0]
    assert archived_dir == step_files / "FakeTool_Job1_Step1"
    assert outcome.final_location == str(step_files / "archived")


def test_failure_deletes_known_bad_files_and_archives(tmp_path, step_files, make_context):
    (step_files / "input.uimf").write_bytes(b"u" * 10)
    rules = FileRules(delete_before_archive={"input.uimf"})
    packager = ResultPackager(archiver=FailedResultsArchiver(tmp_path / "failed"))
    failure = Outcome.failure(FailureKind.PROCESS_EXIT, "exit code 3", exit_code=3)

    outcome = packager.package(make_context(), failure, rules)

    archived = tmp_path / "failed" / "FakeTool_Job1_Step1"
    assert outcome.is_failure
    assert outcome.exit_code == 3
    assert outcome.final_location == str(archived)
    assert not (step_files / "input.uimf").exists()
    assert not (archived / "input.uimf").exists()
    assert (archived / "result.tsv").read_bytes() == b"x" * 120
    inventory = (archived / WORKDIR_INVENTORY_FILE).read_text()
    assert "result.tsv" in inventory
    assert "input.uimf" not in inventory


def test_failure_archives_with_raised_debug_level(step_files, make_context):
    archiver = Mock()
    archiver.archive.return_value = None

    ResultPackager(archiver=archiver).package(
        make_context(debug_level=0), Outcome.failure(FailureKind.SILENT, "error"), FileRules())

    archived_context = archiver.archive.call_args.args[1]
    assert archived_context.debug_level == ARCHIVE_DEBUG_LEVEL


def test_archive_error_keeps_failure_outcome(step_files, make_context):
    archiver = Mock()
    archiver.archive.side_effect = ArchiveError("archive share offline")
    failure = Outcome.failure(FailureKind.POSTCONDITION, "result.tsv is empty")

    outcome = ResultPackager(archiver=archiver).package(make_context(), failure, FileRules())

    assert outcome.failure_kind is FailureKind.POSTCONDITION
    assert outcome.reason == "result.tsv is empty"
    assert outcome.final_location is None


def test_transfer_result_destination_is_reported(step_files, rules, make_context):
    transfer = Mock()
    transfer.destination_for.return_value = "jobs/FakeTool_Job1_Step1"
    transfer.transfer.return_value = TransferResult(
        success=True, destination="s3://bucket/jobs/FakeTool_Job1_Step1", files_copied=2)

    outcome = ResultPackager(archiver=Mock(), transfer=transfer).package(
        make_context(), Outcome.success(), rules)

    assert outcome.final_location == "s3://bucket/jobs/FakeTool_Job1_Step1"
