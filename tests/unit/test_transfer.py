"""Tests for the transfer collaborators."""

import os
import time
from unittest.mock import Mock, patch

import pytest
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError

from jobstep.domain.exceptions import TransferError
from jobstep.domain.models import FailureKind, FileRules, Outcome
from jobstep.infrastructure.results.packager import ResultPackager
from jobstep.infrastructure.results.transfer import DirectoryTransfer, S3Transfer
from jobstep.shared.retry import RetryStrategy


@pytest.fixture
def results_dir(tmp_path):
    path = tmp_path / "work" / "Tool_Job1_Step1"
    path.mkdir(parents=True)
    (path / "result.tsv").write_bytes(b"x" * 120)
    (path / "nested").mkdir()
    (path / "nested" / "extra.txt").write_text("extra")
    return path


class TestDirectoryTransfer:
    """Test DirectoryTransfer implementation."""

    def test_copies_all_files(self, tmp_path, results_dir):
        transfer = DirectoryTransfer(tmp_path / "share")
        destination = transfer.destination_for("Tool_Job1_Step1")

        result = transfer.transfer(results_dir, destination)

        assert result.success
        assert result.files_copied == 2
        assert result.size_bytes == 125
        assert (tmp_path / "share" / "Tool_Job1_Step1" / "result.tsv").read_bytes() == b"x" * 120
        assert (tmp_path / "share" / "Tool_Job1_Step1" / "nested" / "extra.txt").exists()

    def test_identical_existing_file_is_not_copied_again(self, tmp_path, results_dir):
        transfer = DirectoryTransfer(tmp_path / "share")
        destination = transfer.destination_for(results_dir.name)
        transfer.transfer(results_dir, destination)

        result = transfer.transfer(results_dir, destination)

        assert result.files_copied == 0

    def test_existing_file_with_different_size_is_overwritten(self, tmp_path, results_dir):
        target = tmp_path / "share" / results_dir.name
        target.mkdir(parents=True)
        (target / "result.tsv").write_text("old")
        old = time.time() + 3600
        os.utime(target / "result.tsv", (old, old))

        DirectoryTransfer(tmp_path / "share").transfer(results_dir, str(target))

        assert (target / "result.tsv").read_bytes() == b"x" * 120

    def test_copy_failure_raises_transfer_error(self, tmp_path, results_dir):
        transfer = DirectoryTransfer(
            tmp_path / "share",
            retry=RetryStrategy(max_attempts=2, backoff_seconds=0, jitter=False, sleep=lambda s: None),
        )
        with patch("jobstep.infrastructure.results.transfer.shutil.copy2", side_effect=OSError("denied")):
            with pytest.raises(TransferError, match="denied"):
                transfer.transfer(results_dir, transfer.destination_for(results_dir.name))

    def test_missing_source_raises(self, tmp_path):
        with pytest.raises(TransferError):
            DirectoryTransfer(tmp_path / "share").transfer(tmp_path / "missing", str(tmp_path / "share"))


class TestS3Transfer:
    """Test S3Transfer implementation."""

    @pytest.fixture
    def transfer(self):
        """Create transfer instance with mocked client."""
        with patch('jobstep.infrastructure.results.transfer.boto3.client') as mock_boto:
            mock_client = Mock()
            mock_boto.return_value = mock_client

            transfer = S3Transfer(
                bucket='results-bucket',
                endpoint='https://s3.example.com',
                access_key='test-key',
                secret_key='test-secret',
                prefix='jobs/',
                retry=RetryStrategy(max_attempts=1),
            )
            yield transfer

    def test_init_creates_client(self):
        with patch('jobstep.infrastructure.results.transfer.boto3.client') as mock_boto:
            S3Transfer(bucket='b', endpoint='https://s3.example.com', access_key='k', secret_key='s')

            mock_boto.assert_called_once()
            kwargs = mock_boto.call_args.kwargs
            assert kwargs['endpoint_url'] == 'https://s3.example.com'
            assert kwargs['aws_access_key_id'] == 'k'

    def test_destination_uses_prefix(self, transfer):
        assert transfer.destination_for("Tool_Job1_Step1") == "jobs/Tool_Job1_Step1"

    def test_uploads_each_file(self, transfer, results_dir):
        transfer._client.head_object.side_effect = ClientError(
            {'Error': {'Code': '404'}}, 'HeadObject'
        )

        result = transfer.transfer(results_dir, "jobs/Tool_Job1_Step1")

        assert result.success
        assert result.files_copied == 2
        assert result.destination == "s3://results-bucket/jobs/Tool_Job1_Step1"
        keys = sorted(call.args[2] for call in transfer._client.upload_file.call_args_list)
        assert keys == ["jobs/Tool_Job1_Step1/nested/extra.txt", "jobs/Tool_Job1_Step1/result.tsv"]

    def test_skips_objects_with_matching_size(self, transfer, results_dir):
        transfer._client.head_object.return_value = {'ContentLength': 120}

        transfer.transfer(results_dir, "jobs/Tool_Job1_Step1")

        uploaded = [call.args[2] for call in transfer._client.upload_file.call_args_list]
        assert uploaded == ["jobs/Tool_Job1_Step1/nested/extra.txt"]

    def test_upload_failure_raises_transfer_error(self, transfer, results_dir):
        transfer._client.head_object.side_effect = ClientError(
            {'Error': {'Code': '404'}}, 'HeadObject'
        )
        transfer._client.upload_file.side_effect = ClientError(
            {'Error': {'Code': '500', 'Message': 'Internal'}}, 'PutObject'
        )

        with pytest.raises(TransferError, match="failed"):
            transfer.transfer(results_dir, "jobs/Tool_Job1_Step1")

    def test_upload_failed_error_raises_transfer_error(self, transfer, results_dir):
        transfer._client.head_object.side_effect = ClientError(
            {'Error': {'Code': '404'}}, 'HeadObject'
        )
        transfer._client.upload_file.side_effect = S3UploadFailedError(
            "Failed to upload result.tsv: AccessDenied"
        )

        with pytest.raises(TransferError, match="AccessDenied"):
            transfer.transfer(results_dir, "jobs/Tool_Job1_Step1")

    def test_upload_failure_is_archived_by_packager(self, transfer, tmp_path, make_context):
        context = make_context()
        (context.work_dir / "result.tsv").write_bytes(b"x" * 120)
        transfer._client.head_object.side_effect = ClientError(
            {'Error': {'Code': '404'}}, 'HeadObject'
        )
        transfer._client.upload_file.side_effect = S3UploadFailedError("Failed to upload: AccessDenied")
        archiver = Mock()
        archiver.archive.return_value = tmp_path / "failed" / "FakeTool_Job1_Step1"

        outcome = ResultPackager(archiver=archiver, transfer=transfer).package(
            context, Outcome.success(), FileRules())

        assert outcome.failure_kind is FailureKind.TRANSFER
        archiver.archive.assert_called_once()

    def test_head_object_access_error_raises_transfer_error(self, transfer, results_dir):
        transfer._client.head_object.side_effect = ClientError(
            {'Error': {'Code': '403'}}, 'HeadObject'
        )

        with pytest.raises(TransferError):
            transfer.transfer(results_dir, "jobs/Tool_Job1_Step1")
