"""Transfer collaborators delivering successful results to shared storage."""

import shutil
import time
from pathlib import Path
from typing import List, Optional

import boto3
from boto3.exceptions import Boto3Error
from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from jobstep.domain.exceptions import TransferError
from jobstep.domain.models import TransferResult
from jobstep.shared.logging import get_logger
from jobstep.shared.retry import RetryStrategy, retry_with_backoff


def _iter_files(source_dir: Path) -> List[Path]:
    return sorted(p for p in Path(source_dir).rglob("*") if p.is_file())


class DirectoryTransfer:
    """
    Copies a results directory to a directory on a (typically network) share.
    Implements ITransfer protocol.

    An existing destination file is overwritten only when its size differs or
    the local copy is newer; otherwise it is left alone.
    """

    def __init__(self, transfer_root: Path, retry: Optional[RetryStrategy] = None):
        self.transfer_root = Path(transfer_root)
        self.retry = retry or RetryStrategy(max_attempts=3, backoff_seconds=2.0, exponential=False)
        self._logger = get_logger(self.__class__.__name__)

    def destination_for(self, results_dir_name: str) -> str:
        return str(self.transfer_root / results_dir_name)

    def transfer(self, source_dir: Path, destination: str) -> TransferResult:
        source_dir = Path(source_dir)
        target_dir = Path(destination)
        started = time.monotonic()

        if not source_dir.is_dir():
            raise TransferError(f"Results folder not found: {source_dir}")

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TransferError(f"Cannot create transfer folder {target_dir}: {e}") from e

        self._logger.info(f"Copying results from {source_dir} to {target_dir}")
        copied = 0
        size = 0
        failures: List[str] = []

        for path in _iter_files(source_dir):
            target = target_dir / path.relative_to(source_dir)
            try:
                if not self._needs_copy(path, target):
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                self.retry.execute(shutil.copy2, path, target)
                copied += 1
                size += path.stat().st_size
            except OSError as e:
                failures.append(f"{path.name}: {e}")

        if failures:
            message = f"Failed to copy {len(failures)} file(s) to {target_dir}: " + "; ".join(failures)
            self._logger.error(message)
            raise TransferError(message)

        return TransferResult(
            success=True,
            destination=str(target_dir),
            files_copied=copied,
            size_bytes=size,
            duration_seconds=time.monotonic() - started,
        )

    def _needs_copy(self, source: Path, target: Path) -> bool:
        if not target.exists():
            return True
        src_stat = source.stat()
        dst_stat = target.stat()
        if src_stat.st_size != dst_stat.st_size or src_stat.st_mtime > dst_stat.st_mtime:
            self._logger.warning(f"Overwriting existing file {target}")
            return True
        self._logger.info(f"Skipping {source.name}; identical file already at destination")
        return False


class S3Transfer:
    """
    Uploads a results directory to an S3-compatible bucket.
    Implements ITransfer protocol.

    Files land under ``<prefix>/<results dir name>/<relative path>``. Objects
    that already exist with the same size are not uploaded again.
    """

    def __init__(
        self,
        bucket: str,
        endpoint: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        prefix: str = "",
        region: Optional[str] = None,
        retry: Optional[RetryStrategy] = None,
    ):
        self.bucket = bucket
        self.endpoint = endpoint
        self.access_key = access_key
        self.secret_key = secret_key
        self.prefix = prefix.strip("/")
        self.region = region
        self.retry = retry or RetryStrategy(
            max_attempts=3, backoff_seconds=2.0, retry_on=(ClientError, BotoCoreError, Boto3Error)
        )

        self._client = self._create_client()
        self._logger = get_logger(self.__class__.__name__)

        self._transfer_config = TransferConfig(
            multipart_threshold=50 * 1024 * 1024,  # 50MB
            multipart_chunksize=50 * 1024 * 1024,   # 50MB
            max_concurrency=4,
            use_threads=True
        )

    def _create_client(self):
        """Create S3 client; works against AWS and S3-compatible endpoints."""
        config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'virtual'}
        )

        kwargs = {'config': config}
        if self.endpoint:
            kwargs['endpoint_url'] = self.endpoint
        if self.access_key and self.secret_key:
            kwargs['aws_access_key_id'] = self.access_key
            kwargs['aws_secret_access_key'] = self.secret_key
        if self.region:
            kwargs['region_name'] = self.region

        return boto3.client('s3', **kwargs)

    def destination_for(self, results_dir_name: str) -> str:
        if self.prefix:
            return f"{self.prefix}/{results_dir_name}"
        return results_dir_name

    def transfer(self, source_dir: Path, destination: str) -> TransferResult:
        source_dir = Path(source_dir)
        key_prefix = destination.strip("/")
        started = time.monotonic()

        if not source_dir.is_dir():
            raise TransferError(f"Results folder not found: {source_dir}")

        uploaded = 0
        size = 0
        for path in _iter_files(source_dir):
            key = f"{key_prefix}/{path.relative_to(source_dir).as_posix()}"
            file_size = path.stat().st_size
            try:
                if self._exists_with_size(key, file_size):
                    self._logger.info(f"{key} already exists with matching size, skipping upload")
                    continue
                self._logger.info(f"Uploading {path} ({file_size} bytes) to s3://{self.bucket}/{key}")
                self.retry.execute(
                    self._client.upload_file,
                    str(path),
                    self.bucket,
                    key,
                    Config=self._transfer_config,
                )
            except (ClientError, BotoCoreError, Boto3Error, OSError) as e:
                message = f"Upload of {path.name} to s3://{self.bucket}/{key} failed: {e}"
                self._logger.error(message)
                raise TransferError(message) from e
            uploaded += 1
            size += file_size

        return TransferResult(
            success=True,
            destination=f"s3://{self.bucket}/{key_prefix}",
            files_copied=uploaded,
            size_bytes=size,
            duration_seconds=time.monotonic() - started,
        )

    @retry_with_backoff(max_attempts=3, backoff_seconds=2, exceptions=(BotoCoreError,))
    def _exists_with_size(self, key: str, file_size: int) -> bool:
        try:
            head = self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise
        return head.get('ContentLength', -1) == file_size
