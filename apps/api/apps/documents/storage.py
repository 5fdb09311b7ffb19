"""
MinIO storage for uploaded health documents.

Covers the object-store side of ingestion: bucket provisioning, object key
derivation, staged blob writes and presigned GET URLs.
"""
import json
import logging
import re
import shutil
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Union
from urllib.parse import quote

import urllib3
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from minio import Minio
from minio.error import MinioException, S3Error
from urllib3.exceptions import HTTPError

from apps.core.observability import log_domain_event, metrics
from .exceptions import StagingWriteError, StorageUnavailable, StoreWriteError

logger = logging.getLogger(__name__)

# Anything the MinIO client can raise for an unreachable or failing store
STORE_ERRORS = (MinioException, HTTPError, OSError)

# S3 error codes returned when another caller created the bucket first
BUCKET_EXISTS_CODES = {'BucketAlreadyOwnedByYou', 'BucketAlreadyExists'}

# Longest lifetime S3 signature v4 allows for a presigned URL
MAX_PRESIGNED_TTL_SECONDS = 7 * 24 * 60 * 60

_SAFE_EXTENSION = re.compile(r'^\.[a-z0-9]{1,16}$')

_client: Optional[Minio] = None
_client_lock = threading.Lock()


def get_minio_client() -> Minio:
    """
    Get the process-wide MinIO client (lazy initialization).

    The region is fixed from settings so presigning never needs a network
    round trip to discover it.
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                timeout = settings.MINIO_TIMEOUT_SECONDS
                _client = Minio(
                    settings.MINIO_ENDPOINT,
                    access_key=settings.MINIO_ACCESS_KEY,
                    secret_key=settings.MINIO_SECRET_KEY,
                    secure=settings.MINIO_USE_SSL,
                    region=settings.MINIO_REGION,
                    http_client=urllib3.PoolManager(
                        timeout=urllib3.Timeout(connect=timeout, read=timeout),
                        maxsize=10,
                        retries=urllib3.Retry(total=0),
                    ),
                )
    return _client


def check_url_ttl(ttl_seconds: int, setting_name: str) -> int:
    """
    Return ``ttl_seconds`` if it is a valid presigned URL lifetime.

    Raises:
        ImproperlyConfigured: if it is outside (0, 7 days]
    """
    if not 0 < ttl_seconds <= MAX_PRESIGNED_TTL_SECONDS:
        raise ImproperlyConfigured(
            f"{setting_name} must be within 1..{MAX_PRESIGNED_TTL_SECONDS} seconds, got {ttl_seconds}"
        )
    return ttl_seconds


def build_bucket_policy(bucket_name: str, key_prefix: str) -> Dict:
    """
    Policy allowing object reads under ``key_prefix`` only.

    No ListBucket action is granted, so the bucket cannot be enumerated.
    """
    return {
        'Version': '2012-10-17',
        'Statement': [
            {
                'Effect': 'Allow',
                'Principal': {'AWS': ['*']},
                'Action': ['s3:GetObject'],
                'Resource': [f'arn:aws:s3:::{bucket_name}/{key_prefix}/*'],
            }
        ],
    }


class BucketProvisioner:
    """
    Makes sure a bucket exists with the prefix-restricted read policy.

    Successful provisioning is remembered per bucket for the life of the
    process. A concurrent creator winning the race counts as success.
    """

    def __init__(self, client: Minio, region: str, key_prefix: str):
        self._client = client
        self._region = region
        self._key_prefix = key_prefix
        self._ready = set()
        self._lock = threading.Lock()

    def ensure(self, bucket_name: str) -> None:
        """
        Raises:
            StorageUnavailable: if the bucket cannot be checked, created or configured
        """
        if bucket_name in self._ready:
            return

        with self._lock:
            if bucket_name in self._ready:
                return
            try:
                if self._client.bucket_exists(bucket_name=bucket_name):
                    metrics.bucket_provisioning_total.labels(result='exists').inc()
                else:
                    self._create(bucket_name)
            except STORE_ERRORS as e:
                metrics.bucket_provisioning_total.labels(result='failure').inc()
                logger.error(f"Failed to provision bucket {bucket_name}: {e}")
                raise StorageUnavailable('Storage unavailable', details=str(e)) from e
            self._ready.add(bucket_name)

    def _create(self, bucket_name: str) -> None:
        try:
            self._client.make_bucket(bucket_name=bucket_name, location=self._region)
            result = 'created'
        except S3Error as e:
            if e.code not in BUCKET_EXISTS_CODES:
                raise
            result = 'race'

        policy = build_bucket_policy(bucket_name, self._key_prefix)
        self._client.set_bucket_policy(bucket_name=bucket_name, policy=json.dumps(policy))

        metrics.bucket_provisioning_total.labels(result=result).inc()
        log_domain_event(
            'bucket_provisioned',
            entity_type='Bucket',
            entity_id=bucket_name,
            outcome=result,
            region=self._region,
        )

    def reset(self) -> None:
        """Forget provisioned buckets (they are re-checked on next use)."""
        with self._lock:
            self._ready.clear()


@dataclass(frozen=True)
class ObjectKey:
    """Storage identity of one upload."""
    file_id: str
    object_key: str
    staging_path: Path
    extension: str


def get_extension(filename: str) -> str:
    """
    Lower-cased extension of ``filename`` including the dot.

    Returns '' when there is none or it contains anything but letters and digits.
    """
    extension = Path(filename or '').suffix.lower()
    return extension if _SAFE_EXTENSION.match(extension) else ''


def derive_object_key(
    user_id: int,
    original_filename: str,
    prefix: Optional[str] = None,
    staging_dir: Optional[Path] = None,
) -> ObjectKey:
    """
    Generate the storage identity for a new upload.

    Layout: ``{prefix}/{user_id}/{file_id}{extension}``. The file id is a
    random UUID4 token so neither collisions between identical filenames nor
    the original filename leak into the storage layout.

    Args:
        user_id: Owning user id
        original_filename: Filename supplied by the client (only its extension is used)
        prefix: Namespace segment (default: settings.DOCUMENT_KEY_PREFIX)
        staging_dir: Local transient directory (default: settings.DOCUMENT_STAGING_DIR)
    """
    prefix = prefix or settings.DOCUMENT_KEY_PREFIX
    staging_dir = Path(staging_dir or settings.DOCUMENT_STAGING_DIR)

    file_id = uuid.uuid4().hex
    extension = get_extension(original_filename)
    stored_name = f"{file_id}{extension}"

    return ObjectKey(
        file_id=file_id,
        object_key=f"{prefix}/{user_id}/{stored_name}",
        staging_path=staging_dir / stored_name,
        extension=extension,
    )


@contextmanager
def staged_file(staging_path: Path, data: Union[bytes, BinaryIO]):
    """
    Write ``data`` to ``staging_path`` and remove it on exit, whatever happens.

    Raises:
        StagingWriteError: if the payload cannot be written locally
    """
    staging_path = Path(staging_path)
    try:
        staging_path.parent.mkdir(parents=True, exist_ok=True)
        with open(staging_path, 'wb') as dest:
            if isinstance(data, (bytes, bytearray)):
                dest.write(data)
            else:
                shutil.copyfileobj(data, dest)
    except OSError as e:
        _remove_staged(staging_path)
        logger.error(f"Failed to stage upload at {staging_path}: {e}")
        raise StagingWriteError('File upload failed', details=str(e)) from e

    try:
        yield staging_path
    finally:
        _remove_staged(staging_path)


def _remove_staged(staging_path: Path) -> None:
    try:
        staging_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove staging file {staging_path}: {e}")


class BlobWriter:
    """Stages an upload locally, then writes it to the bucket."""

    def __init__(self, client: Minio, bucket_name: str):
        self._client = client
        self.bucket_name = bucket_name

    def write(
        self,
        staging_path: Path,
        object_key: str,
        data: Union[bytes, BinaryIO],
        content_type: str,
        tags: Dict[str, str],
    ) -> None:
        """
        Write ``data`` under ``object_key``; returns once MinIO acknowledged it.

        ``tags`` become object metadata (sent as ``X-Amz-Meta-*`` headers).
        Header values must be ASCII, so values are percent-encoded.

        Raises:
            StagingWriteError: local staging failed
            StoreWriteError: MinIO rejected or did not acknowledge the write
        """
        metadata = {key: quote(str(value), safe=' ') for key, value in tags.items()}

        with staged_file(staging_path, data) as path:
            try:
                self._client.fput_object(
                    bucket_name=self.bucket_name,
                    object_name=object_key,
                    file_path=str(path),
                    content_type=content_type,
                    metadata=metadata,
                )
            except STORE_ERRORS as e:
                logger.error(f"Failed to write object {object_key}: {e}")
                raise StoreWriteError('File upload failed', details=str(e)) from e

        logger.info(f"Stored object {object_key} in bucket {self.bucket_name}")


class PresignedUrlIssuer:
    """Issues time-limited signed GET URLs. URLs are never stored as truth."""

    def __init__(self, client: Minio):
        self._client = client

    def issue(self, bucket_name: str, object_key: str, ttl_seconds: int) -> str:
        """
        Generate presigned GET URL for viewing a stored document.

        Raises:
            ValueError: if ttl_seconds is outside (0, 7 days]
            StorageUnavailable: if signing fails
        """
        if not 0 < ttl_seconds <= MAX_PRESIGNED_TTL_SECONDS:
            raise ValueError(f"ttl_seconds must be within 1..{MAX_PRESIGNED_TTL_SECONDS}, got {ttl_seconds}")

        try:
            return self._client.presigned_get_object(
                bucket_name=bucket_name,
                object_name=object_key,
                expires=timedelta(seconds=ttl_seconds),
            )
        except STORE_ERRORS as e:
            raise StorageUnavailable('Failed to generate presigned GET URL', details=str(e)) from e
