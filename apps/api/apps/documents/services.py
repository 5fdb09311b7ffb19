"""
Document services - ingestion and listing.

Ingestion is a two-phase write across two stores with no shared transaction:
the blob goes to MinIO first, then the metadata row goes to the database.
A Document row therefore always implies its blob was written. The reverse
does not hold: if the metadata write fails after the blob write, the blob is
orphaned. That case is logged (``document_orphaned_blob``) and counted, and
reclaiming such blobs is left to a separate reconciliation job.
"""
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Tuple, Union

from django.conf import settings

from apps.core.observability import get_sanitized_logger, metrics
from apps.core.observability.events import (
    log_analysis_enqueued,
    log_document_uploaded,
    log_orphaned_blob,
    log_presigned_url_failed,
    log_upload_failed,
)
from .exceptions import (
    IngestionError,
    InvalidRequest,
    ReferentialIntegrityError,
    StorageUnavailable,
    StoreUnavailable,
    UploadFailed,
    UserNotFound,
    UserRequired,
)
from .models import Document
from .repository import DocumentRepository
from .storage import (
    BlobWriter,
    BucketProvisioner,
    PresignedUrlIssuer,
    check_url_ttl,
    derive_object_key,
    get_minio_client,
)

logger = get_sanitized_logger(__name__)

# Metric label per failure class, checked in order
_FAILURE_RESULTS = (
    (InvalidRequest, 'invalid'),
    (UserNotFound, 'user_not_found'),
    (StorageUnavailable, 'storage_error'),
    (UploadFailed, 'upload_error'),
    (StoreUnavailable, 'metadata_error'),
    (ReferentialIntegrityError, 'metadata_error'),
)


@dataclass(frozen=True)
class UploadRequest:
    """Validated upload, produced by UploadRequestSerializer."""
    user_id: Optional[int]
    filename: str
    content_type: str
    size: int
    payload: Union[bytes, BinaryIO, None]
    document_type: Optional[str] = None
    tags: Tuple[str, ...] = ()


@dataclass
class DocumentView:
    """A stored document with a freshly issued (possibly missing) URL."""
    document: Document
    url: Optional[str]
    analyses: Sequence = field(default_factory=list)


class IngestionService:
    """
    Takes an upload from raw bytes to a stored blob plus metadata.

    Steps run strictly in order and nothing is retried here:
    validate, check user, provision bucket, derive key, write blob,
    issue URL, create Document, enqueue Analysis.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        provisioner: BucketProvisioner,
        blob_writer: BlobWriter,
        url_issuer: PresignedUrlIssuer,
        key_prefix: Optional[str] = None,
        staging_dir: Optional[Path] = None,
        url_ttl: Optional[int] = None,
        analysis_version: Optional[str] = None,
    ):
        self.repository = repository
        self.provisioner = provisioner
        self.blob_writer = blob_writer
        self.url_issuer = url_issuer
        self.key_prefix = key_prefix or settings.DOCUMENT_KEY_PREFIX
        self.staging_dir = staging_dir or settings.DOCUMENT_STAGING_DIR
        self.url_ttl = check_url_ttl(
            url_ttl if url_ttl is not None else settings.DOCUMENT_UPLOAD_URL_TTL,
            'DOCUMENT_UPLOAD_URL_TTL',
        )
        self.analysis_version = analysis_version or settings.ANALYSIS_DEFAULT_VERSION

    @property
    def bucket_name(self) -> str:
        return self.blob_writer.bucket_name

    def ingest(self, request: UploadRequest) -> Document:
        """
        Ingest one upload and return the created Document.

        Raises:
            InvalidRequest / UserRequired: payload or user id missing
            UserNotFound: user id does not resolve
            StorageUnavailable: bucket could not be provisioned (nothing written)
            UploadFailed: blob write failed (no metadata created)
            StoreUnavailable / ReferentialIntegrityError: metadata write failed
                after the blob was stored (blob is orphaned)
        """
        start_time = time.time()
        try:
            document = self._ingest(request)
        except IngestionError as e:
            result = next((label for cls, label in _FAILURE_RESULTS if isinstance(e, cls)), 'error')
            metrics.document_uploads_total.labels(result=result).inc()
            raise

        duration = time.time() - start_time
        metrics.document_uploads_total.labels(result='success').inc()
        metrics.document_upload_duration_seconds.observe(duration)
        metrics.document_upload_bytes.observe(document.file_size)
        log_document_uploaded(document, duration_ms=round(duration * 1000, 2))
        return document

    def _ingest(self, request: UploadRequest) -> Document:
        self._validate(request)

        user = self.repository.find_user(request.user_id)
        if user is None:
            raise UserNotFound(details=f"No user with id {request.user_id}")

        try:
            self.provisioner.ensure(self.bucket_name)
        except StorageUnavailable as e:
            log_upload_failed(request.user_id, 'provision', e)
            raise

        key = derive_object_key(
            request.user_id,
            request.filename,
            prefix=self.key_prefix,
            staging_dir=self.staging_dir,
        )

        try:
            self.blob_writer.write(
                key.staging_path,
                key.object_key,
                request.payload,
                request.content_type,
                {
                    'original-filename': request.filename,
                    'user-id': str(request.user_id),
                },
            )
        except UploadFailed as e:
            log_upload_failed(request.user_id, 'write_blob', e, object_key=key.object_key)
            raise

        url = self._issue_url(key.object_key)

        try:
            document, analysis = self.repository.create_document_with_analysis(
                analysis_type=request.document_type,
                analysis_version=self.analysis_version,
                user=user,
                original_filename=request.filename,
                file_id=key.file_id,
                file_size=request.size,
                mime_type=request.content_type,
                file_extension=key.extension,
                object_key=key.object_key,
                bucket_name=self.bucket_name,
                url=url,
                document_type=request.document_type,
                tags=list(request.tags),
            )
        except (StoreUnavailable, ReferentialIntegrityError) as e:
            metrics.document_orphaned_blobs_total.inc()
            log_orphaned_blob(request.user_id, self.bucket_name, key.object_key, e)
            raise

        if analysis is not None:
            metrics.analyses_enqueued_total.labels(analysis_type=analysis.analysis_type).inc()
            log_analysis_enqueued(analysis)

        return document

    def _validate(self, request: UploadRequest) -> None:
        if request.user_id is None:
            raise UserRequired()
        if request.payload is None or request.size <= 0:
            raise InvalidRequest('No file provided')

    def _issue_url(self, object_key: str) -> Optional[str]:
        # The blob is already stored; a missing URL is regenerated on listing.
        try:
            url = self.url_issuer.issue(self.bucket_name, object_key, self.url_ttl)
        except StorageUnavailable as e:
            metrics.presigned_urls_issued_total.labels(purpose='upload', result='failure').inc()
            log_presigned_url_failed(object_key, 'upload', e)
            return None
        metrics.presigned_urls_issued_total.labels(purpose='upload', result='success').inc()
        return url


class ListingService:
    """Lists a user's documents, each with a freshly issued short-lived URL."""

    def __init__(
        self,
        repository: DocumentRepository,
        url_issuer: PresignedUrlIssuer,
        url_ttl: Optional[int] = None,
    ):
        self.repository = repository
        self.url_issuer = url_issuer
        self.url_ttl = check_url_ttl(
            url_ttl if url_ttl is not None else settings.DOCUMENT_LIST_URL_TTL,
            'DOCUMENT_LIST_URL_TTL',
        )

    def list(self, user_id: Optional[int]) -> List[DocumentView]:
        """
        Raises:
            UserRequired: user_id is None
            StoreUnavailable: documents could not be read
        """
        if user_id is None:
            raise UserRequired()

        try:
            documents = self.repository.list_documents(user_id)
        except StoreUnavailable:
            metrics.document_listings_total.labels(result='failure').inc()
            raise

        views = [
            DocumentView(
                document=document,
                url=self._refresh_url(document),
                analyses=getattr(document, 'analysis_summaries', []),
            )
            for document in documents
        ]
        metrics.document_listings_total.labels(result='success').inc()
        return views

    def _refresh_url(self, document: Document) -> Optional[str]:
        # Failures stay with the one document; the listing itself succeeds.
        try:
            url = self.url_issuer.issue(document.bucket_name, document.object_key, self.url_ttl)
        except StorageUnavailable as e:
            metrics.presigned_urls_issued_total.labels(purpose='listing', result='failure').inc()
            log_presigned_url_failed(document.object_key, 'listing', e, document_id=document.pk)
            return None
        metrics.presigned_urls_issued_total.labels(purpose='listing', result='success').inc()

        try:
            self.repository.refresh_cached_url(document, url)
        except StoreUnavailable as e:
            logger.warning(
                'Could not cache refreshed URL',
                extra={'event': 'document_url_cache_failed', 'document_id': document.pk, 'error': str(e)}
            )
        return url


# Process-wide provisioner so a bucket is only checked once per process
_provisioner: Optional[BucketProvisioner] = None


def get_bucket_provisioner() -> BucketProvisioner:
    global _provisioner
    if _provisioner is None:
        _provisioner = BucketProvisioner(
            get_minio_client(),
            region=settings.MINIO_REGION,
            key_prefix=settings.DOCUMENT_KEY_PREFIX,
        )
    return _provisioner


def get_ingestion_service() -> IngestionService:
    """Ingestion service wired to the configured MinIO bucket and database."""
    client = get_minio_client()
    return IngestionService(
        repository=DocumentRepository(),
        provisioner=get_bucket_provisioner(),
        blob_writer=BlobWriter(client, settings.MINIO_DOCUMENTS_BUCKET),
        url_issuer=PresignedUrlIssuer(client),
    )


def get_listing_service() -> ListingService:
    """Listing service wired to the configured MinIO client and database."""
    return ListingService(
        repository=DocumentRepository(),
        url_issuer=PresignedUrlIssuer(get_minio_client()),
    )
