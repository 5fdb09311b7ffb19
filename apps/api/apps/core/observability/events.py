"""
Domain events logging helpers.

Provides structured event logging for ingestion operations.
"""
from typing import Dict, Optional
from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'document_uploaded')
        entity_type: Type of entity (e.g., 'Document', 'Analysis')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, warning)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'document_uploaded',
            entity_type='Document',
            entity_id=str(document.id),
            entity_ids={'user_id': str(document.user_id)},
            size_bytes=document.file_size,
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'degraded']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_document_uploaded(document, duration_ms=None):
    """Log a completed ingestion."""
    extra = {
        'size_bytes': document.file_size,
        'mime_type': document.mime_type,
        'has_url': document.url is not None,
    }
    if duration_ms is not None:
        extra['duration_ms'] = duration_ms

    log_domain_event(
        'document_uploaded',
        entity_type='Document',
        entity_id=str(document.id),
        entity_ids={'user_id': str(document.user_id), 'file_id': document.file_id},
        **extra
    )


def log_upload_failed(user_id, stage, error, object_key=None):
    """Log an ingestion aborted at ``stage``."""
    entity_ids = {'user_id': str(user_id)}
    if object_key:
        entity_ids['object_key'] = object_key

    log_domain_event(
        'document_upload_failed',
        entity_type='Document',
        entity_ids=entity_ids,
        result='failure',
        stage=stage,
        error=str(error),
    )


def log_orphaned_blob(user_id, bucket_name, object_key, error):
    """
    Log a blob written to storage whose metadata record could not be created.

    These entries are the input for any out-of-band reconciliation job.
    """
    log_domain_event(
        'document_orphaned_blob',
        entity_type='Document',
        entity_ids={
            'user_id': str(user_id),
            'bucket_name': bucket_name,
            'object_key': object_key,
        },
        result='failure',
        error=str(error),
    )


def log_analysis_enqueued(analysis):
    """Log creation of a pending analysis."""
    log_domain_event(
        'analysis_enqueued',
        entity_type='Analysis',
        entity_id=str(analysis.id),
        entity_ids={
            'document_id': str(analysis.document_id),
            'user_id': str(analysis.user_id),
        },
        analysis_type=analysis.analysis_type,
        version=analysis.version,
    )


def log_presigned_url_failed(object_key, purpose, error, document_id=None):
    """Log a presigned URL that could not be issued; the caller degrades to no URL."""
    entity_ids = {'object_key': object_key}
    if document_id is not None:
        entity_ids['document_id'] = str(document_id)

    log_domain_event(
        'presigned_url_failed',
        entity_type='Document',
        entity_ids=entity_ids,
        result='degraded',
        purpose=purpose,
        error=str(error),
    )
