"""
Ingestion pipeline errors.

Every error carries the HTTP status and the human-readable summary the API
returns, so views only need to translate ``IngestionError`` into a response.
"""
from rest_framework import status


class IngestionError(Exception):
    """Base class for ingestion and listing failures."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_error = 'Internal server error'

    def __init__(self, error=None, details=None):
        self.error = error or self.default_error
        self.details = details
        super().__init__(self.error if details is None else f"{self.error}: {details}")

    def as_response_data(self):
        data = {'error': self.error}
        if self.details is not None:
            data['details'] = self.details
        return data


class InvalidRequest(IngestionError):
    """Caller input malformed or missing. Raised before any side effect."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_error = 'Invalid request'


class UserRequired(InvalidRequest):
    default_error = 'User ID is required'


class UserNotFound(IngestionError):
    status_code = status.HTTP_404_NOT_FOUND
    default_error = 'User not found'


class StorageUnavailable(IngestionError):
    """Object store operation failed (provisioning, URL signing, health)."""
    default_error = 'Storage unavailable'


class UploadFailed(IngestionError):
    """Blob write failed; no metadata was created."""
    default_error = 'File upload failed'


class StagingWriteError(UploadFailed):
    """Payload could not be written to local staging storage."""


class StoreWriteError(UploadFailed):
    """Object store rejected or did not acknowledge the write."""


class StoreUnavailable(IngestionError):
    """Metadata store operation failed."""
    default_error = 'Metadata store unavailable'


class ReferentialIntegrityError(IngestionError):
    """Insert referenced a missing parent row."""
    default_error = 'Referential integrity violation'
