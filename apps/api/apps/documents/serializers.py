"""
Documents API serializers.

Request serializers are the validation boundary: loosely typed form and
query fields go in, a typed UploadRequest (or user id) comes out.
"""
import mimetypes

from django.conf import settings
from rest_framework import serializers

from .models import Analysis, Document
from .services import UploadRequest
from .storage import get_extension

# Order in which field errors are reported as the response's summary
ERROR_PRIORITY = ('file', 'userId', 'documentType', 'tags')

USER_ID_ERRORS = {
    'required': 'User ID is required',
    'null': 'User ID is required',
    'invalid': 'Invalid user ID',
    'min_value': 'Invalid user ID',
    'max_value': 'Invalid user ID',
    'max_string_length': 'Invalid user ID',
}

FILE_ERRORS = {
    'required': 'No file provided',
    'null': 'No file provided',
    'empty': 'No file provided',
    'invalid': 'No file provided',
    'no_name': 'No file provided',
}

MAX_USER_ID = 2 ** 63 - 1


class UserIdField(serializers.IntegerField):
    """Positive integer user id; a blank value counts as missing."""

    def __init__(self, **kwargs):
        kwargs.setdefault('min_value', 1)
        kwargs.setdefault('max_value', MAX_USER_ID)
        kwargs.setdefault('error_messages', USER_ID_ERRORS)
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        if isinstance(data, str) and not data.strip():
            self.fail('required')
        return super().to_internal_value(data)


def parse_tags(raw):
    """
    Split a comma-separated tag string.

    Tags are trimmed, empty entries dropped and repeats removed, keeping the
    position of the first occurrence.
    """
    tags = []
    for part in (raw or '').split(','):
        tag = part.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def normalize_content_type(content_type, filename):
    """
    Normalize content type, using file extension as fallback.

    Some browsers/clients send generic MIME types, so guess from the extension.
    """
    content_type = (content_type or '').split(';')[0].strip().lower()
    if content_type in ('', 'application/octet-stream', 'binary/octet-stream'):
        guessed, _ = mimetypes.guess_type(f"file{get_extension(filename)}")
        return guessed or 'application/octet-stream'
    return content_type


def first_error_message(errors):
    """Pick the error summary from serializer errors, by field priority."""
    for field_name in ERROR_PRIORITY + tuple(errors.keys()):
        messages = errors.get(field_name)
        if messages:
            return str(messages[0])
    return 'Invalid request'


class UploadRequestSerializer(serializers.Serializer):
    """
    Multipart upload form.

    Fields:
    - file: binary (required)
    - userId: integer (required)
    - documentType: string (optional)
    - tags: comma-separated string (optional)
    """
    file = serializers.FileField(error_messages=FILE_ERRORS)
    userId = UserIdField()
    documentType = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        max_length=64,
    )
    tags = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_file(self, file):
        """Validate file size (max DOCUMENT_MAX_UPLOAD_BYTES)."""
        max_size = settings.DOCUMENT_MAX_UPLOAD_BYTES
        if file.size > max_size:
            raise serializers.ValidationError(
                f"File is too large. Maximum size is {max_size // (1024 * 1024)}MB"
            )
        return file

    def validate_documentType(self, value):
        return value or None

    def validate_tags(self, value):
        return parse_tags(value)

    def validate(self, attrs):
        file = attrs['file']
        content_type = normalize_content_type(getattr(file, 'content_type', ''), file.name)
        if content_type not in settings.DOCUMENT_ALLOWED_CONTENT_TYPES:
            raise serializers.ValidationError({
                'file': ['Invalid file type. Please upload PDF, DOCX, JPG, PNG, or TXT files.']
            })
        attrs['content_type'] = content_type
        return attrs

    def to_upload_request(self):
        data = self.validated_data
        file = data['file']
        file.seek(0)
        return UploadRequest(
            user_id=data['userId'],
            filename=file.name,
            content_type=data['content_type'],
            size=file.size,
            payload=file,
            document_type=data.get('documentType'),
            tags=tuple(data.get('tags') or ()),
        )


class DocumentListQuerySerializer(serializers.Serializer):
    """Query string of the listing endpoint."""
    userId = UserIdField()


class UploadedDocumentSerializer(serializers.ModelSerializer):
    """Public projection of a freshly ingested document."""
    fileId = serializers.CharField(source='file_id')
    filename = serializers.CharField(source='original_filename')
    documentType = serializers.CharField(source='document_type', allow_null=True)
    uploadedAt = serializers.DateTimeField(source='uploaded_at')

    class Meta:
        model = Document
        fields = ['id', 'fileId', 'filename', 'url', 'documentType', 'uploadedAt']
        read_only_fields = fields


class AnalysisSummarySerializer(serializers.ModelSerializer):
    analysisType = serializers.CharField(source='analysis_type')
    completedAt = serializers.DateTimeField(source='completed_at', allow_null=True)

    class Meta:
        model = Analysis
        fields = ['id', 'status', 'analysisType', 'completedAt']
        read_only_fields = fields


class DocumentViewSerializer(serializers.Serializer):
    """
    Listing entry: stored document fields, the URL issued for this response
    (null when signing failed) and a summary of the document's analyses.
    """
    id = serializers.IntegerField(source='document.id')
    userId = serializers.IntegerField(source='document.user_id')
    filename = serializers.CharField(source='document.original_filename')
    fileId = serializers.CharField(source='document.file_id')
    fileSize = serializers.IntegerField(source='document.file_size')
    mimeType = serializers.CharField(source='document.mime_type')
    fileExtension = serializers.CharField(source='document.file_extension')
    objectKey = serializers.CharField(source='document.object_key')
    bucketName = serializers.CharField(source='document.bucket_name')
    url = serializers.CharField(allow_null=True)
    documentType = serializers.CharField(source='document.document_type', allow_null=True)
    tags = serializers.ListField(source='document.tags', child=serializers.CharField())
    isDeleted = serializers.BooleanField(source='document.is_deleted')
    uploadedAt = serializers.DateTimeField(source='document.uploaded_at')
    analyses = AnalysisSummarySerializer(many=True)
