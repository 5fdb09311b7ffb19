"""
Documents models: document, analysis

A Document is one ingested file whose bytes live in MinIO under
``object_key``; the row is only created after the object write succeeded.
An Analysis is a unit of downstream work queued against a Document.
"""
from django.db import models
from django.conf import settings


class AnalysisStatus(models.TextChoices):
    """Status of an analysis. Transitions after PENDING belong to the analysis worker."""
    PENDING = 'pending', 'Pending'
    IN_PROGRESS = 'in_progress', 'In progress'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'


class DocumentQuerySet(models.QuerySet):
    def active(self):
        """Exclude soft-deleted documents."""
        return self.filter(is_deleted=False)


class Document(models.Model):
    """
    One uploaded file owned by a user.

    Storage fields:
    - file_id: random token used as the stored file name (unique)
    - object_key: full path within the bucket (unique)
    - bucket_name: MinIO bucket holding the object
    - url: last issued presigned URL; a cache, never authoritative

    Soft delete:
    - is_deleted: bool default false. Rows are never physically deleted here.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='documents',
        help_text="Owner of the document"
    )

    # File metadata
    original_filename = models.CharField(
        max_length=255,
        help_text="Filename as supplied by the client"
    )
    file_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Generated storage file id, independent of the filename"
    )
    file_size = models.BigIntegerField(
        help_text="File size in bytes"
    )
    mime_type = models.CharField(
        max_length=128,
        help_text="MIME type (e.g., application/pdf)"
    )
    file_extension = models.CharField(
        max_length=32,
        blank=True,
        default='',
        help_text="Lower-cased extension including the dot, e.g. '.pdf'"
    )

    # Storage location
    object_key = models.CharField(
        max_length=512,
        unique=True,
        help_text="MinIO object key (path) within the bucket"
    )
    bucket_name = models.CharField(
        max_length=64,
        help_text="MinIO bucket name"
    )
    url = models.TextField(
        blank=True,
        null=True,
        help_text="Last issued presigned URL (ephemeral)"
    )

    # Classification
    document_type = models.CharField(
        max_length=64,
        blank=True,
        null=True,
        help_text="Document category, e.g. lab_report. Triggers an analysis when set."
    )
    tags = models.JSONField(
        default=list,
        blank=True,
        help_text="Ordered list of free-form tags"
    )

    is_deleted = models.BooleanField(
        default=False,
        help_text="Soft delete flag"
    )
    uploaded_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = DocumentQuerySet.as_manager()

    class Meta:
        db_table = 'document'
        verbose_name = 'Document'
        verbose_name_plural = 'Documents'
        ordering = ['-uploaded_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_deleted', 'uploaded_at'], name='idx_document_user_listing'),
            models.Index(fields=['document_type'], name='idx_document_type'),
        ]

    def __str__(self):
        return f"{self.original_filename} ({self.file_id})"

    def soft_delete(self):
        """Mark the document as logically removed."""
        if not self.is_deleted:
            self.is_deleted = True
            self.save(update_fields=['is_deleted'])

    def restore(self):
        if self.is_deleted:
            self.is_deleted = False
            self.save(update_fields=['is_deleted'])


class Analysis(models.Model):
    """
    Downstream analysis requested for a document.

    Created in PENDING by the ingestion pipeline only; the analysis worker
    owns every later status change and sets completed_at.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='analyses',
        help_text="Owner of the analysed document"
    )
    document = models.ForeignKey(
        Document,
        on_delete=models.PROTECT,
        related_name='analyses',
        help_text="The document being analysed"
    )
    status = models.CharField(
        max_length=20,
        choices=AnalysisStatus.choices,
        default=AnalysisStatus.PENDING,
        db_index=True
    )
    analysis_type = models.CharField(
        max_length=64,
        help_text="Kind of analysis, taken from the document type"
    )
    version = models.CharField(
        max_length=32,
        help_text="Analysis pipeline version tag"
    )
    completed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'analysis'
        verbose_name = 'Analysis'
        verbose_name_plural = 'Analyses'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['document', 'created_at'], name='idx_analysis_document'),
        ]

    def __str__(self):
        return f"Analysis {self.id} of document {self.document_id} ({self.status})"
