"""
Metadata repository for documents and analyses.

The only code that reads or writes Document and Analysis rows. Database
errors are translated into the ingestion error taxonomy here so services
never see Django exceptions.
"""
import logging
from contextlib import contextmanager
from typing import List, Optional, Tuple

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Prefetch

from .exceptions import ReferentialIntegrityError, StoreUnavailable
from .models import Analysis, AnalysisStatus, Document

logger = logging.getLogger(__name__)

# Fields of an Analysis exposed when listing documents
ANALYSIS_SUMMARY_FIELDS = ('id', 'document', 'status', 'analysis_type', 'completed_at')


@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except IntegrityError as e:
        logger.error(f"Integrity error during {operation}: {e}")
        raise ReferentialIntegrityError(details=str(e)) from e
    except DatabaseError as e:
        logger.error(f"Metadata store error during {operation}: {e}")
        raise StoreUnavailable(details=str(e)) from e


class DocumentRepository:
    """Persistence for Document and Analysis records."""

    def find_user(self, user_id: int):
        """Return the user with ``user_id`` or None."""
        User = get_user_model()
        with _store_errors('find_user'):
            return User.objects.filter(pk=user_id).first()

    def create_document(self, **fields) -> Document:
        """
        Insert one Document atomically.

        Raises:
            ReferentialIntegrityError: unknown user, duplicate object_key or file_id
            StoreUnavailable: database unreachable
        """
        with _store_errors('create_document'):
            with transaction.atomic():
                return Document.objects.create(**fields)

    def create_analysis(self, document: Document, analysis_type: str, version: str) -> Analysis:
        """
        Insert one pending Analysis for an existing document.

        Raises:
            ReferentialIntegrityError: document missing, or soft-deleted
            StoreUnavailable: database unreachable
        """
        if document.is_deleted:
            raise ReferentialIntegrityError(details=f"Document {document.pk} is deleted")

        with _store_errors('create_analysis'):
            with transaction.atomic():
                return Analysis.objects.create(
                    user_id=document.user_id,
                    document=document,
                    status=AnalysisStatus.PENDING,
                    analysis_type=analysis_type,
                    version=version,
                )

    def create_document_with_analysis(
        self,
        analysis_type: Optional[str],
        analysis_version: str,
        **fields
    ) -> Tuple[Document, Optional[Analysis]]:
        """
        Insert a Document and, when ``analysis_type`` is set, its pending
        Analysis as one unit of work.

        Deferred constraints are only checked at commit, so the commit is
        inside the error translation as well.

        Raises:
            ReferentialIntegrityError: unknown user, duplicate keys, deleted document
            StoreUnavailable: database unreachable, including at commit
        """
        with _store_errors('create_document_with_analysis'):
            with transaction.atomic():
                document = self.create_document(**fields)
                analysis = None
                if analysis_type:
                    analysis = self.create_analysis(
                        document,
                        analysis_type=analysis_type,
                        version=analysis_version,
                    )
        return document, analysis

    def list_documents(self, user_id: int) -> List[Document]:
        """
        Non-deleted documents of ``user_id``, newest first.

        Each document carries ``analysis_summaries`` (newest first) limited to
        id, status, analysis_type and completed_at.
        """
        analyses = Analysis.objects.only(*ANALYSIS_SUMMARY_FIELDS).order_by('-created_at', '-id')
        with _store_errors('list_documents'):
            return list(
                Document.objects.active()
                .filter(user_id=user_id)
                .prefetch_related(Prefetch('analyses', queryset=analyses, to_attr='analysis_summaries'))
                .order_by('-uploaded_at', '-id')
            )

    def refresh_cached_url(self, document: Document, url: Optional[str]) -> None:
        """Store the most recently issued URL on the row. Cache only."""
        if document.url == url:
            return
        with _store_errors('refresh_cached_url'):
            Document.objects.filter(pk=document.pk).update(url=url)
        document.url = url
