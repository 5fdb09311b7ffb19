"""
Tests for the document metadata repository.

Covers:
- User lookup
- Document / Analysis inserts and error translation
- Listing order, soft-delete exclusion and analysis summaries
- Cached URL refresh
"""
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.contrib.auth import get_user_model
from django.db import OperationalError
from django.utils import timezone

from apps.documents.exceptions import ReferentialIntegrityError, StoreUnavailable
from apps.documents.models import Analysis, AnalysisStatus, Document


def document_fields(owner, file_id='c' * 32):
    return {
        'user': owner,
        'original_filename': 'scan.png',
        'file_id': file_id,
        'file_size': 10,
        'mime_type': 'image/png',
        'file_extension': '.png',
        'object_key': f'user-documents/{owner.id}/{file_id}.png',
        'bucket_name': 'health-documents-test',
    }


@pytest.mark.django_db
class TestFindUser:

    def test_returns_existing_user(self, repository, user):
        assert repository.find_user(user.id) == user

    def test_returns_none_for_unknown_user(self, repository):
        assert repository.find_user(99999) is None


@pytest.mark.django_db
class TestCreateDocument:

    def test_creates_row(self, repository, user):
        document = repository.create_document(
            user=user,
            original_filename='blood test.pdf',
            file_id='a' * 32,
            file_size=12,
            mime_type='application/pdf',
            file_extension='.pdf',
            object_key=f'user-documents/{user.id}/{"a" * 32}.pdf',
            bucket_name='health-documents-test',
            tags=['blood', 'annual'],
        )

        stored = Document.objects.get(pk=document.pk)
        assert stored.original_filename == 'blood test.pdf'
        assert stored.tags == ['blood', 'annual']
        assert stored.url is None
        assert stored.is_deleted is False
        assert stored.uploaded_at is not None

    def test_duplicate_object_key_raises_integrity_error(self, repository, document_factory, user):
        existing = document_factory()

        with pytest.raises(ReferentialIntegrityError):
            repository.create_document(
                user=user,
                original_filename='copy.pdf',
                file_id='b' * 32,
                file_size=1,
                mime_type='application/pdf',
                object_key=existing.object_key,
                bucket_name=existing.bucket_name,
            )

        assert Document.objects.count() == 1

    def test_database_error_raises_store_unavailable(self, repository, user):
        with patch.object(Document.objects, 'create', side_effect=OperationalError('database is down')):
            with pytest.raises(StoreUnavailable) as exc_info:
                repository.create_document(user=user, original_filename='x.pdf')

        assert 'database is down' in exc_info.value.details


@pytest.mark.django_db
class TestCreateAnalysis:

    def test_creates_pending_analysis(self, repository, document_factory):
        document = document_factory(document_type='lab_report')

        analysis = repository.create_analysis(document, analysis_type='lab_report', version='v1')

        assert analysis.status == AnalysisStatus.PENDING
        assert analysis.user_id == document.user_id
        assert analysis.document_id == document.id
        assert analysis.version == 'v1'
        assert analysis.completed_at is None

    def test_deleted_document_rejected(self, repository, document_factory):
        document = document_factory(is_deleted=True)

        with pytest.raises(ReferentialIntegrityError):
            repository.create_analysis(document, analysis_type='lab_report', version='v1')

        assert Analysis.objects.count() == 0


@pytest.mark.django_db
class TestListDocuments:

    def test_newest_first(self, repository, document_factory, user):
        now = timezone.now()
        older = document_factory()
        newer = document_factory()
        Document.objects.filter(pk=older.pk).update(uploaded_at=now - timedelta(hours=2))
        Document.objects.filter(pk=newer.pk).update(uploaded_at=now - timedelta(hours=1))

        documents = repository.list_documents(user.id)

        assert [d.pk for d in documents] == [newer.pk, older.pk]

    def test_excludes_soft_deleted(self, repository, document_factory, user):
        kept = document_factory()
        removed = document_factory()
        removed.soft_delete()

        documents = repository.list_documents(user.id)

        assert [d.pk for d in documents] == [kept.pk]

    def test_only_owner_documents(self, repository, document_factory, user_factory, user):
        other = user_factory()
        mine = document_factory()
        document_factory(user=other)

        assert [d.pk for d in repository.list_documents(user.id)] == [mine.pk]

    def test_unknown_user_returns_empty_list(self, repository):
        assert repository.list_documents(424242) == []

    def test_attaches_analysis_summaries(self, repository, document_factory, user):
        document = document_factory(document_type='lab_report')
        analysis = repository.create_analysis(document, analysis_type='lab_report', version='v1')

        listed = repository.list_documents(user.id)[0]

        assert [a.pk for a in listed.analysis_summaries] == [analysis.pk]
        summary = listed.analysis_summaries[0]
        assert summary.status == AnalysisStatus.PENDING
        assert summary.analysis_type == 'lab_report'

    def test_database_error_raises_store_unavailable(self, repository, user):
        with patch.object(Document.objects, 'active', side_effect=OperationalError('gone')):
            with pytest.raises(StoreUnavailable):
                repository.list_documents(user.id)


@pytest.mark.django_db
class TestRefreshCachedUrl:

    def test_updates_row_and_instance(self, repository, document_factory):
        document = document_factory()

        repository.refresh_cached_url(document, 'http://minio.test:9000/new')

        assert document.url == 'http://minio.test:9000/new'
        assert Document.objects.get(pk=document.pk).url == 'http://minio.test:9000/new'

    def test_unchanged_url_skips_write(self, repository, document_factory):
        document = document_factory(url='http://minio.test:9000/same')

        with patch.object(Document.objects, 'filter') as mock_filter:
            repository.refresh_cached_url(document, 'http://minio.test:9000/same')

        mock_filter.assert_not_called()


@pytest.mark.django_db
class TestSoftDelete:

    def test_soft_delete_and_restore(self, document_factory):
        document = document_factory()

        document.soft_delete()
        assert Document.objects.active().count() == 0
        assert Document.objects.filter(pk=document.pk).exists()

        document.restore()
        assert Document.objects.active().count() == 1


@pytest.mark.django_db
class TestCreateDocumentWithAnalysis:

    def test_with_analysis_type(self, repository, user):
        document, analysis = repository.create_document_with_analysis(
            analysis_type='imaging', analysis_version='v1', **document_fields(user)
        )

        assert analysis.document_id == document.id
        assert analysis.status == AnalysisStatus.PENDING
        assert analysis.version == 'v1'

    def test_without_analysis_type(self, repository, user):
        document, analysis = repository.create_document_with_analysis(
            analysis_type=None, analysis_version='v1', **document_fields(user)
        )

        assert analysis is None
        assert Analysis.objects.count() == 0
        assert Document.objects.filter(pk=document.pk).exists()

    def test_analysis_failure_rolls_back_document(self, repository, user):
        with patch.object(repository, 'create_analysis', side_effect=StoreUnavailable()):
            with pytest.raises(StoreUnavailable):
                repository.create_document_with_analysis(
                    analysis_type='imaging', analysis_version='v1', **document_fields(user)
                )

        assert Document.objects.count() == 0


@pytest.mark.django_db(transaction=True)
class TestCreateDocumentWithAnalysisCommit:
    """Deferred foreign keys are only checked when the outer transaction commits"""

    def test_missing_user_raises_integrity_error(self, repository):
        missing_user = get_user_model()(pk=5151, username='gone')

        with pytest.raises(ReferentialIntegrityError):
            repository.create_document_with_analysis(
                analysis_type='imaging',
                analysis_version='v1',
                **document_fields(missing_user)
            )

        assert Document.objects.count() == 0
        assert Analysis.objects.count() == 0

    def test_commit_failure_raises_store_unavailable(self, repository, user_factory):
        owner = user_factory()

        with patch('django.db.backends.base.base.BaseDatabaseWrapper.commit',
                   side_effect=OperationalError('connection lost')):
            with pytest.raises(StoreUnavailable):
                repository.create_document_with_analysis(
                    analysis_type=None,
                    analysis_version='v1',
                    **document_fields(owner)
                )
