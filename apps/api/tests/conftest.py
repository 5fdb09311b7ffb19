"""
Global test fixtures for pytest.

Provides reusable fixtures for ingestion testing:
- In-memory MinIO client (no network) with failure injection
- Services wired to the fake client and the test database
- Users and document factories
"""
import uuid

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from apps.documents import views as document_views
from apps.documents.models import Document
from apps.documents.repository import DocumentRepository
from apps.documents.services import IngestionService, ListingService
from apps.documents.storage import BlobWriter, BucketProvisioner, PresignedUrlIssuer

from .fakes import TEST_BUCKET, TEST_PREFIX, FakeMinio


# ============================================================================
# Fake MinIO
# ============================================================================

@pytest.fixture
def fake_minio():
    """Fake MinIO client; the bucket does not exist yet."""
    return FakeMinio()


@pytest.fixture
def staging_dir(tmp_path):
    path = tmp_path / 'staging'
    path.mkdir()
    return path


# ============================================================================
# Services
# ============================================================================

@pytest.fixture
def repository():
    return DocumentRepository()


@pytest.fixture
def provisioner(fake_minio):
    return BucketProvisioner(fake_minio, region='us-east-1', key_prefix=TEST_PREFIX)


@pytest.fixture
def ingestion_service(fake_minio, provisioner, repository, staging_dir):
    return IngestionService(
        repository=repository,
        provisioner=provisioner,
        blob_writer=BlobWriter(fake_minio, TEST_BUCKET),
        url_issuer=PresignedUrlIssuer(fake_minio),
        key_prefix=TEST_PREFIX,
        staging_dir=staging_dir,
        url_ttl=3600,
        analysis_version='v1',
    )


@pytest.fixture
def listing_service(fake_minio, repository):
    return ListingService(
        repository=repository,
        url_issuer=PresignedUrlIssuer(fake_minio),
        url_ttl=900,
    )


@pytest.fixture
def wired_api(monkeypatch, ingestion_service, listing_service):
    """Make the API views use the services built on the fake client."""
    monkeypatch.setattr(document_views, 'get_ingestion_service', lambda: ingestion_service)
    monkeypatch.setattr(document_views, 'get_listing_service', lambda: listing_service)
    return ingestion_service, listing_service


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client (authentication happens upstream)."""
    return APIClient()


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def user_factory(db):
    """
    Factory fixture for creating users.

    Usage:
        user = user_factory(id=7)
    """
    User = get_user_model()
    created = []

    def _create_user(**kwargs):
        defaults = {
            'username': f'patient{len(created)}_{uuid.uuid4().hex[:6]}',
            'password': 'testpass123',
        }
        defaults.update(kwargs)
        user = User.objects.create_user(**defaults)
        created.append(user)
        return user

    return _create_user


@pytest.fixture
def user(user_factory):
    """User with id 7."""
    return user_factory(id=7)


@pytest.fixture
def document_factory(db, user):
    """
    Factory fixture for Document rows (no blob is written).

    Usage:
        doc = document_factory(document_type='lab_report')
    """
    def _create_document(**kwargs):
        file_id = uuid.uuid4().hex
        owner = kwargs.pop('user', user)
        defaults = {
            'user': owner,
            'original_filename': 'report.pdf',
            'file_id': file_id,
            'file_size': 1024,
            'mime_type': 'application/pdf',
            'file_extension': '.pdf',
            'object_key': f'{TEST_PREFIX}/{owner.id}/{file_id}.pdf',
            'bucket_name': TEST_BUCKET,
            'tags': [],
        }
        defaults.update(kwargs)
        return Document.objects.create(**defaults)

    return _create_document
