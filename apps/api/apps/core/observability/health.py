"""
Health check endpoints.

Provides /healthz and /readyz endpoints for monitoring.
"""
import logging
from django.http import JsonResponse
from django.views import View
from django.db import connection
from django.conf import settings
from minio.error import MinioException
from urllib3.exceptions import HTTPError

logger = logging.getLogger(__name__)


class HealthzView(View):
    """
    Basic health check endpoint.

    Returns 200 OK if application is running.
    Does not check dependencies.
    """

    def get(self, request):
        health_data = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }

        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash

        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Readiness check endpoint.

    Returns 200 OK if both the metadata store and the object store answer.
    """

    def get(self, request):
        checks = {
            'database': self._check_database(),
            'object_store': self._check_object_store(),
        }

        all_healthy = all(checks.values())

        response_data = {
            'status': 'ready' if all_healthy else 'not_ready',
            'checks': checks,
        }

        return JsonResponse(response_data, status=200 if all_healthy else 503)

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
                return True
        except Exception as e:
            logger.error(
                'Database health check failed',
                extra={
                    'event': 'health_check_failed',
                    'check': 'database',
                    'error': str(e)
                }
            )
            return False

    def _check_object_store(self):
        # A missing bucket is still "ready": the first upload provisions it.
        from apps.documents.storage import get_minio_client

        try:
            get_minio_client().bucket_exists(bucket_name=settings.MINIO_DOCUMENTS_BUCKET)
            return True
        except (MinioException, HTTPError, OSError) as e:
            logger.error(
                'Object store health check failed',
                extra={
                    'event': 'health_check_failed',
                    'check': 'object_store',
                    'error': str(e)
                }
            )
            return False
