"""
Documents REST API endpoints.

Endpoints:
- POST /api/v1/upload/ - Upload a document (multipart)
- GET /api/v1/upload/ - Upload endpoint status
- GET /api/v1/documents/?userId= - List a user's documents with fresh URLs
"""
import logging

from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import IngestionError
from .serializers import (
    DocumentListQuerySerializer,
    DocumentViewSerializer,
    UploadedDocumentSerializer,
    UploadRequestSerializer,
    first_error_message,
)
from .services import get_ingestion_service, get_listing_service

logger = logging.getLogger(__name__)


def error_response(error, details=None, status_code=status.HTTP_400_BAD_REQUEST):
    data = {'error': error}
    if details is not None:
        data['details'] = details
    return Response(data, status=status_code)


class DocumentUploadView(APIView):
    """
    Upload a document for a user.

    Request body (multipart/form-data):
    - file: Document file (required)
    - userId: Owning user id (required)
    - documentType: Category, e.g. lab_report (optional; queues an analysis)
    - tags: Comma-separated tags (optional)

    Response (201):
        {
            "success": true,
            "document": {"id", "fileId", "filename", "url", "documentType", "uploadedAt"}
        }
    """
    parser_classes = [MultiPartParser, FormParser]

    def get(self, request):
        return Response({'status': 'Upload endpoint operational'})

    def post(self, request):
        serializer = UploadRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response(first_error_message(serializer.errors), serializer.errors)

        upload = serializer.to_upload_request()
        try:
            document = get_ingestion_service().ingest(upload)
        except IngestionError as e:
            return Response(e.as_response_data(), status=e.status_code)
        except Exception as e:
            logger.exception(f"Unexpected error during upload: {e}")
            return error_response('File upload failed', str(e), status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response(
            {'success': True, 'document': UploadedDocumentSerializer(document).data},
            status=status.HTTP_201_CREATED
        )


class DocumentListView(APIView):
    """
    List a user's documents, newest first, excluding soft-deleted ones.

    Every entry gets a newly issued short-lived URL; entries whose URL could
    not be issued are still listed with ``url: null``.
    """

    def get(self, request):
        query = DocumentListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return error_response(first_error_message(query.errors), query.errors)

        try:
            views = get_listing_service().list(query.validated_data['userId'])
        except IngestionError as e:
            return Response(e.as_response_data(), status=e.status_code)
        except Exception as e:
            logger.exception(f"Unexpected error while listing documents: {e}")
            return error_response('Failed to list documents', str(e), status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({
            'success': True,
            'documents': DocumentViewSerializer(views, many=True).data,
        })
