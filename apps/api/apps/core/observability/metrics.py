"""
Metrics instrumentation wrapper around prometheus_client.
"""
from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry for the ingestion gateway.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # Ingestion Metrics
        # ===================================================================
        self.document_uploads_total = self._create_counter(
            'document_uploads_total',
            'Document upload attempts',
            ['result']  # success, invalid, user_not_found, storage_error, metadata_error
        )

        self.document_upload_duration_seconds = self._create_histogram(
            'document_upload_duration_seconds',
            'End-to-end document ingestion duration',
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
        )

        self.document_upload_bytes = self._create_histogram(
            'document_upload_bytes',
            'Size of ingested documents in bytes',
            buckets=[1024, 10 * 1024, 100 * 1024, 1024 * 1024, 5 * 1024 * 1024, 10 * 1024 * 1024]
        )

        self.document_orphaned_blobs_total = self._create_counter(
            'document_orphaned_blobs_total',
            'Blobs written without a matching metadata record'
        )

        # ===================================================================
        # Storage Metrics
        # ===================================================================
        self.presigned_urls_issued_total = self._create_counter(
            'presigned_urls_issued_total',
            'Presigned GET URLs issued',
            ['purpose', 'result']  # purpose: upload|listing
        )

        self.bucket_provisioning_total = self._create_counter(
            'bucket_provisioning_total',
            'Bucket provisioning outcomes',
            ['result']  # created, exists, race, failure
        )

        # ===================================================================
        # Analysis / Listing Metrics
        # ===================================================================
        self.analyses_enqueued_total = self._create_counter(
            'analyses_enqueued_total',
            'Pending analyses created',
            ['analysis_type']
        )

        self.document_listings_total = self._create_counter(
            'document_listings_total',
            'Document listing requests',
            ['result']
        )


metrics = MetricsRegistry()
