"""
Prometheus metrics for the media storage pipeline.
Tracks backend traffic, failovers and dropped variants.
"""

from prometheus_client import Counter, Histogram

# ============================================================
# STORAGE METRICS
# ============================================================

STORAGE_UPLOADS = Counter(
    'media_storage_uploads_total',
    'Total number of object uploads per backend',
    ['backend', 'status']
)

STORAGE_DELETES = Counter(
    'media_storage_deletes_total',
    'Total number of object deletes per backend',
    ['backend', 'status']
)

STORAGE_FAILOVERS = Counter(
    'media_storage_failovers_total',
    'Operations retried against the fallback backend',
    ['operation']
)

UPLOAD_SIZE_BYTES = Histogram(
    'media_storage_upload_size_bytes',
    'Size of uploaded objects in bytes',
    buckets=[1000, 10000, 50000, 100000, 500000, 1000000, 5000000, 10000000]
)

# ============================================================
# PROCESSING METRICS
# ============================================================

IMAGES_PROCESSED = Counter(
    'media_images_processed_total',
    'Image uploads handled by the image service',
    ['status']
)

VARIANTS_DROPPED = Counter(
    'media_variants_dropped_total',
    'Variants omitted from an upload result after a processing or storage error',
    ['variant']
)

PROCESSING_DURATION = Histogram(
    'media_image_processing_seconds',
    'End-to-end duration of an image upload',
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0]
)


def record_upload(backend: str, size: int, ok: bool) -> None:
    """Record one upload attempt against a backend"""
    STORAGE_UPLOADS.labels(backend=backend, status="success" if ok else "error").inc()
    if ok:
        UPLOAD_SIZE_BYTES.observe(size)


def record_delete(backend: str, ok: bool) -> None:
    STORAGE_DELETES.labels(backend=backend, status="success" if ok else "error").inc()
