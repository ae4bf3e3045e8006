"""
Storage and image service wiring.

The remote store is the primary backend when it is configured and passes a
health check; the local filesystem is always available as the fallback.
"""
import asyncio
import logging
from typing import Optional

from eventmedia.config import Settings
from eventmedia.errors import StorageNotConfiguredError
from eventmedia.services.failover_storage import FailoverStorage
from eventmedia.services.image_service import ImageService
from eventmedia.services.local_file_storage import LocalFileStorage
from eventmedia.services.s3_storage import S3Storage
from eventmedia.services.storage_backend import StorageBackend

logger = logging.getLogger("eventmedia.deps")

_image_service: Optional[ImageService] = None


def validate_remote_configuration(settings: Settings) -> None:
    """
    Raises:
        StorageNotConfiguredError: Naming every missing variable
    """
    missing = settings.r2.missing_fields()
    if missing:
        raise StorageNotConfiguredError(f"remote storage not configured, missing: {', '.join(missing)}")


def create_remote_storage(settings: Settings) -> S3Storage:
    r2 = settings.r2
    return S3Storage(
        bucket_name=r2.bucket_name,
        endpoint_url=r2.endpoint_url,
        access_key_id=r2.access_key_id,
        secret_access_key=r2.secret_access_key,
        region_name=r2.region,
        public_url_base=r2.public_url_base,
    )


def create_fallback_storage(settings: Settings) -> LocalFileStorage:
    return LocalFileStorage(base_path=settings.fallback.path, base_url=settings.fallback.base_url)


async def create_storage_backend(settings: Settings) -> StorageBackend:
    """Remote primary with local fallback, or local only when the remote is unusable"""
    fallback = create_fallback_storage(settings)

    try:
        remote = create_remote_storage(settings)
    except StorageNotConfiguredError as e:
        logger.warning(f"Remote storage unavailable, using fallback storage only: {e}")
        return fallback

    try:
        await asyncio.wait_for(remote.health_check(), timeout=settings.health_check_timeout)
    except Exception as e:
        logger.warning(f"Remote storage health check failed, using fallback storage only: {e}")
        return fallback

    logger.info(f"Remote storage initialized: bucket {settings.r2.bucket_name}")
    return FailoverStorage(primary=remote, fallback=fallback)


async def get_image_service(settings: Optional[Settings] = None) -> ImageService:
    global _image_service
    if _image_service is None:
        settings = settings or Settings.from_env()
        storage = await create_storage_backend(settings)
        _image_service = ImageService(
            storage,
            default_options=settings.images.processing_options(),
        )
    return _image_service


def reset_image_service() -> None:
    global _image_service
    _image_service = None


async def setup_remote_bucket(settings: Settings, allowed_origins: Optional[list] = None) -> None:
    """Create the bucket and apply CORS rules"""
    validate_remote_configuration(settings)
    remote = create_remote_storage(settings)
    await remote.create_bucket()
    await remote.set_bucket_cors(allowed_origins)
    logger.info(f"Bucket '{settings.r2.bucket_name}' configured successfully")


async def get_storage_info(settings: Settings) -> dict:
    """Summary of the configured storage, probing the remote if configured"""
    info = {
        "r2_configured": settings.r2.is_configured,
        "bucket_name": settings.r2.bucket_name,
        "public_url": settings.r2.public_url_base,
        "fallback_path": settings.fallback.path,
        "r2_available": False,
    }

    if info["r2_configured"]:
        try:
            remote = create_remote_storage(settings)
            await asyncio.wait_for(remote.health_check(), timeout=5.0)
            info["r2_available"] = True
        except Exception as e:
            logger.info(f"Remote storage not available: {e}")

    return info
