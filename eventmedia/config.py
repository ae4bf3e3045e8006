"""
Configuration settings for the media pipeline, read from the environment.
.env.local and .env are loaded first when present.
"""
import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from eventmedia.services.models import ProcessingOptions


def load_environment() -> None:
    """Load .env.local then .env without overriding real environment variables"""
    load_dotenv(".env.local")
    load_dotenv(".env")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class R2Settings:
    """Cloudflare R2 (or any S3-compatible store) connection settings"""
    account_id: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    bucket_name: str = "event-images"
    public_url: str = ""
    region: str = "auto"
    endpoint: str = ""

    @classmethod
    def from_env(cls) -> "R2Settings":
        return cls(
            account_id=os.getenv("R2_ACCOUNT_ID", ""),
            access_key_id=os.getenv("R2_ACCESS_KEY_ID", ""),
            secret_access_key=os.getenv("R2_SECRET_ACCESS_KEY", ""),
            bucket_name=os.getenv("R2_BUCKET_NAME", "event-images"),
            public_url=os.getenv("R2_PUBLIC_URL", ""),
            region=os.getenv("R2_REGION", "auto"),
            endpoint=os.getenv("R2_ENDPOINT", ""),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def missing_fields(self) -> List[str]:
        """Environment variables required for the remote backend that are unset"""
        missing = []
        if not self.account_id and not self.endpoint:
            missing.append("R2_ACCOUNT_ID")
        if not self.access_key_id:
            missing.append("R2_ACCESS_KEY_ID")
        if not self.secret_access_key:
            missing.append("R2_SECRET_ACCESS_KEY")
        if not self.bucket_name:
            missing.append("R2_BUCKET_NAME")
        return missing

    @property
    def endpoint_url(self) -> Optional[str]:
        if self.endpoint:
            return self.endpoint
        if self.account_id:
            return f"https://{self.account_id}.r2.cloudflarestorage.com"
        return None

    @property
    def public_url_base(self) -> Optional[str]:
        if self.public_url:
            return self.public_url
        if self.account_id:
            return f"https://pub-{self.account_id}.r2.dev"
        return None


@dataclass(frozen=True)
class FallbackSettings:
    """Local filesystem fallback settings"""
    path: str = os.path.join("web", "static", "uploads")
    base_url: str = "http://localhost:8080/static/uploads"

    @classmethod
    def from_env(cls) -> "FallbackSettings":
        return cls(
            path=os.getenv("FALLBACK_STORAGE_PATH", cls.path),
            base_url=os.getenv("FALLBACK_BASE_URL", cls.base_url),
        )


@dataclass(frozen=True)
class ImageSettings:
    quality: int = 85
    compression_level: int = 6
    enable_webp: bool = True
    max_upload_bytes: int = 10 * 1024 * 1024

    @classmethod
    def from_env(cls) -> "ImageSettings":
        return cls(
            quality=_env_int("IMAGE_QUALITY", cls.quality),
            compression_level=_env_int("IMAGE_COMPRESSION_LEVEL", cls.compression_level),
            enable_webp=_env_bool("IMAGE_ENABLE_WEBP", cls.enable_webp),
            max_upload_bytes=_env_int("IMAGE_MAX_UPLOAD_BYTES", cls.max_upload_bytes),
        )

    def processing_options(self) -> ProcessingOptions:
        return ProcessingOptions(
            quality=self.quality,
            enable_webp=self.enable_webp,
            compression_level=self.compression_level,
        )


@dataclass(frozen=True)
class Settings:
    r2: R2Settings
    fallback: FallbackSettings
    images: ImageSettings
    health_check_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "Settings":
        load_environment()
        return cls(
            r2=R2Settings.from_env(),
            fallback=FallbackSettings.from_env(),
            images=ImageSettings.from_env(),
            health_check_timeout=float(os.getenv("STORAGE_HEALTH_CHECK_TIMEOUT", "10")),
        )
