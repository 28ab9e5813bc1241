# settings.py
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


@dataclass(frozen=True)
class Settings:
    """Process configuration, read once at startup."""

    tmdb_api_key: Optional[str] = None
    tmdb_api_base: str = "https://api.themoviedb.org/3"
    tmdb_image_base: str = "https://image.tmdb.org/t/p"

    b2_key_id: Optional[str] = None
    b2_application_key: Optional[str] = None
    b2_bucket_name: Optional[str] = None
    b2_bucket_id: Optional[str] = None
    b2_api_base: str = "https://api.backblazeb2.com"
    b2_prefix: str = "tmdb"

    upstream_timeout_seconds: float = 5.0
    default_language: str = "ru-RU"
    fallback_language: str = "en-US"
    admin_token: Optional[str] = None

    @property
    def blob_enabled(self) -> bool:
        # Partial object-storage configuration counts as disabled.
        return bool(self.b2_key_id and self.b2_application_key and self.b2_bucket_name)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            tmdb_api_key=_env("TMDB_API_KEY"),
            tmdb_api_base=_env("TMDB_API_BASE", cls.tmdb_api_base).rstrip("/"),
            tmdb_image_base=_env("TMDB_IMAGE_BASE", cls.tmdb_image_base).rstrip("/"),
            b2_key_id=_env("B2_KEY_ID"),
            b2_application_key=_env("B2_APPLICATION_KEY"),
            b2_bucket_name=_env("B2_BUCKET_NAME"),
            b2_bucket_id=_env("B2_BUCKET_ID"),
            b2_api_base=_env("B2_API_BASE", cls.b2_api_base).rstrip("/"),
            b2_prefix=_env("B2_PREFIX", cls.b2_prefix).strip("/"),
            upstream_timeout_seconds=float(_env("UPSTREAM_TIMEOUT_SECONDS", "5")),
            default_language=_env("DEFAULT_LANGUAGE", cls.default_language),
            fallback_language=_env("FALLBACK_LANGUAGE", cls.fallback_language),
            admin_token=_env("ADMIN_TOKEN"),
        )


def mask_secret(secret: Optional[str]) -> str:
    if not secret:
        return "None"
    return f"{secret[:4]}…{secret[-4:]}" if len(secret) > 8 else "****"
