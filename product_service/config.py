# product_service/config.py

"""
Environment-driven configuration for the Product Service.

Values come from process environment variables, optionally seeded from a
`.env` file in the working directory. Invalid values fail fast with a
ConfigurationError so a misconfigured container never starts half-working.
"""
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

MEDIA_BACKENDS = ("local", "cloudinary")


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _get_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"Environment variable '{key}' must be an integer, got '{raw}'."
        )


def _get_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"Environment variable '{key}' must be a number, got '{raw}'."
        )


def _default_database_url() -> str:
    # Compose the PostgreSQL URL from its parts, split for linting
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    db_name = os.getenv("POSTGRES_DB", "postgres")
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    return f"postgresql://{user}:{password}@" f"{host}:{port}/{db_name}"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API process."""

    database_url: str
    db_connect_timeout_seconds: int = 10
    db_connect_retries: int = 10
    db_retry_delay_seconds: float = 5.0

    media_backend: str = "local"
    upload_dir: str = "uploads"
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "products"
    media_timeout_seconds: float = 30.0
    max_upload_bytes: int = 50 * 1024 * 1024

    cors_origins: Tuple[str, ...] = ("*",)
    app_env: str = "development"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.media_backend not in MEDIA_BACKENDS:
            raise ConfigurationError(
                f"MEDIA_BACKEND must be one of {', '.join(MEDIA_BACKENDS)}, "
                f"got '{self.media_backend}'."
            )
        if self.media_backend == "cloudinary" and not self.cloudinary_configured:
            raise ConfigurationError(
                "MEDIA_BACKEND is 'cloudinary' but CLOUDINARY_CLOUD_NAME, "
                "CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET are not all set."
            )
        if self.max_upload_bytes <= 0:
            raise ConfigurationError("MAX_UPLOAD_BYTES must be positive.")
        if self.media_timeout_seconds <= 0:
            raise ConfigurationError("MEDIA_TIMEOUT_SECONDS must be positive.")

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Build settings from the environment, loading `.env` first if present."""
        load_dotenv(env_file)

        cloud_name = os.getenv("CLOUDINARY_CLOUD_NAME", "")
        backend = os.getenv("MEDIA_BACKEND") or ("cloudinary" if cloud_name else "local")
        origins = tuple(
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        )

        return cls(
            database_url=os.getenv("DATABASE_URL") or _default_database_url(),
            db_connect_timeout_seconds=_get_int("DB_CONNECT_TIMEOUT_SECONDS", 10),
            db_connect_retries=_get_int("DB_CONNECT_RETRIES", 10),
            db_retry_delay_seconds=_get_float("DB_RETRY_DELAY_SECONDS", 5.0),
            media_backend=backend.strip().lower(),
            upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
            cloudinary_cloud_name=cloud_name,
            cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY", ""),
            cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET", ""),
            cloudinary_folder=os.getenv("CLOUDINARY_FOLDER", "products"),
            media_timeout_seconds=_get_float("MEDIA_TIMEOUT_SECONDS", 30.0),
            max_upload_bytes=_get_int("MAX_UPLOAD_BYTES", 50 * 1024 * 1024),
            cors_origins=origins or ("*",),
            app_env=os.getenv("APP_ENV", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
