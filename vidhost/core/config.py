from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="VIDHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for bearer token validation.")
    aws_access_key_id: Optional[str] = Field(default=None, description="Object store access key.")
    aws_secret_access_key: Optional[str] = Field(default=None, description="Object store secret key.")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the vidhost API."""

    model_config = SettingsConfigDict(
        env_prefix="VIDHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "vidhost API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./vidhost.db",
        description="SQLAlchemy compatible DSN for the video metadata store.",
    )

    assets_root: Path = Field(default_factory=lambda: Path("assets"), description="Root for locally stored assets.")
    scratch_dir: Optional[Path] = Field(
        default=None,
        description="Directory for transient upload files (defaults to the system temp dir).",
    )
    storage_backend: Literal["local", "s3"] = Field(default="local", description="Active object store implementation.")

    s3_bucket: Optional[str] = None
    s3_region: str = Field(default="us-east-1")
    s3_endpoint_url: Optional[str] = Field(default=None, description="Custom endpoint for S3-compatible stores.")
    s3_public_base_url: Optional[str] = Field(
        default=None,
        description="Override for public asset URLs (defaults to the virtual-hosted S3 URL).",
    )

    max_thumbnail_bytes: int = Field(default=10 << 20, description="Upload ceiling for thumbnails.")
    max_video_bytes: int = Field(default=1 << 30, description="Upload ceiling for videos.")
    probe_timeout_s: float = Field(default=30.0, gt=0, description="Wall clock limit for a single ffprobe run.")
    ffprobe_binary: str = Field(default="ffprobe")

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def resolved_scratch_dir(self) -> Path | None:
        if self.scratch_dir is None:
            return None
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        return self.scratch_dir


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "VIDHOST_ENV": "VIDHOST_ENVIRONMENT",
        "VIDHOST_DB_URL": "VIDHOST_DATABASE_URL",
        "VIDHOST_ASSETS_DIR": "VIDHOST_ASSETS_ROOT",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    settings = Settings()
    secrets = Secrets.from_settings(settings)

    if settings.environment_lower == "production" and secrets.jwt_secret == "change-me":
        raise ValueError("Production environment must have a non-default JWT secret.")
    if settings.storage_backend == "s3" and not settings.s3_bucket:
        raise ValueError("VIDHOST_S3_BUCKET is required when the s3 storage backend is selected.")

    settings.secrets = secrets
    return settings


__all__ = ["Settings", "Secrets", "get_settings"]
