"""Application configuration management using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic Settings for type validation and automatic loading
    from .env files and environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database settings - a connection string switches to the networked backend
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection URL; when unset the embedded SQLite store is used"
    )
    sqlite_path: str = Field(
        default="./data/serials.db",
        description="Embedded single-file store location (':memory:' allowed)"
    )

    # API server settings
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=3001, ge=1, le=65535, description="API server port")

    # Upload settings
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum size of a single uploaded image in MB"
    )
    max_files_per_batch: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum number of images accepted by one extraction request"
    )
    max_import_size_mb: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Maximum size of a CSV import in MB"
    )

    # Recognition settings
    ocr_language: str = Field(default="eng", description="Tesseract language code")
    ocr_char_whitelist: str = Field(
        default="ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789",
        description="Characters the recognizer is allowed to emit"
    )
    ocr_timeout_seconds: float = Field(
        default=60,
        gt=0,
        description="Per-image recognition timeout in seconds"
    )
    tesseract_cmd: Optional[str] = Field(
        default=None,
        description="Explicit path to the tesseract binary"
    )
    preprocess_target_width: int = Field(
        default=2000,
        ge=100,
        le=10000,
        description="Width images are scaled to before recognition"
    )
    ingest_concurrency: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Number of images processed at the same time within one batch"
    )

    # Administrative settings
    reset_confirm_header: str = Field(
        default="X-Confirm-Reset",
        description="Header that must accompany a registry wipe"
    )
    reset_confirm_value: str = Field(
        default="true",
        description="Exact value the wipe confirmation header must carry"
    )

    # CORS settings (using string for environment variable compatibility)
    cors_origins_str: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated CORS origins",
        alias="CORS_ORIGINS"
    )

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json or text)")

    # Development settings
    debug: bool = Field(default=False, description="Enable debug mode")
    reload: bool = Field(default=False, description="Enable auto-reload (development)")
    environment: str = Field(default="production", description="Application environment")

    # Database connection pool settings
    database_echo: bool = Field(default=False, description="Enable SQLAlchemy SQL logging")
    database_pool_size: int = Field(default=5, ge=1, description="Database connection pool size")
    database_pool_recycle: int = Field(default=3600, ge=300, description="Database pool recycle time in seconds")

    @field_validator("database_url", mode="before")
    @classmethod
    def blank_database_url_is_unset(cls, v: Any) -> Optional[str]:
        """Treat an empty DATABASE_URL the same as an absent one."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: Optional[str]) -> Optional[str]:
        """Only PostgreSQL is supported as the networked backend."""
        if v is not None and not v.startswith("postgresql"):
            raise ValueError(f"DATABASE_URL must be a PostgreSQL URL, got: {v[:20]}...")
        return v

    @field_validator("sqlite_path")
    @classmethod
    def ensure_sqlite_dir_exists(cls, v: str) -> str:
        """Ensure the embedded store directory exists."""
        if v != ":memory:":
            Path(v).parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def use_networked_backend(self) -> bool:
        """True when a connection string selects the networked backend."""
        return self.database_url is not None

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from the string configuration."""
        if not self.cors_origins_str.strip():
            return ["http://localhost:5173", "http://localhost:3000"]
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get maximum image upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def max_import_size_bytes(self) -> int:
        """Get maximum CSV import size in bytes."""
        return self.max_import_size_mb * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are loaded only once
    and cached for subsequent calls.
    """
    return Settings()
