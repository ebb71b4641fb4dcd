"""Configuration management for the VizTube API."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The instance is frozen: it is built once at startup and shared by
    reference (see ``get_settings``).
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="VT_", extra="ignore", frozen=True
    )

    # Token signing
    access_token_secret: str
    refresh_token_secret: str
    access_token_expire_minutes: int = 60 * 24  # 1 day
    refresh_token_expire_days: int = 10

    # Refresh tokens are stored encrypted (base64, 32 bytes)
    token_enc_key: str

    # Database
    database_url: str = "sqlite+aiosqlite:///./viztube.db"

    # Blob store configuration
    blob_store_backend: str = Field(default="local", pattern="^(local|gcs)$")
    media_local_path: str = Field(default="./media")
    media_url_base: str = Field(default="http://localhost:8000")

    # Google Cloud Storage (only needed if blob_store_backend=gcs)
    gcs_bucket_name: str = Field(default="")
    gcs_credentials_file: str = Field(default="")

    # Multipart uploads are staged here before reaching the blob store
    upload_temp_dir: str = Field(default="./public/temp")

    # Pagination
    page_size_default: int = 10
    page_size_max: int = 100

    # CORS
    frontend_origin: str = "http://localhost:5173"

    # Environment
    env: str = Field(default="dev", pattern="^(dev|prod)$")
    log_level: str = Field(default="INFO")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
