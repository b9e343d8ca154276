"""Configuration settings for folio-gallery."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database (durable key-value storage shared by every context)
    database_url: str = "sqlite+aiosqlite:///./folio_gallery.db"
    database_echo: bool = False

    # Total bytes the key-value storage accepts before rejecting writes.
    # Mirrors the ~5 MiB ceiling browsers put on localStorage.
    storage_quota_bytes: int = 5 * 1024 * 1024

    # ── Image compression ────────────────────────────────────────────────────
    image_max_width: int = 800  # pixels
    image_quality: float = 0.7  # 0-1, mapped to Pillow's 1-95 JPEG scale

    # Oldest blobs dropped when a blob write hits the quota (then retry once)
    eviction_batch: int = 3

    # Deletion markers older than this are dropped on the next write
    tombstone_retention_seconds: int = 7 * 24 * 3600

    # Used when an inline image cannot be stored or a blob went missing
    default_image_path: str = "/assets/gallery/1.webp"

    # ── Remote gallery API ───────────────────────────────────────────────────
    # None = local-only persistence
    api_base_url: str | None = None
    api_token: str | None = None
    api_timeout_seconds: float = 5.0

    # ── Cross-context sync ───────────────────────────────────────────────────
    watch_interval_seconds: float = 1.0

    log_level: str = "INFO"


settings = Settings()
