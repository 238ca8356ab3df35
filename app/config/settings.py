from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_MIME_TYPES = [
    "application/pdf",
    "application/x-pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/epub+zip",
    "text/plain",
    "text/html",
    "image/png",
    "image/jpeg",
    "image/tiff",
    "image/bmp",
    "image/gif",
]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "docindex"
    db_username: str = "docindex"
    db_password: str = "secret"
    db_pool_max_size: int = 10
    db_connect_timeout_seconds: int = 5

    storage_root: str = "/app/files"
    storage_presign_secret: str = "change-me"
    storage_public_base_url: str = "http://localhost:8081/files"
    storage_presign_ttl_seconds: int = 900

    upload_max_bytes: int = 100 * 1024 * 1024
    upload_allowed_mime_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES)
    )

    scanner_backend: str = "clamav"
    scanner_fail_open: bool = False
    clamav_host: str = "localhost"
    clamav_port: int = 3310
    clamav_timeout_seconds: int = 30

    event_backend: str = "postgres"
    event_partitions: int = Field(default=6, ge=1)
    indexer_consumer_group: str = "indexer-service-group"
    event_poll_interval_seconds: float = 1.0

    search_backend: str = "postgres"
    search_max_page_size: int = 100

    pdf_engine: str = "pdfplumber"
    ocr_language: str = "eng"
    ocr_timeout_seconds: int = 60
    ocr_dpi: int = 200
    extraction_timeout_seconds: int = 120

    indexer_max_attempts: int = Field(default=5, ge=1)
    indexer_backoff_base_seconds: float = 1.0
    indexer_backoff_max_seconds: float = 30.0

    batch_concurrency: int = Field(default=5, ge=1)
    batch_max_parallel_jobs: int = Field(default=4, ge=1)
    job_retention_seconds: int = 24 * 60 * 60
    job_reap_interval_seconds: int = 60 * 60

    reconcile_pending_after_seconds: int = 15 * 60
    reconcile_batch_size: int = 100

    thumbnail_max_px: int = 600
    background_workers: int = 4
