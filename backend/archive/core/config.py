"""Application settings."""
from pydantic import field_validator
from pydantic_settings import BaseSettings
from functools import lru_cache

_MIN_S3_PART_MB = 5


class Settings(BaseSettings):
    """App config from env."""

    app_name: str = "OSS Archive"
    debug: bool = False
    port: int = 6060
    log_level: str = "info"
    # Structured logging: set LOG_JSON=1 for one-JSON-object-per-line
    log_json: bool = False
    # If set, /metrics requires the X-Metrics-Secret header
    metrics_secret: str | None = None

    # Signs local-backend download links
    secret_key: str = "dev-secret-change-in-production"

    # CORS (comma-separated allowlist; "*" allows any origin without credentials)
    cors_origins: str = "*"

    # Storage: s3 (any S3-compatible store), local (dev disk) or memory (tests)
    storage_backend: str = "s3"  # s3 | local | memory
    local_storage_dir: str = "./archive_data"
    # Base URL the local backend puts in its signed download links
    public_base_url: str = "http://localhost:6060"

    # S3-compatible store. Endpoint is host[:port] without scheme; s3_use_ssl picks https/http.
    s3_endpoint: str = ""
    s3_region: str = "us-east-1"
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_use_ssl: bool = True
    s3_bucket_name: str = "oss-archive"
    s3_force_path_style: bool = False
    s3_connect_timeout_seconds: int = 10
    s3_read_timeout_seconds: int = 600  # long reads for large part uploads
    s3_max_attempts: int = 5
    s3_max_pool_connections: int = 20

    # Upload pipeline
    upload_part_size_mb: int = 16
    upload_concurrency: int = 8
    upload_timeout_seconds: int = 600
    # Listing heads every key; give up (408) past this
    list_timeout_seconds: int = 120

    # Presigned GET lifetime (policy: one hour)
    presign_ttl_seconds: int = 3600

    @field_validator("upload_part_size_mb")
    @classmethod
    def _part_size_floor(cls, v: int) -> int:
        # S3 rejects non-final parts smaller than 5 MiB
        if v < _MIN_S3_PART_MB:
            raise ValueError(f"upload_part_size_mb must be >= {_MIN_S3_PART_MB}")
        return v

    @field_validator("upload_concurrency")
    @classmethod
    def _concurrency_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("upload_concurrency must be >= 1")
        return v

    @property
    def upload_part_size_bytes(self) -> int:
        return self.upload_part_size_mb * 1024 * 1024

    @property
    def s3_endpoint_url(self) -> str | None:
        if not self.s3_endpoint:
            return None
        if self.s3_endpoint.startswith(("http://", "https://")):
            return self.s3_endpoint.rstrip("/")
        scheme = "https" if self.s3_use_ssl else "http"
        return f"{scheme}://{self.s3_endpoint}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
