"""Storage backend factory: s3, local (dev disk) or memory. The S3 module is imported only when STORAGE_BACKEND=s3."""
from archive.core.config import Settings, get_settings
from archive.services.storage.base import StorageBackend
from archive.services.storage.local import LocalStorage
from archive.services.storage.memory import MemoryStorage


def build_storage(settings: Settings | None = None) -> StorageBackend:
    """Construct the configured backend. Called once at startup; the result is shared by all requests."""
    settings = settings or get_settings()
    if settings.storage_backend == "s3":
        from archive.services.storage.s3 import S3Storage
        return S3Storage.from_settings(settings)
    if settings.storage_backend == "local":
        return LocalStorage(
            settings.local_storage_dir,
            secret_key=settings.secret_key,
            base_url=settings.public_base_url,
            part_size=settings.upload_part_size_bytes,
            concurrency=settings.upload_concurrency,
        )
    if settings.storage_backend == "memory":
        return MemoryStorage(
            bucket=settings.s3_bucket_name,
            part_size=settings.upload_part_size_bytes,
            concurrency=settings.upload_concurrency,
        )
    raise ValueError(f"Unknown storage_backend: {settings.storage_backend!r} (expected s3, local or memory)")
