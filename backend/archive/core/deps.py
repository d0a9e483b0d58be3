"""FastAPI dependencies: shared storage backend, metrics guard."""
import hmac
import threading

from fastapi import Header, HTTPException, Request, status

from archive.core.config import get_settings
from archive.services.storage import StorageBackend, build_storage

_storage_lock = threading.Lock()


def get_storage(request: Request) -> StorageBackend:
    """The process-wide backend built at startup (see lifespan in archive.main)."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        # App served without lifespan events (e.g. mounted elsewhere): build once and keep it
        with _storage_lock:
            storage = getattr(request.app.state, "storage", None)
            if storage is None:
                storage = build_storage()
                request.app.state.storage = storage
    return storage


def require_metrics_access(
    x_metrics_secret: str | None = Header(None, alias="X-Metrics-Secret"),
) -> None:
    """Allow /metrics if no secret is configured, or the X-Metrics-Secret header matches it."""
    secret = get_settings().metrics_secret
    if not secret:
        return
    if not x_metrics_secret or not hmac.compare_digest(x_metrics_secret, secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing X-Metrics-Secret",
        )
