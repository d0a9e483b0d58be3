"""Storage error taxonomy. Every backend wraps its native errors in one of these, keeping operation and key."""
import threading
import time


class StorageError(Exception):
    """Base for gateway failures; carries the operation and key that failed."""

    status_code = 500

    def __init__(self, message: str, *, operation: str | None = None, key: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.key = key

    def __str__(self) -> str:
        ctx = []
        if self.operation:
            ctx.append(f"operation={self.operation}")
        if self.key is not None:
            ctx.append(f"key={self.key!r}")
        return f"{self.message} ({', '.join(ctx)})" if ctx else self.message


class InvalidInputError(StorageError):
    """Malformed caller input (empty name, bad key, size mismatch)."""

    status_code = 400


class NotFoundError(StorageError):
    status_code = 404


class StoreUnavailableError(StorageError):
    """Backend unreachable, auth failure, or any unclassified backend error."""

    status_code = 502


class QuotaExceededError(StorageError):
    """Backend capacity or rate limit."""

    status_code = 507


class OperationCancelledError(StorageError):
    """Aborted by the caller's cancel signal (client disconnect) or deadline."""

    status_code = 408


class UploadCancelledError(OperationCancelledError):
    pass


def check_cancel(
    cancel: threading.Event | None,
    deadline: float | None,
    operation: str,
    key: str | None = None,
    error: type[OperationCancelledError] = OperationCancelledError,
) -> None:
    """Raise error if cancel is set or the time.monotonic() deadline has passed."""
    if cancel is not None and cancel.is_set():
        raise error(f"{operation} cancelled", operation=operation, key=key)
    if deadline is not None and time.monotonic() >= deadline:
        raise error(f"{operation} deadline exceeded", operation=operation, key=key)
