"""File listing: every key in the bucket, decoded into id and name, with a live size lookup."""
import logging
import threading
from dataclasses import dataclass

from archive.core.metrics import record_size_lookup_failure
from archive.services.errors import StorageError, check_cancel
from archive.services.keys import decode_key
from archive.services.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileEntry:
    key: str
    file_id: str
    name: str
    size: int


def list_files(
    storage: StorageBackend,
    cancel: threading.Event | None = None,
    deadline: float | None = None,
) -> list[FileEntry]:
    """Backend order is kept. A failed size lookup (e.g. deleted mid-listing) reports size 0 for that entry only.

    cancel / deadline (time.monotonic) are checked before every backend call; expiry raises
    OperationCancelledError and the partial listing is discarded.
    """
    entries = []
    check_cancel(cancel, deadline, "list")
    for key in storage.list_keys():
        check_cancel(cancel, deadline, "list", key)
        decoded = decode_key(key)
        try:
            size = storage.head(key)
        except StorageError as e:
            logger.warning("Failed to get file size for %s: %s", key, e)
            record_size_lookup_failure()
            size = 0
        entries.append(FileEntry(key=key, file_id=decoded.file_id, name=decoded.name, size=size))
    return entries
