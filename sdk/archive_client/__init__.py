"""Client for the file archive API."""
from .client import ArchiveAPIError, ArchiveClient

__all__ = ["ArchiveAPIError", "ArchiveClient"]
