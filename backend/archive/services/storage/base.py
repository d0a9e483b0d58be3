"""Storage backend interface: put/head/list/delete/presign plus the multipart primitives the upload pipeline drives.

Implementations: S3 (any S3-compatible store), local (dev disk), memory (tests).
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO, Iterator

if TYPE_CHECKING:
    from archive.services.upload_pipeline import UploadResult

from archive.services.keys import validate_key

MiB = 1024 * 1024
DEFAULT_PART_SIZE = 16 * MiB
DEFAULT_CONCURRENCY = 8


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int
    content_type: str | None


@dataclass(frozen=True)
class CompletedPart:
    part_number: int
    etag: str


class StorageBackend(ABC):
    """Abstract object store. Keys are caller-supplied; the backend never builds them."""

    def __init__(self, part_size: int = DEFAULT_PART_SIZE, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        self.part_size = part_size
        self.concurrency = concurrency

    def put(
        self,
        key: str,
        stream: BinaryIO,
        declared_length: int | None,
        content_type: str | None,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> "UploadResult":
        """Write the stream to key (replacing any object there) through the part pipeline."""
        from archive.services.upload_pipeline import UploadPipeline, UploadRequest

        with UploadRequest(stream=stream, declared_length=declared_length, content_type=content_type) as request:
            validate_key(key, "put")
            pipeline = UploadPipeline(self, part_size=self.part_size, concurrency=self.concurrency)
            return pipeline.run(request, key, cancel=cancel, deadline=deadline)

    def head(self, key: str) -> int:
        """Size in bytes. Raise NotFoundError if missing."""
        return self.head_object(key).size

    # ----- single-shot and multipart writes -----

    @abstractmethod
    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        """Write data in one request."""
        ...

    @abstractmethod
    def create_multipart_upload(self, key: str, content_type: str) -> str:
        """Start a multipart upload and return its upload id. Nothing is visible at key yet."""
        ...

    @abstractmethod
    def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        """Upload one part (1-based part_number) and return its ETag. Safe to call concurrently."""
        ...

    @abstractmethod
    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[CompletedPart]) -> None:
        """Assemble parts (ascending part_number) into the object; the object appears atomically."""
        ...

    @abstractmethod
    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Discard a multipart upload and its parts."""
        ...

    # ----- reads, listing, deletion, presign -----

    @abstractmethod
    def head_object(self, key: str) -> ObjectInfo:
        """Return size and content type. Raise NotFoundError if missing."""
        ...

    @abstractmethod
    def list_keys(self) -> Iterator[str]:
        """Yield every key in the bucket, draining backend pagination. Each call starts over."""
        ...

    @abstractmethod
    def delete_object(self, key: str) -> None:
        """Remove key. Deleting a missing key succeeds."""
        ...

    @abstractmethod
    def create_presigned_get(
        self,
        storage_key: str,
        expires_s: int,
        disposition: str | None = None,
    ) -> str:
        """Return a time-limited download URL. Does not check existence: a URL for a missing
        (or later deleted) key is issued normally and fails with 404 when fetched."""
        ...
