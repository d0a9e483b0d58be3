"""In-memory storage with the same contract as S3. Used by tests and STORAGE_BACKEND=memory."""
import hashlib
import threading
import time
import uuid
from typing import Iterator
from urllib.parse import quote, urlencode

from archive.services.errors import InvalidInputError, NotFoundError
from archive.services.keys import validate_key
from archive.services.storage.base import (
    DEFAULT_CONCURRENCY,
    DEFAULT_PART_SIZE,
    CompletedPart,
    ObjectInfo,
    StorageBackend,
)


class MemoryStorage(StorageBackend):
    """Objects and pending multipart uploads live in dicts guarded by one lock."""

    def __init__(
        self,
        bucket: str = "memory",
        part_size: int = DEFAULT_PART_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        super().__init__(part_size=part_size, concurrency=concurrency)
        self.bucket = bucket
        self._lock = threading.Lock()
        self._objects: dict[str, tuple[bytes, str]] = {}
        self._uploads: dict[str, tuple[str, str, dict[int, bytes]]] = {}

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        validate_key(key, "put_object")
        with self._lock:
            self._objects[key] = (bytes(data), content_type)

    def create_multipart_upload(self, key: str, content_type: str) -> str:
        validate_key(key, "create_multipart_upload")
        upload_id = uuid.uuid4().hex
        with self._lock:
            self._uploads[upload_id] = (key, content_type, {})
        return upload_id

    def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        with self._lock:
            upload = self._uploads.get(upload_id)
            if upload is None or upload[0] != key:
                raise NotFoundError("no such multipart upload", operation=f"upload_part[{part_number}]", key=key)
            upload[2][part_number] = bytes(data)
        return f'"{hashlib.md5(data).hexdigest()}"'

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[CompletedPart]) -> None:
        with self._lock:
            upload = self._uploads.get(upload_id)
            if upload is None or upload[0] != key:
                raise NotFoundError("no such multipart upload", operation="complete_multipart_upload", key=key)
            _, content_type, staged = upload
            numbers = [p.part_number for p in parts]
            if numbers != sorted(numbers) or any(n not in staged for n in numbers):
                raise InvalidInputError("invalid part list", operation="complete_multipart_upload", key=key)
            self._objects[key] = (b"".join(staged[n] for n in numbers), content_type)
            del self._uploads[upload_id]

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        with self._lock:
            self._uploads.pop(upload_id, None)

    def pending_uploads(self) -> int:
        with self._lock:
            return len(self._uploads)

    def get_bytes(self, key: str) -> bytes:
        with self._lock:
            if key not in self._objects:
                raise NotFoundError("object not found", operation="get", key=key)
            return self._objects[key][0]

    def head_object(self, key: str) -> ObjectInfo:
        validate_key(key, "head")
        with self._lock:
            if key not in self._objects:
                raise NotFoundError("object not found", operation="head", key=key)
            data, content_type = self._objects[key]
        return ObjectInfo(key=key, size=len(data), content_type=content_type)

    def list_keys(self) -> Iterator[str]:
        with self._lock:
            keys = sorted(self._objects)
        yield from keys

    def delete_object(self, key: str) -> None:
        validate_key(key, "delete")
        with self._lock:
            self._objects.pop(key, None)

    def create_presigned_get(
        self,
        storage_key: str,
        expires_s: int,
        disposition: str | None = None,
    ) -> str:
        validate_key(storage_key, "presign")
        query = {"expires": int(time.time()) + expires_s}
        if disposition:
            query["response-content-disposition"] = disposition
        return f"memory://{self.bucket}/{quote(storage_key)}?{urlencode(query)}"
