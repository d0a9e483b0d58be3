"""Local (dev disk) storage: objects are files under a root directory; download links are HMAC-signed backend URLs."""
import errno
import hashlib
import os
import shutil
import tempfile
import time
import uuid
from pathlib import Path
from typing import Iterator
from urllib.parse import quote, urlencode

from archive.core.security import create_link_token, verify_link_token
from archive.services.errors import (
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
    StorageError,
    StoreUnavailableError,
)
from archive.services.keys import validate_key
from archive.services.storage.base import (
    DEFAULT_CONCURRENCY,
    DEFAULT_PART_SIZE,
    CompletedPart,
    ObjectInfo,
    StorageBackend,
)

STAGING_DIR = ".multipart"


def _wrap_os_error(e: OSError, operation: str, key: str | None) -> StorageError:
    if e.errno in (errno.ENOSPC, errno.EDQUOT):
        return QuotaExceededError("disk full", operation=operation, key=key)
    return StoreUnavailableError(f"local storage error: {e.strerror or e}", operation=operation, key=key)


class LocalStorage(StorageBackend):
    """Dev disk storage. Multipart parts are staged under .multipart/<upload_id>/ and joined on completion."""

    def __init__(
        self,
        root: str | Path,
        secret_key: str,
        base_url: str,
        part_size: int = DEFAULT_PART_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        super().__init__(part_size=part_size, concurrency=concurrency)
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str, operation: str = "resolve") -> Path:
        """Filesystem path for key; refuses anything that would land outside root or in the staging area."""
        validate_key(key, operation)
        if key.split("/", 1)[0] == STAGING_DIR:
            raise InvalidInputError("storage key uses a reserved prefix", operation=operation, key=key)
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root.resolve()):
            raise InvalidInputError("storage key escapes storage root", operation=operation, key=key)
        return path

    def _staging(self, upload_id: str) -> Path:
        if not upload_id or "/" in upload_id or upload_id in (".", ".."):
            raise InvalidInputError("invalid upload id", operation="multipart")
        return self._root / STAGING_DIR / upload_id

    def _write_atomic(self, path: Path, chunks: Iterator[bytes]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in chunks:
                    f.write(chunk)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        path = self.path_for(key, "put_object")
        try:
            self._write_atomic(path, iter([data]))
        except OSError as e:
            raise _wrap_os_error(e, "put_object", key) from e

    def create_multipart_upload(self, key: str, content_type: str) -> str:
        self.path_for(key, "create_multipart_upload")
        upload_id = uuid.uuid4().hex
        try:
            self._staging(upload_id).mkdir(parents=True)
        except OSError as e:
            raise _wrap_os_error(e, "create_multipart_upload", key) from e
        return upload_id

    def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        staging = self._staging(upload_id)
        if not staging.is_dir():
            raise NotFoundError("no such multipart upload", operation=f"upload_part[{part_number}]", key=key)
        try:
            (staging / f"{part_number:05d}").write_bytes(data)
        except OSError as e:
            raise _wrap_os_error(e, f"upload_part[{part_number}]", key) from e
        return f'"{hashlib.md5(data).hexdigest()}"'

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[CompletedPart]) -> None:
        path = self.path_for(key, "complete_multipart_upload")
        staging = self._staging(upload_id)
        part_files = [staging / f"{p.part_number:05d}" for p in parts]
        missing = [p.part_number for p, f in zip(parts, part_files) if not f.is_file()]
        if not staging.is_dir() or missing:
            raise NotFoundError(
                f"multipart upload incomplete (missing parts {missing})",
                operation="complete_multipart_upload",
                key=key,
            )

        def _chunks() -> Iterator[bytes]:
            for f in part_files:
                with f.open("rb") as fh:
                    while True:
                        block = fh.read(1024 * 1024)
                        if not block:
                            break
                        yield block

        try:
            self._write_atomic(path, _chunks())
        except OSError as e:
            raise _wrap_os_error(e, "complete_multipart_upload", key) from e
        shutil.rmtree(staging, ignore_errors=True)

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        shutil.rmtree(self._staging(upload_id), ignore_errors=True)

    def head_object(self, key: str) -> ObjectInfo:
        path = self.path_for(key, "head")
        if not path.is_file():
            raise NotFoundError("object not found", operation="head", key=key)
        # Local files don't store content_type
        return ObjectInfo(key=key, size=path.stat().st_size, content_type=None)

    def list_keys(self) -> Iterator[str]:
        try:
            paths = sorted(
                p.relative_to(self._root).as_posix()
                for p in self._root.rglob("*")
                if p.is_file()
            )
        except OSError as e:
            raise _wrap_os_error(e, "list", None) from e
        for rel in paths:
            first = rel.split("/", 1)[0]
            if first == STAGING_DIR or Path(rel).name.startswith(".tmp-"):
                continue
            yield rel

    def delete_object(self, key: str) -> None:
        path = self.path_for(key, "delete")
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise _wrap_os_error(e, "delete", key) from e

    def create_presigned_get(
        self,
        storage_key: str,
        expires_s: int,
        disposition: str | None = None,
    ) -> str:
        self.path_for(storage_key, "presign")
        expires_at = int(time.time()) + expires_s
        token = create_link_token(self._secret_key, storage_key, expires_at, disposition or "")
        query = {"expires": expires_at, "token": token}
        if disposition:
            query["disposition"] = disposition
        return f"{self._base_url}/api/v1/links/{quote(storage_key)}?{urlencode(query)}"

    def verify_link(self, token: str, storage_key: str, expires_at: int, disposition: str = "") -> bool:
        return verify_link_token(self._secret_key, token, storage_key, expires_at, disposition)
