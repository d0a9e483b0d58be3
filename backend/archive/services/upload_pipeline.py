"""Streaming upload: split an inbound stream into fixed-size parts and send them with bounded concurrency.

Streams shorter than one part go out as a single put. Longer ones use a multipart upload that is
completed only after every part is acknowledged, so readers never see a partial object; any failure
aborts the multipart upload.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO

from archive.core.metrics import record_upload
from archive.services.errors import InvalidInputError, StorageError, UploadCancelledError, check_cancel
from archive.services.storage.base import DEFAULT_CONCURRENCY, DEFAULT_PART_SIZE, CompletedPart

if TYPE_CHECKING:
    from archive.services.storage.base import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
_SLOT_POLL_SECONDS = 0.1


class UploadRequest:
    """Inbound stream plus what the client declared about it. Closes the stream on exit, whatever happens."""

    def __init__(self, stream: BinaryIO, declared_length: int | None = None, content_type: str | None = None) -> None:
        self.stream = stream
        self.declared_length = declared_length
        self.content_type = content_type or DEFAULT_CONTENT_TYPE
        self._closed = False

    def read_part(self, size: int) -> bytes:
        """Read up to size bytes, looping over short reads; fewer bytes only at end of stream."""
        buf = bytearray()
        try:
            while len(buf) < size:
                chunk = self.stream.read(size - len(buf))
                if not chunk:
                    break
                buf.extend(chunk)
        except OSError as e:
            raise InvalidInputError(f"failed reading upload stream: {e}", operation="read") from e
        return bytes(buf)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.stream.close()
        except OSError:
            logger.warning("Failed to close upload stream", exc_info=True)

    def __enter__(self) -> "UploadRequest":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


@dataclass(frozen=True)
class UploadResult:
    key: str
    size: int
    content_type: str
    parts: int  # 0 for a single put


class UploadPipeline:
    def __init__(
        self,
        storage: "StorageBackend",
        part_size: int = DEFAULT_PART_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.storage = storage
        self.part_size = part_size
        self.concurrency = concurrency

    def run(
        self,
        request: UploadRequest,
        key: str,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> UploadResult:
        """Upload request's stream to key. cancel / deadline (time.monotonic) abort in-flight work."""
        if request.declared_length is not None and request.declared_length < 0:
            raise InvalidInputError("declared length must not be negative", operation="put", key=key)
        start = time.perf_counter()
        try:
            _check_cancel(key, cancel, deadline)
            first = request.read_part(self.part_size)
            if len(first) < self.part_size:
                _check_length(request.declared_length, len(first), key)
                self.storage.put_object(key, first, request.content_type)
                result = UploadResult(key=key, size=len(first), content_type=request.content_type, parts=0)
            else:
                result = self._run_multipart(request, key, first, cancel, deadline)
        except Exception:
            record_upload("failure", 0, 0)
            raise
        record_upload("success", result.size, result.parts)
        logger.info(
            "Uploaded %s (%d bytes, %d parts) in %.2fs",
            key, result.size, result.parts, time.perf_counter() - start,
        )
        return result

    def _run_multipart(
        self,
        request: UploadRequest,
        key: str,
        first: bytes,
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> UploadResult:
        upload_id = self.storage.create_multipart_upload(key, request.content_type)
        slots = threading.BoundedSemaphore(self.concurrency)
        failed = threading.Event()
        futures: list[Future] = []
        total = 0

        def _on_done(fut: Future) -> None:
            if not fut.cancelled() and fut.exception() is not None:
                failed.set()
            slots.release()

        try:
            with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="upload-part") as pool:
                try:
                    data = first
                    part_number = 0
                    while data:
                        _acquire_slot(slots, key, cancel, deadline)
                        if failed.is_set():
                            slots.release()
                            break
                        part_number += 1
                        total += len(data)
                        fut = pool.submit(self._send_part, key, upload_id, part_number, data)
                        fut.add_done_callback(_on_done)
                        futures.append(fut)
                        if len(data) < self.part_size:
                            break
                        data = request.read_part(self.part_size)
                except BaseException:
                    for fut in futures:
                        fut.cancel()
                    raise
            # Every part has finished here; the first failure, if any, surfaces now.
            parts = [fut.result() for fut in futures]
            _check_length(request.declared_length, total, key)
            _check_cancel(key, cancel, deadline)
            self.storage.complete_multipart_upload(key, upload_id, sorted(parts, key=lambda p: p.part_number))
        except BaseException:
            self._abort(key, upload_id)
            raise
        return UploadResult(key=key, size=total, content_type=request.content_type, parts=len(parts))

    def _send_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> CompletedPart:
        etag = self.storage.upload_part(key, upload_id, part_number, data)
        logger.debug("Uploaded part %d of %s (%d bytes)", part_number, key, len(data))
        return CompletedPart(part_number=part_number, etag=etag)

    def _abort(self, key: str, upload_id: str) -> None:
        try:
            self.storage.abort_multipart_upload(key, upload_id)
        except StorageError:
            # The original failure is what the caller needs; the store expires orphaned uploads.
            logger.exception("Failed to abort multipart upload %s for %s", upload_id, key)


def _check_cancel(key: str, cancel: threading.Event | None, deadline: float | None) -> None:
    check_cancel(cancel, deadline, "upload", key, error=UploadCancelledError)


def _check_length(declared: int | None, actual: int, key: str) -> None:
    if declared is not None and declared != actual:
        raise InvalidInputError(
            f"size mismatch: declared {declared}, received {actual}", operation="put", key=key
        )


def _acquire_slot(
    slots: threading.BoundedSemaphore,
    key: str,
    cancel: threading.Event | None,
    deadline: float | None,
) -> None:
    """Wait for a free transfer slot, staying responsive to cancellation."""
    while True:
        _check_cancel(key, cancel, deadline)
        if slots.acquire(timeout=_SLOT_POLL_SECONDS):
            return
