"""Files: upload (multipart form), list, download link, delete."""
import asyncio
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import APIRouter, Depends, File, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from archive.api.schemas import FileDownloadResponse, FileOut, FilesResponse, UploadedFile
from archive.core.config import get_settings
from archive.core.deps import get_storage
from archive.services.catalog import list_files
from archive.services.keys import decode_key, encode_key, new_file_id, original_name_from_upload
from archive.services.presign import issue_grant
from archive.services.storage import StorageBackend
from archive.services.upload_pipeline import DEFAULT_CONTENT_TYPE

router = APIRouter(prefix="/files", tags=["files"])
logger = logging.getLogger(__name__)


async def _watch_disconnect(request: Request, cancel: threading.Event) -> None:
    """Set cancel once the server reports the client gone.

    Servers do not cancel the handler on disconnect; they only deliver http.disconnect on receive.
    Called after the body has been read, so any other message is skipped.
    """
    while not cancel.is_set():
        message = await request.receive()
        if message["type"] == "http.disconnect":
            logger.info("Client disconnected from %s %s; cancelling", request.method, request.url.path)
            cancel.set()
            return


async def _run_cancellable(request: Request, cancel: threading.Event, func: Callable[..., Any], *args: Any) -> Any:
    """Run blocking func in the threadpool while watching for a client disconnect.

    func must honour cancel; the watcher is stopped as soon as func returns.
    """
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))
    try:
        return await run_in_threadpool(func, *args)
    except asyncio.CancelledError:
        # Handler task cancelled (server shutdown): stop the worker thread too
        cancel.set()
        raise
    finally:
        watcher.cancel()


@router.post("", response_model=UploadedFile)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    storage: StorageBackend = Depends(get_storage),
):
    settings = get_settings()
    try:
        name = original_name_from_upload(file.filename)
        file_id = new_file_id()
        key = encode_key(file_id, name)
        content_type = file.content_type or DEFAULT_CONTENT_TYPE
        cancel = threading.Event()
        deadline = time.monotonic() + settings.upload_timeout_seconds
        result = await _run_cancellable(
            request, cancel, storage.put, key, file.file, file.size, content_type, cancel, deadline
        )
    finally:
        await file.close()
    now = datetime.now(timezone.utc)
    return UploadedFile(
        id=file_id,
        name=name,
        storage_key=key,
        file_size=result.size,
        file_type=result.content_type,
        created_at=now,
        updated_at=now,
    )


@router.get("", response_model=FilesResponse)
async def get_files(request: Request, storage: StorageBackend = Depends(get_storage)):
    cancel = threading.Event()
    deadline = time.monotonic() + get_settings().list_timeout_seconds
    entries = await _run_cancellable(request, cancel, list_files, storage, cancel, deadline)
    return FilesResponse(
        files=[FileOut(id=e.file_id, name=e.name, storage_key=e.key, size=e.size) for e in entries]
    )


@router.get("/{key:path}", response_model=FileDownloadResponse)
async def get_file(
    key: str,
    download: bool = False,
    storage: StorageBackend = Depends(get_storage),
):
    """Presigned link for key. download=true asks the browser to save it under the original name."""
    ttl = get_settings().presign_ttl_seconds
    grant = await run_in_threadpool(issue_grant, storage, key, download, ttl)
    return FileDownloadResponse(url=grant.url, expires_in=grant.expires_in, download=grant.force_download)


@router.delete("/{key:path}", response_model=FileOut)
async def delete_file(key: str, storage: StorageBackend = Depends(get_storage)):
    await run_in_threadpool(storage.delete_object, key)
    logger.info("Deleted %s", key)
    decoded = decode_key(key)
    return FileOut(id=decoded.file_id, name=decoded.name, storage_key=key, size=0)
