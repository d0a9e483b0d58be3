"""Signed download links served by the local backend (S3 links go straight to the store)."""
import mimetypes

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from archive.core.deps import get_storage
from archive.services.keys import decode_key
from archive.services.storage import StorageBackend
from archive.services.storage.local import LocalStorage

router = APIRouter(prefix="/links", tags=["links"])


@router.get("/{key:path}")
async def open_link(
    key: str,
    expires: int,
    token: str,
    disposition: str = "",
    storage: StorageBackend = Depends(get_storage),
):
    if not isinstance(storage, LocalStorage):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    if not storage.verify_link(token, key, expires, disposition):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired link")
    path = storage.path_for(key, "get")
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    media_type = mimetypes.guess_type(decode_key(key).name)[0] or "application/octet-stream"
    headers = {"Cache-Control": "private, no-store"}
    if disposition:
        headers["Content-Disposition"] = disposition
    return FileResponse(path, media_type=media_type, headers=headers)
