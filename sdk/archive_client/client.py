"""
Python client for the archive API: list, upload, download links, download, delete.
Uploads are retried only when the caller asks (a retry after a lost response stores a second copy).
"""
import mimetypes
import time
from pathlib import Path
from urllib.parse import quote

import httpx

API_PREFIX = "/api/v1"


class ArchiveAPIError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _raise_for_status(r: httpx.Response) -> None:
    if r.is_success:
        return
    message = f"HTTP error! status: {r.status_code}"
    try:
        data = r.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("error") or data.get("detail") or message
    raise ArchiveAPIError(r.status_code, str(message))


class ArchiveClient:
    """Client for the file archive (upload, list, link, delete)."""

    def __init__(self, base_url: str, timeout: float = 600.0, transport: httpx.BaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._session: httpx.Client | None = None

    def _get_session(self) -> httpx.Client:
        if self._session is None:
            self._session = httpx.Client(
                base_url=self.base_url + API_PREFIX,
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._session

    def health(self) -> dict:
        r = self._get_session().get("/health")
        _raise_for_status(r)
        return r.json()

    def list_files(self) -> list[dict]:
        """Returns [{id, name, storage_key, size}, ...] in store order."""
        r = self._get_session().get("/files")
        _raise_for_status(r)
        return r.json().get("files") or []

    def upload(
        self,
        path: str | Path,
        content_type: str | None = None,
        retries: int = 0,
    ) -> dict:
        """
        Upload one local file. Returns {id, name, storage_key, file_size, file_type, ...}.
        retries > 0 re-sends on transport errors with exponential backoff; each attempt gets a new key.
        """
        p = Path(path)
        if not p.is_file():
            raise FileNotFoundError(p)
        content_type = content_type or mimetypes.guess_type(p.name)[0] or "application/octet-stream"
        for attempt in range(retries + 1):
            try:
                with p.open("rb") as fh:
                    r = self._get_session().post(
                        "/files",
                        files={"file": (p.name, fh, content_type)},
                    )
                _raise_for_status(r)
                return r.json()
            except httpx.TransportError:
                if attempt == retries:
                    raise
                backoff = (2**attempt) + (time.time() % 1)  # exponential backoff + jitter
                time.sleep(backoff)
        raise AssertionError("unreachable")

    def get_link(self, storage_key: str, download: bool = False) -> dict:
        """Returns {url, expires_in, download}."""
        r = self._get_session().get(
            f"/files/{quote(storage_key)}",
            params={"download": "true" if download else "false"},
        )
        _raise_for_status(r)
        return r.json()

    def download(self, storage_key: str, dest: str | Path) -> Path:
        """Fetch the object through a fresh presigned link and stream it to dest (file or directory)."""
        link = self.get_link(storage_key, download=True)
        dest = Path(dest)
        if dest.is_dir():
            name = storage_key.split("_", 1)[-1]
            dest = dest / Path(name).name
        with httpx.Client(timeout=self._timeout, follow_redirects=True, transport=self._transport) as raw:
            with raw.stream("GET", link["url"]) as r:
                if not r.is_success:
                    r.read()
                    _raise_for_status(r)
                with dest.open("wb") as out:
                    for chunk in r.iter_bytes():
                        out.write(chunk)
        return dest

    def delete(self, storage_key: str) -> dict:
        r = self._get_session().delete(f"/files/{quote(storage_key)}")
        _raise_for_status(r)
        return r.json()

    def close(self) -> None:
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self) -> "ArchiveClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
