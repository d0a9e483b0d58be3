"""Python client and CLI against a mocked transport."""
import json

import httpx
import pytest

from archive_client import ArchiveAPIError, ArchiveClient
from archive_client import cli


def _handler(routes: dict):
    calls = []

    def handle(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        fn = routes.get((request.method, request.url.path))
        if fn is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        return fn(request)

    handle.calls = calls
    return handle


def test_list_files():
    files = [{"id": "abc", "name": "a.txt", "storage_key": "abc_a.txt", "size": 1}]
    handler = _handler({("GET", "/api/v1/files"): lambda r: httpx.Response(200, json={"files": files})})
    with ArchiveClient("http://archive", transport=httpx.MockTransport(handler)) as c:
        assert c.list_files() == files


def test_error_message_from_body():
    handler = _handler({
        ("GET", "/api/v1/files"): lambda r: httpx.Response(
            502, json={"error": "StoreUnavailableError", "code": 502, "message": "storage unreachable"}
        ),
    })
    with ArchiveClient("http://archive", transport=httpx.MockTransport(handler)) as c:
        with pytest.raises(ArchiveAPIError) as exc_info:
            c.list_files()
    assert exc_info.value.status_code == 502
    assert exc_info.value.message == "storage unreachable"


def test_error_without_json_body():
    handler = _handler({("GET", "/api/v1/health"): lambda r: httpx.Response(500, text="oops")})
    with ArchiveClient("http://archive", transport=httpx.MockTransport(handler)) as c:
        with pytest.raises(ArchiveAPIError, match="HTTP error! status: 500"):
            c.health()


def test_upload_sends_multipart(tmp_path):
    src = tmp_path / "report.pdf"
    src.write_bytes(b"%PDF")

    def upload(request: httpx.Request) -> httpx.Response:
        body = request.read()
        assert b'filename="report.pdf"' in body
        assert b"application/pdf" in body
        return httpx.Response(200, json={"id": "abc", "name": "report.pdf", "storage_key": "abc_report.pdf"})

    handler = _handler({("POST", "/api/v1/files"): upload})
    with ArchiveClient("http://archive", transport=httpx.MockTransport(handler)) as c:
        assert c.upload(src)["storage_key"] == "abc_report.pdf"


def test_upload_missing_file(tmp_path):
    with ArchiveClient("http://archive") as c:
        with pytest.raises(FileNotFoundError):
            c.upload(tmp_path / "nope.txt")


def test_upload_not_retried_by_default(tmp_path):
    src = tmp_path / "a.txt"
    src.write_bytes(b"a")

    def fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    handler = _handler({("POST", "/api/v1/files"): fail})
    with ArchiveClient("http://archive", transport=httpx.MockTransport(handler)) as c:
        with pytest.raises(httpx.ConnectError):
            c.upload(src)
    assert len(handler.calls) == 1


def test_upload_retries_when_asked(tmp_path, monkeypatch):
    src = tmp_path / "a.txt"
    src.write_bytes(b"a")
    sleeps = []
    monkeypatch.setattr("archive_client.client.time.sleep", sleeps.append)
    attempts = {"n": 0}

    def flaky(request):
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, json={"storage_key": "abc_a.txt"})

    handler = _handler({("POST", "/api/v1/files"): flaky})
    with ArchiveClient("http://archive", transport=httpx.MockTransport(handler)) as c:
        assert c.upload(src, retries=3)["storage_key"] == "abc_a.txt"
    assert attempts["n"] == 3
    assert len(sleeps) == 2
    assert sleeps[1] > sleeps[0]


def test_get_link_passes_download_flag():
    def link(request):
        assert request.url.params["download"] == "true"
        return httpx.Response(200, json={"url": "https://s3/abc_a.txt?sig", "expires_in": 3600, "download": True})

    handler = _handler({("GET", "/api/v1/files/abc_a.txt"): link})
    with ArchiveClient("http://archive", transport=httpx.MockTransport(handler)) as c:
        assert c.get_link("abc_a.txt", download=True)["expires_in"] == 3600


def test_download_into_directory(tmp_path):
    handler = _handler({
        ("GET", "/api/v1/files/abc_my_notes.txt"): lambda r: httpx.Response(
            200, json={"url": "https://store.example/abc_my_notes.txt?sig=1", "expires_in": 3600, "download": True}
        ),
        ("GET", "/abc_my_notes.txt"): lambda r: httpx.Response(200, content=b"hello notes"),
    })
    with ArchiveClient("http://archive", transport=httpx.MockTransport(handler)) as c:
        dest = c.download("abc_my_notes.txt", tmp_path)
    assert dest == tmp_path / "my_notes.txt"
    assert dest.read_bytes() == b"hello notes"


def test_download_expired_link(tmp_path):
    handler = _handler({
        ("GET", "/api/v1/files/abc_a.txt"): lambda r: httpx.Response(
            200, json={"url": "https://store.example/abc_a.txt?sig=1", "expires_in": 3600, "download": True}
        ),
        ("GET", "/abc_a.txt"): lambda r: httpx.Response(403, json={"detail": "Invalid or expired link"}),
    })
    with ArchiveClient("http://archive", transport=httpx.MockTransport(handler)) as c:
        with pytest.raises(ArchiveAPIError, match="Invalid or expired link"):
            c.download("abc_a.txt", tmp_path / "out.txt")


def test_cli_list(monkeypatch, capsys):
    files = [{"id": "abc", "name": "a.txt", "storage_key": "abc_a.txt", "size": 1}]
    transport = httpx.MockTransport(
        _handler({("GET", "/api/v1/files"): lambda r: httpx.Response(200, json={"files": files})})
    )
    monkeypatch.setattr(cli, "ArchiveClient", lambda base_url: ArchiveClient(base_url, transport=transport))
    assert cli.main(["--base-url", "http://archive", "list"]) == 0
    out = capsys.readouterr()
    assert json.loads(out.out) == files
    assert "1 files" in out.err


def test_cli_reports_api_errors(monkeypatch, capsys):
    transport = httpx.MockTransport(
        _handler({("DELETE", "/api/v1/files/abc_a.txt"): lambda r: httpx.Response(
            502, json={"error": "StoreUnavailableError", "code": 502, "message": "storage unreachable"}
        )})
    )
    monkeypatch.setattr(cli, "ArchiveClient", lambda base_url: ArchiveClient(base_url, transport=transport))
    assert cli.main(["delete", "abc_a.txt"]) == 1
    assert "storage unreachable" in capsys.readouterr().err
