"""Presigned grants: original-name disposition, inline mode, no existence check."""
from urllib.parse import parse_qs, unquote, urlsplit

import pytest

from archive.services.errors import NotFoundError
from archive.services.presign import DEFAULT_EXPIRES_S, issue_grant


def test_download_grant_recovers_original_name(memory_storage):
    memory_storage.put_object("abc123_report.pdf", b"%PDF", "application/pdf")
    grant = issue_grant(memory_storage, "abc123_report.pdf", force_download=True)
    assert grant.display_name == "report.pdf"
    assert grant.expires_in == DEFAULT_EXPIRES_S == 3600
    parts = urlsplit(grant.url)
    assert unquote(parts.path) == "/abc123_report.pdf"
    disposition = parse_qs(parts.query)["response-content-disposition"][0]
    assert disposition.startswith("attachment;")
    assert 'filename="report.pdf"' in disposition
    assert "abc123" not in disposition


def test_inline_grant_has_no_disposition(memory_storage):
    memory_storage.put_object("abc123_photo.png", b"png", "image/png")
    grant = issue_grant(memory_storage, "abc123_photo.png", force_download=False)
    assert grant.force_download is False
    assert "response-content-disposition" not in parse_qs(urlsplit(grant.url).query)


def test_grant_for_missing_key_is_still_issued(memory_storage):
    grant = issue_grant(memory_storage, "abc123_never-uploaded.txt", force_download=True)
    assert "abc123_never-uploaded.txt" in grant.url
    with pytest.raises(NotFoundError):
        memory_storage.head("abc123_never-uploaded.txt")


def test_grant_honours_custom_expiry(memory_storage):
    grant = issue_grant(memory_storage, "abc123_a.txt", force_download=False, expires_s=60)
    assert grant.expires_in == 60


def test_legacy_key_uses_whole_key_as_name(memory_storage):
    grant = issue_grant(memory_storage, "legacy.txt", force_download=True)
    assert grant.display_name == "legacy.txt"
