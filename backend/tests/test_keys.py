"""Key codec: encode/decode, first-separator split, legacy keys, validation."""
import pytest

from archive.services.errors import InvalidInputError
from archive.services.keys import (
    SEPARATOR,
    content_disposition,
    decode_key,
    encode_key,
    new_file_id,
    original_name_from_upload,
    validate_key,
)


@pytest.mark.parametrize(
    "file_id,name",
    [
        ("abc123", "report.pdf"),
        ("6f1c9a4e-0d3b-4c57-9a51-2f7f3e0f1d22", "photo.png"),
        ("abc123", "my_file_with_underscores.tar.gz"),
        ("abc123", "_leading.txt"),
        ("abc123", "résumé final.docx"),
    ],
)
def test_decode_inverts_encode(file_id, name):
    decoded = decode_key(encode_key(file_id, name))
    assert (decoded.file_id, decoded.name) == (file_id, name)


def test_decode_splits_on_first_separator_only():
    decoded = decode_key("abc123_q1_report_final.pdf")
    assert decoded.file_id == "abc123"
    assert decoded.name == "q1_report_final.pdf"


@pytest.mark.parametrize("key", ["legacy.txt", "folder/file.bin", "6f1c9a4e-0d3b"])
def test_key_without_separator_decodes_to_itself(key):
    decoded = decode_key(key)
    assert decoded.file_id == key
    assert decoded.name == key


def test_encode_rejects_empty_parts():
    with pytest.raises(InvalidInputError):
        encode_key("", "a.txt")
    with pytest.raises(InvalidInputError):
        encode_key("abc", "")


def test_encode_rejects_id_with_separator():
    with pytest.raises(InvalidInputError, match="must not contain"):
        encode_key(f"ab{SEPARATOR}c", "a.txt")


def test_new_file_ids_are_unique_and_separator_free():
    ids = {new_file_id() for _ in range(1000)}
    assert len(ids) == 1000
    assert not any(SEPARATOR in i for i in ids)


def test_same_name_twice_gives_distinct_keys():
    assert encode_key(new_file_id(), "a.txt") != encode_key(new_file_id(), "a.txt")


@pytest.mark.parametrize("bad", ["", "../etc/passwd", "a/../../b", "/abs", "a\x00b", "line\nbreak", "x" * 1025])
def test_validate_key_rejects(bad):
    with pytest.raises(InvalidInputError):
        validate_key(bad)


@pytest.mark.parametrize("good", ["abc_report.pdf", "dir/sub/file.txt", "abc_..hidden", "abc_a b c.txt"])
def test_validate_key_accepts(good):
    assert validate_key(good) == good


def test_original_name_strips_client_paths():
    assert original_name_from_upload("photo.png") == "photo.png"
    assert original_name_from_upload("C:\\Users\\me\\photo.png") == "photo.png"
    assert original_name_from_upload("/home/me/report.pdf") == "report.pdf"
    assert original_name_from_upload("C:\\Users\\me\\ notes.txt") == " notes.txt"


def test_original_name_keeps_surrounding_whitespace():
    assert original_name_from_upload(" notes.txt") == " notes.txt"
    assert original_name_from_upload("spaced name.txt ") == "spaced name.txt "


@pytest.mark.parametrize("bad", [None, "", "   ", "dir/", "dir/  ", ".."])
def test_original_name_rejects_empty(bad):
    with pytest.raises(InvalidInputError):
        original_name_from_upload(bad)


def test_content_disposition_attachment_and_inline():
    assert content_disposition("report.pdf", True) == (
        "attachment; filename=\"report.pdf\"; filename*=UTF-8''report.pdf"
    )
    assert content_disposition("report.pdf", False).startswith("inline;")


def test_content_disposition_non_ascii_and_quotes():
    value = content_disposition('résumé "v2".pdf', True)
    assert 'filename="r_sum_ _v2_.pdf"' in value
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9%20%22v2%22.pdf" in value
