"""Storage key codec: "<file_id>_<original name>". The id is generated here, never taken from the client."""
from dataclasses import dataclass
from urllib.parse import quote
from uuid import uuid4

from archive.services.errors import InvalidInputError

SEPARATOR = "_"
_MAX_KEY_BYTES = 1024  # S3 key limit


@dataclass(frozen=True)
class DecodedKey:
    file_id: str
    name: str


def new_file_id() -> str:
    """Fresh collision-resistant id. Hyphenated uuid4, so it never contains SEPARATOR."""
    return str(uuid4())


def encode_key(file_id: str, original_name: str) -> str:
    if not file_id:
        raise InvalidInputError("file id must not be empty", operation="encode_key")
    if not original_name:
        raise InvalidInputError("original name must not be empty", operation="encode_key")
    if SEPARATOR in file_id:
        raise InvalidInputError(
            f"file id must not contain {SEPARATOR!r}", operation="encode_key", key=file_id
        )
    return f"{file_id}{SEPARATOR}{original_name}"


def decode_key(key: str) -> DecodedKey:
    """Split on the first separator only. Keys without one decode to (key, key)."""
    file_id, sep, name = key.partition(SEPARATOR)
    if not sep:
        return DecodedKey(file_id=key, name=key)
    return DecodedKey(file_id=file_id, name=name)


def validate_key(key: str | None, operation: str | None = None) -> str:
    """Reject keys no backend should accept: empty, oversized, control chars, relative path segments."""
    if not key:
        raise InvalidInputError("storage key must not be empty", operation=operation)
    if len(key.encode("utf-8")) > _MAX_KEY_BYTES:
        raise InvalidInputError("storage key too long", operation=operation, key=key)
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in key):
        raise InvalidInputError("storage key contains control characters", operation=operation, key=key)
    if key.startswith("/") or any(seg in (".", "..") for seg in key.split("/")):
        raise InvalidInputError("storage key contains a relative path segment", operation=operation, key=key)
    return key


def original_name_from_upload(filename: str | None) -> str:
    """Browser-supplied filename without any directory part (some clients send full paths).

    The remaining name is kept byte for byte; whitespace is not trimmed.
    """
    if not filename or not filename.strip():
        raise InvalidInputError("uploaded file has no name", operation="upload")
    base = filename.replace("\\", "/").split("/")[-1]
    if not base.strip() or base in (".", ".."):
        raise InvalidInputError("uploaded file has no usable name", operation="upload")
    return base


def content_disposition(name: str, force_download: bool) -> str:
    """Content-Disposition with an ASCII fallback and an RFC 5987 filename* for the real name."""
    kind = "attachment" if force_download else "inline"
    fallback = "".join(c if 0x20 <= ord(c) < 0x7F and c not in '"\\' else "_" for c in name)
    return f"{kind}; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"
