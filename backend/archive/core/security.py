"""HMAC-signed download links for the local storage backend. The expiry is part of the signed message."""
import hashlib
import hmac
import time


def _link_message(storage_key: str, expires_at: int, disposition: str) -> bytes:
    return f"{storage_key}\n{expires_at}\n{disposition}".encode()


def create_link_token(secret_key: str, storage_key: str, expires_at: int, disposition: str = "") -> str:
    """Signature over key, absolute expiry (unix seconds) and the requested Content-Disposition."""
    return hmac.new(
        secret_key.encode(),
        _link_message(storage_key, expires_at, disposition),
        hashlib.sha256,
    ).hexdigest()


def verify_link_token(
    secret_key: str,
    token: str,
    storage_key: str,
    expires_at: int,
    disposition: str = "",
    now: float | None = None,
) -> bool:
    """True if token matches and the deadline has not passed."""
    try:
        expected = create_link_token(secret_key, storage_key, int(expires_at), disposition)
        if not hmac.compare_digest(token, expected):
            return False
        current = time.time() if now is None else now
        return current <= int(expires_at)
    except (ValueError, TypeError):
        return False
