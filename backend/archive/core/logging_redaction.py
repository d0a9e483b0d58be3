"""Redact sensitive data from structured logs. Never log storage credentials, link tokens or URL signatures."""
import re
from typing import Any

# Keys (case-insensitive substring match) that must be redacted in dicts
REDACT_KEYS = frozenset({
    "password", "token", "secret", "authorization", "cookie",
    "access_key", "signature", "credential", "api_key",
})

# Query parameters that make a URL a bearer credential (S3 presign, local links)
_SIGNED_QUERY = re.compile(r"([?&](?:X-Amz-Signature|X-Amz-Credential|X-Amz-Security-Token|Signature|token)=)[^&]+", re.I)


def _redact_key(key: str) -> bool:
    k = key.lower()
    return any(r in k for r in REDACT_KEYS)


def mask_secret(s: str | None) -> str:
    """Keep the first and last 4 characters so operators can tell credentials apart."""
    if not s or len(s) <= 8:
        return "****"
    return s[:4] + "****" + s[-4:]


def redact_url(url: str) -> str:
    return _SIGNED_QUERY.sub(r"\1[REDACTED]", url)


def redact_for_log(obj: Any) -> Any:
    """Return a copy of obj safe for logging: sensitive keys replaced with '[REDACTED]'."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return {
            k: "[REDACTED]" if _redact_key(k) else redact_for_log(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return type(obj)(redact_for_log(x) for x in obj)
    if isinstance(obj, str):
        if _looks_like_secret(obj):
            return "[REDACTED]"
        return redact_url(obj)
    return obj


def _looks_like_secret(s: str) -> bool:
    """Heuristic: bearer token or AWS-style secret access key."""
    if s.lower().startswith("bearer "):
        return True
    if len(s) == 40 and re.fullmatch(r"[A-Za-z0-9/+=]{40}", s):
        return True  # AWS secret access key shape
    return False
