"""Per-request access log: route template, storage key and its decoded file id, status, latency."""
import json
import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from archive.core.config import get_settings
from archive.core.metrics import record_request, split_route
from archive.services.keys import decode_key

logger = logging.getLogger("archive.request")

# Health checks and scrapes: not logged, not metered
_QUIET_PATHS = frozenset({"/metrics", "/healthz", "/api/v1/health"})


def access_record(request_id: str, method: str, path: str, status_code: int, latency_ms: float) -> dict[str, Any]:
    """One access-log entry. Query strings are left out: link tokens and signatures live there."""
    route, key = split_route(path)
    record: dict[str, Any] = {
        "request_id": request_id,
        "method": method,
        "route": route,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
    }
    if key is not None:
        record["storage_key"] = key
        record["file_id"] = decode_key(key).file_id
    if status_code == 408:
        record["outcome"] = "cancelled"
    elif status_code >= 500:
        record["outcome"] = "store_error"
    return record


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each response with X-Request-ID, writes one access-log line and records request metrics."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        path = request.url.path
        if path in _QUIET_PATHS:
            return response
        record = access_record(request_id, request.method, path, response.status_code, latency_ms)
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        if get_settings().log_json:
            logger.log(level, json.dumps({"event": "request", **record}))
        else:
            key_part = f" key={record['storage_key']}" if "storage_key" in record else ""
            logger.log(
                level,
                "%s %s%s -> %d (%.1fms) [%s]",
                request.method, record["route"], key_part, response.status_code, latency_ms, request_id,
            )
        record_request(request.method, path, response.status_code, latency_ms / 1000.0)
        return response
