"""Prometheus metrics: request count by route/status, latency, uploads, presign mints, listing size lookups."""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total requests",
    ["method", "path", "status_class"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency",
    ["method", "path"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 30.0, 120.0),
)
UPLOAD_TOTAL = Counter(
    "archive_uploads_total",
    "Upload attempts",
    ["result"],  # success | failure
)
UPLOAD_BYTES = Counter(
    "archive_upload_bytes_total",
    "Bytes written by completed uploads",
)
UPLOAD_PARTS = Histogram(
    "archive_upload_parts",
    "Parts per completed upload (0 = single put)",
    buckets=(0, 1, 2, 4, 8, 16, 64, 256, 1024),
)
PRESIGN_MINT_TOTAL = Counter(
    "archive_presign_mint_total",
    "Presigned URL mints",
    ["disposition"],  # download | inline
)
SIZE_LOOKUP_FAILURE_TOTAL = Counter(
    "archive_catalog_size_lookup_failures_total",
    "Listing entries whose size lookup failed and was reported as 0",
)


def _status_class(status: int) -> str:
    if status < 200:
        return "1xx"
    if status < 300:
        return "2xx"
    if status < 400:
        return "3xx"
    if status < 500:
        return "4xx"
    return "5xx"


_KEYED_PREFIXES = ("/api/v1/files/", "/api/v1/links/")


def split_route(path: str) -> tuple[str, str | None]:
    """(route template, storage key) for a request path: /api/v1/files/<key> -> (/api/v1/files/{key}, <key>)."""
    path = path or "/"
    for prefix in _KEYED_PREFIXES:
        if path.startswith(prefix) and len(path) > len(prefix):
            return prefix + "{key}", path[len(prefix):]
    return path, None


def record_request(method: str, path: str, status_code: int, latency_seconds: float) -> None:
    # Route template, not the raw path, to keep label cardinality bounded
    path, _ = split_route(path)
    sc = _status_class(status_code)
    REQUEST_COUNT.labels(method=method, path=path, status_class=sc).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(latency_seconds)


def record_upload(result: str, size: int, parts: int) -> None:
    UPLOAD_TOTAL.labels(result=result).inc()
    if result == "success":
        UPLOAD_BYTES.inc(size)
        UPLOAD_PARTS.observe(parts)


def record_presign_mint(force_download: bool) -> None:
    PRESIGN_MINT_TOTAL.labels(disposition="download" if force_download else "inline").inc()


def record_size_lookup_failure() -> None:
    SIZE_LOOKUP_FAILURE_TOTAL.inc()


def get_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
