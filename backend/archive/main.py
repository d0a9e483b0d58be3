"""FastAPI app: storage lifecycle, CORS, security headers, error mapping, routers."""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from archive.api.schemas import ErrorResponse
from archive.core.config import Settings, get_settings
from archive.core.deps import require_metrics_access
from archive.core.logging_redaction import mask_secret, redact_for_log
from archive.core.metrics import get_metrics
from archive.core.request_logging import RequestLoggingMiddleware
from archive.services.errors import StorageError
from archive.services.storage import build_storage
from archive.api.files import router as files_router
from archive.api.health import router as health_router
from archive.api.links import router as links_router
from archive.api.users import router as users_router

settings = get_settings()

_archive_logger = logging.getLogger("archive")
_archive_logger.setLevel(settings.log_level.upper())
if not _archive_logger.handlers:
    h = logging.StreamHandler()
    # LOG_JSON: request lines are already JSON, so print the bare message
    h.setFormatter(logging.Formatter("%(message)s" if settings.log_json else "%(asctime)s %(levelname)s %(name)s: %(message)s"))
    _archive_logger.addHandler(h)
    _archive_logger.propagate = False

logger = logging.getLogger(__name__)


def _storage_summary(s: Settings) -> dict:
    return {
        "backend": s.storage_backend,
        "endpoint": s.s3_endpoint_url,
        "region": s.s3_region,
        "bucket": s.s3_bucket_name,
        "force_path_style": s.s3_force_path_style,
        "key_id": mask_secret(s.s3_access_key_id),
        "secret_access_key": s.s3_secret_access_key,
        "part_size_mb": s.upload_part_size_mb,
        "concurrency": s.upload_concurrency,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One backend (and one boto3 client / connection pool) for the whole process
    app.state.storage = build_storage(settings)
    logger.info("Storage configured: %s", redact_for_log(_storage_summary(settings)))
    yield
    logger.info("Shutting down")


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials="*" not in _origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    expose_headers=["Content-Length", "X-Request-ID"],
)


@app.middleware("http")
async def security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    if exc.status_code >= 500:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    else:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    body = ErrorResponse(error=type(exc).__name__, code=exc.status_code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


app.include_router(health_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(files_router, prefix="/api/v1")
app.include_router(links_router, prefix="/api/v1")


@app.get("/healthz")
async def healthz():
    """Liveness: no storage call."""
    return {"status": "ok"}


@app.get("/metrics", response_class=Response)
async def metrics(_: None = Depends(require_metrics_access)):
    """Prometheus metrics. Set METRICS_SECRET to require the X-Metrics-Secret header."""
    body, content_type = get_metrics()
    return Response(content=body, media_type=content_type)
