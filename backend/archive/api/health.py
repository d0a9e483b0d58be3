"""Health check."""
import time

from fastapi import APIRouter

from archive.api.schemas import HealthResponse
from archive.core.config import get_settings

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="Server is healthy!",
        timestamp=int(time.time()),
        service=get_settings().app_name,
    )
