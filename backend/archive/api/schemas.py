"""Pydantic response schemas for the /api/v1 surface."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict


def _config_forbid(**kwargs):
    return ConfigDict(extra="forbid", **kwargs)


# ----- Files -----
class FileOut(BaseModel):
    model_config = _config_forbid()
    id: str
    name: str
    storage_key: str
    size: int


class FilesResponse(BaseModel):
    model_config = _config_forbid()
    files: list[FileOut]


class UploadedFile(BaseModel):
    model_config = _config_forbid()
    id: str
    name: str
    storage_key: str
    file_size: int
    file_type: str
    created_at: datetime
    updated_at: datetime


class FileDownloadResponse(BaseModel):
    model_config = _config_forbid()
    url: str
    expires_in: int
    download: bool


# ----- Misc -----
class HealthResponse(BaseModel):
    model_config = _config_forbid()
    status: str
    timestamp: int
    service: str


class ErrorResponse(BaseModel):
    model_config = _config_forbid()
    error: str
    code: int
    message: str
