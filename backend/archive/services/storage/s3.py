"""S3 storage backend (AWS or any S3-compatible store). Imported only when STORAGE_BACKEND=s3 (avoids boto3 otherwise)."""
from __future__ import annotations

import logging
from typing import Iterator

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from archive.core.config import Settings
from archive.services.errors import (
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
    StorageError,
    StoreUnavailableError,
)
from archive.services.keys import validate_key
from archive.services.storage.base import (
    DEFAULT_CONCURRENCY,
    DEFAULT_PART_SIZE,
    CompletedPart,
    ObjectInfo,
    StorageBackend,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound", "NoSuchUpload"})
_QUOTA_CODES = frozenset({
    "QuotaExceeded", "ServiceQuotaExceeded", "EntityTooLarge", "SlowDown",
    "XMinioStorageFull", "InsufficientStorage", "429", "507",
})
_INVALID_CODES = frozenset({"InvalidArgument", "KeyTooLongError", "InvalidObjectName", "InvalidRequest"})


def _get_client(settings: Settings):
    """One boto3 client per process: credentials, region, endpoint, addressing style, retries, timeouts."""
    cfg = Config(
        region_name=settings.s3_region,
        signature_version="s3v4",
        connect_timeout=settings.s3_connect_timeout_seconds,
        read_timeout=settings.s3_read_timeout_seconds,
        # botocore owns retries: exponential backoff on throttling and transient network errors
        retries={"max_attempts": settings.s3_max_attempts, "mode": "standard"},
        # room for the upload pipeline's concurrent parts plus regular requests
        max_pool_connections=max(settings.s3_max_pool_connections, settings.upload_concurrency * 2),
        s3={"addressing_style": "path" if settings.s3_force_path_style else "auto"},
    )
    return boto3.client(
        "s3",
        endpoint_url=settings.s3_endpoint_url,
        aws_access_key_id=settings.s3_access_key_id or None,
        aws_secret_access_key=settings.s3_secret_access_key or None,
        region_name=settings.s3_region,
        config=cfg,
    )


def _error_code(e: Exception) -> str | None:
    resp = getattr(e, "response", None)
    if not isinstance(resp, dict):
        return None
    code = resp.get("Error", {}).get("Code")
    if code is None:
        status = resp.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return str(status) if status else None
    return str(code)


def _wrap(e: Exception, operation: str, key: str | None) -> StorageError:
    """Map a botocore failure onto the storage error taxonomy, keeping operation and key."""
    if isinstance(e, ClientError):
        code = _error_code(e)
        if code in _NOT_FOUND_CODES:
            return NotFoundError("object not found", operation=operation, key=key)
        if code in _QUOTA_CODES:
            return QuotaExceededError(f"storage quota or rate limit reached ({code})", operation=operation, key=key)
        if code in _INVALID_CODES:
            return InvalidInputError(f"rejected by storage ({code})", operation=operation, key=key)
        return StoreUnavailableError(f"storage request failed ({code})", operation=operation, key=key)
    return StoreUnavailableError(f"storage unreachable: {e}", operation=operation, key=key)


class S3Storage(StorageBackend):
    """S3 backend over a shared boto3 client. Multipart parts go straight to UploadPart."""

    def __init__(
        self,
        client,
        bucket: str,
        part_size: int = DEFAULT_PART_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        if not bucket:
            raise ValueError("S3 storage requires s3_bucket_name to be set")
        super().__init__(part_size=part_size, concurrency=concurrency)
        self._bucket = bucket
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Storage":
        if not settings.s3_bucket_name:
            raise ValueError("S3 storage requires s3_bucket_name to be set")
        return cls(
            _get_client(settings),
            settings.s3_bucket_name,
            part_size=settings.upload_part_size_bytes,
            concurrency=settings.upload_concurrency,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        validate_key(key, "put_object")
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            raise _wrap(e, "put_object", key) from e

    def create_multipart_upload(self, key: str, content_type: str) -> str:
        validate_key(key, "create_multipart_upload")
        try:
            resp = self._client.create_multipart_upload(Bucket=self._bucket, Key=key, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            raise _wrap(e, "create_multipart_upload", key) from e
        return resp["UploadId"]

    def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        try:
            resp = self._client.upload_part(
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=data,
            )
        except (ClientError, BotoCoreError) as e:
            raise _wrap(e, f"upload_part[{part_number}]", key) from e
        return resp["ETag"]

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[CompletedPart]) -> None:
        try:
            self._client.complete_multipart_upload(
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": [{"PartNumber": p.part_number, "ETag": p.etag} for p in parts]},
            )
        except (ClientError, BotoCoreError) as e:
            raise _wrap(e, "complete_multipart_upload", key) from e

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        try:
            self._client.abort_multipart_upload(Bucket=self._bucket, Key=key, UploadId=upload_id)
        except (ClientError, BotoCoreError) as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return
            raise _wrap(e, "abort_multipart_upload", key) from e

    def head_object(self, key: str) -> ObjectInfo:
        validate_key(key, "head")
        try:
            resp = self._client.head_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _wrap(e, "head", key) from e
        return ObjectInfo(
            key=key,
            size=resp.get("ContentLength") or 0,
            content_type=resp.get("ContentType"),
        )

    def list_keys(self) -> Iterator[str]:
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self._bucket):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except (ClientError, BotoCoreError) as e:
            raise _wrap(e, "list", None) from e

    def delete_object(self, key: str) -> None:
        validate_key(key, "delete")
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            # S3 already answers 204 for missing keys; some compatible stores say NoSuchKey instead
            if _error_code(e) in _NOT_FOUND_CODES:
                return
            raise _wrap(e, "delete", key) from e

    def create_presigned_get(
        self,
        storage_key: str,
        expires_s: int,
        disposition: str | None = None,
    ) -> str:
        validate_key(storage_key, "presign")
        params = {"Bucket": self._bucket, "Key": storage_key}
        if disposition:
            params["ResponseContentDisposition"] = disposition
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=expires_s,
            )
        except (ClientError, BotoCoreError) as e:
            raise _wrap(e, "presign", storage_key) from e
