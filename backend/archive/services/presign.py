"""Presigned download grants. Stateless: the signature carries the deadline, so grants cannot be revoked early."""
import logging
from dataclasses import dataclass

from archive.core.metrics import record_presign_mint
from archive.services.keys import content_disposition, decode_key
from archive.services.storage.base import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_S = 3600


@dataclass(frozen=True)
class PresignedGrant:
    url: str
    expires_in: int
    force_download: bool
    display_name: str


def issue_grant(
    storage: StorageBackend,
    storage_key: str,
    force_download: bool,
    expires_s: int = DEFAULT_EXPIRES_S,
) -> PresignedGrant:
    """Sign a GET for storage_key. With force_download the browser saves it under the original name.

    The key is not checked for existence first; a grant for a missing key is issued and 404s on use.
    """
    name = decode_key(storage_key).name
    disposition = content_disposition(name, force_download=True) if force_download else None
    url = storage.create_presigned_get(storage_key, expires_s, disposition=disposition)
    record_presign_mint(force_download)
    logger.debug("Issued %s link for %s (expires in %ds)", "download" if force_download else "inline", storage_key, expires_s)
    return PresignedGrant(url=url, expires_in=expires_s, force_download=force_download, display_name=name)
