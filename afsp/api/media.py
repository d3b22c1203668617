"""
Upload intake and signed-URL helpers shared by the media routes.

Stored documents keep object paths. URLs are signed on every read so a
link handed to a browser always has its full lifetime left.
"""

import logging
from typing import Iterable, Optional

from fastapi import HTTPException, UploadFile, status

from ..config.settings import Settings
from ..core.validation import sanitize_file_name, validate_file_size, validate_file_type
from ..infrastructure.storage.client import StorageClient, StorageError

logger = logging.getLogger(__name__)


IMAGE_TYPES = ("image/*",)
MEDIA_TYPES = ("image/*", "video/*", "audio/*", "application/pdf")


async def read_upload(
    file: Optional[UploadFile],
    settings: Settings,
    allowed_types: Iterable[str] = MEDIA_TYPES,
    type_error: str = "Unsupported file type",
) -> bytes:
    """
    Read an uploaded file after checking presence, type and size.

    Raises HTTPException (400 or 413) for anything the bucket shouldn't
    receive.
    """
    if file is None or not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided",
        )

    if not validate_file_type(file.content_type or "", allowed_types):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=type_error)

    data = await file.read()
    if not validate_file_size(len(data), settings.max_upload_size_mb):
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
        )
    return data


def upload_name(file: UploadFile) -> str:
    return sanitize_file_name(file.filename or "file")


async def sign_path(
    storage: StorageClient,
    bucket: str,
    path: Optional[str],
    expiry_seconds: int,
) -> Optional[str]:
    """
    Signed URL for a stored object, or None.

    A missing or unsignable object degrades to None so one broken
    attachment doesn't fail a whole listing.
    """
    if not path:
        return None
    try:
        return await storage.get_presigned_url(bucket, path, expiry_seconds)
    except StorageError as e:
        logger.warning(
            "Could not sign media URL",
            extra={"bucket": bucket, "storage_path": path, "error": str(e)}
        )
        return None
