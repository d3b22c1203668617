"""
Journal endpoints.

Entries are private to their author. Every route that addresses an entry
by id checks ownership before reading or writing it.
"""

import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from pydantic import BaseModel

from ...core.models import JournalEntry, MediaItem, utcnow
from ...core.sanitize import sanitize_text
from ...infrastructure.kv.repositories.journal import (
    JournalRepository,
    entry_to_document,
    media_to_document,
)
from ...infrastructure.storage.client import StorageClient
from ..dependencies import CurrentUser, JournalRepositoryDep, SettingsDep, StorageClientDep
from ..media import MEDIA_TYPES, read_upload, sign_path, upload_name

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class CreateEntryRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    mood: Optional[str] = None
    tags: Optional[list[str]] = None


class UpdateEntryRequest(BaseModel):
    """Partial update. Omitted fields are left unchanged."""
    title: Optional[str] = None
    content: Optional[str] = None
    mood: Optional[str] = None
    tags: Optional[list[str]] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clean_tags(tags: list[str]) -> list[str]:
    cleaned = (sanitize_text(tag) for tag in tags)
    return [tag for tag in cleaned if tag]


async def entry_response(
    entry: JournalEntry,
    storage: StorageClient,
    bucket: str,
    expiry_seconds: int,
) -> dict[str, Any]:
    """Entry document with fresh signed URLs on every media item."""
    document = entry_to_document(entry)
    for item, media_document in zip(entry.media, document["media"]):
        signed = await sign_path(storage, bucket, item.path, expiry_seconds)
        media_document["url"] = signed or item.url
    return document


async def _owned_entry(
    entry_id: str,
    user_id: str,
    journal: JournalRepository,
    denied_message: str,
) -> JournalEntry:
    entry = await journal.get(entry_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")
    if entry.user_id != user_id:
        logger.warning(
            "Journal access denied",
            extra={"user_id": user_id, "entry_id": entry_id}
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=denied_message)
    return entry


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/entries", summary="The caller's journal, newest first")
async def list_entries(
    user: CurrentUser,
    settings: SettingsDep,
    journal: JournalRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    entries = await journal.list_for_user(user.user_id)
    return {
        "entries": [
            await entry_response(
                e, storage, settings.journal_media_bucket, settings.signed_url_expiry_seconds
            )
            for e in entries
        ]
    }


@router.post("/entries", summary="Create a journal entry")
async def create_entry(
    request: CreateEntryRequest,
    user: CurrentUser,
    journal: JournalRepositoryDep,
) -> dict[str, Any]:
    title = sanitize_text(request.title or "")
    content = sanitize_text(request.content or "")
    if not title or not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title and content required",
        )

    entry = JournalEntry(
        id=journal.new_id(user.user_id),
        user_id=user.user_id,
        title=title,
        content=content,
        mood=sanitize_text(request.mood) if request.mood else None,
        tags=_clean_tags(request.tags or []),
    )
    await journal.save(entry)

    logger.info("Journal entry created", extra={"user_id": user.user_id, "entry_id": entry.id})

    return {"success": True, "entry": entry_to_document(entry)}


@router.put("/entries/{entry_id}", summary="Update a journal entry")
async def update_entry(
    entry_id: str,
    request: UpdateEntryRequest,
    user: CurrentUser,
    journal: JournalRepositoryDep,
) -> dict[str, Any]:
    entry = await _owned_entry(
        entry_id, user.user_id, journal, "Unauthorized to modify this entry"
    )

    if request.title is not None:
        title = sanitize_text(request.title)
        if not title:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Title and content required")
        entry.title = title
    if request.content is not None:
        content = sanitize_text(request.content)
        if not content:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Title and content required")
        entry.content = content
    if request.mood is not None:
        entry.mood = sanitize_text(request.mood) or None
    if request.tags is not None:
        entry.tags = _clean_tags(request.tags)

    entry.updated_at = utcnow()
    await journal.save(entry)

    return {"success": True, "entry": entry_to_document(entry)}


@router.delete("/entries/{entry_id}", summary="Delete a journal entry and its media")
async def delete_entry(
    entry_id: str,
    user: CurrentUser,
    settings: SettingsDep,
    journal: JournalRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    entry = await _owned_entry(
        entry_id, user.user_id, journal, "Unauthorized to delete this entry"
    )

    paths = [item.path for item in entry.media if item.path]
    if paths:
        await storage.delete_objects(settings.journal_media_bucket, paths)

    await journal.delete(entry.id)

    logger.info(
        "Journal entry deleted",
        extra={"user_id": user.user_id, "entry_id": entry.id, "media_count": len(paths)}
    )

    return {"success": True}


@router.post("/entries/{entry_id}/media", summary="Attach a file to a journal entry")
async def upload_entry_media(
    entry_id: str,
    user: CurrentUser,
    settings: SettingsDep,
    journal: JournalRepositoryDep,
    storage: StorageClientDep,
    file: Optional[UploadFile] = File(default=None),
) -> dict[str, Any]:
    entry = await _owned_entry(
        entry_id, user.user_id, journal, "Unauthorized to modify this entry"
    )

    data = await read_upload(file, settings, MEDIA_TYPES)
    name = upload_name(file)
    path = f"{user.user_id}/{int(time.time() * 1000)}-{name}"
    content_type = file.content_type or "application/octet-stream"

    await storage.upload_file(settings.journal_media_bucket, path, data, content_type)
    url = await sign_path(
        storage, settings.journal_media_bucket, path, settings.signed_url_expiry_seconds
    )

    item = MediaItem(path=path, type=content_type, name=file.filename or name, url=url)
    entry.attach(item)
    await journal.save(entry)

    logger.info(
        "Journal media uploaded",
        extra={"user_id": user.user_id, "entry_id": entry.id, "size_bytes": len(data)}
    )

    return {"success": True, "media": media_to_document(item), "entry": entry_to_document(entry)}
