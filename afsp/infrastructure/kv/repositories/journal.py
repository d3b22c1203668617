"""
Repository for athlete journal entries.

Entries live at "journal:{userId}:{ms}-{rand}". Media items keep the
object path; URLs are re-signed when entries are read.
"""

import logging
from typing import Any, Optional

from afsp.core.models import JournalEntry, MediaItem
from afsp.infrastructure.kv.client import new_record_suffix

from .base import Repository, format_timestamp, parse_timestamp, sort_key

logger = logging.getLogger(__name__)


JOURNAL_PREFIX = "journal:"


def media_to_document(item: MediaItem) -> dict[str, Any]:
    return {
        "path": item.path,
        "url": item.url,
        "type": item.type,
        "name": item.name,
        "uploadedAt": format_timestamp(item.uploaded_at),
    }


def media_from_document(document: dict[str, Any]) -> MediaItem:
    item = MediaItem(
        path=document.get("path", ""),
        type=document.get("type", ""),
        name=document.get("name", ""),
        url=document.get("url"),
    )
    item.uploaded_at = parse_timestamp(document.get("uploadedAt")) or item.uploaded_at
    return item


def entry_to_document(entry: JournalEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "userId": entry.user_id,
        "title": entry.title,
        "content": entry.content,
        "mood": entry.mood,
        "tags": list(entry.tags),
        "media": [media_to_document(m) for m in entry.media],
        "createdAt": format_timestamp(entry.created_at),
        "updatedAt": format_timestamp(entry.updated_at),
    }


def entry_from_document(document: dict[str, Any]) -> JournalEntry:
    entry = JournalEntry(
        id=document["id"],
        user_id=document.get("userId", ""),
        title=document.get("title", ""),
        content=document.get("content", ""),
        mood=document.get("mood"),
        tags=list(document.get("tags") or []),
        media=[media_from_document(m) for m in document.get("media") or []],
    )
    entry.created_at = parse_timestamp(document.get("createdAt")) or entry.created_at
    entry.updated_at = parse_timestamp(document.get("updatedAt")) or entry.updated_at
    return entry


class JournalRepository(Repository):

    @staticmethod
    def new_id(user_id: str) -> str:
        return f"{JOURNAL_PREFIX}{user_id}:{new_record_suffix()}"

    async def get(self, entry_id: str) -> Optional[JournalEntry]:
        if not entry_id.startswith(JOURNAL_PREFIX):
            return None
        document = await self._store.get(entry_id)
        if document is None:
            return None
        return entry_from_document(document)

    async def save(self, entry: JournalEntry) -> None:
        await self._store.set(entry.id, entry_to_document(entry))

    async def delete(self, entry_id: str) -> None:
        await self._store.delete(entry_id)

    async def list_for_user(self, user_id: str) -> list[JournalEntry]:
        """A user's entries, newest first."""
        documents = await self._store.get_by_prefix(f"{JOURNAL_PREFIX}{user_id}:")
        entries = [entry_from_document(d) for d in documents if d.get("id")]
        entries.sort(key=lambda e: sort_key(e.created_at), reverse=True)
        return entries
