"""
Repositories for the exercise library, its categories and assignments.

Three key spaces:
- "exercise-library:{ms}-{rand}"  library items maintained by admins
- "exercise-category:{slug}"      categories, seeded with defaults
- "exercise:{athleteId}:{ms}-{rand}"  per-athlete dated assignments
"""

import logging
import re
from datetime import date
from typing import Any, Iterable, Optional

from afsp.core.models import (
    ExerciseAssignment,
    ExerciseCategory,
    ExerciseLibraryItem,
    utcnow,
)
from afsp.infrastructure.kv.client import new_record_suffix

from .base import Repository, format_timestamp, parse_timestamp, sort_key

logger = logging.getLogger(__name__)


LIBRARY_PREFIX = "exercise-library:"
CATEGORY_PREFIX = "exercise-category:"
ASSIGNMENT_PREFIX = "exercise:"

DEFAULT_CATEGORIES = ("Strength", "Cardio", "Flexibility", "Mobility", "Plyometrics", "Core")


def category_key(name: str) -> str:
    """Category key from its display name, whitespace runs become hyphens."""
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return f"{CATEGORY_PREFIX}{slug}"


def today_utc() -> str:
    return utcnow().date().isoformat()


# --- library ---------------------------------------------------------------

def library_item_to_document(item: ExerciseLibraryItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "category": item.category,
        "url": item.url,
        "mediaUrl": item.media_url,
        "mediaType": item.media_type,
        "mediaPath": item.media_path,
        "createdBy": item.created_by,
        "createdAt": format_timestamp(item.created_at),
        "updatedAt": format_timestamp(item.updated_at),
    }


def library_item_from_document(document: dict[str, Any]) -> ExerciseLibraryItem:
    item = ExerciseLibraryItem(
        id=document["id"],
        name=document.get("name", ""),
        category=document.get("category", ""),
        description=document.get("description"),
        url=document.get("url"),
        media_url=document.get("mediaUrl"),
        media_type=document.get("mediaType"),
        media_path=document.get("mediaPath"),
        created_by=document.get("createdBy"),
    )
    item.created_at = parse_timestamp(document.get("createdAt")) or item.created_at
    item.updated_at = parse_timestamp(document.get("updatedAt")) or item.updated_at
    return item


class ExerciseLibraryRepository(Repository):

    @staticmethod
    def new_id() -> str:
        return f"{LIBRARY_PREFIX}{new_record_suffix()}"

    async def get(self, item_id: str) -> Optional[ExerciseLibraryItem]:
        if not item_id.startswith(LIBRARY_PREFIX):
            return None
        document = await self._store.get(item_id)
        if document is None:
            return None
        return library_item_from_document(document)

    async def save(self, item: ExerciseLibraryItem) -> None:
        await self._store.set(item.id, library_item_to_document(item))

    async def list_all(self) -> list[ExerciseLibraryItem]:
        """Library newest first."""
        documents = await self._store.get_by_prefix(LIBRARY_PREFIX)
        items = [library_item_from_document(d) for d in documents if d.get("id")]
        items.sort(key=lambda i: sort_key(i.created_at), reverse=True)
        return items


# --- categories ------------------------------------------------------------

class ExerciseCategoryRepository(Repository):

    async def list_all(self) -> list[ExerciseCategory]:
        """
        Every category, seeding the defaults on first use.

        Seeding only happens while the category space is empty, so
        deleting a default later isn't undone.
        """
        documents = await self._store.get_by_prefix(CATEGORY_PREFIX)
        if not documents:
            seeded = []
            for name in DEFAULT_CATEGORIES:
                seeded.append(await self.ensure(name))
            logger.info("Seeded default exercise categories", extra={"count": len(seeded)})
            return seeded

        return [
            ExerciseCategory(id=d["id"], name=d.get("name", ""))
            for d in documents if d.get("id")
        ]

    async def ensure(self, name: str) -> ExerciseCategory:
        """Return the category with this name, creating it if needed."""
        key = category_key(name)
        document = await self._store.get(key)
        if document is not None:
            return ExerciseCategory(id=document["id"], name=document.get("name", name))

        category = ExerciseCategory(id=key, name=name.strip())
        await self._store.set(key, {"id": category.id, "name": category.name})
        return category


# --- assignments -----------------------------------------------------------

def assignment_to_document(assignment: ExerciseAssignment) -> dict[str, Any]:
    return {
        "id": assignment.id,
        "userId": assignment.user_id,
        "exerciseLibraryId": assignment.exercise_library_id,
        "name": assignment.name,
        "description": assignment.description,
        "category": assignment.category,
        "url": assignment.url,
        "mediaUrl": assignment.media_url,
        "mediaType": assignment.media_type,
        "mediaPath": assignment.media_path,
        "sets": assignment.sets,
        "reps": assignment.reps,
        "duration": assignment.duration,
        "assignedDate": assignment.assigned_date,
        "notes": assignment.notes,
        "assignedBy": assignment.assigned_by,
        "assignedAt": format_timestamp(assignment.assigned_at),
        "completed": assignment.completed,
        "completedAt": format_timestamp(assignment.completed_at),
    }


def assignment_from_document(document: dict[str, Any]) -> ExerciseAssignment:
    assignment = ExerciseAssignment(
        id=document["id"],
        user_id=document.get("userId", ""),
        name=document.get("name", ""),
        exercise_library_id=document.get("exerciseLibraryId"),
        description=document.get("description"),
        category=document.get("category"),
        url=document.get("url"),
        media_url=document.get("mediaUrl"),
        media_type=document.get("mediaType"),
        media_path=document.get("mediaPath"),
        sets=document.get("sets"),
        reps=document.get("reps"),
        duration=document.get("duration"),
        assigned_date=document.get("assignedDate") or "",
        notes=document.get("notes"),
        assigned_by=document.get("assignedBy"),
        completed=bool(document.get("completed", False)),
        completed_at=parse_timestamp(document.get("completedAt")),
    )
    assignment.assigned_at = parse_timestamp(document.get("assignedAt")) or assignment.assigned_at
    return assignment


class ExerciseAssignmentRepository(Repository):

    @staticmethod
    def new_id(athlete_id: str) -> str:
        return f"{ASSIGNMENT_PREFIX}{athlete_id}:{new_record_suffix()}"

    async def get(self, assignment_id: str) -> Optional[ExerciseAssignment]:
        if not assignment_id.startswith(ASSIGNMENT_PREFIX):
            return None
        document = await self._store.get(assignment_id)
        if document is None:
            return None
        return assignment_from_document(document)

    async def save(self, assignment: ExerciseAssignment) -> None:
        await self._store.set(assignment.id, assignment_to_document(assignment))

    async def list_for_user(self, user_id: str) -> list[ExerciseAssignment]:
        documents = await self._store.get_by_prefix(f"{ASSIGNMENT_PREFIX}{user_id}:")
        return [assignment_from_document(d) for d in documents if d.get("id")]

    async def list_due(self, user_id: str, day: Optional[str] = None) -> list[ExerciseAssignment]:
        day = day or today_utc()
        return [a for a in await self.list_for_user(user_id) if a.is_due_on(day)]

    async def assign_from_library(
        self,
        item: ExerciseLibraryItem,
        athlete_ids: Iterable[str],
        assigned_by: str,
        sets: Optional[int] = None,
        reps: Optional[int] = None,
        duration: Optional[str] = None,
        assigned_date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> list[ExerciseAssignment]:
        """
        Copy a library item onto each athlete's schedule.

        One document per athlete; a failure part-way leaves the earlier
        assignments in place.
        """
        day = assigned_date or today_utc()
        assignments = []
        for athlete_id in athlete_ids:
            assignment = ExerciseAssignment(
                id=self.new_id(athlete_id),
                user_id=athlete_id,
                name=item.name,
                exercise_library_id=item.id,
                description=item.description,
                category=item.category,
                url=item.url,
                media_url=item.media_url,
                media_type=item.media_type,
                media_path=item.media_path,
                sets=sets,
                reps=reps,
                duration=duration,
                assigned_date=day,
                notes=notes,
                assigned_by=assigned_by,
            )
            await self.save(assignment)
            assignments.append(assignment)

        logger.info(
            "Assigned exercise",
            extra={
                "exercise_library_id": item.id,
                "athlete_count": len(assignments),
                "assigned_by": assigned_by,
                "assigned_date": day,
            }
        )
        return assignments


def is_valid_day(value: str) -> bool:
    """True for a YYYY-MM-DD calendar date."""
    try:
        date.fromisoformat(value)
    except (TypeError, ValueError):
        return False
    return len(value) == 10
