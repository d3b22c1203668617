"""
Repository for admin-managed programs.

Program ids are their store keys ("program:{ms}-{rand}"), so a route
receiving an id can read the document without rebuilding the key.
"""

import logging
from typing import Any, Optional

from afsp.core.models import (
    Delivery,
    Program,
    ProgramCategory,
    ProgramFormat,
    ProgramStatus,
    utcnow,
)
from afsp.infrastructure.kv.client import new_record_suffix

from .base import Repository, format_timestamp, parse_enum, parse_timestamp, sort_key

logger = logging.getLogger(__name__)


PROGRAM_PREFIX = "program:"

# Fields an admin may change through a partial update
EDITABLE_FIELDS = {
    "name": "name",
    "description": "description",
    "price": "price",
    "delivery": "delivery",
    "format": "format",
    "category": "category",
    "coachId": "coach_id",
    "exercises": "exercises",
    "duration": "duration",
    "maxParticipants": "max_participants",
    "status": "status",
}


class ProgramNotFoundError(Exception):
    pass


def new_program_id() -> str:
    return f"{PROGRAM_PREFIX}{new_record_suffix()}"


def program_to_document(program: Program) -> dict[str, Any]:
    return {
        "id": program.id,
        "name": program.name,
        "description": program.description,
        "price": program.price,
        "delivery": program.delivery.value,
        "format": program.format.value,
        "category": program.category.value,
        "coachId": program.coach_id,
        "exercises": list(program.exercises),
        "duration": program.duration,
        "maxParticipants": program.max_participants,
        "imageUrl": program.image_url,
        "imagePath": program.image_path,
        "status": program.status.value,
        "createdBy": program.created_by,
        "createdAt": format_timestamp(program.created_at),
        "updatedAt": format_timestamp(program.updated_at),
    }


def program_from_document(document: dict[str, Any]) -> Program:
    program = Program(
        id=document["id"],
        name=document.get("name", ""),
        description=document.get("description", ""),
        delivery=parse_enum(Delivery, document.get("delivery"), Delivery.IN_PERSON),
        format=parse_enum(ProgramFormat, document.get("format"), ProgramFormat.INDIVIDUAL),
        category=parse_enum(
            ProgramCategory, document.get("category"), ProgramCategory.FITNESS_WELLNESS
        ),
        price=document.get("price"),
        coach_id=document.get("coachId"),
        exercises=list(document.get("exercises") or []),
        duration=document.get("duration"),
        max_participants=document.get("maxParticipants"),
        image_url=document.get("imageUrl"),
        image_path=document.get("imagePath"),
        status=parse_enum(ProgramStatus, document.get("status"), ProgramStatus.INACTIVE),
        created_by=document.get("createdBy"),
    )
    program.created_at = parse_timestamp(document.get("createdAt")) or program.created_at
    program.updated_at = parse_timestamp(document.get("updatedAt")) or program.updated_at
    return program


def apply_program_updates(program: Program, updates: dict[str, Any]) -> Program:
    """
    Merge a partial update into a program.

    Unknown keys are ignored and enum fields must carry a valid value;
    ValueError names the offending field.
    """
    for key, value in updates.items():
        attribute = EDITABLE_FIELDS.get(key)
        if attribute is None:
            continue
        if key == "delivery":
            value = Delivery(value)
        elif key == "format":
            value = ProgramFormat(value)
        elif key == "category":
            value = ProgramCategory(value)
        elif key == "status":
            value = ProgramStatus(value)
        elif key in ("name", "description") and not value:
            raise ValueError(f"{key} cannot be empty")
        elif key == "exercises" and value is None:
            value = []
        setattr(program, attribute, value)
    program.updated_at = utcnow()
    return program


class ProgramRepository(Repository):

    async def get(self, program_id: str) -> Optional[Program]:
        if not program_id.startswith(PROGRAM_PREFIX):
            return None
        document = await self._store.get(program_id)
        if document is None:
            return None
        return program_from_document(document)

    async def get_or_raise(self, program_id: str) -> Program:
        program = await self.get(program_id)
        if program is None:
            raise ProgramNotFoundError(f"Program {program_id} not found")
        return program

    async def save(self, program: Program) -> None:
        await self._store.set(program.id, program_to_document(program))

    async def delete(self, program_id: str) -> None:
        await self._store.delete(program_id)
        logger.info("Deleted program", extra={"program_id": program_id})

    async def list_all(self) -> list[Program]:
        """Every program, newest first."""
        documents = await self._store.get_by_prefix(PROGRAM_PREFIX)
        programs = [program_from_document(d) for d in documents if d.get("id")]
        programs.sort(key=lambda p: sort_key(p.created_at), reverse=True)
        return programs

    async def list_active(self) -> list[Program]:
        return [p for p in await self.list_all() if p.is_active]

    async def list_for_coach(self, coach_id: str) -> list[Program]:
        return [p for p in await self.list_all() if p.coach_id == coach_id]
