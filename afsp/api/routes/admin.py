"""
Admin portal endpoints.

Every route here requires the admin role. Covers athlete and coach
listings, program CRUD with images, the exercise library and its
assignment to athletes, contract review and the site logo.
"""

import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from ...config.settings import Settings
from ...core.models import (
    ContractStatus,
    Delivery,
    ExerciseAssignment,
    ExerciseLibraryItem,
    Program,
    ProgramCategory,
    ProgramFormat,
    Role,
)
from ...core.sanitize import sanitize_text
from ...core.validation import get_file_extension
from ...infrastructure.kv.repositories.contracts import contract_to_document
from ...infrastructure.kv.repositories.exercises import (
    ExerciseAssignmentRepository,
    ExerciseLibraryRepository,
    assignment_to_document,
    is_valid_day,
    library_item_to_document,
    today_utc,
)
from ...infrastructure.kv.repositories.programs import (
    apply_program_updates,
    new_program_id,
    program_to_document,
)
from ...infrastructure.kv.repositories.users import profile_to_document
from ...infrastructure.storage.client import StorageClient
from ..dependencies import (
    AdminUser,
    AuthContext,
    BrandingRepositoryDep,
    ContractRepositoryDep,
    ExerciseAssignmentRepositoryDep,
    ExerciseCategoryRepositoryDep,
    ExerciseLibraryRepositoryDep,
    ProgramRepositoryDep,
    SettingsDep,
    StorageClientDep,
    UserRepositoryDep,
)
from ..media import IMAGE_TYPES, MEDIA_TYPES, read_upload, sign_path, upload_name

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class CreateProgramRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    delivery: Optional[str] = None
    format: Optional[str] = None
    category: Optional[str] = None
    coach_id: Optional[str] = Field(default=None, alias="coachId")
    exercises: Optional[list[str]] = None
    duration: Optional[str] = None
    max_participants: Optional[int] = Field(default=None, alias="maxParticipants")


class UpdateProgramRequest(BaseModel):
    """
    Partial program update. Only fields present in the body are applied.

    Identity and audit fields (id, createdBy, createdAt) aren't declared,
    so they are dropped before anything reaches the program.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    delivery: Optional[str] = None
    format: Optional[str] = None
    category: Optional[str] = None
    coach_id: Optional[str] = Field(default=None, alias="coachId")
    exercises: Optional[list[str]] = None
    duration: Optional[str] = None
    max_participants: Optional[int] = Field(default=None, alias="maxParticipants")
    status: Optional[str] = None


class CreateExerciseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    media_path: Optional[str] = Field(default=None, alias="mediaPath")


class AssignExerciseRequest(BaseModel):
    """Library assignment. assignedDate defaults to today (UTC)."""
    model_config = ConfigDict(populate_by_name=True)

    athlete_ids: Optional[list[str]] = Field(default=None, alias="athleteIds")
    sets: Optional[int] = None
    reps: Optional[int] = None
    duration: Optional[str] = None
    assigned_date: Optional[str] = Field(default=None, alias="assignedDate")
    notes: Optional[str] = None


class AdHocExercise(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    url: Optional[str] = None
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    sets: Optional[int] = None
    reps: Optional[int] = None
    duration: Optional[str] = None
    assigned_date: Optional[str] = Field(default=None, alias="assignedDate")
    notes: Optional[str] = None


class AdHocAssignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    athlete_id: Optional[str] = Field(default=None, alias="athleteId")
    exercise: Optional[AdHocExercise] = None


# ---------------------------------------------------------------------------
# Shared Helpers
# ---------------------------------------------------------------------------

async def program_response(
    program: Program,
    storage: StorageClient,
    settings: Settings,
) -> dict[str, Any]:
    """Program document with its image URL re-signed from the stored path."""
    document = program_to_document(program)
    signed = await sign_path(
        storage,
        settings.exercise_media_bucket,
        program.image_path,
        settings.signed_url_expiry_seconds,
    )
    if signed:
        document["imageUrl"] = signed
    return document


async def library_response(
    items: list[ExerciseLibraryItem],
    storage: StorageClient,
    settings: Settings,
) -> list[dict[str, Any]]:
    documents = []
    for item in items:
        document = library_item_to_document(item)
        signed = await sign_path(
            storage,
            settings.exercise_media_bucket,
            item.media_path,
            settings.signed_url_expiry_seconds,
        )
        if signed:
            document["mediaUrl"] = signed
        documents.append(document)
    return documents


def _check_assigned_date(value: Optional[str]) -> str:
    if value is None:
        return today_utc()
    if not is_valid_day(value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Assigned date must be YYYY-MM-DD",
        )
    return value


async def assign_library_exercise(
    exercise_id: str,
    request: AssignExerciseRequest,
    assigner: AuthContext,
    library: ExerciseLibraryRepository,
    assignments: ExerciseAssignmentRepository,
) -> dict[str, Any]:
    """Assign a library exercise to athletes. Shared by admins and coaches."""
    athlete_ids = [a for a in (request.athlete_ids or []) if a]
    if not athlete_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one athlete ID required",
        )

    item = await library.get(exercise_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exercise not found")

    created = await assignments.assign_from_library(
        item,
        athlete_ids,
        assigned_by=assigner.user_id,
        sets=request.sets,
        reps=request.reps,
        duration=request.duration,
        assigned_date=_check_assigned_date(request.assigned_date),
        notes=sanitize_text(request.notes) if request.notes else None,
    )
    return {"success": True, "assignments": [assignment_to_document(a) for a in created]}


def _parse_program_enums(
    request: CreateProgramRequest,
) -> tuple[Delivery, ProgramFormat, ProgramCategory]:
    try:
        return (
            Delivery(request.delivery),
            ProgramFormat(request.format),
            ProgramCategory(request.category),
        )
    except ValueError as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=f"Invalid program field: {e}")


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

@router.get("/athletes", summary="All athlete profiles")
async def list_athletes(admin: AdminUser, users: UserRepositoryDep) -> dict[str, Any]:
    athletes = await users.list_by_role(Role.ATHLETE)
    return {"athletes": [profile_to_document(p) for p in athletes]}


@router.get("/coaches", summary="All coach profiles")
async def list_coaches(admin: AdminUser, users: UserRepositoryDep) -> dict[str, Any]:
    coaches = await users.list_by_role(Role.COACH)
    return {"coaches": [profile_to_document(p) for p in coaches]}


# ---------------------------------------------------------------------------
# Programs
# ---------------------------------------------------------------------------

@router.get("/programs", summary="Every program, newest first")
async def list_programs(
    admin: AdminUser,
    settings: SettingsDep,
    programs: ProgramRepositoryDep,
    users: UserRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    documents = []
    for program in await programs.list_all():
        document = await program_response(program, storage, settings)
        coach_name = None
        if program.coach_id:
            coach = await users.get(program.coach_id)
            coach_name = coach.full_name if coach else None
        document["coachName"] = coach_name
        documents.append(document)
    return {"programs": documents}


@router.post("/programs", summary="Create a program")
async def create_program(
    request: CreateProgramRequest,
    admin: AdminUser,
    programs: ProgramRepositoryDep,
) -> dict[str, Any]:
    name = sanitize_text(request.name or "")
    description = sanitize_text(request.description or "")
    enum_fields = (request.delivery, request.format, request.category)
    if not name or not description or not all(enum_fields):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields",
        )

    delivery, program_format, category = _parse_program_enums(request)

    program = Program(
        id=new_program_id(),
        name=name,
        description=description,
        delivery=delivery,
        format=program_format,
        category=category,
        price=request.price,
        coach_id=request.coach_id or None,
        exercises=list(request.exercises or []),
        duration=request.duration or None,
        max_participants=request.max_participants or None,
        created_by=admin.user_id,
    )
    await programs.save(program)

    logger.info(
        "Program created",
        extra={"program_id": program.id, "admin_id": admin.user_id}
    )

    return {"success": True, "program": program_to_document(program)}


@router.put("/programs/{program_id}", summary="Update a program")
async def update_program(
    program_id: str,
    admin: AdminUser,
    programs: ProgramRepositoryDep,
    request: UpdateProgramRequest,
) -> dict[str, Any]:
    """Partial update. Field types are checked before anything is applied."""
    program = await programs.get(program_id)
    if program is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Program not found")

    updates = request.model_dump(exclude_unset=True, by_alias=True)
    for key in ("name", "description"):
        if isinstance(updates.get(key), str):
            updates[key] = sanitize_text(updates[key])

    try:
        apply_program_updates(program, updates)
    except ValueError as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=f"Invalid program field: {e}")

    await programs.save(program)

    logger.info(
        "Program updated",
        extra={"program_id": program.id, "fields": sorted(updates)}
    )

    return {"success": True, "program": program_to_document(program)}


@router.delete("/programs/{program_id}", summary="Delete a program")
async def delete_program(
    program_id: str,
    admin: AdminUser,
    settings: SettingsDep,
    programs: ProgramRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    program = await programs.get(program_id)
    if program is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Program not found")

    # Enrollments and contracts keep their copy of the program name
    await programs.delete(program.id)
    if program.image_path:
        await storage.delete_objects(settings.exercise_media_bucket, [program.image_path])

    return {"success": True}


@router.post("/programs/{program_id}/image", summary="Upload a program image")
async def upload_program_image(
    program_id: str,
    admin: AdminUser,
    settings: SettingsDep,
    programs: ProgramRepositoryDep,
    storage: StorageClientDep,
    file: Optional[UploadFile] = File(default=None),
) -> dict[str, Any]:
    data = await read_upload(file, settings, IMAGE_TYPES, type_error="File must be an image")

    program = await programs.get(program_id)
    if program is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Program not found")

    extension = get_file_extension(upload_name(file)) or "img"
    path = f"{program.id}-{int(time.time() * 1000)}.{extension}"
    await storage.upload_file(settings.exercise_media_bucket, path, data, file.content_type)

    previous_path = program.image_path
    program.image_path = path
    program.image_url = await sign_path(
        storage, settings.exercise_media_bucket, path, settings.signed_url_expiry_seconds
    )
    await programs.save(program)

    if previous_path and previous_path != path:
        await storage.delete_objects(settings.exercise_media_bucket, [previous_path])

    logger.info(
        "Program image uploaded",
        extra={"program_id": program.id, "size_bytes": len(data)}
    )

    return {"success": True, "imageUrl": program.image_url, "program": program_to_document(program)}


# ---------------------------------------------------------------------------
# Exercise Library
# ---------------------------------------------------------------------------

@router.get("/exercises", summary="Exercise library, newest first")
async def list_exercises(
    admin: AdminUser,
    settings: SettingsDep,
    library: ExerciseLibraryRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    return {"exercises": await library_response(await library.list_all(), storage, settings)}


@router.get("/exercises/categories", summary="Exercise categories")
async def list_categories(
    admin: AdminUser,
    categories: ExerciseCategoryRepositoryDep,
) -> dict[str, Any]:
    return {
        "categories": [{"id": c.id, "name": c.name} for c in await categories.list_all()]
    }


@router.post("/exercises", summary="Add an exercise to the library")
async def create_exercise(
    request: CreateExerciseRequest,
    admin: AdminUser,
    library: ExerciseLibraryRepositoryDep,
    categories: ExerciseCategoryRepositoryDep,
) -> dict[str, Any]:
    name = sanitize_text(request.name or "")
    category_name = sanitize_text(request.category or "")
    if not name or not category_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name and category required",
        )

    category = await categories.ensure(category_name)

    item = ExerciseLibraryItem(
        id=library.new_id(),
        name=name,
        category=category.name,
        description=sanitize_text(request.description) if request.description else None,
        url=request.url or None,
        media_url=request.media_url or None,
        media_type=request.media_type or None,
        media_path=request.media_path or None,
        created_by=admin.user_id,
    )
    await library.save(item)

    logger.info(
        "Exercise created",
        extra={"exercise_id": item.id, "category": category.name}
    )

    return {"success": True, "exercise": library_item_to_document(item)}


@router.post("/exercises/upload", summary="Upload exercise media")
async def upload_exercise_media(
    admin: AdminUser,
    settings: SettingsDep,
    storage: StorageClientDep,
    file: Optional[UploadFile] = File(default=None),
) -> dict[str, Any]:
    """
    Store a media file for a library exercise.

    Returns the object path to pass back as mediaPath when creating the
    exercise, plus a signed URL for immediate preview.
    """
    data = await read_upload(file, settings, MEDIA_TYPES)
    path = f"{admin.user_id}/{int(time.time() * 1000)}-{upload_name(file)}"
    content_type = file.content_type or "application/octet-stream"

    await storage.upload_file(settings.exercise_media_bucket, path, data, content_type)
    url = await sign_path(
        storage, settings.exercise_media_bucket, path, settings.signed_url_expiry_seconds
    )

    return {"success": True, "url": url, "path": path, "mediaType": content_type}


@router.post("/exercises/assign", summary="Assign a one-off exercise to an athlete")
async def assign_ad_hoc_exercise(
    request: AdHocAssignRequest,
    admin: AdminUser,
    assignments: ExerciseAssignmentRepositoryDep,
) -> dict[str, Any]:
    if not request.athlete_id or request.exercise is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Athlete ID and exercise details required",
        )

    exercise = request.exercise
    name = sanitize_text(exercise.name or "")
    if not name:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Exercise name required")

    assignment = ExerciseAssignment(
        id=assignments.new_id(request.athlete_id),
        user_id=request.athlete_id,
        name=name,
        description=sanitize_text(exercise.description) if exercise.description else None,
        category=exercise.category,
        url=exercise.url,
        media_url=exercise.media_url,
        media_type=exercise.media_type,
        sets=exercise.sets,
        reps=exercise.reps,
        duration=exercise.duration,
        assigned_date=_check_assigned_date(exercise.assigned_date),
        notes=sanitize_text(exercise.notes) if exercise.notes else None,
        assigned_by=admin.user_id,
    )
    await assignments.save(assignment)

    logger.info(
        "Ad-hoc exercise assigned",
        extra={"athlete_id": request.athlete_id, "exercise_id": assignment.id}
    )

    return {"success": True, "exercise": assignment_to_document(assignment)}


@router.post("/exercises/{exercise_id}/assign", summary="Assign a library exercise")
async def assign_exercise(
    exercise_id: str,
    request: AssignExerciseRequest,
    admin: AdminUser,
    library: ExerciseLibraryRepositoryDep,
    assignments: ExerciseAssignmentRepositoryDep,
) -> dict[str, Any]:
    return await assign_library_exercise(exercise_id, request, admin, library, assignments)


# ---------------------------------------------------------------------------
# Contracts and Branding
# ---------------------------------------------------------------------------

@router.get("/contracts", summary="All contracts with signer details")
async def list_contracts(
    admin: AdminUser,
    contracts: ContractRepositoryDep,
    users: UserRepositoryDep,
    status_filter: Optional[str] = Query(default=None, alias="status"),
) -> dict[str, Any]:
    contract_status = None
    if status_filter:
        try:
            contract_status = ContractStatus(status_filter)
        except ValueError:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid contract status")

    documents = []
    for contract in await contracts.list_all(status=contract_status):
        signer = await users.get(contract.user_id)
        document = contract_to_document(contract)
        document["userName"] = signer.full_name if signer else "Unknown"
        document["userEmail"] = signer.email if signer else "Unknown"
        documents.append(document)

    return {"contracts": documents}


@router.post("/upload-logo", summary="Replace the site logo")
async def upload_logo(
    admin: AdminUser,
    settings: SettingsDep,
    branding: BrandingRepositoryDep,
    storage: StorageClientDep,
    file: Optional[UploadFile] = File(default=None),
) -> dict[str, Any]:
    data = await read_upload(file, settings, IMAGE_TYPES, type_error="File must be an image")

    extension = get_file_extension(upload_name(file)) or "img"
    path = f"branding/logo-{int(time.time() * 1000)}.{extension}"
    await storage.upload_file(settings.exercise_media_bucket, path, data, file.content_type)

    previous = await branding.get_logo()
    await branding.set_logo(path, file.content_type, admin.user_id)
    if previous and previous.get("path") and previous["path"] != path:
        await storage.delete_objects(settings.exercise_media_bucket, [previous["path"]])

    logo_url = await sign_path(
        storage, settings.exercise_media_bucket, path, settings.signed_url_expiry_seconds
    )

    logger.info("Logo updated", extra={"admin_id": admin.user_id})

    return {"success": True, "logoUrl": logo_url}
