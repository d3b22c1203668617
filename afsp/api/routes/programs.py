"""
Program catalogue and enrollment endpoints.

Enrolling creates three documents in sequence: the enrollment, the
summary appended to the user's profile, and a pending contract. There is
no transaction; if a later write fails the earlier ones stay.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.catalog import CATALOG, customization_options, list_catalog_programs
from ...core.models import Contract, ContractStatus, Enrollment
from ...core.sanitize import sanitize_text
from ...infrastructure.kv.repositories.base import format_timestamp
from ...infrastructure.kv.repositories.contracts import contract_key
from ...infrastructure.kv.repositories.enrollments import (
    enrollment_to_document,
    new_enrollment_id,
)
from ..dependencies import (
    ContractRepositoryDep,
    CurrentUser,
    EnrollmentRepositoryDep,
    ProgramRepositoryDep,
    SettingsDep,
    StorageClientDep,
    UserRepositoryDep,
)
from ..media import sign_path

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class EnrollRequest(BaseModel):
    """
    Enrollment request.

    customization carries the custom program wizard's answers and is
    stored without further validation.
    """
    model_config = ConfigDict(populate_by_name=True)

    program_id: Optional[str] = Field(default=None, alias="programId")
    program_name: Optional[str] = Field(default=None, alias="programName")
    customization: Optional[Any] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", summary="Static program catalogue")
async def list_programs() -> dict[str, Any]:
    return {"programs": list_catalog_programs()}


@router.get("/customization-options", summary="Package price table")
async def get_customization_options() -> dict[str, Any]:
    return {"options": customization_options()}


@router.get("/public", summary="Active admin-created programs")
async def list_public_programs(
    settings: SettingsDep,
    programs: ProgramRepositoryDep,
    users: UserRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    """
    Active programs with public fields only, newest first.

    Internal fields (creator, exercise ids, status) are left out.
    """
    public = []
    for program in await programs.list_active():
        coach_name = None
        if program.coach_id:
            coach = await users.get(program.coach_id)
            coach_name = coach.full_name if coach else None

        image_url = await sign_path(
            storage,
            settings.exercise_media_bucket,
            program.image_path,
            settings.signed_url_expiry_seconds,
        ) or program.image_url

        public.append({
            "id": program.id,
            "name": program.name,
            "description": program.description,
            "price": program.price,
            "delivery": program.delivery.value,
            "format": program.format.value,
            "category": program.category.value,
            "coachName": coach_name,
            "duration": program.duration,
            "maxParticipants": program.max_participants,
            "imageUrl": image_url,
            "createdAt": format_timestamp(program.created_at),
        })

    return {"programs": public}


@router.post("/enroll", summary="Enroll the caller in a program")
async def enroll(
    request: EnrollRequest,
    user: CurrentUser,
    users: UserRepositoryDep,
    programs: ProgramRepositoryDep,
    enrollments: EnrollmentRepositoryDep,
    contracts: ContractRepositoryDep,
) -> dict[str, Any]:
    program_id = (request.program_id or "").strip()
    if not program_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Program ID required",
        )

    profile = user.profile
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found",
        )

    # The program document, when there is one, is authoritative for the name
    program_name = sanitize_text(request.program_name or "")
    program = await programs.get(program_id)
    if program is not None:
        program_name = program.name
    elif not program_name:
        catalog_entry = next((p for p in CATALOG if p.id == program_id), None)
        program_name = catalog_entry.name if catalog_entry else program_id

    enrollment = Enrollment(
        id=new_enrollment_id(profile.id, program_id),
        user_id=profile.id,
        program_id=program_id,
        program_name=program_name,
        customization=request.customization,
    )
    contract = Contract(
        id=contract_key(enrollment.id),
        enrollment_id=enrollment.id,
        user_id=profile.id,
        program_id=program_id,
        program_name=program_name,
        customization=request.customization,
    )
    enrollment.contract_id = contract.id
    enrollment.contract_status = ContractStatus.PENDING

    await enrollments.save(enrollment)
    profile.add_enrollment(enrollment)
    await users.save(profile)
    await contracts.save(contract)

    logger.info(
        "User enrolled",
        extra={
            "user_id": profile.id,
            "program_id": program_id,
            "enrollment_id": enrollment.id,
            "custom": enrollment.is_custom,
        }
    )

    return {"success": True, "enrollment": enrollment_to_document(enrollment)}


@router.get("/enrolled", summary="The caller's enrollments, newest first")
async def list_enrolled(user: CurrentUser, enrollments: EnrollmentRepositoryDep) -> dict[str, Any]:
    return {
        "programs": [
            enrollment_to_document(e)
            for e in await enrollments.list_for_user(user.user_id)
        ]
    }


@router.get("/enrollments", summary="Enrollment summaries from the caller's profile")
async def list_enrollment_summaries(user: CurrentUser) -> dict[str, Any]:
    summaries = user.profile.programs if user.profile else []
    return {
        "enrollments": [
            {
                "enrollmentId": s.enrollment_id,
                "programId": s.program_id,
                "programName": s.program_name,
                "enrolledAt": format_timestamp(s.enrolled_at),
            }
            for s in summaries
        ]
    }
