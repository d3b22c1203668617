"""
Athlete-facing exercise endpoints: today's schedule and completion.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.models import ExerciseAssignment
from ...infrastructure.kv.repositories.exercises import assignment_to_document, today_utc
from ...infrastructure.storage.client import StorageClient
from ..dependencies import (
    CurrentUser,
    ExerciseAssignmentRepositoryDep,
    SettingsDep,
    StorageClientDep,
)
from ..media import sign_path

logger = logging.getLogger(__name__)

router = APIRouter()


class CompleteExerciseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exercise_id: Optional[str] = Field(default=None, alias="exerciseId")


async def assignment_response(
    assignment: ExerciseAssignment,
    storage: StorageClient,
    bucket: str,
    expiry_seconds: int,
) -> dict[str, Any]:
    """Assignment document with its media URL re-signed."""
    document = assignment_to_document(assignment)
    signed = await sign_path(storage, bucket, assignment.media_path, expiry_seconds)
    if signed:
        document["mediaUrl"] = signed
    return document


@router.get("/daily", summary="Exercises assigned to the caller for today")
async def get_daily_exercises(
    user: CurrentUser,
    settings: SettingsDep,
    assignments: ExerciseAssignmentRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    due = await assignments.list_due(user.user_id, today_utc())
    return {
        "exercises": [
            await assignment_response(
                a, storage, settings.exercise_media_bucket, settings.signed_url_expiry_seconds
            )
            for a in due
        ]
    }


@router.post("/complete", summary="Mark an assigned exercise complete")
async def complete_exercise(
    request: CompleteExerciseRequest,
    user: CurrentUser,
    assignments: ExerciseAssignmentRepositoryDep,
) -> dict[str, Any]:
    if not request.exercise_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Exercise ID required",
        )

    assignment = await assignments.get(request.exercise_id)
    if assignment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Exercise not found",
        )

    if assignment.user_id != user.user_id:
        logger.warning(
            "Exercise completion denied",
            extra={"user_id": user.user_id, "exercise_id": assignment.id}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized to modify this exercise",
        )

    assignment.mark_complete()
    await assignments.save(assignment)

    return {"success": True, "exercise": assignment_to_document(assignment)}
