"""
Coach endpoints: assigned programs with their athletes, the exercise
library, and assigning library exercises.
"""

import logging
from typing import Any

from fastapi import APIRouter

from ...infrastructure.kv.repositories.users import profile_to_document
from ..dependencies import (
    CoachUser,
    EnrollmentRepositoryDep,
    ExerciseAssignmentRepositoryDep,
    ExerciseLibraryRepositoryDep,
    ProgramRepositoryDep,
    SettingsDep,
    StorageClientDep,
    UserRepositoryDep,
)
from .admin import (
    AssignExerciseRequest,
    assign_library_exercise,
    library_response,
    program_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/programs", summary="Programs assigned to the caller")
async def list_coach_programs(
    coach: CoachUser,
    settings: SettingsDep,
    programs: ProgramRepositoryDep,
    enrollments: EnrollmentRepositoryDep,
    users: UserRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    """
    Each program carries enrolledAthletes: the profiles of users with an
    enrollment in it, one entry per athlete.
    """
    documents = []
    for program in await programs.list_for_coach(coach.user_id):
        athletes = []
        seen: set[str] = set()
        for enrollment in await enrollments.list_for_program(program.id):
            if enrollment.user_id in seen:
                continue
            seen.add(enrollment.user_id)
            profile = await users.get(enrollment.user_id)
            if profile is not None:
                athletes.append(profile_to_document(profile))

        document = await program_response(program, storage, settings)
        document["enrolledAthletes"] = athletes
        documents.append(document)

    return {"programs": documents}


@router.get("/exercises", summary="Exercise library, newest first")
async def list_coach_exercises(
    coach: CoachUser,
    settings: SettingsDep,
    library: ExerciseLibraryRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    return {"exercises": await library_response(await library.list_all(), storage, settings)}


@router.post("/exercises/{exercise_id}/assign", summary="Assign a library exercise")
async def assign_exercise(
    exercise_id: str,
    request: AssignExerciseRequest,
    coach: CoachUser,
    library: ExerciseLibraryRepositoryDep,
    assignments: ExerciseAssignmentRepositoryDep,
) -> dict[str, Any]:
    result = await assign_library_exercise(exercise_id, request, coach, library, assignments)
    logger.info(
        "Coach assigned exercise",
        extra={"coach_id": coach.user_id, "exercise_id": exercise_id}
    )
    return result
