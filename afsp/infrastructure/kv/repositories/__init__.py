"""
Repository implementations over the key-value store.

Repositories translate between domain models and stored JSON documents.
"""

from .branding import BrandingRepository
from .chat import ChatRepository
from .contracts import ContractRepository
from .enrollments import EnrollmentRepository
from .exercises import (
    ExerciseAssignmentRepository,
    ExerciseCategoryRepository,
    ExerciseLibraryRepository,
)
from .journal import JournalRepository
from .programs import ProgramNotFoundError, ProgramRepository
from .users import UserNotFoundError, UserRepository

__all__ = [
    "BrandingRepository",
    "ChatRepository",
    "ContractRepository",
    "EnrollmentRepository",
    "ExerciseAssignmentRepository",
    "ExerciseCategoryRepository",
    "ExerciseLibraryRepository",
    "JournalRepository",
    "ProgramNotFoundError",
    "ProgramRepository",
    "UserNotFoundError",
    "UserRepository",
]
