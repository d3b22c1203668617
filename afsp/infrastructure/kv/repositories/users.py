"""
Repository for user profiles.

Profiles live at "user:{userId}" where userId is the identity service's
user id. The profile is the source of truth for role and display name;
identity metadata only seeds it at signup.
"""

import logging
from typing import Any, Optional

from afsp.core.models import (
    CoachRef,
    EnrollmentSummary,
    Role,
    UserProfile,
    utcnow,
)

from .base import Repository, format_timestamp, parse_enum, parse_timestamp

logger = logging.getLogger(__name__)


USER_PREFIX = "user:"


class UserNotFoundError(Exception):
    """Raised when a requested profile doesn't exist."""
    pass


def user_key(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def profile_to_document(profile: UserProfile) -> dict[str, Any]:
    document: dict[str, Any] = {
        "id": profile.id,
        "email": profile.email,
        "fullName": profile.full_name,
        "role": profile.role.value,
        "programs": [
            {
                "enrollmentId": summary.enrollment_id,
                "programId": summary.program_id,
                "programName": summary.program_name,
                "enrolledAt": format_timestamp(summary.enrolled_at),
            }
            for summary in profile.programs
        ],
        "assignedCoach": (
            {"id": profile.assigned_coach.id, "name": profile.assigned_coach.name}
            if profile.assigned_coach else None
        ),
        "createdAt": format_timestamp(profile.created_at),
    }
    if profile.username is not None:
        document["username"] = profile.username
    if profile.phone_number is not None:
        document["phoneNumber"] = profile.phone_number
    if profile.updated_at is not None:
        document["updatedAt"] = format_timestamp(profile.updated_at)
    return document


def profile_from_document(document: dict[str, Any]) -> UserProfile:
    coach = document.get("assignedCoach")
    profile = UserProfile(
        id=document["id"],
        email=document.get("email", ""),
        full_name=document.get("fullName") or "",
        role=parse_enum(Role, document.get("role"), Role.ATHLETE),
        username=document.get("username"),
        phone_number=document.get("phoneNumber"),
        programs=[
            EnrollmentSummary(
                enrollment_id=item.get("enrollmentId", ""),
                program_id=item.get("programId", ""),
                program_name=item.get("programName", ""),
                enrolled_at=parse_timestamp(item.get("enrolledAt")) or utcnow(),
            )
            for item in document.get("programs") or []
        ],
        assigned_coach=(
            CoachRef(id=coach["id"], name=coach.get("name", ""))
            if isinstance(coach, dict) and coach.get("id") else None
        ),
        updated_at=parse_timestamp(document.get("updatedAt")),
    )
    created_at = parse_timestamp(document.get("createdAt"))
    if created_at:
        profile.created_at = created_at
    return profile


class UserRepository(Repository):
    """
    Profile persistence and the scans built on it.

    Listing by role and username lookups are full scans of "user:". That
    is acceptable at studio scale and keeps the store index-free.
    """

    async def get(self, user_id: str) -> Optional[UserProfile]:
        document = await self._store.get(user_key(user_id))
        if document is None:
            return None
        return profile_from_document(document)

    async def get_or_raise(self, user_id: str) -> UserProfile:
        profile = await self.get(user_id)
        if profile is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return profile

    async def save(self, profile: UserProfile) -> None:
        await self._store.set(user_key(profile.id), profile_to_document(profile))

    async def list_all(self) -> list[UserProfile]:
        documents = await self._store.get_by_prefix(USER_PREFIX)
        return [profile_from_document(d) for d in documents if d.get("id")]

    async def list_by_role(self, role: Role) -> list[UserProfile]:
        return [p for p in await self.list_all() if p.role == role]

    async def username_taken(
        self,
        username: str,
        exclude_user_id: Optional[str] = None,
    ) -> bool:
        """
        Case-insensitive username check.

        Read-then-write: two concurrent signups can both pass this check.
        """
        wanted = username.strip().lower()
        for profile in await self.list_all():
            if profile.id == exclude_user_id:
                continue
            if profile.username and profile.username.lower() == wanted:
                return True
        return False

    async def search(
        self,
        query: str,
        exclude_user_id: Optional[str] = None,
        limit: int = 20,
    ) -> list[UserProfile]:
        matches = [
            profile for profile in await self.list_all()
            if profile.id != exclude_user_id and profile.matches(query)
        ]
        matches.sort(key=lambda p: p.full_name.lower())
        return matches[:limit]

    async def display_name(self, user_id: str, default: str = "Unknown") -> str:
        profile = await self.get(user_id)
        if profile is None or not profile.full_name:
            return default
        return profile.full_name
