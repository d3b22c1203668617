"""
Profile endpoints for the signed-in user, plus the public logo lookup.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.models import UserProfile, utcnow
from ...core.validation import sanitize_string, validate_phone_number
from ...infrastructure.kv.repositories.users import profile_to_document
from ..dependencies import (
    BrandingRepositoryDep,
    CurrentUser,
    SettingsDep,
    StorageClientDep,
    UserRepositoryDep,
)
from ..media import sign_path

logger = logging.getLogger(__name__)

router = APIRouter()


class ProfileUpdateRequest(BaseModel):
    """Partial profile update. Omitted fields are left unchanged."""
    model_config = ConfigDict(populate_by_name=True)

    full_name: Optional[str] = Field(default=None, alias="fullName")
    username: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")


@router.put("/user/profile", summary="Update the caller's profile")
async def update_profile(
    request: ProfileUpdateRequest,
    user: CurrentUser,
    users: UserRepositoryDep,
) -> dict[str, Any]:
    profile = user.profile
    if profile is None:
        # Accounts that predate profile documents get one on first edit
        profile = UserProfile(
            id=user.user_id,
            email=user.identity.email,
            full_name=user.display_name,
            role=user.role,
        )

    if request.full_name is not None:
        full_name = sanitize_string(request.full_name)
        if not full_name:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Full name cannot be empty")
        profile.full_name = full_name

    if request.username is not None:
        username = sanitize_string(request.username)
        if username and await users.username_taken(username, exclude_user_id=profile.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username is already taken",
            )
        profile.username = username or None

    if request.phone_number is not None:
        phone_number = sanitize_string(request.phone_number)
        if phone_number and not validate_phone_number(phone_number):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid phone number")
        profile.phone_number = phone_number or None

    profile.updated_at = utcnow()
    await users.save(profile)

    logger.info("Profile updated", extra={"user_id": profile.id})

    return {"success": True, "user": profile_to_document(profile)}


@router.get("/logo", summary="Current site logo (public)")
async def get_logo(
    settings: SettingsDep,
    branding: BrandingRepositoryDep,
    storage: StorageClientDep,
) -> dict[str, Any]:
    logo = await branding.get_logo()
    logo_url = None
    if logo:
        logo_url = await sign_path(
            storage,
            settings.exercise_media_bucket,
            logo.get("path"),
            settings.signed_url_expiry_seconds,
        )
    return {"logoUrl": logo_url}
