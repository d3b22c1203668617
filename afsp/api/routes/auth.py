"""
Account endpoints: signup, signin, signout, session, password change.

Credentials never touch the store. The identity service owns passwords
and tokens; this module validates input, creates the matching profile
document and shapes responses.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.models import IdentityUser, Role, UserProfile
from ...core.validation import (
    sanitize_string,
    validate_email,
    validate_password,
    validate_phone_number,
)
from ...infrastructure.identity.client import DuplicateUserError, InvalidCredentialsError
from ...infrastructure.kv.repositories.users import profile_to_document
from ..dependencies import (
    AccessTokenDep,
    CurrentUser,
    IdentityClientDep,
    SettingsDep,
    UserRepositoryDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class SignupRequest(BaseModel):
    """
    New account details.

    Fields are optional at the schema level so a missing field yields the
    API's own "Missing required fields" message instead of a schema error.
    """
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = Field(default=None, alias="fullName")
    username: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    role: Optional[str] = None


class SigninRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: Optional[str] = Field(default=None, alias="currentPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def user_document(identity: IdentityUser, profile: Optional[UserProfile]) -> dict[str, Any]:
    """
    The denormalised user object clients keep alongside their token.

    Accounts created before profiles existed fall back to identity metadata.
    """
    if profile is not None:
        return profile_to_document(profile)
    metadata = identity.user_metadata
    return {
        "id": identity.id,
        "email": identity.email,
        "fullName": metadata.get("name", ""),
        "role": metadata.get("role", Role.ATHLETE.value),
    }


def _password_errors(password: str) -> None:
    result = validate_password(password)
    if not result.is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="; ".join(result.errors),
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/signup",
    summary="Create an account",
    description="Creates the identity user and the matching profile document.",
)
async def signup(
    request: SignupRequest,
    settings: SettingsDep,
    identity: IdentityClientDep,
    users: UserRepositoryDep,
) -> dict[str, Any]:
    if not request.email or not request.password or not request.full_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields",
        )

    email = sanitize_string(request.email).lower()
    full_name = sanitize_string(request.full_name)
    username = sanitize_string(request.username) if request.username else None
    phone_number = sanitize_string(request.phone_number) if request.phone_number else None

    if not full_name:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Missing required fields")
    if not validate_email(email):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid email address")
    _password_errors(request.password)
    if phone_number and not validate_phone_number(phone_number):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid phone number")

    try:
        role = Role(request.role or Role.ATHLETE.value)
    except ValueError:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid role")
    if role == Role.ADMIN and not settings.allow_admin_signup:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid role")

    if username and await users.username_taken(username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username is already taken",
        )

    try:
        identity_user = await identity.create_user(
            email=email,
            password=request.password,
            metadata={"name": full_name, "role": role.value},
        )
    except DuplicateUserError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists",
        )

    profile = UserProfile(
        id=identity_user.id,
        email=email,
        full_name=full_name,
        role=role,
        username=username,
        phone_number=phone_number,
    )
    await users.save(profile)

    logger.info(
        "User signed up",
        extra={"user_id": profile.id, "role": role.value}
    )

    return {"success": True, "user": profile_to_document(profile)}


@router.post("/signin", summary="Sign in with email and password")
async def signin(
    request: SigninRequest,
    identity: IdentityClientDep,
    users: UserRepositoryDep,
) -> dict[str, Any]:
    if not request.email or not request.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing email or password",
        )

    try:
        session = await identity.sign_in(request.email.strip().lower(), request.password)
    except InvalidCredentialsError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login credentials",
        )

    profile = await users.get(session.user.id)
    logger.info("User signed in", extra={"user_id": session.user.id})

    return {
        "success": True,
        "accessToken": session.access_token,
        "user": user_document(session.user, profile),
    }


@router.post("/signout", summary="Revoke the current access token")
async def signout(access_token: AccessTokenDep, identity: IdentityClientDep) -> dict[str, Any]:
    await identity.sign_out(access_token)
    return {"success": True}


@router.get("/session", summary="Current user for a token")
async def get_session(user: CurrentUser) -> dict[str, Any]:
    return {"user": user_document(user.identity, user.profile)}


@router.post("/change-password", summary="Change the caller's password")
async def change_password(
    request: ChangePasswordRequest,
    user: CurrentUser,
    identity: IdentityClientDep,
) -> dict[str, Any]:
    if not request.current_password or not request.new_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields",
        )

    # Re-authenticating proves the caller knows the current password
    try:
        check = await identity.sign_in(user.identity.email, request.current_password)
    except InvalidCredentialsError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )
    # The check opened a session of its own; only the caller's stays live
    await identity.sign_out(check.access_token)

    if request.new_password == request.current_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must be different from the current password",
        )
    _password_errors(request.new_password)

    await identity.update_password(user.user_id, request.new_password)
    logger.info("Password changed", extra={"user_id": user.user_id})

    return {"success": True}
