"""
FastAPI dependency injection.

Dependencies provide clients, repositories, configuration and the
authenticated caller to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Tests swap the three external clients through app.dependency_overrides
- Authorization lives in one place instead of in every handler

The single auth dependency (get_current_user) extracts the bearer token,
resolves it through the identity service, loads the caller's profile and
settles their role. require_admin and require_coach build on it.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, get_settings
from ..core.models import IdentityUser, Role, UserProfile, resolve_role
from ..infrastructure.identity.client import (
    IdentityClient,
    InvalidTokenError,
    create_identity_client,
)
from ..infrastructure.kv.client import KeyValueStore, create_kv_store
from ..infrastructure.kv.repositories import (
    BrandingRepository,
    ChatRepository,
    ContractRepository,
    EnrollmentRepository,
    ExerciseAssignmentRepository,
    ExerciseCategoryRepository,
    ExerciseLibraryRepository,
    JournalRepository,
    ProgramRepository,
    UserRepository,
)
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client

logger = logging.getLogger(__name__)

# Bearer token scheme; auto_error=False so a missing header becomes our own 401
bearer_scheme = HTTPBearer(auto_error=False)

# Clients are created once per process. In mock mode this also means the
# in-memory data persists across requests.
_identity_client: Optional[IdentityClient] = None
_kv_store: Optional[KeyValueStore] = None
_storage_client: Optional[StorageClient] = None


# ---------------------------------------------------------------------------
# External Clients
# ---------------------------------------------------------------------------

def get_identity_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> IdentityClient:
    """Provide the identity service client (Supabase Auth or in-memory)."""
    global _identity_client

    if _identity_client is None:
        _identity_client = create_identity_client(
            url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            anon_key=settings.supabase_anon_key,
            mock_mode=settings.supabase_mock_mode,
        )
        logger.info(
            "Created identity client",
            extra={"mock_mode": settings.supabase_mock_mode}
        )

    return _identity_client


def get_kv_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> KeyValueStore:
    """Provide the key-value document store."""
    global _kv_store

    if _kv_store is None:
        _kv_store = create_kv_store(
            url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            table=settings.kv_table,
            mock_mode=settings.supabase_mock_mode,
        )
        logger.info(
            "Created key-value store",
            extra={"table": settings.kv_table, "mock_mode": settings.supabase_mock_mode}
        )

    return _kv_store


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageClient:
    """
    Provide the object storage client for media uploads.

    Returns either the S3 client or the mock client based on settings.
    """
    global _storage_client

    if _storage_client is None:
        if settings.storage_mock_mode:
            _storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client")
        else:
            config = StorageConfig(
                access_key_id=settings.storage_access_key_id,
                secret_access_key=settings.storage_secret_access_key,
                endpoint_url=settings.storage_endpoint,
                region=settings.storage_region,
            )
            _storage_client = create_storage_client(config=config)

    return _storage_client


def reset_clients() -> None:
    """Drop the cached clients. Used by tests and after settings change."""
    global _identity_client, _kv_store, _storage_client
    _identity_client = None
    _kv_store = None
    _storage_client = None


KeyValueStoreDep = Annotated[KeyValueStore, Depends(get_kv_store)]


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

def get_user_repository(store: KeyValueStoreDep) -> UserRepository:
    return UserRepository(store)


def get_program_repository(store: KeyValueStoreDep) -> ProgramRepository:
    return ProgramRepository(store)


def get_enrollment_repository(store: KeyValueStoreDep) -> EnrollmentRepository:
    return EnrollmentRepository(store)


def get_contract_repository(store: KeyValueStoreDep) -> ContractRepository:
    return ContractRepository(store)


def get_exercise_library_repository(store: KeyValueStoreDep) -> ExerciseLibraryRepository:
    return ExerciseLibraryRepository(store)


def get_exercise_category_repository(store: KeyValueStoreDep) -> ExerciseCategoryRepository:
    return ExerciseCategoryRepository(store)


def get_exercise_assignment_repository(store: KeyValueStoreDep) -> ExerciseAssignmentRepository:
    return ExerciseAssignmentRepository(store)


def get_journal_repository(store: KeyValueStoreDep) -> JournalRepository:
    return JournalRepository(store)


def get_chat_repository(store: KeyValueStoreDep) -> ChatRepository:
    return ChatRepository(store)


def get_branding_repository(store: KeyValueStoreDep) -> BrandingRepository:
    return BrandingRepository(store)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@dataclass
class AuthContext:
    """The authenticated caller of a request."""
    identity: IdentityUser
    profile: Optional[UserProfile]
    role: Role
    access_token: str

    @property
    def user_id(self) -> str:
        return self.identity.id

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def display_name(self) -> str:
        if self.profile and self.profile.full_name:
            return self.profile.full_name
        return self.identity.user_metadata.get("name") or "Unknown"


async def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """Bearer token from the Authorization header. 401 when absent."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return credentials.credentials


async def get_current_user(
    access_token: Annotated[str, Depends(get_access_token)],
    identity: Annotated[IdentityClient, Depends(get_identity_client)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> AuthContext:
    """
    Resolve the caller.

    The token is checked against the identity service on every request;
    there is no local session cache.
    """
    try:
        identity_user = await identity.get_user(access_token)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session",
        )

    profile = await users.get(identity_user.id)
    role = resolve_role(identity_user, profile)

    return AuthContext(
        identity=identity_user,
        profile=profile,
        role=role,
        access_token=access_token,
    )


CurrentUser = Annotated[AuthContext, Depends(get_current_user)]


async def require_admin(user: CurrentUser) -> AuthContext:
    if not user.is_admin:
        logger.warning("Admin access denied", extra={"user_id": user.user_id})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


async def require_coach(user: CurrentUser) -> AuthContext:
    if user.role != Role.COACH:
        logger.warning("Coach access denied", extra={"user_id": user.user_id})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Coach access required",
        )
    return user


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AdminUser = Annotated[AuthContext, Depends(require_admin)]
CoachUser = Annotated[AuthContext, Depends(require_coach)]
AccessTokenDep = Annotated[str, Depends(get_access_token)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
IdentityClientDep = Annotated[IdentityClient, Depends(get_identity_client)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
UserRepositoryDep = Annotated[UserRepository, Depends(get_user_repository)]
ProgramRepositoryDep = Annotated[ProgramRepository, Depends(get_program_repository)]
EnrollmentRepositoryDep = Annotated[EnrollmentRepository, Depends(get_enrollment_repository)]
ContractRepositoryDep = Annotated[ContractRepository, Depends(get_contract_repository)]
ExerciseLibraryRepositoryDep = Annotated[
    ExerciseLibraryRepository, Depends(get_exercise_library_repository)
]
ExerciseCategoryRepositoryDep = Annotated[
    ExerciseCategoryRepository, Depends(get_exercise_category_repository)
]
ExerciseAssignmentRepositoryDep = Annotated[
    ExerciseAssignmentRepository, Depends(get_exercise_assignment_repository)
]
JournalRepositoryDep = Annotated[JournalRepository, Depends(get_journal_repository)]
ChatRepositoryDep = Annotated[ChatRepository, Depends(get_chat_repository)]
BrandingRepositoryDep = Annotated[BrandingRepository, Depends(get_branding_repository)]
