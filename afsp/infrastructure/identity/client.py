"""
Identity service client.

Authentication is delegated to Supabase Auth: it owns passwords, issues
access tokens and validates them. The API never stores credentials, it
only asks this client who a token belongs to.

Two Supabase clients are involved:
- the service-role client performs admin calls (create user, update
  password, revoke tokens)
- a fresh anon-key client per sign-in or token check, because
  sign_in_with_password stores the resulting session on the client it
  was called on, and a shared client must not carry a user's session

Mock mode keeps users and tokens in memory, enabling API testing without
a Supabase project.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from uuid import uuid4

from afsp.core.models import IdentityUser

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Raised when an identity service call fails."""
    pass


class InvalidCredentialsError(IdentityError):
    """Email/password pair rejected."""
    pass


class InvalidTokenError(IdentityError):
    """Access token missing, expired or revoked."""
    pass


class DuplicateUserError(IdentityError):
    """An account with this email already exists."""
    pass


@dataclass
class AuthSession:
    access_token: str
    user: IdentityUser


class IdentityClient(Protocol):
    """
    Protocol for identity operations.

    Route handlers and the auth dependency only know this protocol.
    """

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
    ) -> IdentityUser:
        """Create a confirmed user with the given metadata."""
        ...

    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    async def get_user(self, access_token: str) -> IdentityUser:
        """Resolve a token to its user. Raises InvalidTokenError."""
        ...

    async def sign_out(self, access_token: str) -> None:
        ...

    async def update_password(self, user_id: str, password: str) -> None:
        ...

    async def update_metadata(self, user_id: str, metadata: dict[str, Any]) -> None:
        ...

    async def find_user_by_email(self, email: str) -> Optional[IdentityUser]:
        ...


def _to_identity_user(user: Any) -> IdentityUser:
    return IdentityUser(
        id=str(user.id),
        email=user.email or "",
        user_metadata=dict(user.user_metadata or {}),
    )


def _token_hint(access_token: str) -> str:
    return f"{access_token[:6]}..." if access_token else ""


class SupabaseIdentityClient:
    """
    Supabase Auth client.

    The supabase SDK is synchronous; methods are async to match the
    Protocol and the rest of the application.
    """

    def __init__(self, url: str, service_role_key: str, anon_key: str) -> None:
        from supabase import create_client

        self._create_client = create_client
        self._url = url
        self._anon_key = anon_key
        self._service = create_client(url, service_role_key)

        logger.info("Initialized Supabase identity client", extra={"url": url})

    def _anon_client(self):
        return self._create_client(self._url, self._anon_key)

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
    ) -> IdentityUser:
        try:
            response = self._service.auth.admin.create_user({
                "email": email,
                "password": password,
                "user_metadata": metadata,
                # No mail server is configured, so users are confirmed on creation
                "email_confirm": True,
            })
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            if "already" in message.lower():
                raise DuplicateUserError(message)
            logger.error("Failed to create user", extra={"error": message})
            raise IdentityError(f"Create user failed: {message}")

        user = _to_identity_user(response.user)
        logger.info("Created identity user", extra={"user_id": user.id})
        return user

    async def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = self._anon_client().auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            logger.info("Sign-in rejected", extra={"error": message})
            raise InvalidCredentialsError(message)

        if response.session is None or response.user is None:
            raise InvalidCredentialsError("Invalid login credentials")

        return AuthSession(
            access_token=response.session.access_token,
            user=_to_identity_user(response.user),
        )

    async def get_user(self, access_token: str) -> IdentityUser:
        try:
            response = self._anon_client().auth.get_user(access_token)
        except Exception as e:
            logger.info(
                "Token rejected",
                extra={"token": _token_hint(access_token), "error": str(e)}
            )
            raise InvalidTokenError(str(e))

        if response is None or response.user is None:
            raise InvalidTokenError("Invalid session")

        return _to_identity_user(response.user)

    async def sign_out(self, access_token: str) -> None:
        try:
            self._service.auth.admin.sign_out(access_token)
        except Exception as e:
            logger.warning(
                "Failed to revoke token",
                extra={"token": _token_hint(access_token), "error": str(e)}
            )
            raise IdentityError(f"Sign out failed: {e}")

    async def update_password(self, user_id: str, password: str) -> None:
        try:
            self._service.auth.admin.update_user_by_id(user_id, {"password": password})
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            logger.error(
                "Failed to update password",
                extra={"user_id": user_id, "error": message}
            )
            raise IdentityError(f"Password update failed: {message}")

    async def update_metadata(self, user_id: str, metadata: dict[str, Any]) -> None:
        try:
            self._service.auth.admin.update_user_by_id(
                user_id, {"user_metadata": metadata}
            )
        except Exception as e:
            logger.error(
                "Failed to update user metadata",
                extra={"user_id": user_id, "error": str(e)}
            )
            raise IdentityError(f"Metadata update failed: {e}")

    async def find_user_by_email(self, email: str) -> Optional[IdentityUser]:
        """Linear scan of the user list. Only used by admin tooling."""
        try:
            users = self._service.auth.admin.list_users()
        except Exception as e:
            raise IdentityError(f"List users failed: {e}")

        for user in users:
            if (user.email or "").lower() == email.lower():
                return _to_identity_user(user)
        return None


# ---------------------------------------------------------------------------
# Mock Identity Service for Local Development
# ---------------------------------------------------------------------------

class MockIdentityClient:
    """
    In-memory identity service.

    Passwords are kept in plain text and tokens are random strings; this
    exists for tests and local development only.
    """

    def __init__(self) -> None:
        self._users: dict[str, IdentityUser] = {}
        self._passwords: dict[str, str] = {}
        self._tokens: dict[str, str] = {}
        logger.info("Initialized mock identity client (in-memory)")

    def _by_email(self, email: str) -> Optional[IdentityUser]:
        for user in self._users.values():
            if user.email.lower() == email.lower():
                return user
        return None

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
    ) -> IdentityUser:
        if self._by_email(email) is not None:
            raise DuplicateUserError(
                "A user with this email address has already been registered"
            )

        user = IdentityUser(id=str(uuid4()), email=email, user_metadata=dict(metadata))
        self._users[user.id] = user
        self._passwords[user.id] = password
        return user

    async def sign_in(self, email: str, password: str) -> AuthSession:
        user = self._by_email(email)
        if user is None or self._passwords.get(user.id) != password:
            raise InvalidCredentialsError("Invalid login credentials")

        return AuthSession(access_token=self.issue_token(user.id), user=user)

    async def get_user(self, access_token: str) -> IdentityUser:
        user_id = self._tokens.get(access_token)
        if user_id is None or user_id not in self._users:
            raise InvalidTokenError("Invalid session")
        return self._users[user_id]

    async def sign_out(self, access_token: str) -> None:
        self._tokens.pop(access_token, None)

    async def update_password(self, user_id: str, password: str) -> None:
        if user_id not in self._users:
            raise IdentityError(f"User not found: {user_id}")
        self._passwords[user_id] = password

    async def update_metadata(self, user_id: str, metadata: dict[str, Any]) -> None:
        if user_id not in self._users:
            raise IdentityError(f"User not found: {user_id}")
        self._users[user_id].user_metadata.update(metadata)

    async def find_user_by_email(self, email: str) -> Optional[IdentityUser]:
        return self._by_email(email)

    def session_count(self, user_id: str) -> int:
        return sum(1 for owner in self._tokens.values() if owner == user_id)

    def issue_token(self, user_id: str) -> str:
        """Mint a token for an existing user. Lets tests skip sign-in."""
        token = f"mock-token-{secrets.token_hex(16)}"
        self._tokens[token] = user_id
        return token


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_identity_client(
    url: str = "",
    service_role_key: str = "",
    anon_key: str = "",
    mock_mode: bool = False,
) -> IdentityClient:
    if mock_mode:
        return MockIdentityClient()

    if not (url and service_role_key and anon_key):
        raise ValueError("Supabase URL and keys are required when not in mock mode")

    return SupabaseIdentityClient(url, service_role_key, anon_key)
