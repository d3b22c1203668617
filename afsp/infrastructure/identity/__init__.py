"""
Identity service integration (Supabase Auth).

Includes mock mode for local development without a Supabase project.
"""

from .client import (
    AuthSession,
    DuplicateUserError,
    IdentityClient,
    IdentityError,
    InvalidCredentialsError,
    InvalidTokenError,
    MockIdentityClient,
    SupabaseIdentityClient,
    create_identity_client,
)

__all__ = [
    "AuthSession",
    "DuplicateUserError",
    "IdentityClient",
    "IdentityError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "MockIdentityClient",
    "SupabaseIdentityClient",
    "create_identity_client",
]
