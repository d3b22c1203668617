#!/usr/bin/env python3
"""
Create an admin account, or promote an existing account to admin.

Public signup never grants the admin role (unless ALLOW_ADMIN_SIGNUP is
set), so the first admin is provisioned here with the service role key.

Usage:
    python scripts/create_admin.py --email admin@example.com --name "Studio Admin"

Requires:
    - .env file with SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY
    - ADMIN_PASSWORD in the environment, or --password, when creating
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Add the project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from afsp.config.settings import get_settings  # noqa: E402
from afsp.core.models import Role, UserProfile, utcnow  # noqa: E402
from afsp.core.validation import validate_email, validate_password  # noqa: E402
from afsp.infrastructure.identity.client import IdentityError, create_identity_client  # noqa: E402
from afsp.infrastructure.kv.client import KeyValueStoreError, create_kv_store  # noqa: E402
from afsp.infrastructure.kv.repositories import UserRepository  # noqa: E402


async def provision_admin(email: str, password: str | None, full_name: str) -> bool:
    """
    Ensure an admin identity user and profile exist for email.

    Existing users keep their password; only metadata and profile role
    change.
    """
    settings = get_settings()
    missing = [
        name for name, value in (
            ("SUPABASE_URL", settings.supabase_url),
            ("SUPABASE_SERVICE_ROLE_KEY", settings.supabase_service_role_key),
        )
        if not value
    ]
    if missing and not settings.supabase_mock_mode:
        print(f"ERROR: Missing {', '.join(missing)}")
        return False

    identity = create_identity_client(
        url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        anon_key=settings.supabase_anon_key,
        mock_mode=settings.supabase_mock_mode,
    )
    users = UserRepository(create_kv_store(
        url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        table=settings.kv_table,
        mock_mode=settings.supabase_mock_mode,
    ))

    metadata = {"name": full_name, "role": Role.ADMIN.value}

    try:
        existing = await identity.find_user_by_email(email)
        if existing is not None:
            print(f"Promoting existing user {existing.id}")
            await identity.update_metadata(existing.id, {**existing.user_metadata, **metadata})
            user_id = existing.id
        else:
            if not password:
                print("ERROR: A password is required to create a new account")
                return False
            result = validate_password(password)
            if not result.is_valid:
                for error in result.errors:
                    print(f"ERROR: {error}")
                return False
            created = await identity.create_user(email=email, password=password, metadata=metadata)
            print(f"Created identity user {created.id}")
            user_id = created.id

        profile = await users.get(user_id)
        if profile is None:
            profile = UserProfile(id=user_id, email=email, full_name=full_name, role=Role.ADMIN)
        else:
            profile.role = Role.ADMIN
            profile.updated_at = utcnow()
        await users.save(profile)

    except (IdentityError, KeyValueStoreError) as e:
        print(f"ERROR: {e}")
        return False

    print(f"[OK] {email} is an admin")
    return True


def main():
    parser = argparse.ArgumentParser(description='Create or promote an admin account')
    parser.add_argument('--email', required=True, help='Admin email address')
    parser.add_argument('--name', default='Administrator', help='Full name for the profile')
    parser.add_argument(
        '--password',
        default=os.getenv('ADMIN_PASSWORD'),
        help='Password for a new account (defaults to $ADMIN_PASSWORD)',
    )
    args = parser.parse_args()

    email = args.email.strip().lower()
    if not validate_email(email):
        print(f"ERROR: Invalid email address: {args.email}")
        sys.exit(1)

    success = asyncio.run(provision_admin(email, args.password, args.name.strip()))

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
