"""
Shared fixtures.

Every test gets fresh in-memory identity, key-value and storage clients,
wired into a new app through dependency_overrides. TestClient is used
without a context manager so the lifespan (bucket setup) doesn't run.
"""

import asyncio
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient

from afsp.api.dependencies import (
    get_identity_client,
    get_kv_store,
    get_storage_client,
    reset_clients,
)
from afsp.config.settings import Settings, get_settings
from afsp.core.models import CoachRef, Role, UserProfile
from afsp.infrastructure.identity.client import MockIdentityClient
from afsp.infrastructure.kv.client import MockKeyValueStore
from afsp.infrastructure.kv.repositories import UserRepository
from afsp.infrastructure.storage.client import MockStorageClient
from afsp.main import create_app


PASSWORD = "Str0ng!Pass"


@dataclass
class Account:
    """A provisioned user and a valid token for them."""
    id: str
    email: str
    full_name: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        supabase_mock_mode=True,
        storage_mock_mode=True,
        max_upload_size_mb=1,
    )


@pytest.fixture
def identity() -> MockIdentityClient:
    return MockIdentityClient()


@pytest.fixture
def store() -> MockKeyValueStore:
    return MockKeyValueStore()


@pytest.fixture
def storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def app(settings, identity, store, storage):
    reset_clients()
    application = create_app()
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_identity_client] = lambda: identity
    application.dependency_overrides[get_kv_store] = lambda: store
    application.dependency_overrides[get_storage_client] = lambda: storage
    yield application
    application.dependency_overrides.clear()
    reset_clients()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_account(identity, store):
    """
    Factory for accounts that skip the signup route.

    The identity user and profile are created directly, so tests can set
    up admins and coaches without enabling admin signup.
    """
    users = UserRepository(store)
    counter = {"n": 0}

    def _make(
        role: Role = Role.ATHLETE,
        full_name: str = "Test User",
        email: str | None = None,
        username: str | None = None,
        coach: Account | None = None,
    ) -> Account:
        counter["n"] += 1
        email = email or f"{role.value}{counter['n']}@example.com"

        async def provision() -> Account:
            user = await identity.create_user(
                email=email,
                password=PASSWORD,
                metadata={"name": full_name, "role": role.value},
            )
            profile = UserProfile(
                id=user.id,
                email=email,
                full_name=full_name,
                role=role,
                username=username,
                assigned_coach=CoachRef(id=coach.id, name=coach.full_name) if coach else None,
            )
            await users.save(profile)
            return Account(
                id=user.id,
                email=email,
                full_name=full_name,
                token=identity.issue_token(user.id),
            )

        return asyncio.run(provision())

    return _make


@pytest.fixture
def athlete(make_account) -> Account:
    return make_account(Role.ATHLETE, "Avery Athlete")


@pytest.fixture
def coach(make_account) -> Account:
    return make_account(Role.COACH, "Casey Coach")


@pytest.fixture
def admin(make_account) -> Account:
    return make_account(Role.ADMIN, "Alex Admin")
