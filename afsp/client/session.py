"""
Client-side session lifecycle.

A session is the access token plus the denormalised user document the
server returned at sign-in. SessionStore persists exactly those two
values; SessionManager owns the transitions between logged out and
logged in.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .api import AFSPClient, APIError, NetworkError

logger = logging.getLogger(__name__)


@dataclass
class ClientSession:
    access_token: str
    user: dict[str, Any]

    @property
    def role(self) -> str:
        return self.user.get("role", "athlete")

    @property
    def user_id(self) -> Optional[str]:
        return self.user.get("id")


class SessionStore:
    """JSON file holding {"accessToken", "user"}."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[ClientSession]:
        """Stored session, or None when absent or unreadable."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Discarding unreadable session file", extra={"error": str(e)})
            return None

        token = data.get("accessToken") if isinstance(data, dict) else None
        user = data.get("user") if isinstance(data, dict) else None
        if not token or not isinstance(user, dict):
            return None
        return ClientSession(access_token=token, user=user)

    def save(self, session: ClientSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({"accessToken": session.access_token, "user": session.user}),
            encoding="utf-8",
        )

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class SessionManager:
    """
    Explicit session object shared by the rest of the client.

    The stored token is revalidated on initialize(). Only a 401 logs the
    user out; an unreachable server keeps the cached session so the app
    still opens offline.
    """

    def __init__(self, client: AFSPClient, store: SessionStore):
        self.client = client
        self.store = store
        self.session: Optional[ClientSession] = None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    def _activate(self, session: ClientSession) -> ClientSession:
        self.session = session
        self.client.access_token = session.access_token
        self.store.save(session)
        return session

    def _deactivate(self) -> None:
        self.session = None
        self.client.access_token = None
        self.store.clear()

    async def initialize(self) -> Optional[ClientSession]:
        cached = self.store.load()
        if cached is None:
            return None

        self.client.access_token = cached.access_token
        try:
            body = await self.client.get_session()
        except APIError as e:
            if e.is_unauthorized:
                logger.info("Stored session rejected, signing out")
                self._deactivate()
                return None
            logger.warning(
                "Session check failed, keeping cached session",
                extra={"status_code": e.status_code}
            )
            self.session = cached
            return cached
        except NetworkError:
            logger.warning("Server unreachable, keeping cached session")
            self.session = cached
            return cached

        user = body.get("user") or cached.user
        return self._activate(ClientSession(access_token=cached.access_token, user=user))

    async def login(self, email: str, password: str) -> ClientSession:
        body = await self.client.signin(email, password)
        return self._activate(ClientSession(access_token=body["accessToken"], user=body["user"]))

    async def logout(self) -> None:
        """Sign out on the server if possible; local state is always cleared."""
        if self.session is not None:
            try:
                await self.client.signout()
            except (APIError, NetworkError) as e:
                logger.warning("Server sign-out failed", extra={"error": str(e)})
        self._deactivate()
