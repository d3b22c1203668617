"""
Async HTTP client for the AFSP API.

One method per route. Every method returns the decoded JSON body; any
non-2xx response raises APIError carrying the server's "error" message,
and transport failures raise NetworkError. The client holds the bearer
token but never stores it; persistence is SessionStore's job.
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class APIError(Exception):
    """The server answered with an error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401


class NetworkError(Exception):
    """The request never produced a response."""
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return f"Request failed with status {response.status_code}"


class AFSPClient:
    """
    Client for one API base URL, e.g. "https://host/api/v1".

    Pass transport to route requests somewhere other than the network
    (httpx.MockTransport or an ASGI transport in tests).
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self._timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "AFSPClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        json_data: Optional[dict[str, Any]] = None,
        files: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Make an API request.

        Raises:
            APIError: For any non-2xx response
            NetworkError: When the server can't be reached
        """
        headers = {}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        client = await self._get_client()
        try:
            response = await client.request(
                method,
                f"{self.base_url}{endpoint}",
                headers=headers,
                params=params,
                json=json_data,
                files=files,
            )
        except httpx.HTTPError as e:
            logger.warning(
                "API request failed",
                extra={"method": method, "endpoint": endpoint, "error": str(e)}
            )
            raise NetworkError(str(e)) from e

        if response.status_code >= 400:
            raise APIError(response.status_code, _error_message(response))

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # --- auth --------------------------------------------------------------

    async def signup(
        self,
        email: str,
        password: str,
        full_name: str,
        username: Optional[str] = None,
        phone_number: Optional[str] = None,
        role: Optional[str] = None,
    ) -> dict[str, Any]:
        body = {"email": email, "password": password, "fullName": full_name}
        if username:
            body["username"] = username
        if phone_number:
            body["phoneNumber"] = phone_number
        if role:
            body["role"] = role
        return await self._request("POST", "/auth/signup", json_data=body)

    async def signin(self, email: str, password: str) -> dict[str, Any]:
        return await self._request(
            "POST", "/auth/signin", json_data={"email": email, "password": password}
        )

    async def signout(self) -> dict[str, Any]:
        return await self._request("POST", "/auth/signout")

    async def get_session(self) -> dict[str, Any]:
        return await self._request("GET", "/auth/session")

    async def change_password(self, current_password: str, new_password: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/auth/change-password",
            json_data={"currentPassword": current_password, "newPassword": new_password},
        )

    # --- profile and branding ---------------------------------------------

    async def update_profile(self, **fields: Any) -> dict[str, Any]:
        """Fields use API names: fullName, username, phoneNumber."""
        return await self._request("PUT", "/user/profile", json_data=fields)

    async def get_logo(self) -> dict[str, Any]:
        return await self._request("GET", "/logo")

    # --- programs ----------------------------------------------------------

    async def list_programs(self) -> dict[str, Any]:
        return await self._request("GET", "/programs")

    async def get_customization_options(self) -> dict[str, Any]:
        return await self._request("GET", "/programs/customization-options")

    async def list_public_programs(self) -> dict[str, Any]:
        return await self._request("GET", "/programs/public")

    async def enroll(
        self,
        program_id: str,
        program_name: Optional[str] = None,
        customization: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/programs/enroll",
            json_data={
                "programId": program_id,
                "programName": program_name,
                "customization": customization,
            },
        )

    async def list_enrolled(self) -> dict[str, Any]:
        return await self._request("GET", "/programs/enrolled")

    # --- exercises ---------------------------------------------------------

    async def get_daily_exercises(self) -> dict[str, Any]:
        return await self._request("GET", "/exercises/daily")

    async def complete_exercise(self, exercise_id: str) -> dict[str, Any]:
        return await self._request(
            "POST", "/exercises/complete", json_data={"exerciseId": exercise_id}
        )

    # --- journal -----------------------------------------------------------

    async def list_journal_entries(self) -> dict[str, Any]:
        return await self._request("GET", "/journal/entries")

    async def create_journal_entry(
        self,
        title: str,
        content: str,
        mood: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/journal/entries",
            json_data={"title": title, "content": content, "mood": mood, "tags": tags or []},
        )

    async def update_journal_entry(self, entry_id: str, **fields: Any) -> dict[str, Any]:
        return await self._request("PUT", f"/journal/entries/{entry_id}", json_data=fields)

    async def delete_journal_entry(self, entry_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/journal/entries/{entry_id}")

    async def upload_journal_media(
        self,
        entry_id: str,
        file_name: str,
        data: bytes,
        content_type: str,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/journal/entries/{entry_id}/media",
            files={"file": (file_name, data, content_type)},
        )

    # --- chat --------------------------------------------------------------

    async def list_channels(self) -> dict[str, Any]:
        return await self._request("GET", "/chat/channels")

    async def list_messages(self, channel_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/chat/messages/{channel_id}")

    async def send_message(
        self,
        content: str,
        channel_id: Optional[str] = None,
        recipient_id: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/chat/messages",
            json_data={"content": content, "channelId": channel_id, "recipientId": recipient_id},
        )

    async def open_direct_channel(self, user_id: str) -> dict[str, Any]:
        return await self._request("POST", "/chat/dm-channel", json_data={"userId": user_id})

    async def search_users(self, query: str) -> dict[str, Any]:
        return await self._request("GET", "/chat/search-users", params={"q": query})

    async def general_channel_status(self) -> dict[str, Any]:
        return await self._request("GET", "/chat/general/status")

    async def lock_general_channel(self) -> dict[str, Any]:
        return await self._request("POST", "/chat/general/lock")

    async def unlock_general_channel(self) -> dict[str, Any]:
        return await self._request("POST", "/chat/general/unlock")

    # --- contracts ---------------------------------------------------------

    async def sign_contract(
        self,
        enrollment_id: str,
        signature: str,
        signed_at: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/contracts/sign",
            json_data={
                "enrollmentId": enrollment_id,
                "signature": signature,
                "signedAt": signed_at,
            },
        )

    async def list_contracts(self) -> dict[str, Any]:
        return await self._request("GET", "/contracts")

    async def get_contract_for_enrollment(self, enrollment_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/contracts/enrollment/{enrollment_id}")

    # --- admin -------------------------------------------------------------

    async def admin_list_athletes(self) -> dict[str, Any]:
        return await self._request("GET", "/admin/athletes")

    async def admin_list_coaches(self) -> dict[str, Any]:
        return await self._request("GET", "/admin/coaches")

    async def admin_list_programs(self) -> dict[str, Any]:
        return await self._request("GET", "/admin/programs")

    async def admin_create_program(self, program: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/admin/programs", json_data=program)

    async def admin_update_program(
        self, program_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request("PUT", f"/admin/programs/{program_id}", json_data=updates)

    async def admin_delete_program(self, program_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/admin/programs/{program_id}")

    async def admin_upload_program_image(
        self,
        program_id: str,
        file_name: str,
        data: bytes,
        content_type: str,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/admin/programs/{program_id}/image",
            files={"file": (file_name, data, content_type)},
        )

    async def admin_list_exercises(self) -> dict[str, Any]:
        return await self._request("GET", "/admin/exercises")

    async def admin_list_exercise_categories(self) -> dict[str, Any]:
        return await self._request("GET", "/admin/exercises/categories")

    async def admin_create_exercise(self, exercise: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/admin/exercises", json_data=exercise)

    async def admin_upload_exercise_media(
        self,
        file_name: str,
        data: bytes,
        content_type: str,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/admin/exercises/upload",
            files={"file": (file_name, data, content_type)},
        )

    async def admin_assign_exercise(
        self,
        exercise_id: str,
        athlete_ids: list[str],
        **details: Any,
    ) -> dict[str, Any]:
        """details: sets, reps, duration, assignedDate, notes."""
        return await self._request(
            "POST",
            f"/admin/exercises/{exercise_id}/assign",
            json_data={"athleteIds": athlete_ids, **details},
        )

    async def admin_list_contracts(self, status: Optional[str] = None) -> dict[str, Any]:
        params = {"status": status} if status else None
        return await self._request("GET", "/admin/contracts", params=params)

    async def admin_upload_logo(
        self, file_name: str, data: bytes, content_type: str
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/admin/upload-logo",
            files={"file": (file_name, data, content_type)},
        )

    # --- coach -------------------------------------------------------------

    async def coach_list_programs(self) -> dict[str, Any]:
        return await self._request("GET", "/coach/programs")

    async def coach_list_exercises(self) -> dict[str, Any]:
        return await self._request("GET", "/coach/exercises")

    async def coach_assign_exercise(
        self,
        exercise_id: str,
        athlete_ids: list[str],
        **details: Any,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/coach/exercises/{exercise_id}/assign",
            json_data={"athleteIds": athlete_ids, **details},
        )
