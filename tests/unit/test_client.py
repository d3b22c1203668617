"""
Tests for the async client SDK.

Testing philosophy:
- Requests are answered by httpx.MockTransport, never the network
- Session state on disk follows the in-memory session exactly
- Timers are driven with zero or tiny delays, never real waiting
"""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from afsp.client import (
    AFSPClient,
    APIError,
    CardDetails,
    ClientSession,
    Debouncer,
    EnrollmentFlow,
    MessagePoller,
    NetworkError,
    SessionManager,
    SessionStore,
    SignatureError,
    SimulatedPayment,
    format_card_number,
    format_expiry_date,
)
from afsp.core.wizard import CustomProgramWizard


BASE_URL = "https://api.test/api/v1"
USER = {"id": "u1", "email": "u1@example.com", "fullName": "User One", "role": "athlete"}


def run(coro):
    return asyncio.run(coro)


def make_client(handler, token=None) -> AFSPClient:
    return AFSPClient(BASE_URL, access_token=token, transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Transport Tests
# ---------------------------------------------------------------------------

class TestAFSPClient:
    """Tests for request building and error mapping."""

    def test_sends_bearer_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"exercises": []})

        async def scenario():
            async with make_client(handler, token="tok") as client:
                return await client.get_daily_exercises()

        assert run(scenario()) == {"exercises": []}
        assert seen["auth"] == "Bearer tok"
        assert seen["url"] == f"{BASE_URL}/exercises/daily"

    def test_error_status_raises_with_server_message(self):
        def handler(request):
            return httpx.Response(403, json={"error": "Admin access required"})

        async def scenario():
            async with make_client(handler, token="tok") as client:
                await client.admin_list_athletes()

        with pytest.raises(APIError) as exc_info:
            run(scenario())

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Admin access required"
        assert exc_info.value.is_unauthorized is False

    def test_error_without_json_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        async def scenario():
            async with make_client(handler) as client:
                await client.list_programs()

        with pytest.raises(APIError) as exc_info:
            run(scenario())

        assert exc_info.value.message == "Request failed with status 502"

    def test_transport_failure_raises_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario():
            async with make_client(handler) as client:
                await client.list_programs()

        with pytest.raises(NetworkError):
            run(scenario())

    def test_enroll_body(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "enrollment": {"id": "e1"}})

        async def scenario():
            async with make_client(handler, token="tok") as client:
                return await client.enroll("bootcamp", "Bootcamp", customization=None)

        run(scenario())

        assert seen["body"]["programId"] == "bootcamp"
        assert seen["body"]["programName"] == "Bootcamp"


# ---------------------------------------------------------------------------
# Session Tests
# ---------------------------------------------------------------------------

class TestSessionStore:
    """Tests for the on-disk session file."""

    def test_save_and_load(self, tmp_path):
        store = SessionStore(tmp_path / "session.json")

        store.save(ClientSession(access_token="tok", user=USER))
        loaded = store.load()

        assert loaded.access_token == "tok"
        assert loaded.user_id == "u1"
        assert loaded.role == "athlete"

    def test_missing_file(self, tmp_path):
        assert SessionStore(tmp_path / "nope.json").load() is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")

        assert SessionStore(path).load() is None

    def test_incomplete_file(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"accessToken": "tok"}), encoding="utf-8")

        assert SessionStore(path).load() is None

    def test_clear_is_safe_twice(self, tmp_path):
        store = SessionStore(tmp_path / "session.json")
        store.save(ClientSession(access_token="tok", user=USER))

        store.clear()
        store.clear()

        assert store.load() is None


class TestSessionManager:
    """Tests for session initialization, login and logout."""

    def test_initialize_without_stored_session(self, tmp_path):
        def handler(request):
            raise AssertionError("no request expected")

        manager = SessionManager(make_client(handler), SessionStore(tmp_path / "s.json"))

        assert run(manager.initialize()) is None
        assert manager.is_authenticated is False

    def test_initialize_refreshes_user(self, tmp_path):
        store = SessionStore(tmp_path / "s.json")
        store.save(ClientSession(access_token="tok", user=USER))
        refreshed = {**USER, "fullName": "Renamed"}

        def handler(request):
            assert request.headers["authorization"] == "Bearer tok"
            return httpx.Response(200, json={"user": refreshed})

        manager = SessionManager(make_client(handler), store)
        session = run(manager.initialize())

        assert session.user["fullName"] == "Renamed"
        assert store.load().user["fullName"] == "Renamed"
        assert manager.client.access_token == "tok"

    def test_initialize_drops_rejected_token(self, tmp_path):
        store = SessionStore(tmp_path / "s.json")
        store.save(ClientSession(access_token="stale", user=USER))

        def handler(request):
            return httpx.Response(401, json={"error": "Invalid session"})

        manager = SessionManager(make_client(handler), store)

        assert run(manager.initialize()) is None
        assert manager.client.access_token is None
        assert store.load() is None

    def test_initialize_keeps_session_when_offline(self, tmp_path):
        store = SessionStore(tmp_path / "s.json")
        store.save(ClientSession(access_token="tok", user=USER))

        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        manager = SessionManager(make_client(handler), store)
        session = run(manager.initialize())

        assert session.access_token == "tok"
        assert manager.is_authenticated is True
        assert store.load() is not None

    def test_login_persists_session(self, tmp_path):
        store = SessionStore(tmp_path / "s.json")

        def handler(request):
            return httpx.Response(200, json={"success": True, "accessToken": "new", "user": USER})

        manager = SessionManager(make_client(handler), store)
        run(manager.login("u1@example.com", "Str0ng!Pass"))

        assert manager.client.access_token == "new"
        assert store.load().access_token == "new"

    def test_logout_clears_even_when_server_fails(self, tmp_path):
        store = SessionStore(tmp_path / "s.json")
        store.save(ClientSession(access_token="tok", user=USER))

        def handler(request):
            if request.url.path.endswith("/auth/signout"):
                return httpx.Response(500, json={"error": "Identity service error"})
            return httpx.Response(200, json={"user": USER})

        manager = SessionManager(make_client(handler), store)

        async def scenario():
            await manager.initialize()
            await manager.logout()

        run(scenario())

        assert manager.is_authenticated is False
        assert store.load() is None


# ---------------------------------------------------------------------------
# Enrollment and Payment Tests
# ---------------------------------------------------------------------------

class TestEnrollmentFlow:
    """Tests for enrollment and contract signing calls."""

    def test_enroll_returns_refreshed_list(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.method == "POST":
                return httpx.Response(200, json={"success": True, "enrollment": {"id": "e1"}})
            return httpx.Response(200, json={"programs": [{"id": "e1"}]})

        flow = EnrollmentFlow(make_client(handler, token="tok"))
        programs = run(flow.enroll({"id": "bootcamp", "name": "Bootcamp"}))

        assert programs == [{"id": "e1"}]
        assert calls == [
            ("POST", "/api/v1/programs/enroll"),
            ("GET", "/api/v1/programs/enrolled"),
        ]

    def test_enroll_custom_resets_wizard(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "enrollment": {"id": "e1"}})

        wizard = CustomProgramWizard()
        wizard.set_delivery_type("in-person")
        wizard.advance()
        wizard.set_program_category("fitness-wellness")
        wizard.advance()
        wizard.answers.age, wizard.answers.height, wizard.answers.weight = "30", "170", "65"
        wizard.advance()
        wizard.toggle_fitness_goal("Maintenance")

        enrollment = run(EnrollmentFlow(make_client(handler, token="tok")).enroll_custom(wizard))

        assert enrollment == {"id": "e1"}
        assert seen["body"]["programId"] == "custom-program"
        assert seen["body"]["customization"]["fitnessGoals"] == ["Maintenance"]
        assert wizard.step == 1

    def test_sign_contract_requires_name(self):
        def handler(request):
            raise AssertionError("no request expected")

        flow = EnrollmentFlow(make_client(handler, token="tok"))

        with pytest.raises(SignatureError, match="full name"):
            run(flow.sign_contract("e1", "   ", agreed=True))

    def test_sign_contract_requires_agreement(self):
        def handler(request):
            raise AssertionError("no request expected")

        flow = EnrollmentFlow(make_client(handler, token="tok"))

        with pytest.raises(SignatureError, match="agree"):
            run(flow.sign_contract("e1", "Jane Doe", agreed=False))

    def test_sign_contract_sends_trimmed_name_and_timestamp(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "contract": {"status": "signed"}})

        flow = EnrollmentFlow(make_client(handler, token="tok"))
        signed_at = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)

        contract = run(flow.sign_contract("e1", "  Jane Doe ", agreed=True, signed_at=signed_at))

        assert contract == {"status": "signed"}
        assert seen["body"] == {
            "enrollmentId": "e1",
            "signature": "Jane Doe",
            "signedAt": "2024-06-01T09:30:00Z",
        }


class TestPaymentFormatting:
    """Tests for card input formatting."""

    @pytest.mark.parametrize("value,expected", [
        ("4242424242424242", "4242 4242 4242 4242"),
        ("4242-4242-42", "4242 4242 42"),
        ("424", "424"),
    ])
    def test_format_card_number(self, value, expected):
        assert format_card_number(value) == expected

    @pytest.mark.parametrize("value,expected", [
        ("1226", "12/26"),
        ("12/2", "12/2"),
        ("1", "1"),
    ])
    def test_format_expiry_date(self, value, expected):
        assert format_expiry_date(value) == expected


class TestSimulatedPayment:
    """Tests for the simulated payment sequence."""

    def test_reports_success_between_delays(self):
        events = []

        async def fake_sleep(seconds):
            events.append(("sleep", seconds))

        payment = SimulatedPayment(
            processing_delay=2.0, success_display_delay=1.5, sleep=fake_sleep
        )
        card = CardDetails("4242 4242 4242 4242", "12/26", "123", "Jane Doe")

        result = run(payment.submit(
            card, amount=360.0, on_processed=lambda r: events.append(("processed", r.success))
        ))

        assert result.success is True
        assert result.amount == 360.0
        assert result.transaction_id
        assert events == [("sleep", 2.0), ("processed", True), ("sleep", 1.5)]


# ---------------------------------------------------------------------------
# Chat Timer Tests
# ---------------------------------------------------------------------------

class TestMessagePoller:
    """Tests for channel polling."""

    def test_poll_once_delivers_messages(self):
        def handler(request):
            return httpx.Response(200, json={"messages": [{"id": "m1"}]})

        received = []
        poller = MessagePoller(
            make_client(handler, token="tok"),
            on_messages=lambda channel_id, messages: received.append((channel_id, messages)),
        )

        messages = run(poller.poll_once("general"))

        assert messages == [{"id": "m1"}]
        assert received == [("general", [{"id": "m1"}])]

    def test_poll_failure_is_swallowed(self):
        def handler(request):
            return httpx.Response(403, json={"error": "Unauthorized to access this channel"})

        received = []
        poller = MessagePoller(
            make_client(handler, token="tok"),
            on_messages=lambda channel_id, messages: received.append(channel_id),
        )

        assert run(poller.poll_once("dm:a:b")) is None
        assert received == []

    def test_failing_handler_keeps_polling(self):
        def handler(request):
            return httpx.Response(200, json={"messages": [{"id": "m1"}]})

        calls = []

        def on_messages(channel_id, messages):
            calls.append(channel_id)
            raise RuntimeError("render failed")

        async def scenario():
            poller = MessagePoller(
                make_client(handler, token="tok"), on_messages=on_messages, interval=0.01
            )
            assert await poller.poll_once("general") == [{"id": "m1"}]
            poller.open("general")
            await asyncio.sleep(0.05)
            still_running = poller.running
            poller.stop()
            return still_running

        assert run(scenario()) is True
        assert len(calls) > 2

    def test_open_switches_channels(self):
        def handler(request):
            return httpx.Response(200, json={"messages": []})

        received = []

        async def scenario():
            poller = MessagePoller(
                make_client(handler, token="tok"),
                on_messages=lambda channel_id, messages: received.append(channel_id),
                interval=0.01,
            )
            poller.open("general")
            await asyncio.sleep(0.05)
            poller.open("dm:a:b")
            await asyncio.sleep(0.05)
            poller.stop()
            await asyncio.sleep(0.02)
            return poller

        poller = run(scenario())

        assert "general" in received
        assert received[-1] == "dm:a:b"
        assert poller.running is False
        assert poller.channel_id is None


class TestDebouncer:
    """Tests for search debouncing."""

    def test_only_last_call_runs(self):
        calls = []

        async def search(query):
            calls.append(query)
            return query

        async def scenario():
            debouncer = Debouncer(delay=0.02)
            for query in ("l", "li", "lif", "lift"):
                task = debouncer.call(search, query)
            return await task

        assert run(scenario()) == "lift"
        assert calls == ["lift"]

    def test_cancel_drops_pending_call(self):
        calls = []

        async def search(query):
            calls.append(query)

        async def scenario():
            debouncer = Debouncer(delay=0.01)
            debouncer.call(search, "lift")
            debouncer.cancel()
            await asyncio.sleep(0.03)

        run(scenario())

        assert calls == []
