"""
Tests for the key-value repositories against the in-memory store.

Testing philosophy:
- Documents round-trip through the camelCase shape the front end reads
- Prefix scans only ever return the caller's records
- Legacy or malformed documents degrade instead of failing a listing
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from afsp.core.models import (
    ChatMessage,
    Contract,
    ContractStatus,
    Delivery,
    Enrollment,
    ExerciseLibraryItem,
    JournalEntry,
    MediaItem,
    Program,
    ProgramCategory,
    ProgramFormat,
    ProgramStatus,
    Role,
    UserProfile,
    direct_channel_id,
)
from afsp.infrastructure.kv.client import MockKeyValueStore
from afsp.infrastructure.kv.repositories import (
    BrandingRepository,
    ChatRepository,
    ContractRepository,
    EnrollmentRepository,
    ExerciseAssignmentRepository,
    ExerciseCategoryRepository,
    ExerciseLibraryRepository,
    JournalRepository,
    UserNotFoundError,
    UserRepository,
)
from afsp.infrastructure.kv.repositories.base import format_timestamp, parse_timestamp
from afsp.infrastructure.kv.repositories.contracts import contract_key
from afsp.infrastructure.kv.repositories.enrollments import new_enrollment_id
from afsp.infrastructure.kv.repositories.exercises import (
    DEFAULT_CATEGORIES,
    category_key,
    is_valid_day,
)
from afsp.infrastructure.kv.repositories.programs import apply_program_updates


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store() -> MockKeyValueStore:
    return MockKeyValueStore()


# ---------------------------------------------------------------------------
# Timestamp Tests
# ---------------------------------------------------------------------------

class TestTimestamps:
    """Tests for stored timestamp formatting."""

    def test_format_uses_z_suffix(self):
        value = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        assert format_timestamp(value) == "2024-01-02T03:04:05Z"

    def test_naive_datetimes_are_treated_as_utc(self):
        assert format_timestamp(datetime(2024, 1, 2)) == "2024-01-02T00:00:00Z"

    def test_parse_javascript_iso_string(self):
        parsed = parse_timestamp("2024-01-02T03:04:05.123Z")

        assert parsed == datetime(2024, 1, 2, 3, 4, 5, 123000, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 42])
    def test_unparseable_reads_as_none(self, value):
        assert parse_timestamp(value) is None


# ---------------------------------------------------------------------------
# User Repository Tests
# ---------------------------------------------------------------------------

class TestUserRepository:
    """Tests for profile persistence, listing and search."""

    def test_save_and_get(self, store):
        users = UserRepository(store)
        profile = UserProfile(
            id="u1", email="u1@example.com", full_name="User One", username="one"
        )

        run(users.save(profile))
        loaded = run(users.get("u1"))

        assert loaded.full_name == "User One"
        assert loaded.username == "one"
        assert loaded.role == Role.ATHLETE
        assert run(store.get("user:u1"))["fullName"] == "User One"

    def test_get_or_raise(self, store):
        with pytest.raises(UserNotFoundError):
            run(UserRepository(store).get_or_raise("missing"))

    def test_list_by_role(self, store):
        users = UserRepository(store)
        run(users.save(UserProfile(id="a", email="a@x.com", full_name="A")))
        run(users.save(UserProfile(id="c", email="c@x.com", full_name="C", role=Role.COACH)))

        coaches = run(users.list_by_role(Role.COACH))

        assert [p.id for p in coaches] == ["c"]

    def test_username_taken_is_case_insensitive(self, store):
        users = UserRepository(store)
        run(users.save(UserProfile(id="a", email="a@x.com", full_name="A", username="Swift")))

        assert run(users.username_taken("swift")) is True
        assert run(users.username_taken("swift", exclude_user_id="a")) is False

    def test_search_excludes_caller_and_limits(self, store):
        users = UserRepository(store)
        for i in range(5):
            run(users.save(UserProfile(id=f"u{i}", email=f"u{i}@x.com", full_name=f"Sam {i}")))

        results = run(users.search("sam", exclude_user_id="u0", limit=3))

        assert [p.id for p in results] == ["u1", "u2", "u3"]

    def test_unknown_role_reads_as_athlete(self, store):
        run(store.set("user:legacy", {"id": "legacy", "email": "l@x.com", "role": "owner"}))

        profile = run(UserRepository(store).get("legacy"))

        assert profile.role == Role.ATHLETE
        assert profile.full_name == ""

    def test_display_name_default(self, store):
        assert run(UserRepository(store).display_name("nobody")) == "Unknown"


# ---------------------------------------------------------------------------
# Enrollment and Contract Tests
# ---------------------------------------------------------------------------

class TestEnrollmentRepository:
    """Tests for enrollment keys and listings."""

    def test_ids_carry_user_and_program(self):
        enrollment_id = new_enrollment_id("u1", "bootcamp")

        assert enrollment_id.startswith("enrollment:u1:bootcamp:")

    def test_list_for_user_newest_first(self, store):
        enrollments = EnrollmentRepository(store)
        now = datetime.now(timezone.utc)
        older = Enrollment(
            id=new_enrollment_id("u1", "a"), user_id="u1", program_id="a",
            program_name="A", enrolled_at=now - timedelta(days=1),
        )
        newer = Enrollment(
            id=new_enrollment_id("u1", "b"), user_id="u1", program_id="b",
            program_name="B", enrolled_at=now,
        )
        other = Enrollment(
            id=new_enrollment_id("u2", "a"), user_id="u2", program_id="a", program_name="A",
        )
        for enrollment in (older, newer, other):
            run(enrollments.save(enrollment))

        listed = run(enrollments.list_for_user("u1"))

        assert [e.program_id for e in listed] == ["b", "a"]
        assert [e.user_id for e in run(enrollments.list_for_program("a"))] == ["u1", "u2"]

    def test_get_ignores_foreign_keys(self, store):
        run(store.set("user:u1", {"id": "user:u1"}))

        assert run(EnrollmentRepository(store).get("user:u1")) is None

    def test_contract_fields_round_trip(self, store):
        enrollments = EnrollmentRepository(store)
        enrollment = Enrollment(
            id=new_enrollment_id("u1", "a"), user_id="u1", program_id="a", program_name="A",
            contract_id="contract:x", contract_status=ContractStatus.SIGNED,
        )
        run(enrollments.save(enrollment))

        loaded = run(enrollments.get(enrollment.id))

        assert loaded.contract_status == ContractStatus.SIGNED
        assert loaded.contract_id == "contract:x"


class TestContractRepository:
    """Tests for contract lookup and filtering."""

    def _contract(self, enrollment_id: str, user_id: str) -> Contract:
        return Contract(
            id=contract_key(enrollment_id),
            enrollment_id=enrollment_id,
            user_id=user_id,
            program_id="a",
            program_name="A",
        )

    def test_lookup_by_enrollment(self, store):
        contracts = ContractRepository(store)
        run(contracts.save(self._contract("enrollment:u1:a:1", "u1")))

        contract = run(contracts.get_for_enrollment("enrollment:u1:a:1"))

        assert contract.id == "contract:enrollment:u1:a:1"
        assert contract.status == ContractStatus.PENDING

    def test_filter_by_status_and_user(self, store):
        contracts = ContractRepository(store)
        pending = self._contract("enrollment:u1:a:1", "u1")
        signed = self._contract("enrollment:u2:a:1", "u2")
        signed.sign("Two")
        run(contracts.save(pending))
        run(contracts.save(signed))

        assert [c.user_id for c in run(contracts.list_all(ContractStatus.SIGNED))] == ["u2"]
        assert [c.user_id for c in run(contracts.list_for_user("u1"))] == ["u1"]
        assert run(contracts.list_all(ContractStatus.EXPIRED)) == []


# ---------------------------------------------------------------------------
# Program Tests
# ---------------------------------------------------------------------------

class TestProgramUpdates:
    """Tests for partial program updates."""

    def _program(self) -> Program:
        return Program(
            id="program:1",
            name="Speed",
            description="Go fast",
            delivery=Delivery.ONLINE,
            format=ProgramFormat.GROUP,
            category=ProgramCategory.SPORT_PERFORMANCE,
            created_by="admin",
        )

    def test_applies_editable_fields_only(self):
        program = self._program()

        apply_program_updates(program, {
            "name": "Speed II",
            "status": "inactive",
            "maxParticipants": 8,
            "createdBy": "intruder",
            "id": "program:other",
        })

        assert program.name == "Speed II"
        assert program.status == ProgramStatus.INACTIVE
        assert program.max_participants == 8
        assert program.created_by == "admin"
        assert program.id == "program:1"

    def test_invalid_enum_raises(self):
        with pytest.raises(ValueError):
            apply_program_updates(self._program(), {"delivery": "carrier-pigeon"})

    def test_empty_name_raises(self):
        with pytest.raises(ValueError):
            apply_program_updates(self._program(), {"name": ""})


# ---------------------------------------------------------------------------
# Exercise Tests
# ---------------------------------------------------------------------------

class TestExerciseRepositories:
    """Tests for the library, categories and assignments."""

    def test_categories_seed_once(self, store):
        categories = ExerciseCategoryRepository(store)

        first = run(categories.list_all())

        assert [c.name for c in first] == list(DEFAULT_CATEGORIES)
        run(store.delete(category_key("Core")))
        assert "Core" not in [c.name for c in run(categories.list_all())]

    def test_ensure_is_idempotent(self, store):
        categories = ExerciseCategoryRepository(store)

        first = run(categories.ensure("Speed Work"))
        second = run(categories.ensure("speed   work"))

        assert first.id == second.id == "exercise-category:speed-work"
        assert second.name == "Speed Work"

    def test_assign_from_library_copies_fields(self, store):
        library = ExerciseLibraryRepository(store)
        assignments = ExerciseAssignmentRepository(store)
        item = ExerciseLibraryItem(
            id=library.new_id(), name="Box Jump", category="Plyometrics",
            media_path="admin/jump.mp4",
        )
        run(library.save(item))

        created = run(assignments.assign_from_library(
            item, ["a1", "a2"], assigned_by="coach", sets=3, assigned_date="2024-05-01"
        ))

        assert len(created) == 2
        due = run(assignments.list_due("a1", "2024-05-01"))
        assert len(due) == 1
        assert due[0].name == "Box Jump"
        assert due[0].media_path == "admin/jump.mp4"
        assert due[0].exercise_library_id == item.id
        assert run(assignments.list_due("a1", "2024-05-02")) == []

    def test_assignment_get_rejects_other_prefixes(self, store):
        assert run(ExerciseAssignmentRepository(store).get("journal:u1:1")) is None

    @pytest.mark.parametrize("value,expected", [
        ("2024-05-01", True),
        ("2024-02-30", False),
        ("2024-5-1", False),
        ("tomorrow", False),
    ])
    def test_is_valid_day(self, value, expected):
        assert is_valid_day(value) is expected


# ---------------------------------------------------------------------------
# Journal, Chat and Branding Tests
# ---------------------------------------------------------------------------

class TestJournalRepository:
    """Tests for journal persistence."""

    def test_media_round_trip_and_delete(self, store):
        journal = JournalRepository(store)
        entry = JournalEntry(id=journal.new_id("u1"), user_id="u1", title="Day 1", content="Ran")
        entry.attach(MediaItem(path="u1/1-run.jpg", type="image/jpeg", name="run.jpg"))
        run(journal.save(entry))

        loaded = run(journal.get(entry.id))
        assert loaded.media[0].path == "u1/1-run.jpg"
        assert [e.id for e in run(journal.list_for_user("u1"))] == [entry.id]

        run(journal.delete(entry.id))
        assert run(journal.get(entry.id)) is None


class TestChatRepository:
    """Tests for channels and messages."""

    def test_general_channel_defaults_unlocked(self, store):
        general = run(ChatRepository(store).get_general_channel())

        assert general.id == "general"
        assert general.locked is False

    def test_direct_channel_created_once(self, store):
        chat = ChatRepository(store)
        channel_id = direct_channel_id("a", "b")

        first = run(chat.get_or_create_direct_channel(channel_id, name="First"))
        second = run(chat.get_or_create_direct_channel(channel_id, name="Second"))

        assert first.participants == ["a", "b"]
        assert second.name == "First"
        assert [c.id for c in run(chat.list_direct_channels_for("b"))] == [channel_id]
        assert run(chat.list_direct_channels_for("c")) == []

    def test_messages_scoped_to_channel(self, store):
        chat = ChatRepository(store)
        for channel_id in ("general", "general", "dm:a:b"):
            run(chat.add_message(ChatMessage(
                id=chat.new_message_id(channel_id),
                channel_id=channel_id,
                sender_id="a",
                content="hi",
            )))

        assert len(run(chat.list_messages("general"))) == 2
        assert len(run(chat.list_messages("dm:a:b"))) == 1


class TestBrandingRepository:

    def test_logo_round_trip(self, store):
        branding = BrandingRepository(store)

        assert run(branding.get_logo()) is None
        run(branding.set_logo("branding/logo-1.png", "image/png", "admin"))

        assert run(branding.get_logo())["path"] == "branding/logo-1.png"
