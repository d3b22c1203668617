"""
Domain models for the coaching platform.

These models represent the core business concepts. They have no dependencies
on external frameworks, databases, or APIs. Translation to and from the
stored JSON documents lives in the key-value repositories.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utcnow() -> datetime:
    """Timezone-aware current time. Every stored timestamp is UTC."""
    return datetime.now(timezone.utc)


class Role(Enum):
    ATHLETE = "athlete"
    COACH = "coach"
    ADMIN = "admin"


class Delivery(Enum):
    IN_PERSON = "in-person"
    ONLINE = "online"


class ProgramFormat(Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


class ProgramCategory(Enum):
    SPORT_PERFORMANCE = "sport-performance"
    FITNESS_WELLNESS = "fitness-wellness"


class ProgramStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ChannelType(Enum):
    GROUP = "group"
    DIRECT = "direct"


class ContractStatus(Enum):
    """
    Lifecycle of a training agreement.

    PENDING -> SIGNED is the only transition. EXPIRED is a recognised
    value for filtering but nothing moves a contract into it.
    """
    PENDING = "pending"
    SIGNED = "signed"
    EXPIRED = "expired"


CUSTOM_PROGRAM_ID = "custom-program"
CONTRACT_VERSION = "1.0"


class ContractStateError(ValueError):
    """Raised when a contract transition is not allowed."""
    pass


@dataclass
class CoachRef:
    """The coach assigned to an athlete."""
    id: str
    name: str


@dataclass
class EnrollmentSummary:
    """Denormalised enrollment entry kept on the user profile."""
    enrollment_id: str
    program_id: str
    program_name: str
    enrolled_at: datetime = field(default_factory=utcnow)


@dataclass
class UserProfile:
    """
    Profile document for every account.

    Created at signup and mutated by profile edits and enrollments.
    Never hard-deleted.
    """
    id: str
    email: str
    full_name: str
    role: Role = Role.ATHLETE
    username: Optional[str] = None
    phone_number: Optional[str] = None
    programs: list[EnrollmentSummary] = field(default_factory=list)
    assigned_coach: Optional[CoachRef] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def add_enrollment(self, enrollment: "Enrollment") -> EnrollmentSummary:
        """Record an enrollment summary on the profile."""
        summary = EnrollmentSummary(
            enrollment_id=enrollment.id,
            program_id=enrollment.program_id,
            program_name=enrollment.program_name,
            enrolled_at=enrollment.enrolled_at,
        )
        self.programs.append(summary)
        self.updated_at = utcnow()
        return summary

    def matches(self, query: str) -> bool:
        """Case-insensitive match against name, username and email."""
        needle = query.strip().lower()
        if not needle:
            return False
        haystack = [self.full_name, self.username or "", self.email]
        return any(needle in value.lower() for value in haystack)


@dataclass
class Program:
    """A training program offered by the studio. Admin-managed."""
    id: str
    name: str
    description: str
    delivery: Delivery
    format: ProgramFormat
    category: ProgramCategory
    price: Optional[float] = None
    coach_id: Optional[str] = None
    exercises: list[str] = field(default_factory=list)
    duration: Optional[str] = None
    max_participants: Optional[int] = None
    image_url: Optional[str] = None
    image_path: Optional[str] = None
    status: ProgramStatus = ProgramStatus.ACTIVE
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == ProgramStatus.ACTIVE


@dataclass
class Enrollment:
    """
    A user's enrollment in a program.

    Existence of the document is what "enrolled" means. The customization
    is free-form data from the custom program wizard; only the contract
    fields change after creation.
    """
    id: str
    user_id: str
    program_id: str
    program_name: str
    customization: Optional[dict[str, Any]] = None
    enrolled_at: datetime = field(default_factory=utcnow)
    status: str = "active"
    contract_id: Optional[str] = None
    contract_status: Optional[ContractStatus] = None
    contract_signed_at: Optional[datetime] = None

    @property
    def is_custom(self) -> bool:
        return self.program_id == CUSTOM_PROGRAM_ID


@dataclass
class ExerciseCategory:
    id: str
    name: str


@dataclass
class ExerciseLibraryItem:
    """An exercise in the admin-maintained library."""
    id: str
    name: str
    category: str
    description: Optional[str] = None
    url: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    media_path: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ExerciseAssignment:
    """
    An exercise assigned to one athlete for a given day.

    Library fields are copied at assignment time so later library edits
    don't rewrite an athlete's history.
    """
    id: str
    user_id: str
    name: str
    exercise_library_id: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    url: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    media_path: Optional[str] = None
    sets: Optional[int] = None
    reps: Optional[int] = None
    duration: Optional[str] = None
    assigned_date: str = ""  # YYYY-MM-DD
    notes: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_at: datetime = field(default_factory=utcnow)
    completed: bool = False
    completed_at: Optional[datetime] = None

    def is_due_on(self, day: str) -> bool:
        return bool(self.assigned_date) and self.assigned_date.startswith(day)

    def mark_complete(self) -> None:
        self.completed = True
        self.completed_at = utcnow()


@dataclass
class MediaItem:
    """A file attached to a journal entry."""
    path: str
    type: str
    name: str
    url: Optional[str] = None
    uploaded_at: datetime = field(default_factory=utcnow)


@dataclass
class JournalEntry:
    """A private journal entry owned by the authoring athlete."""
    id: str
    user_id: str
    title: str
    content: str
    mood: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    media: list[MediaItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def attach(self, item: MediaItem) -> None:
        self.media.append(item)
        self.updated_at = utcnow()


GENERAL_CHANNEL_ID = "general"


@dataclass
class ChatChannel:
    """
    A named conduit for messages.

    The general channel is a group channel every user can read. Direct
    channels carry exactly two participants, encoded in the channel id.
    """
    id: str
    type: ChannelType
    name: str
    description: str = ""
    participants: list[str] = field(default_factory=list)
    locked: bool = False
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None

    @property
    def is_direct(self) -> bool:
        return self.type == ChannelType.DIRECT

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants

    def lock(self, admin_id: str) -> None:
        self.locked = True
        self.locked_by = admin_id
        self.locked_at = utcnow()

    def unlock(self) -> None:
        self.locked = False
        self.locked_by = None
        self.locked_at = None


def direct_channel_id(user_a: str, user_b: str) -> str:
    """Channel id for a two-party conversation. Order-independent."""
    first, second = sorted([user_a, user_b])
    return f"dm:{first}:{second}"


def direct_channel_participants(channel_id: str) -> list[str]:
    """Participants encoded in a direct channel id, or [] if not direct."""
    parts = channel_id.split(":")
    if len(parts) != 3 or parts[0] != "dm":
        return []
    return [parts[1], parts[2]]


@dataclass
class ChatMessage:
    id: str
    channel_id: str
    sender_id: str
    content: str
    recipient_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    read: bool = False
    sender_name: Optional[str] = None


@dataclass
class Contract:
    """
    Training program agreement for an enrollment.

    Created as PENDING when the enrollment is made, or directly as SIGNED
    when an older enrollment is signed without a pending record.
    """
    id: str
    enrollment_id: str
    user_id: str
    program_id: str
    program_name: str
    customization: Optional[dict[str, Any]] = None
    signature: Optional[str] = None
    signed_at: Optional[datetime] = None
    status: ContractStatus = ContractStatus.PENDING
    version: str = CONTRACT_VERSION
    created_at: datetime = field(default_factory=utcnow)
    user_name: Optional[str] = None
    user_email: Optional[str] = None

    @property
    def is_signed(self) -> bool:
        return self.status == ContractStatus.SIGNED

    def sign(self, signature: str, signed_at: Optional[datetime] = None) -> None:
        """
        Move the contract from PENDING to SIGNED.

        The signature text is recorded as given.
        """
        if self.status != ContractStatus.PENDING:
            raise ContractStateError(
                f"Contract cannot be signed from status '{self.status.value}'"
            )
        self.signature = signature
        self.signed_at = signed_at or utcnow()
        self.status = ContractStatus.SIGNED


@dataclass
class IdentityUser:
    """A user as known to the external identity service."""
    id: str
    email: str
    user_metadata: dict[str, Any] = field(default_factory=dict)


def resolve_role(identity: IdentityUser, profile: Optional[UserProfile]) -> Role:
    """
    Effective role of an authenticated user.

    Identity metadata marking the user as admin wins; otherwise the stored
    profile decides, then the metadata, then athlete.
    """
    metadata_role = identity.user_metadata.get("role")
    if metadata_role == Role.ADMIN.value:
        return Role.ADMIN
    if profile is not None:
        return profile.role
    try:
        return Role(metadata_role)
    except ValueError:
        return Role.ATHLETE
