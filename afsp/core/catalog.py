"""
Static program catalogue and package pricing.

These are the studio's standing offers shown on the public site. They are
not stored in the key-value store; admin-created programs are (see the
program repository).
"""

import copy
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class CatalogProgram:
    id: str
    name: str
    description: str
    type: str
    image: str
    duration: Optional[str] = None
    min_participants: Optional[int] = None
    packages: Optional[tuple[int, ...]] = None

    def to_dict(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "image": self.image,
        }
        if self.duration is not None:
            document["duration"] = self.duration
        if self.min_participants is not None:
            document["minParticipants"] = self.min_participants
        if self.packages is not None:
            document["packages"] = list(self.packages)
        return document


CATALOG: tuple[CatalogProgram, ...] = (
    CatalogProgram(
        id="bootcamp",
        name="Personal Training - Bootcamp",
        description=(
            "Our Bootcamp Program offers high-energy group training for five or more "
            "participants in a fast-paced 45-minute full-body workout. Rooted in "
            "Human-First Excellence, we use science-backed methods to build strength, "
            "endurance, mobility, and flexibility."
        ),
        duration="45 minutes",
        type="Group",
        min_participants=5,
        image="bootcamp",
    ),
    CatalogProgram(
        id="sports-performance",
        name="Sports Performance: One-on-One",
        description=(
            "Speed is essential in all sports, and our Track & Field Performance Program "
            "builds it with intention and science. Rooted in Human-First Excellence, we "
            "develop force, power, explosiveness, tendon stiffness, and efficient sprint "
            "mechanics."
        ),
        duration="60 minutes",
        type="Individual",
        packages=(4, 8, 12),
        image="sports",
    ),
    CatalogProgram(
        id="athletix-club",
        name="Authentikos Athletix Club",
        description=(
            "Our Track & Field Performance Program is built for athletes who want more "
            "than speed: strength, confidence, discipline, and long-term growth. "
            "Grounded in Human-First Excellence, we use science-backed training and "
            "performance psychology to develop the whole athlete."
        ),
        type="Comprehensive",
        image="track",
    ),
    CatalogProgram(
        id="drop-in",
        name="Drop In Sessions",
        description=(
            "High-impact training sessions designed for athletes looking for "
            "flexibility in their schedule."
        ),
        duration="60-75 minutes",
        type="Flexible",
        image="training",
    ),
)


_GROUP_OF_THREE_TO_FIVE = {
    "sessions": 8,
    "price": 360,
    "description": "8 sessions Group 3-5",
    "groupSize": "3-5",
}

CUSTOMIZATION_OPTIONS: dict[str, dict[str, list[dict[str, Any]]]] = {
    "inPerson": {
        "individual": [
            {"sessions": 8, "price": 680, "description": "8 sessions 1-on-1"},
            {"sessions": 12, "price": 840, "description": "12 sessions 1-on-1"},
            {
                "sessions": 16,
                "price": 1040,
                "description": "16 sessions (includes 4 active recovery sessions)",
            },
        ],
        "group": [_GROUP_OF_THREE_TO_FIVE],
    },
    "hybrid": {
        "individual": [
            {"sessions": 8, "price": 500, "description": "8 sessions 1-on-1"},
        ],
        "group": [_GROUP_OF_THREE_TO_FIVE],
    },
}


def list_catalog_programs() -> list[dict[str, Any]]:
    return [program.to_dict() for program in CATALOG]


def customization_options() -> dict[str, Any]:
    """Package price table. A copy, so callers can't mutate the constants."""
    return copy.deepcopy(CUSTOMIZATION_OPTIONS)
