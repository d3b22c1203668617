"""
Shared helpers for translating domain objects to stored documents.

Documents use camelCase keys and ISO-8601 timestamps so they stay readable
by the existing front end and by anyone inspecting the table directly.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, TypeVar

from afsp.infrastructure.kv.client import KeyValueStore


E = TypeVar("E", bound=Enum)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp.

    Documents written by older front-end code use JavaScript's
    toISOString() ("...Z"); anything unparseable reads as None rather than
    failing the whole list.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_enum(enum_cls: type[E], value: Any, default: E) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        return default


_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def sort_key(value: Optional[datetime]) -> datetime:
    """Sort key that puts missing timestamps last in newest-first order."""
    return value or _EPOCH


class Repository:
    """Base for repositories over the key-value store."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
