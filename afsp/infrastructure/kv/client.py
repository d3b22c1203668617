"""
Key-value document store.

Every entity is a JSON document stored under a string key in a single
two-column Supabase table (key text primary key, value jsonb). Keys are
namespaced by entity ("user:", "program:", "enrollment:{userId}:") so a
prefix scan answers "all X" and "all X belonging to Y" without secondary
indexes.

There are no transactions. A multi-document change is a sequence of
independent writes; readers must tolerate seeing part of it.
"""

import copy
import logging
import secrets
import time
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


Document = dict[str, Any]


class KeyValueStoreError(Exception):
    """Raised when a store operation fails."""
    pass


def new_record_suffix() -> str:
    """
    Time-ordered unique suffix for generated keys: "{ms}-{random}".

    The millisecond prefix keeps keys roughly sortable by creation time;
    the random tail keeps two writes in the same millisecond apart.
    """
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class KeyValueStore(Protocol):
    """Protocol for the document store. Repositories depend only on this."""

    async def get(self, key: str) -> Optional[Document]:
        ...

    async def set(self, key: str, value: Document) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def get_by_prefix(self, prefix: str) -> list[Document]:
        """All documents whose key starts with prefix."""
        ...

    async def ping(self) -> None:
        """Raise KeyValueStoreError if the store is unreachable."""
        ...


def _escape_like(prefix: str) -> str:
    # "_" and "%" are LIKE wildcards; keys may contain underscores
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SupabaseKeyValueStore:
    """Key-value store backed by a Supabase table, via the service-role client."""

    def __init__(self, url: str, service_role_key: str, table: str) -> None:
        from supabase import create_client

        self._client = create_client(url, service_role_key)
        self._table = table

        logger.info(
            "Initialized Supabase key-value store",
            extra={"table": table}
        )

    def _query(self):
        return self._client.table(self._table)

    async def get(self, key: str) -> Optional[Document]:
        try:
            response = self._query().select("value").eq("key", key).limit(1).execute()
        except Exception as e:
            logger.error("Failed to read key", extra={"key": key, "error": str(e)})
            raise KeyValueStoreError(f"Get failed: {e}")

        rows = response.data or []
        if not rows:
            return None
        return rows[0]["value"]

    async def set(self, key: str, value: Document) -> None:
        try:
            self._query().upsert({"key": key, "value": value}).execute()
        except Exception as e:
            logger.error("Failed to write key", extra={"key": key, "error": str(e)})
            raise KeyValueStoreError(f"Set failed: {e}")

    async def delete(self, key: str) -> None:
        try:
            self._query().delete().eq("key", key).execute()
        except Exception as e:
            logger.error("Failed to delete key", extra={"key": key, "error": str(e)})
            raise KeyValueStoreError(f"Delete failed: {e}")

    async def get_by_prefix(self, prefix: str) -> list[Document]:
        try:
            response = (
                self._query()
                .select("key, value")
                .like("key", f"{_escape_like(prefix)}%")
                .order("key")
                .execute()
            )
        except Exception as e:
            logger.error(
                "Failed to scan prefix",
                extra={"prefix": prefix, "error": str(e)}
            )
            raise KeyValueStoreError(f"Prefix scan failed: {e}")

        return [row["value"] for row in (response.data or [])]

    async def ping(self) -> None:
        try:
            self._query().select("key").limit(1).execute()
        except Exception as e:
            raise KeyValueStoreError(f"Store unreachable: {e}")


# ---------------------------------------------------------------------------
# Mock Store for Local Development
# ---------------------------------------------------------------------------

class MockKeyValueStore:
    """
    In-memory document store.

    Prefix scans return documents in key order, matching the ordered scan
    of the real table. Values are deep-copied through the JSON-shaped dict
    so callers can't mutate stored state by accident.
    """

    def __init__(self) -> None:
        self._data: dict[str, Document] = {}
        logger.info("Initialized mock key-value store (in-memory)")

    async def get(self, key: str) -> Optional[Document]:
        value = self._data.get(key)
        return _copy(value) if value is not None else None

    async def set(self, key: str, value: Document) -> None:
        self._data[key] = _copy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def get_by_prefix(self, prefix: str) -> list[Document]:
        return [
            _copy(self._data[key])
            for key in sorted(self._data)
            if key.startswith(prefix)
        ]

    async def ping(self) -> None:
        return None

    def keys(self) -> list[str]:
        return sorted(self._data)


def _copy(value: Document) -> Document:
    return copy.deepcopy(value)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_kv_store(
    url: str = "",
    service_role_key: str = "",
    table: str = "kv_store",
    mock_mode: bool = False,
) -> KeyValueStore:
    if mock_mode:
        return MockKeyValueStore()

    if not (url and service_role_key):
        raise ValueError("Supabase URL and service role key are required when not in mock mode")

    return SupabaseKeyValueStore(url, service_role_key, table)
