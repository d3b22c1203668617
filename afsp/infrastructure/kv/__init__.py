"""
Key-value document store integration (a Supabase table).

Includes mock mode for local development without a Supabase project.
"""

from .client import (
    KeyValueStore,
    KeyValueStoreError,
    MockKeyValueStore,
    SupabaseKeyValueStore,
    create_kv_store,
    new_record_suffix,
)

__all__ = [
    "KeyValueStore",
    "KeyValueStoreError",
    "MockKeyValueStore",
    "SupabaseKeyValueStore",
    "create_kv_store",
    "new_record_suffix",
]
