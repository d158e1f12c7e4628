from stores.base import (
    DOCUMENT_ID,
    ArrayRemove,
    ArrayUnion,
    DocumentSnapshot,
    DocumentStore,
    Query,
)
from stores.memory_store import MemoryStore
from stores.supabase_store import SupabaseStore


__all__ = [
    "DOCUMENT_ID",
    "ArrayRemove",
    "ArrayUnion",
    "DocumentSnapshot",
    "DocumentStore",
    "Query",
    "MemoryStore",
    "SupabaseStore",
]
