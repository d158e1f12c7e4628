from config import STORE_BACKEND
from stores import DocumentStore, MemoryStore, SupabaseStore
from supabase_client import is_supabase_configured
import logging

logger = logging.getLogger(__name__)

_store: DocumentStore | None = None


def create_store(backend: str = STORE_BACKEND) -> DocumentStore:
    """Build the document store selected by STORE_BACKEND."""
    if backend == "supabase":
        if not is_supabase_configured():
            raise ValueError("STORE_BACKEND=supabase needs SUPABASE_URL and keys in the environment")
        return SupabaseStore()
    if backend == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")


def init_store(store: DocumentStore | None = None) -> DocumentStore:
    """Create (or install) the process-wide store."""
    global _store
    _store = store or create_store()
    logger.info(f"Document store initialized: {type(_store).__name__}")
    return _store


def get_store() -> DocumentStore:
    """FastAPI dependency — returns the process-wide document store."""
    if _store is None:
        return init_store()
    return _store


async def close_store():
    global _store
    if _store is not None:
        await _store.close()
        _store = None
