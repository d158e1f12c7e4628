"""
pagination.py — Cursor into a conversation's history.
Pages are fetched newest-first strictly older than the cursor, then reversed
so callers can prepend them in display (ascending) order.
"""
import logging

from config import MESSAGES_PER_PAGE
from models import Message, message_from_document, messages_path
from stores import DOCUMENT_ID, DocumentSnapshot, DocumentStore, Query

logger = logging.getLogger(__name__)


def newest_first(conversation_id: str) -> Query:
    return (
        Query(messages_path(conversation_id))
        .order("createdAt", "desc")
        .order(DOCUMENT_ID, "desc")
    )


def parse_messages(snapshots: list[DocumentSnapshot]) -> list[Message]:
    """Newest-first snapshots → ascending messages, skipping malformed rows."""
    messages = []
    for snap in reversed(snapshots):
        try:
            messages.append(message_from_document(snap.id, snap.data))
        except ValueError as e:
            logger.warning(f"Skipping message {snap.id}: {e}")
    return messages


class PaginationCursor:
    def __init__(self, store: DocumentStore, conversation_id: str, page_size: int = MESSAGES_PER_PAGE):
        self.store = store
        self.conversation_id = conversation_id
        self.page_size = page_size
        self.cursor: tuple[int, str] | None = None
        self.has_more = False
        self.is_loading = False
        self.fetch_count = 0

    def seed(self, first_page_size: int):
        """A full first page means there may be older messages."""
        self.has_more = first_page_size >= self.page_size

    def move_to(self, key: tuple[int, str] | None):
        self.cursor = key

    async def fetch_older(self) -> list[Message] | None:
        """Fetch the next older page. Returns None when nothing was fetched."""
        if self.is_loading or not self.has_more or self.cursor is None:
            return None
        self.is_loading = True
        try:
            self.fetch_count += 1
            query = newest_first(self.conversation_id).after(self.cursor).limit_to(self.page_size)
            snapshots = await self.store.query(query)
            logger.info(f"Fetched {len(snapshots)} older messages for {self.conversation_id}")
            if len(snapshots) < self.page_size:
                self.has_more = False
            older = parse_messages(snapshots)
            if older:
                self.cursor = older[0].key
            return older
        finally:
            self.is_loading = False
