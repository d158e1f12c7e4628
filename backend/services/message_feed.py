"""
message_feed.py — Standing subscription to a conversation's newest page.
Participation is checked before subscribing; emissions arriving after stop()
are dropped.
"""
import logging
from typing import Callable

from config import MESSAGES_PER_PAGE
from errors import AccessDenied, NotFound
from models import Conversation, Message
from services.pagination import newest_first, parse_messages
from stores import DocumentStore

logger = logging.getLogger(__name__)


async def fetch_conversation_for(store: DocumentStore, conversation_id: str, user_id: str) -> Conversation:
    """Load a conversation, refusing users who are not participants."""
    snap = await store.get_document("messages", conversation_id)
    if not snap.exists:
        raise NotFound("Conversation not found")
    conversation = Conversation.from_document(snap.id, snap.data)
    if user_id not in conversation.participants:
        logger.warning(f"User {user_id} is not a participant in {conversation_id}")
        raise AccessDenied("You don't have access to this chat")
    return conversation


class LiveMessageFeed:
    def __init__(
        self,
        store: DocumentStore,
        conversation_id: str,
        user_id: str,
        on_batch: Callable[[list[Message]], None],
        on_error: Callable[[Exception], None] | None = None,
        page_size: int = MESSAGES_PER_PAGE,
    ):
        self.store = store
        self.conversation_id = conversation_id
        self.user_id = user_id
        self.on_batch = on_batch
        self.on_error = on_error
        self.page_size = page_size
        self._unsubscribe: Callable[[], None] | None = None
        self._cancelled = False

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None and not self._cancelled

    async def start(self) -> Conversation:
        conversation = await fetch_conversation_for(self.store, self.conversation_id, self.user_id)
        if self._cancelled:
            return conversation

        query = newest_first(self.conversation_id).limit_to(self.page_size)
        self._unsubscribe = self.store.subscribe_query(query, self._handle, self._handle_error)
        return conversation

    def _handle(self, snapshots):
        if self._cancelled:
            return
        self.on_batch(parse_messages(snapshots))

    def _handle_error(self, exc: Exception):
        logger.error(f"Error in message listener for {self.conversation_id}: {exc}")
        if not self._cancelled and self.on_error:
            self.on_error(exc)

    def stop(self):
        self._cancelled = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
