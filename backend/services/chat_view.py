"""
chat_view.py — Client-side chat synchronization state machine.

One mounted view per open conversation. It owns:
  * the live subscription to the newest page (tail of ``messages``)
  * the pagination cursor for older pages (head of ``messages``)
  * scroll anchoring across both
  * the conversation-document subscription (typing, unread, preview)
  * the current user's typing signal

``messages`` is always contiguous and ascending by (createdAt, id). A live
emission replaces everything at or after the batch's oldest key; older history
is kept. The pagination cursor is always the key of ``messages[0]``.

Switching conversation or closing bumps a generation counter; callbacks and
page loads started under an older generation are discarded.
"""
import asyncio
import logging
import time
from typing import Callable

from config import (
    LOAD_OLDER_THRESHOLD,
    MESSAGES_PER_PAGE,
    SCROLL_GATE_SECONDS,
    TYPING_TIMEOUT_SECONDS,
    TYPING_WRITE_INTERVAL_SECONDS,
)
from models import Conversation, Message, now_ms
from services.conversation_service import mark_conversation_read
from services.message_feed import LiveMessageFeed
from services.notices import NoticeBoard
from services.pagination import PaginationCursor
from services.reconciler import ConversationReconciler
from services.time_gate import TimeGate
from services.typing_service import TypingSignal, is_peer_typing
from services.upload_service import ImageUpload
from services.viewport import ListViewport, ScrollAnchor, Viewport
from session import AppSession

logger = logging.getLogger(__name__)


class ChatView:
    def __init__(
        self,
        session: AppSession,
        viewport: Viewport | None = None,
        page_size: int = MESSAGES_PER_PAGE,
        scroll_gate: float = SCROLL_GATE_SECONDS,
        typing_timeout: float = TYPING_TIMEOUT_SECONDS,
        typing_write_interval: float = TYPING_WRITE_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        reconciler: ConversationReconciler | None = None,
        on_change: Callable[["ChatView"], None] | None = None,
    ):
        self.session = session
        self.store = session.store
        self.notices: NoticeBoard = session.notices
        self.viewport = viewport or ListViewport()
        self.page_size = page_size
        self.typing_timeout = typing_timeout
        self.typing_write_interval = typing_write_interval
        self.gate = TimeGate(scroll_gate, clock)
        self.reconciler = reconciler or ConversationReconciler(self.store, session.uploader)
        self.on_change = on_change

        self.conversation_id: str | None = None
        self.conversation: Conversation | None = None
        self.messages: list[Message] = []
        self.loading = False
        self.sending = False
        self.input_text = ""
        self.redirect_to: str | None = None

        self.feed: LiveMessageFeed | None = None
        self.pagination: PaginationCursor | None = None
        self.typing: TypingSignal | None = None
        self._unsubscribe_conversation: Callable[[], None] | None = None
        self._generation = 0
        self._seeded = False
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    @property
    def user_id(self) -> str:
        return self.session.require_user_id()

    @property
    def peer_id(self) -> str | None:
        if self.conversation is None:
            return None
        return self.conversation.other_participant(self.user_id)

    @property
    def has_more(self) -> bool:
        return self.pagination is not None and self.pagination.has_more

    @property
    def peer_typing(self) -> bool:
        """Derived on read so the flag expires without a new emission."""
        if self.conversation is None:
            return False
        return is_peer_typing(self.conversation, self.peer_id, now_ms(), int(self.typing_timeout * 1000))

    @property
    def cursor(self) -> tuple[int, str] | None:
        return self.pagination.cursor if self.pagination else None

    # ------------------------------------------------------------------
    async def open(self, conversation_id: str) -> bool:
        """Mount the view on a conversation, tearing down any previous one."""
        await self.close()
        self._generation += 1
        generation = self._generation
        user_id = self.user_id

        self.conversation_id = conversation_id
        self.redirect_to = None
        self._seeded = False
        self.pagination = PaginationCursor(self.store, conversation_id, self.page_size)
        self.feed = LiveMessageFeed(
            self.store,
            conversation_id,
            user_id,
            on_batch=lambda batch: self._on_batch(generation, batch),
            on_error=lambda exc: self._on_feed_error(generation, exc),
            page_size=self.page_size,
        )
        try:
            self.conversation = await self.feed.start()
        except Exception as e:
            if generation == self._generation:
                notice = self.notices.report(e, "Error loading messages")
                self.redirect_to = notice.redirect_to
                self._reset()
            return False

        if generation != self._generation:
            return False

        self._unsubscribe_conversation = self.store.subscribe_document(
            "messages", conversation_id, lambda snap: self._on_conversation(generation, snap)
        )
        self.typing = TypingSignal(
            self.store, conversation_id, user_id,
            timeout=self.typing_timeout, write_interval=self.typing_write_interval,
        )
        try:
            await mark_conversation_read(self.store, conversation_id, user_id)
        except Exception as e:
            logger.warning(f"Could not reset unread count for {conversation_id}: {e}")
        return True

    async def close(self):
        """Tear down subscriptions, timers and in-flight loads deterministically."""
        self._generation += 1
        if self.feed is not None:
            self.feed.stop()
        if self._unsubscribe_conversation is not None:
            self._unsubscribe_conversation()
        if self.typing is not None:
            await self.typing.aclose()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._reset()

    def _reset(self):
        self.feed = None
        self.typing = None
        self._unsubscribe_conversation = None
        self.conversation_id = None
        self.conversation = None
        self.pagination = None
        self.messages = []
        self.loading = False
        self.gate.reset()
        self._tasks.clear()

    # ------------------------------------------------------------------
    def _on_batch(self, generation: int, batch: list[Message]):
        if generation != self._generation or self.pagination is None:
            return
        if not self._seeded:
            self._seeded = True
            self.pagination.seed(len(batch))
        if not batch:
            return

        boundary = batch[0].key
        retained = [m for m in self.messages if m.key < boundary]
        self.messages = retained + batch
        self.pagination.move_to(self.messages[0].key)

        self.viewport.render(self.messages)
        self.viewport.scroll_to_bottom()
        self._changed()

    def _on_feed_error(self, generation: int, exc: Exception):
        if generation == self._generation:
            self.notices.report(exc, "Error loading messages")

    def _on_conversation(self, generation: int, snap):
        if generation != self._generation or not snap.exists:
            return
        self.conversation = Conversation.from_document(snap.id, snap.data)
        self._changed()

    def _changed(self):
        if self.on_change is not None:
            self.on_change(self)

    def snapshot(self) -> dict:
        """JSON-ready view state."""
        return {
            "conversation_id": self.conversation_id,
            "messages": [m.model_dump() for m in self.messages],
            "has_more": self.has_more,
            "peer_typing": self.peer_typing,
            "unread": self.conversation.unread_for(self.user_id) if self.conversation else 0,
        }

    # ------------------------------------------------------------------
    async def load_older(self) -> bool:
        """Prepend the next older page, keeping the viewport where it was."""
        pagination = self.pagination
        if pagination is None or pagination.is_loading or not pagination.has_more:
            return False
        generation = self._generation

        self.loading = True
        try:
            older = await pagination.fetch_older()
        except Exception as e:
            if generation == self._generation:
                self.notices.report(e, "Error loading messages")
            return False
        finally:
            if generation == self._generation:
                self.loading = False

        if generation != self._generation or not older:
            return False

        anchor = ScrollAnchor.capture(self.viewport)
        oldest = self.messages[0].key if self.messages else None
        fresh = [m for m in older if oldest is None or m.key < oldest]
        self.messages = fresh + self.messages
        pagination.move_to(self.messages[0].key)

        self.viewport.render(self.messages)
        anchor.restore(self.viewport)
        self._changed()
        return True

    def on_scroll(self) -> asyncio.Task | None:
        """Scroll handler. Starts at most one page load per gate window."""
        if self.pagination is None:
            return None
        if self.viewport.scroll_fraction > LOAD_OLDER_THRESHOLD:
            return None
        if not self.pagination.has_more or self.pagination.is_loading:
            return None
        if not self.gate.try_acquire():
            return None

        task = asyncio.ensure_future(self.load_older())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    def on_input(self, text: str):
        self.input_text = text
        if self.typing is not None:
            self.typing.keystroke()

    async def send(self) -> bool:
        """Send the current input. A failed send keeps the input."""
        text = self.input_text
        if not text.strip() or self.conversation is None or self.sending:
            return False
        self.sending = True
        try:
            await self.reconciler.send_message(self.conversation_id, self.user_id, self.peer_id, text)
        except Exception as e:
            logger.error(f"Error sending message: {e}")
            self.notices.report(e, "Failed to send message")
            return False
        finally:
            self.sending = False
        self.input_text = ""
        if self.typing is not None:
            self.typing.stop()
        return True

    async def send_image(self, upload: ImageUpload) -> bool:
        if self.conversation is None or self.sending:
            return False
        self.sending = True
        try:
            await self.reconciler.send_image(self.conversation_id, self.user_id, self.peer_id, upload)
        except Exception as e:
            logger.error(f"Error sending image: {e}")
            self.notices.report(e, "Failed to send image. Please try again.")
            return False
        finally:
            self.sending = False
        self.notices.success("Image sent successfully")
        return True
