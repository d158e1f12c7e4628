"""
typing_service.py — Per-conversation "typing since" flags.
Writes are fire-and-forget; a local timer clears the flag after the timeout
whether or not the store confirmed the write.
"""
import asyncio
import logging
import time
from typing import Callable

from config import TYPING_TIMEOUT_SECONDS, TYPING_WRITE_INTERVAL_SECONDS
from models import Conversation, now_ms
from stores import DocumentStore

logger = logging.getLogger(__name__)


async def update_typing_status(store: DocumentStore, conversation_id: str, user_id: str, is_typing: bool):
    try:
        await store.update_document("messages", conversation_id, {
            f"typing.{user_id}": now_ms() if is_typing else None
        })
    except Exception as e:
        logger.warning(f"Error updating typing status for {conversation_id}: {e}")


def is_peer_typing(conversation: Conversation | None, peer_id: str, now: int,
                   timeout_ms: int = int(TYPING_TIMEOUT_SECONDS * 1000)) -> bool:
    """True while the peer's last keystroke is younger than the timeout."""
    if conversation is None:
        return False
    since = conversation.typing.get(peer_id)
    return bool(since) and now - since < timeout_ms


class TypingSignal:
    """Debounce-and-expire writer for the current user's typing flag."""

    def __init__(
        self,
        store: DocumentStore,
        conversation_id: str,
        user_id: str,
        timeout: float = TYPING_TIMEOUT_SECONDS,
        write_interval: float = TYPING_WRITE_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.conversation_id = conversation_id
        self.user_id = user_id
        self.timeout = timeout
        self.write_interval = write_interval
        self._clock = clock
        self.active = False
        self._last_write: float | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._pending: set[asyncio.Task] = set()

    def _spawn(self, is_typing: bool) -> asyncio.Task:
        task = asyncio.ensure_future(
            update_typing_status(self.store, self.conversation_id, self.user_id, is_typing)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def keystroke(self):
        now = self._clock()
        if not self.active or self._last_write is None or now - self._last_write >= self.write_interval:
            self.active = True
            self._last_write = now
            self._spawn(True)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self.timeout, self._expire)

    def _expire(self):
        self._timer = None
        if self.active:
            self.active = False
            self._spawn(False)

    def stop(self) -> asyncio.Task | None:
        """Cancel the timer and clear the flag right away (message sent, view closed)."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self.active:
            return None
        self.active = False
        return self._spawn(False)

    async def aclose(self):
        self.stop()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
