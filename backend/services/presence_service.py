"""
presence_service.py — lastSeen heartbeat.
"""
import asyncio
import logging

from config import PRESENCE_INTERVAL_SECONDS
from models import now_ms
from stores import DocumentStore

logger = logging.getLogger(__name__)


async def touch_last_seen(store: DocumentStore, user_id: str):
    await store.update_document("users", user_id, {"lastSeen": now_ms()})


class PresenceHeartbeat:
    """Refreshes the user's lastSeen every interval until stopped."""

    def __init__(self, store: DocumentStore, user_id: str, interval: float = PRESENCE_INTERVAL_SECONDS):
        self.store = store
        self.user_id = user_id
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        while True:
            try:
                await touch_last_seen(self.store, self.user_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Presence update failed for {self.user_id}: {e}")
            await asyncio.sleep(self.interval)

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
