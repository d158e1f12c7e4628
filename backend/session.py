"""
session.py — Explicit per-user context handed to every service boundary.
Populated once authentication resolves, cleared on sign-out.
"""
import logging
from dataclasses import dataclass, field

from errors import AccessDenied, NotFound
from models import User
from services.notices import NoticeBoard
from services.presence_service import PresenceHeartbeat
from services.upload_service import Uploader
from stores import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class AppSession:
    store: DocumentStore
    uploader: Uploader | None = None
    auth: object | None = None
    user_id: str | None = None
    user: User | None = None
    access_token: str | None = None
    notices: NoticeBoard = field(default_factory=NoticeBoard)
    heartbeat: PresenceHeartbeat | None = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    async def populate(self, user_id: str, access_token: str | None = None) -> User:
        snap = await self.store.get_document("users", user_id)
        if not snap.exists:
            raise NotFound("User profile not found")
        self.user_id = user_id
        self.access_token = access_token
        self.user = User.from_document(snap.id, snap.data)
        return self.user

    async def refresh_user(self) -> User:
        return await self.populate(self.require_user_id(), self.access_token)

    def require_user_id(self) -> str:
        if self.user_id is None:
            raise AccessDenied("Not signed in")
        return self.user_id

    def start_presence(self, interval: float | None = None):
        user_id = self.require_user_id()
        if self.heartbeat is None:
            if interval is None:
                self.heartbeat = PresenceHeartbeat(self.store, user_id)
            else:
                self.heartbeat = PresenceHeartbeat(self.store, user_id, interval)
        self.heartbeat.start()

    async def clear(self):
        if self.heartbeat is not None:
            await self.heartbeat.stop()
            self.heartbeat = None
        logger.info(f"Session cleared for {self.user_id}")
        self.user_id = None
        self.user = None
        self.access_token = None
        self.notices.clear()
