"""
reconciler.py — Conversation metadata reconciliation on send.

A sent message touches three places: the message collection, the conversation
summary document and each participant's chat-list entry. ``MessageApplier`` is
the single logical "apply message" operation; ``DenormalizedApplier`` issues
the three writes independently, with no transaction. If a later write fails,
the earlier ones stay applied and the failure is raised to the caller; the
next subscription refresh shows whatever landed.
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Callable

from errors import ChatError, NetworkError, NotFound
from models import (
    ChatListEntry,
    Conversation,
    ImageMessage,
    Message,
    TextMessage,
    messages_path,
    now_ms,
    preview_of,
)
from services.upload_service import ImageUpload, Uploader, validate_image
from stores import DocumentStore

logger = logging.getLogger(__name__)


class MessageApplier(ABC):
    @abstractmethod
    async def apply_message(self, conversation_id: str, recipient_id: str, message: Message) -> None:
        ...


async def _step(name: str, coro):
    """Run one write, normalising store failures to NetworkError."""
    try:
        return await coro
    except ChatError:
        logger.error(f"Send step '{name}' failed")
        raise
    except Exception as e:
        logger.error(f"Send step '{name}' failed: {e}")
        raise NetworkError(str(e)) from e


class DenormalizedApplier(MessageApplier):
    def __init__(self, store: DocumentStore, clock: Callable[[], int] = now_ms):
        self.store = store
        self._clock = clock

    async def apply_message(self, conversation_id: str, recipient_id: str, message: Message) -> None:
        await _step("append", self._append(conversation_id, message))
        await _step("summary", self._update_summary(conversation_id, recipient_id, message))

        # No ordering between the two chat-list writes; last write wins per document
        results = await asyncio.gather(
            _step("chat-list", self._update_chat_list(recipient_id, conversation_id, message)),
            _step("chat-list", self._update_chat_list(message.sender_id, conversation_id, message)),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                raise result

    async def _append(self, conversation_id: str, message: Message):
        await self.store.add_document(messages_path(conversation_id), message.to_document(), doc_id=message.id)

    async def _update_summary(self, conversation_id: str, recipient_id: str, message: Message):
        snap = await self.store.get_document("messages", conversation_id)
        if not snap.exists:
            raise NotFound("Conversation not found")
        conversation = Conversation.from_document(snap.id, snap.data)
        unread = dict(conversation.unread_count)
        unread[recipient_id] = unread.get(recipient_id, 0) + 1
        await self.store.update_document("messages", conversation_id, {
            "lastMessage": preview_of(message),
            "lastMessageAt": message.created_at,
            "unreadCount": unread,
        })

    async def _update_chat_list(self, owner_id: str, conversation_id: str, message: Message):
        snap = await self.store.get_document("chats", owner_id)
        if not snap.exists:
            return
        entries = list(snap.get("chatsData") or [])
        for index, raw in enumerate(entries):
            if raw.get("messageId") != conversation_id:
                continue
            entry = ChatListEntry.model_validate(raw)
            entry.last_message = preview_of(message)
            entry.updated_at = self._clock()
            if entry.r_id == message.sender_id:
                entry.message_seen = False
            entries[index] = entry.to_document()
            await self.store.update_document("chats", owner_id, {"chatsData": entries})
            return
        # entry not materialized for this user yet; left alone


class ConversationReconciler:
    def __init__(
        self,
        store: DocumentStore,
        uploader: Uploader | None = None,
        applier: MessageApplier | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.uploader = uploader
        self.applier = applier or DenormalizedApplier(store, clock)
        self._clock = clock

    async def send_message(self, conversation_id: str, sender_id: str, recipient_id: str,
                           text: str) -> TextMessage | None:
        """Whitespace-only text is ignored and returns None."""
        if not text or not text.strip():
            return None
        message = TextMessage(
            id=uuid.uuid4().hex,
            sender_id=sender_id,
            created_at=self._clock(),
            text=text.strip(),
        )
        await self.applier.apply_message(conversation_id, recipient_id, message)
        return message

    async def send_image(self, conversation_id: str, sender_id: str, recipient_id: str,
                         upload: ImageUpload) -> ImageMessage:
        validate_image(upload)
        if self.uploader is None:
            raise NetworkError("Image uploads are not configured")
        url = await self.uploader.upload(sender_id, upload)
        message = ImageMessage(
            id=uuid.uuid4().hex,
            sender_id=sender_id,
            created_at=self._clock(),
            url=url,
        )
        await self.applier.apply_message(conversation_id, recipient_id, message)
        return message
