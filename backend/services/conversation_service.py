"""
conversation_service.py — Opening a conversation from the chat list.
Creates the conversation document on first open, resets the opener's unread
count, and materializes the opener's chat-list entry.
"""
import logging

from errors import AccessDenied, ValidationError
from models import (
    ChatListEntry,
    Conversation,
    SystemMessage,
    conversation_id_for,
    messages_path,
    now_ms,
)
from stores import DocumentStore

logger = logging.getLogger(__name__)


async def open_conversation(store: DocumentStore, user_id: str, friend_id: str) -> Conversation:
    """Get or create the conversation between ``user_id`` and ``friend_id``."""
    if not user_id or not friend_id:
        raise ValidationError("Missing user ids")
    if user_id == friend_id:
        raise ValidationError("Cannot start a chat with yourself")

    conversation_id = conversation_id_for(user_id, friend_id)
    snap = await store.get_document("messages", conversation_id)
    now = now_ms()

    if not snap.exists:
        logger.info(f"Creating conversation {conversation_id}")
        conversation = Conversation(
            id=conversation_id,
            participants=[user_id, friend_id],
            created_at=now,
            last_message=None,
            last_message_at=now,
            unread_count={user_id: 0, friend_id: 0},
        )
        await store.set_document("messages", conversation_id, conversation.to_document())
        marker = SystemMessage(id=f"system-{now}", created_at=now, text="Chat created")
        await store.add_document(messages_path(conversation_id), marker.to_document(), doc_id=marker.id)
    else:
        conversation = Conversation.from_document(snap.id, snap.data)
        if user_id not in conversation.participants:
            raise AccessDenied("You don't have access to this chat")
        await mark_conversation_read(store, conversation_id, user_id)
        conversation.unread_count[user_id] = 0

    await ensure_chat_list_entry(store, user_id, friend_id, conversation)
    return conversation


async def mark_conversation_read(store: DocumentStore, conversation_id: str, user_id: str):
    await store.update_document("messages", conversation_id, {f"unreadCount.{user_id}": 0})


async def ensure_chat_list_entry(store: DocumentStore, user_id: str, friend_id: str,
                                 conversation: Conversation):
    """Add the opener's entry if missing, otherwise mark it seen."""
    snap = await store.get_document("chats", user_id)
    entries = list(snap.get("chatsData") or []) if snap.exists else []

    for index, raw in enumerate(entries):
        if raw.get("messageId") == conversation.id:
            if raw.get("messageSeen") is False:
                entries[index] = {**raw, "messageSeen": True}
                await store.update_document("chats", user_id, {"chatsData": entries})
            return

    entry = ChatListEntry(
        r_id=friend_id,
        message_id=conversation.id,
        last_message=conversation.last_message or "",
        updated_at=now_ms(),
        message_seen=True,
    )
    entries.append(entry.to_document())
    if snap.exists:
        await store.update_document("chats", user_id, {"chatsData": entries})
    else:
        await store.set_document("chats", user_id, {"chatsData": entries, "lastMessageAt": now_ms()})
