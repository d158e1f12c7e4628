"""
chat_list.py — Chat list composition.

``compose_chat_list`` is pure and cheap enough to run on every render:
persisted entries first, then a synthesized row for every friend without one,
deduplicated by the other participant, unread-first then most recent first,
optionally filtered by display name.
"""
import asyncio
import logging

from models import ChatListEntry, ChatListRow, Conversation, User, conversation_id_for
from stores import DocumentStore

logger = logging.getLogger(__name__)


def compose_chat_list(
    user_id: str,
    entries: list[ChatListEntry],
    friends: list[User],
    profiles: dict[str, User],
    conversations: dict[str, Conversation],
    search: str = "",
) -> list[ChatListRow]:
    rows: list[ChatListRow] = []
    seen: set[str] = set()

    for entry in entries:
        profile = profiles.get(entry.r_id)
        if profile is None or entry.r_id in seen:
            continue
        seen.add(entry.r_id)
        conversation = conversations.get(entry.message_id)
        rows.append(ChatListRow(
            user=profile,
            conversation_id=entry.message_id,
            last_message=entry.last_message or (conversation.last_message if conversation else None),
            last_message_at=(conversation.last_message_at if conversation else None) or entry.updated_at or None,
            unread_count=conversation.unread_for(user_id) if conversation else 0,
            message_seen=entry.message_seen,
        ))

    for friend in friends:
        if friend.id in seen:
            continue
        seen.add(friend.id)
        conversation_id = conversation_id_for(user_id, friend.id)
        conversation = conversations.get(conversation_id)
        rows.append(ChatListRow(
            user=friend,
            conversation_id=conversation_id,
            last_message=conversation.last_message if conversation else None,
            last_message_at=conversation.last_message_at if conversation and conversation.last_message else None,
            unread_count=conversation.unread_for(user_id) if conversation else 0,
            synthesized=True,
        ))

    rows.sort(key=lambda row: (row.unread_count > 0, row.activity), reverse=True)

    query = search.strip().lower()
    if query:
        rows = [row for row in rows if query in row.user.display_name.lower()]
    return rows


async def _get_users(store: DocumentStore, ids) -> dict[str, User]:
    snapshots = await asyncio.gather(*(store.get_document("users", uid) for uid in ids))
    return {snap.id: User.from_document(snap.id, snap.data) for snap in snapshots if snap.exists}


async def load_chat_list(store: DocumentStore, user: User, search: str = "") -> list[ChatListRow]:
    """Read everything the composer needs for ``user`` and compose it."""
    chats = await store.get_document("chats", user.id)
    entries = []
    for raw in chats.get("chatsData") or []:
        if raw and raw.get("rId"):
            entries.append(ChatListEntry.model_validate(raw))

    other_ids = {entry.r_id for entry in entries} | set(user.friends)
    profiles = await _get_users(store, sorted(other_ids))
    friends = [profiles[fid] for fid in user.friends if fid in profiles]

    conversation_ids = {entry.message_id for entry in entries}
    conversation_ids |= {conversation_id_for(user.id, fid) for fid in user.friends}
    snapshots = await asyncio.gather(*(store.get_document("messages", cid) for cid in sorted(conversation_ids)))
    conversations = {
        snap.id: Conversation.from_document(snap.id, snap.data) for snap in snapshots if snap.exists
    }
    return compose_chat_list(user.id, entries, friends, profiles, conversations, search)
