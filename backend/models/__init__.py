from models.base import DocumentModel, now_ms
from models.chat_list import ChatListEntry, ChatListRow
from models.conversation import Conversation, conversation_id_for, messages_path
from models.friend_request import FriendRequest
from models.message import (
    ImageMessage,
    Message,
    SystemMessage,
    TextMessage,
    message_from_document,
    preview_of,
)
from models.notification import FriendRequestNotice
from models.user import User

__all__ = [
    "DocumentModel",
    "now_ms",
    "ChatListEntry",
    "ChatListRow",
    "Conversation",
    "conversation_id_for",
    "messages_path",
    "FriendRequest",
    "ImageMessage",
    "Message",
    "SystemMessage",
    "TextMessage",
    "message_from_document",
    "preview_of",
    "FriendRequestNotice",
    "User",
]
