from pydantic import Field

from models.base import DocumentModel


def conversation_id_for(user_a: str, user_b: str) -> str:
    """Deterministic id shared by both participants."""
    return "_".join(sorted([user_a, user_b]))


class Conversation(DocumentModel):
    id: str
    participants: list[str]
    created_at: int = Field(default=0, alias="createdAt")
    last_message: str | None = Field(default=None, alias="lastMessage")
    last_message_at: int | None = Field(default=None, alias="lastMessageAt")
    unread_count: dict[str, int] = Field(default_factory=dict, alias="unreadCount")
    # user id → epoch ms of the last keystroke, None once cleared
    typing: dict[str, int | None] = Field(default_factory=dict)

    def other_participant(self, user_id: str) -> str:
        others = [p for p in self.participants if p != user_id]
        return others[0] if others else user_id

    def unread_for(self, user_id: str) -> int:
        return self.unread_count.get(user_id, 0)


def messages_path(conversation_id: str) -> str:
    """Collection path of a conversation's messages."""
    return f"messages/{conversation_id}/messagesList"
