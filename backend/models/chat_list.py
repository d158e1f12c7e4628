from pydantic import BaseModel, Field

from models.base import DocumentModel
from models.user import User


class ChatListEntry(DocumentModel):
    """One element of ``chats/{owner}.chatsData``."""

    r_id: str = Field(alias="rId")
    message_id: str = Field(alias="messageId")
    last_message: str = Field(default="", alias="lastMessage")
    updated_at: int = Field(default=0, alias="updatedAt")
    message_seen: bool = Field(default=True, alias="messageSeen")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class ChatListRow(BaseModel):
    """A rendered chat-list row: persisted entry or synthesized from a friend."""

    user: User
    conversation_id: str
    last_message: str | None = None
    last_message_at: int | None = None
    unread_count: int = 0
    message_seen: bool = True
    synthesized: bool = False

    @property
    def activity(self) -> int:
        return self.last_message_at or self.user.last_seen or 0
