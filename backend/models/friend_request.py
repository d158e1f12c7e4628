from typing import Literal

from pydantic import Field

from models.base import DocumentModel


class FriendRequest(DocumentModel):
    """Only pending requests are persisted; accept/reject delete the record."""

    id: str | None = None
    sender_id: str = Field(alias="senderId")
    sender_name: str | None = Field(default=None, alias="senderName")
    sender_photo: str | None = Field(default=None, alias="senderPhoto")
    recipient_id: str = Field(alias="recipientId")
    status: Literal["pending"] = "pending"
    created_at: int = Field(default=0, alias="createdAt")
