"""
message.py — Tagged message variants.
A stored message carries exactly one of ``text``, ``image`` or ``system``;
``message_from_document`` picks the variant and ``to_document`` writes it back.
"""
from typing import Literal

from pydantic import Field

from models.base import DocumentModel

IMAGE_PREVIEW = "Image"


class _MessageBase(DocumentModel):
    id: str
    sender_id: str | None = Field(default=None, alias="sId")
    created_at: int = Field(alias="createdAt")

    @property
    def key(self) -> tuple[int, str]:
        """Sort/cursor key: messages are ordered by (createdAt, id)."""
        return (self.created_at, self.id)


class TextMessage(_MessageBase):
    kind: Literal["text"] = "text"
    text: str

    def to_document(self) -> dict:
        return {"sId": self.sender_id, "text": self.text, "createdAt": self.created_at}


class ImageMessage(_MessageBase):
    kind: Literal["image"] = "image"
    url: str = Field(alias="image")

    def to_document(self) -> dict:
        return {"sId": self.sender_id, "image": self.url, "createdAt": self.created_at}


class SystemMessage(_MessageBase):
    kind: Literal["system"] = "system"
    text: str

    def to_document(self) -> dict:
        return {"system": True, "text": self.text, "createdAt": self.created_at}


Message = TextMessage | ImageMessage | SystemMessage


def message_from_document(doc_id: str, data: dict) -> Message:
    if data.get("system"):
        return SystemMessage.from_document(doc_id, data)
    if data.get("image"):
        return ImageMessage.from_document(doc_id, data)
    if "text" in data:
        return TextMessage.from_document(doc_id, data)
    raise ValueError(f"Message {doc_id} has neither text nor image")


def preview_of(message: Message) -> str:
    """Text shown in chat-list rows and the conversation summary."""
    if isinstance(message, TextMessage):
        return message.text
    if isinstance(message, ImageMessage):
        return IMAGE_PREVIEW
    if isinstance(message, SystemMessage):
        return message.text
    raise TypeError(f"Unknown message variant: {type(message).__name__}")
