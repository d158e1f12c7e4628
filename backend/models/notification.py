from typing import Literal

from pydantic import Field

from models.base import DocumentModel


class FriendRequestNotice(DocumentModel):
    """Inbox entry appended to the recipient's ``notifications`` array.

    Removal uses array-remove, so the stored dict must round-trip exactly.
    """

    type: Literal["friendRequest"] = "friendRequest"
    from_id: str = Field(alias="from")
    from_name: str | None = Field(default=None, alias="fromName")
    timestamp: int
    sender_avatar: str | None = Field(default=None, alias="senderAvatar")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
