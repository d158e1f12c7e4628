from pydantic import Field

from models.base import DocumentModel
from models.notification import FriendRequestNotice


class User(DocumentModel):
    id: str
    email: str = ""
    username: str = ""
    name: str = ""
    avatar: str | None = None
    bio: str = ""
    last_seen: int = Field(default=0, alias="lastSeen")
    friends: list[str] = Field(default_factory=list)
    notifications: list[FriendRequestNotice] = Field(default_factory=list)
    created_at: int = Field(default=0, alias="createdAt")
    updated_at: int = Field(default=0, alias="updatedAt")

    def to_document(self) -> dict:
        # the id is duplicated inside the document so friends can be queried by it
        return self.model_dump(by_alias=True)

    @property
    def display_name(self) -> str:
        return self.name or self.username

    def is_online(self, now: int, window_ms: int) -> bool:
        return bool(self.last_seen) and now - self.last_seen <= window_ms
