import os

os.environ.setdefault("STORE_BACKEND", "memory")

import pytest
from jose import jwt

from config import JWT_ALGORITHM, JWT_AUDIENCE, JWT_SECRET
from errors import UploadError
from models import Conversation, TextMessage, User, conversation_id_for, messages_path
from services.upload_service import ImageUpload, Uploader
from session import AppSession
from stores import MemoryStore


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id, "aud": JWT_AUDIENCE}, JWT_SECRET, algorithm=JWT_ALGORITHM)


class FakeAuth:
    """Stands in for Supabase Auth: accounts keyed by email."""

    def __init__(self):
        self.accounts: dict[str, tuple[str, str]] = {}
        self.signed_out: list[str] = []
        self.resets: list[str] = []
        self.password_updates: dict[str, str] = {}

    async def sign_up(self, email, password, metadata=None):
        if email in self.accounts:
            raise ValueError("User already registered")
        user_id = f"user-{len(self.accounts) + 1}"
        self.accounts[email] = (user_id, password)
        return user_id

    async def sign_in(self, email, password):
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise ValueError("Invalid login credentials")
        return account[0], make_token(account[0])

    async def sign_out(self, access_token):
        self.signed_out.append(access_token)

    async def send_password_reset(self, email):
        self.resets.append(email)

    async def update_password(self, user_id, password):
        self.password_updates[user_id] = password


class FakeUploader(Uploader):
    def __init__(self):
        self.uploads: list[tuple[str, str]] = []
        self.fail = False

    async def upload(self, owner_id, upload):
        if self.fail:
            raise UploadError("Failed to upload image. Please try again or choose a different image.")
        self.uploads.append((owner_id, upload.filename))
        return f"https://cdn.test/{owner_id}/{upload.filename}"


def png(size: int = 16, name: str = "photo.png") -> ImageUpload:
    return ImageUpload(filename=name, content_type="image/png", data=b"\x89PNG" + b"\0" * size)


async def create_user(store, user_id: str, name: str = "", friends=(), email: str | None = None) -> User:
    user = User(
        id=user_id,
        email=email if email is not None else f"{user_id}@example.com",
        username=user_id,
        name=name or user_id.title(),
        avatar=f"https://cdn.test/{user_id}.png",
        friends=list(friends),
        last_seen=1,
    )
    await store.set_document("users", user_id, user.to_document())
    await store.set_document("chats", user_id, {"chatsData": [], "lastMessageAt": 0})
    return user


async def create_conversation(store, a: str, b: str) -> str:
    conversation_id = conversation_id_for(a, b)
    conversation = Conversation(
        id=conversation_id,
        participants=[a, b],
        created_at=1,
        last_message_at=1,
        unread_count={a: 0, b: 0},
    )
    await store.set_document("messages", conversation_id, conversation.to_document())
    return conversation_id


async def seed_messages(store, conversation_id: str, count: int, sender: str = "alice", start: int = 1000):
    for i in range(count):
        message = TextMessage(id=f"m{i:03d}", sender_id=sender, created_at=start + i, text=f"message {i}")
        await store.add_document(messages_path(conversation_id), message.to_document(), doc_id=message.id)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def make_session(store, auth, uploader):
    async def _make(user_id: str) -> AppSession:
        session = AppSession(store=store, uploader=uploader, auth=auth)
        await session.populate(user_id, make_token(user_id))
        return session
    return _make


@pytest.fixture
async def pair(store):
    """alice and bob, friends, with a conversation document and no messages."""
    await create_user(store, "alice", "Alice", friends=["bob"])
    await create_user(store, "bob", "Bob", friends=["alice"])
    return await create_conversation(store, "alice", "bob")
