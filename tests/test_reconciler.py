import pytest

from errors import NetworkError, ValidationError
from models import messages_path
from services.conversation_service import open_conversation
from services.reconciler import ConversationReconciler, DenormalizedApplier, MessageApplier
from stores import Query

from conftest import create_user, png


@pytest.fixture
async def opened(store):
    await create_user(store, "alice", "Alice", friends=["bob"])
    await create_user(store, "bob", "Bob", friends=["alice"])
    conversation = await open_conversation(store, "alice", "bob")
    await open_conversation(store, "bob", "alice")
    return conversation.id


def entry_for(chats_snap, conversation_id):
    return next(e for e in chats_snap.get("chatsData") if e["messageId"] == conversation_id)


async def test_send_updates_summary_unread_and_both_chat_list_entries(store, uploader, opened):
    reconciler = ConversationReconciler(store, uploader)
    message = await reconciler.send_message(opened, "alice", "bob", "hello")

    stored = await store.get_document(messages_path(opened), message.id)
    assert stored.get("text") == "hello"
    assert stored.get("sId") == "alice"

    summary = await store.get_document("messages", opened)
    assert summary.get("lastMessage") == "hello"
    assert summary.get("lastMessageAt") == message.created_at
    assert summary.get("unreadCount") == {"alice": 0, "bob": 1}

    alice_entry = entry_for(await store.get_document("chats", "alice"), opened)
    bob_entry = entry_for(await store.get_document("chats", "bob"), opened)
    assert alice_entry["lastMessage"] == "hello"
    assert bob_entry["lastMessage"] == "hello"
    assert bob_entry["messageSeen"] is False
    assert alice_entry["messageSeen"] is True


async def test_whitespace_only_text_changes_nothing(store, opened):
    reconciler = ConversationReconciler(store)
    messages_before = await store.query(Query(messages_path(opened)))
    summary_before = (await store.get_document("messages", opened)).data

    assert await reconciler.send_message(opened, "alice", "bob", "   \n\t") is None
    assert await store.query(Query(messages_path(opened))) == messages_before
    assert (await store.get_document("messages", opened)).data == summary_before


async def test_image_send_uses_preview_text(store, uploader, opened):
    reconciler = ConversationReconciler(store, uploader)
    message = await reconciler.send_image(opened, "alice", "bob", png())

    assert message.url == "https://cdn.test/alice/photo.png"
    summary = await store.get_document("messages", opened)
    assert summary.get("lastMessage") == "Image"


async def test_invalid_image_is_rejected_before_upload(store, uploader, opened):
    reconciler = ConversationReconciler(store, uploader)
    with pytest.raises(ValidationError):
        await reconciler.send_image(opened, "alice", "bob", png(size=6 * 1024 * 1024))
    text_file = png()
    text_file.content_type = "text/plain"
    with pytest.raises(ValidationError):
        await reconciler.send_image(opened, "alice", "bob", text_file)
    assert uploader.uploads == []


async def test_store_failure_surfaces_as_network_error(store, opened):
    class BrokenStore:
        def __getattr__(self, name):
            return getattr(store, name)

        async def get_document(self, collection, doc_id):
            raise ConnectionError("connection reset")

    applier = DenormalizedApplier(BrokenStore())
    reconciler = ConversationReconciler(store, applier=applier)
    with pytest.raises(NetworkError):
        await reconciler.send_message(opened, "alice", "bob", "hi")


async def test_custom_applier_receives_every_message(store):
    class RecordingApplier(MessageApplier):
        def __init__(self):
            self.applied = []

        async def apply_message(self, conversation_id, recipient_id, message):
            self.applied.append((conversation_id, recipient_id, message.text))

    applier = RecordingApplier()
    reconciler = ConversationReconciler(store, applier=applier)
    await reconciler.send_message("c1", "alice", "bob", "  padded  ")
    assert applier.applied == [("c1", "bob", "padded")]
