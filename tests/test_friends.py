import pytest

from errors import MissingRecipient, MissingSender, NotFound, ValidationError
from models import FriendRequestNotice, User
from services.friends_service import (
    accept_request,
    get_pending_map,
    list_candidates,
    reject_request,
    send_friend_request,
)
from stores import Query

from conftest import create_user


async def load(store, user_id) -> User:
    snap = await store.get_document("users", user_id)
    return User.from_document(snap.id, snap.data)


async def test_request_then_accept_makes_friendship_mutual(store):
    alice = await create_user(store, "alice", "Alice")
    await create_user(store, "bob", "Bob")

    request = await send_friend_request(store, alice, "bob")
    assert request.id
    bob = await load(store, "bob")
    assert len(bob.notifications) == 1
    notice = bob.notifications[0]
    assert notice.from_id == "alice"
    assert notice.from_name == "Alice"

    await accept_request(store, bob, notice)

    alice, bob = await load(store, "alice"), await load(store, "bob")
    assert "bob" in alice.friends
    assert "alice" in bob.friends
    assert bob.notifications == []
    assert await store.query(Query("friendRequests")) == []


async def test_reject_removes_request_without_friendship(store):
    alice = await create_user(store, "alice", "Alice")
    await create_user(store, "bob", "Bob")
    await send_friend_request(store, alice, "bob")
    bob = await load(store, "bob")

    await reject_request(store, bob, bob.notifications[0])

    alice, bob = await load(store, "alice"), await load(store, "bob")
    assert alice.friends == [] and bob.friends == []
    assert bob.notifications == []
    assert await store.query(Query("friendRequests")) == []


async def test_send_requires_both_ids(store):
    alice = await create_user(store, "alice")
    with pytest.raises(MissingSender):
        await send_friend_request(store, None, "bob")
    with pytest.raises(MissingRecipient):
        await send_friend_request(store, alice, "")


async def test_accept_from_deleted_sender_is_not_found(store):
    bob = await create_user(store, "bob")
    notice = FriendRequestNotice(from_id="ghost", from_name="Ghost", timestamp=1)
    with pytest.raises(NotFound):
        await accept_request(store, bob, notice)


async def test_candidates_exclude_self_friends_and_pending(store):
    alice = await create_user(store, "alice", "Alice", friends=["bob"])
    await create_user(store, "bob", "Bob", friends=["alice"])
    await create_user(store, "carol", "Carol")
    await create_user(store, "dave", "Dave")
    await create_user(store, "erin", "Erin", email="")
    await send_friend_request(store, alice, "carol")

    assert await get_pending_map(store, "alice") == {"carol": True}
    candidates = await list_candidates(store, alice)
    assert [u.id for u in candidates] == ["dave"]
    assert await list_candidates(store, alice, search="zzz") == []
    assert [u.id for u in await list_candidates(store, alice, search="DAV")] == ["dave"]


async def test_second_request_for_same_pair_is_refused(store):
    alice = await create_user(store, "alice", "Alice")
    bob = await create_user(store, "bob", "Bob")
    await send_friend_request(store, alice, "bob")

    with pytest.raises(ValidationError):
        await send_friend_request(store, alice, "bob")
    with pytest.raises(ValidationError):
        await send_friend_request(store, bob, "alice")

    assert len(await store.query(Query("friendRequests"))) == 1
    assert len((await load(store, "bob")).notifications) == 1


async def test_request_to_self_or_friend_is_refused(store):
    alice = await create_user(store, "alice", "Alice", friends=["bob"])
    await create_user(store, "bob", "Bob", friends=["alice"])
    with pytest.raises(ValidationError):
        await send_friend_request(store, alice, "alice")
    with pytest.raises(ValidationError):
        await send_friend_request(store, alice, "bob")
    assert await store.query(Query("friendRequests")) == []


async def test_request_to_unknown_user_leaves_no_record(store):
    alice = await create_user(store, "alice", "Alice")
    with pytest.raises(NotFound):
        await send_friend_request(store, alice, "ghost")
    assert await store.query(Query("friendRequests")) == []
