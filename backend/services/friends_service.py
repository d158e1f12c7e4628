"""
friends_service.py — Friend-request workflow.

Lifecycle per (sender, recipient): none → pending → accepted | rejected.
Only pending requests are stored; accept and reject delete the record.
``send_friend_request`` refuses self, friends, unknown users and pairs that
already have a pending request in either direction. The check is a
query-before-insert with no transaction behind it, so two interleaved sends
can still create two pending requests. Accept issues its writes concurrently;
a failure part-way can leave a one-sided friendship or an orphaned request.
"""
import asyncio
import logging

from errors import MissingRecipient, MissingSender, NotFound, ValidationError
from models import FriendRequest, FriendRequestNotice, User, now_ms
from stores import ArrayRemove, ArrayUnion, DocumentStore, Query

logger = logging.getLogger(__name__)


async def get_all_users_except(store: DocumentStore, user_id: str) -> list[User]:
    snapshots = await store.query(Query("users"))
    users = []
    for snap in snapshots:
        user = User.from_document(snap.id, snap.data)
        if user.id != user_id and (user.email or user.username):
            users.append(user)
    return users


async def get_pending_map(store: DocumentStore, user_id: str) -> dict[str, bool]:
    """Ids with a pending request to or from ``user_id``."""
    sent, received = await asyncio.gather(
        store.query(Query("friendRequests").where_eq("senderId", user_id).where_eq("status", "pending")),
        store.query(Query("friendRequests").where_eq("recipientId", user_id).where_eq("status", "pending")),
    )
    pending = {}
    for snap in sent:
        pending[snap.get("recipientId")] = True
    for snap in received:
        pending[snap.get("senderId")] = True
    return pending


async def list_candidates(store: DocumentStore, user: User, search: str = "") -> list[User]:
    """Users I could send a request to: not me, not a friend, nothing pending."""
    all_users, pending = await asyncio.gather(
        get_all_users_except(store, user.id),
        get_pending_map(store, user.id),
    )
    candidates = [
        u for u in all_users
        if u.email and u.id not in user.friends and not pending.get(u.id)
    ]
    query = search.strip().lower()
    if query:
        candidates = [
            u for u in candidates
            if query in u.display_name.lower() or query in u.email.lower()
        ]
    return candidates


async def send_friend_request(store: DocumentStore, sender: User | None, recipient_id: str | None) -> FriendRequest:
    if sender is None or not sender.id:
        raise MissingSender("Sender ID is required")
    if not recipient_id:
        raise MissingRecipient("Recipient ID is required")
    if recipient_id == sender.id:
        raise ValidationError("You can't send a friend request to yourself")
    if recipient_id in sender.friends:
        raise ValidationError("You are already friends")

    recipient_snap, pending = await asyncio.gather(
        store.get_document("users", recipient_id),
        get_pending_map(store, sender.id),
    )
    if not recipient_snap.exists:
        raise NotFound("User not found")
    if pending.get(recipient_id):
        raise ValidationError("A friend request is already pending")

    now = now_ms()
    request = FriendRequest(
        sender_id=sender.id,
        sender_name=sender.display_name,
        sender_photo=sender.avatar,
        recipient_id=recipient_id,
        created_at=now,
    )
    request.id = await store.add_document("friendRequests", request.to_document())
    logger.info(f"Friend request {request.id} created: {sender.id} -> {recipient_id}")

    notice = FriendRequestNotice(
        from_id=sender.id,
        from_name=sender.display_name,
        timestamp=now,
        sender_avatar=sender.avatar,
    )
    await store.update_document("users", recipient_id, {
        "notifications": ArrayUnion(notice.to_document()),
    })
    return request


async def _pending_requests_between(store: DocumentStore, sender_id: str, recipient_id: str):
    return await store.query(
        Query("friendRequests")
        .where_eq("senderId", sender_id)
        .where_eq("recipientId", recipient_id)
        .where_eq("status", "pending")
    )


async def accept_request(store: DocumentStore, user: User, notice: FriendRequestNotice):
    sender_snap = await store.get_document("users", notice.from_id)
    if not sender_snap.exists:
        raise NotFound("Sender not found")

    requests = await _pending_requests_between(store, notice.from_id, user.id)
    await asyncio.gather(
        store.update_document("users", user.id, {
            "friends": ArrayUnion(notice.from_id),
            "notifications": ArrayRemove(notice.to_document()),
        }),
        store.update_document("users", notice.from_id, {
            "friends": ArrayUnion(user.id),
        }),
        *(store.delete_document("friendRequests", snap.id) for snap in requests),
    )
    logger.info(f"{user.id} accepted friend request from {notice.from_id}")


async def reject_request(store: DocumentStore, user: User, notice: FriendRequestNotice):
    requests = await _pending_requests_between(store, notice.from_id, user.id)
    await asyncio.gather(
        store.update_document("users", user.id, {
            "notifications": ArrayRemove(notice.to_document()),
        }),
        *(store.delete_document("friendRequests", snap.id) for snap in requests),
    )
    logger.info(f"{user.id} rejected friend request from {notice.from_id}")
