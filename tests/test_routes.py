import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

import database
from stores import Query
from main import app

from conftest import create_conversation, create_user, make_token, seed_messages


@pytest.fixture
def client(store, auth, uploader):
    database.init_store(store)
    app.state.auth = auth
    app.state.uploader = uploader
    return TestClient(app)


def bearer(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def test_health_check(client):
    assert client.get("/api/v1/health-check").json()["status"] == "ok"


def test_requests_without_token_are_rejected(client):
    assert client.get("/api/v1/chat").status_code == 401
    assert client.get("/api/v1/chat", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_signup_login_and_profile(client):
    res = client.post("/api/v1/auth/signup", data={
        "username": "ann", "email": "ann@example.com",
        "password": "secret1", "confirm_password": "secret1",
    })
    assert res.status_code == 200

    res = client.post("/api/v1/auth/login", json={"email": "ann@example.com", "password": "secret1"})
    body = res.json()["data"]
    assert body["next"] == "/profile"
    headers = {"Authorization": f"Bearer {body['token']}"}

    res = client.put("/api/v1/profile", headers=headers, data={"name": "Ann", "bio": "hi"},
                     files={"avatar": ("me.png", b"\x89PNG", "image/png")})
    assert res.status_code == 200
    assert client.get("/api/v1/profile", headers=headers).json()["data"]["complete"] is True


def test_bad_login_is_401(client):
    res = client.post("/api/v1/auth/login", json={"email": "x@example.com", "password": "nope"})
    assert res.status_code == 401


async def test_social_flow(client, store):
    await create_user(store, "alice", "Alice")
    await create_user(store, "bob", "Bob")

    assert [u["id"] for u in client.get("/api/v1/social/candidates", headers=bearer("alice")).json()] == ["bob"]
    res = client.post("/api/v1/social/requests", headers=bearer("alice"), json={"recipient_id": "bob"})
    assert res.status_code == 200
    assert client.post("/api/v1/social/requests", headers=bearer("alice"), json={}).status_code == 422

    notices = client.get("/api/v1/social/notifications", headers=bearer("bob")).json()
    assert notices[0]["from_id"] == "alice"
    assert client.post("/api/v1/social/requests/alice/accept", headers=bearer("bob")).status_code == 200
    assert client.get("/api/v1/social/friends", headers=bearer("alice")).json()["friends"] == ["bob"]
    assert client.post("/api/v1/social/requests/alice/reject", headers=bearer("bob")).status_code == 404


async def test_repeated_friend_request_is_stored_once(client, store):
    await create_user(store, "alice", "Alice")
    await create_user(store, "bob", "Bob")

    codes = [
        client.post("/api/v1/social/requests", headers=bearer("alice"), json={"recipient_id": "bob"}).status_code
        for _ in range(3)
    ]
    assert codes == [200, 422, 422]
    assert client.post("/api/v1/social/requests", headers=bearer("alice"),
                       json={"recipient_id": "alice"}).status_code == 422
    assert client.post("/api/v1/social/requests", headers=bearer("alice"),
                       json={"recipient_id": "ghost"}).status_code == 404

    records = await store.query(Query("friendRequests"))
    assert [r.get("recipientId") for r in records] == ["bob"]
    assert len(client.get("/api/v1/social/notifications", headers=bearer("bob")).json()) == 1


async def test_chat_pages_and_sending(client, store):
    await create_user(store, "alice", "Alice", friends=["bob"])
    await create_user(store, "bob", "Bob", friends=["alice"])
    conversation_id = await create_conversation(store, "alice", "bob")
    await seed_messages(store, conversation_id, 60)

    page = client.get(f"/api/v1/chat/{conversation_id}", headers=bearer("alice")).json()
    assert len(page["messages"]) == 50
    assert page["has_more"] is True

    ts, msg_id = page["cursor"]
    older = client.get(f"/api/v1/chat/{conversation_id}/messages",
                       params={"before_ts": ts, "before_id": msg_id}, headers=bearer("alice")).json()
    assert [m["id"] for m in older["messages"]] == [f"m{i:03d}" for i in range(10)]
    assert older["has_more"] is False

    res = client.post(f"/api/v1/chat/{conversation_id}/messages", headers=bearer("alice"), json={"text": "hello"})
    assert res.status_code == 200
    assert client.post(f"/api/v1/chat/{conversation_id}/messages", headers=bearer("alice"),
                       json={"text": "  "}).status_code == 422

    rows = client.get("/api/v1/chat", headers=bearer("bob")).json()
    assert rows[0]["user"]["id"] == "alice"
    assert rows[0]["unread_count"] == 1


async def test_outsider_gets_403_with_redirect(client, store):
    await create_user(store, "alice", friends=["bob"])
    await create_user(store, "bob", friends=["alice"])
    await create_user(store, "mallory")
    conversation_id = await create_conversation(store, "alice", "bob")

    res = client.get(f"/api/v1/chat/{conversation_id}", headers=bearer("mallory"))
    assert res.status_code == 403
    assert res.headers["X-Redirect-To"] == "/chat"


async def test_open_chat_creates_conversation(client, store):
    await create_user(store, "alice", friends=["bob"])
    await create_user(store, "bob", friends=["alice"])
    res = client.post("/api/v1/chat/open/bob", headers=bearer("alice"))
    assert res.status_code == 200
    assert res.json()["data"]["id"] == "alice_bob"
    assert client.post("/api/v1/chat/open/alice", headers=bearer("alice")).status_code == 422


async def test_websocket_streams_view_state(client, store):
    await create_user(store, "alice", friends=["bob"])
    await create_user(store, "bob", friends=["alice"])
    conversation_id = await create_conversation(store, "alice", "bob")

    with client.websocket_connect(f"/ws/chat/{conversation_id}?token={make_token('alice')}") as ws:
        first = ws.receive_json()
        assert first["type"] == "state"
        ws.send_json({"type": "chat", "content": "hi bob"})
        texts = []
        for _ in range(10):
            msg = ws.receive_json()
            if msg["type"] == "state" and msg["messages"]:
                texts = [m.get("text") for m in msg["messages"]]
                break
        assert texts == ["hi bob"]


async def test_websocket_outsider_gets_notice_then_close(client, store):
    await create_user(store, "alice", friends=["bob"])
    await create_user(store, "bob", friends=["alice"])
    await create_user(store, "mallory")
    conversation_id = await create_conversation(store, "alice", "bob")

    with client.websocket_connect(f"/ws/chat/{conversation_id}?token={make_token('mallory')}") as ws:
        notice = ws.receive_json()
        assert notice["type"] == "notice"
        assert notice["redirect_to"] == "/chat"
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()


async def test_websocket_survives_malformed_frames(client, store):
    await create_user(store, "alice", friends=["bob"])
    await create_user(store, "bob", friends=["alice"])
    conversation_id = await create_conversation(store, "alice", "bob")

    def next_of(ws, kind):
        for _ in range(10):
            msg = ws.receive_json()
            if msg["type"] == kind:
                return msg
        raise AssertionError(f"no {kind} frame received")

    with client.websocket_connect(f"/ws/chat/{conversation_id}?token={make_token('alice')}") as ws:
        ws.send_text("not json")
        assert next_of(ws, "error")["message"] == "malformed message"
        ws.send_json(["a", "list"])
        assert next_of(ws, "error")["message"] == "malformed message"
        ws.send_json({"type": "scroll", "scroll_top": "top"})
        assert next_of(ws, "error")["message"] == "malformed message"
        ws.send_json({"type": "ping"})
        assert next_of(ws, "pong")["peer_typing"] is False
