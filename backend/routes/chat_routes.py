"""
Chat routes: chat list, conversation pages, sending and typing over HTTP, plus
the live ``/ws/chat/{conversation_id}`` socket backed by a ChatView.
"""
import asyncio
import json
import logging

from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile, WebSocket, WebSocketDisconnect

from auth import get_session, user_id_from_token
from config import MESSAGES_PER_PAGE, ONLINE_WINDOW_MS
from database import get_store
from errors import ChatError, ValidationError, http_error
from models import now_ms
from routes.auth_routes import read_upload
from services.chat_list import load_chat_list
from services.chat_view import ChatView
from services.conversation_service import mark_conversation_read, open_conversation
from services.message_feed import fetch_conversation_for
from services.pagination import PaginationCursor, newest_first, parse_messages
from services.reconciler import ConversationReconciler
from services.typing_service import update_typing_status
from session import AppSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])
ws_router = APIRouter()


async def _participant_conversation(session: AppSession, conversation_id: str):
    try:
        return await fetch_conversation_for(session.store, conversation_id, session.user_id)
    except ChatError as e:
        raise http_error(e)


@router.get("")
async def get_chat_list(q: str = "", session: AppSession = Depends(get_session)):
    """Chat list rows: unread first, then most recent activity."""
    rows = await load_chat_list(session.store, session.user, q)
    now = now_ms()
    return [
        {
            "conversation_id": row.conversation_id,
            "user": {"id": row.user.id, "name": row.user.display_name, "avatar": row.user.avatar},
            "online": row.user.is_online(now, ONLINE_WINDOW_MS),
            "last_message": row.last_message,
            "last_message_at": row.last_message_at,
            "unread_count": row.unread_count,
            "message_seen": row.message_seen,
        }
        for row in rows
    ]


@router.post("/open/{friend_id}")
async def open_chat(friend_id: str, session: AppSession = Depends(get_session)):
    try:
        conversation = await open_conversation(session.store, session.user_id, friend_id)
    except ChatError as e:
        raise http_error(e)
    return {"status": "success", "data": conversation.model_dump()}


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, session: AppSession = Depends(get_session)):
    """Conversation summary plus the newest page of messages, ascending."""
    conversation = await _participant_conversation(session, conversation_id)
    snapshots = await session.store.query(newest_first(conversation_id).limit_to(MESSAGES_PER_PAGE))
    messages = parse_messages(snapshots)
    return {
        "conversation": conversation.model_dump(),
        "messages": [m.model_dump() for m in messages],
        "has_more": len(snapshots) >= MESSAGES_PER_PAGE,
        "cursor": list(messages[0].key) if messages else None,
    }


@router.get("/{conversation_id}/messages")
async def get_older_messages(
    conversation_id: str,
    before_ts: int,
    before_id: str,
    session: AppSession = Depends(get_session),
):
    """The page strictly older than (before_ts, before_id)."""
    await _participant_conversation(session, conversation_id)
    pagination = PaginationCursor(session.store, conversation_id)
    pagination.has_more = True
    pagination.move_to((before_ts, before_id))
    try:
        older = await pagination.fetch_older() or []
    except ChatError as e:
        raise http_error(e)
    return {
        "messages": [m.model_dump() for m in older],
        "has_more": pagination.has_more,
        "cursor": list(pagination.cursor) if pagination.cursor else None,
    }


@router.post("/{conversation_id}/messages")
async def send_text(
    conversation_id: str,
    text: str = Body(default="", embed=True),
    session: AppSession = Depends(get_session),
):
    conversation = await _participant_conversation(session, conversation_id)
    reconciler = ConversationReconciler(session.store, session.uploader)
    try:
        message = await reconciler.send_message(
            conversation_id, session.user_id, conversation.other_participant(session.user_id), text,
        )
    except ChatError as e:
        logger.error(f"Error sending message to {conversation_id}: {e.message}")
        raise http_error(e)
    if message is None:
        raise http_error(ValidationError("Message cannot be empty"))
    await update_typing_status(session.store, conversation_id, session.user_id, False)
    return {"status": "success", "data": message.model_dump()}


@router.post("/{conversation_id}/images")
async def send_image(
    conversation_id: str,
    file: UploadFile = File(...),
    session: AppSession = Depends(get_session),
):
    conversation = await _participant_conversation(session, conversation_id)
    reconciler = ConversationReconciler(session.store, session.uploader)
    try:
        message = await reconciler.send_image(
            conversation_id, session.user_id, conversation.other_participant(session.user_id),
            await read_upload(file),
        )
    except ChatError as e:
        logger.error(f"Error sending image to {conversation_id}: {e.message}")
        raise http_error(e)
    return {"status": "success", "data": message.model_dump()}


@router.put("/{conversation_id}/typing")
async def set_typing(
    conversation_id: str,
    typing: bool = Body(default=True, embed=True),
    session: AppSession = Depends(get_session),
):
    await _participant_conversation(session, conversation_id)
    await update_typing_status(session.store, conversation_id, session.user_id, typing)
    return {"status": "success"}


@router.post("/{conversation_id}/read")
async def mark_read(conversation_id: str, session: AppSession = Depends(get_session)):
    await _participant_conversation(session, conversation_id)
    await mark_conversation_read(session.store, conversation_id, session.user_id)
    return {"status": "success"}


async def _dispatch(view: ChatView, outbox: asyncio.Queue, msg: dict):
    kind = msg.get("type")
    if kind == "typing":
        view.on_input(str(msg.get("text", "")))
    elif kind == "chat":
        view.input_text = str(msg.get("content", ""))[:4000]
        await view.send()
    elif kind == "scroll":
        view.viewport.scroll_top = float(msg.get("scroll_top", 0))
        view.on_scroll()
    elif kind == "load_older":
        await view.load_older()
    elif kind == "ping":
        outbox.put_nowait({"type": "pong", "peer_typing": view.peer_typing})
    else:
        outbox.put_nowait({"type": "error", "message": "unknown message"})


# Live chat WS: one ChatView per socket, state pushed on every change.
@ws_router.websocket("/ws/chat/{conversation_id}")
async def ws_chat(ws: WebSocket, conversation_id: str):
    token = ws.query_params.get("token")
    if not token:
        await ws.close(code=4401)
        return
    try:
        user_id = user_id_from_token(token)
    except HTTPException:
        await ws.close(code=4401)
        return

    session = AppSession(
        store=get_store(),
        uploader=ws.app.state.uploader,
        auth=ws.app.state.auth,
    )
    try:
        await session.populate(user_id, token)
    except ChatError:
        await ws.close(code=4401)
        return

    await ws.accept()
    outbox: asyncio.Queue = asyncio.Queue()
    session.notices.listeners.append(lambda n: outbox.put_nowait({
        "type": "notice", "level": n.level, "message": n.message, "redirect_to": n.redirect_to,
    }))
    view = ChatView(session, on_change=lambda v: outbox.put_nowait({"type": "state", **v.snapshot()}))

    async def pump():
        while True:
            payload = await outbox.get()
            await ws.send_text(json.dumps(payload))

    sender = asyncio.create_task(pump())
    try:
        if not await view.open(conversation_id):
            sender.cancel()
            while not outbox.empty():
                await ws.send_text(json.dumps(outbox.get_nowait()))
            await ws.close(code=4403)
            return
        session.start_presence()
        outbox.put_nowait({"type": "state", **view.snapshot()})

        while True:
            raw = await ws.receive_text()
            try:
                await _dispatch(view, outbox, json.loads(raw))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Bad frame on /ws/chat/{conversation_id}: {e}")
                outbox.put_nowait({"type": "error", "message": "malformed message"})
    except WebSocketDisconnect:
        pass
    finally:
        await view.close()
        await session.clear()
        sender.cancel()
