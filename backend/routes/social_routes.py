import logging

from fastapi import APIRouter, Body, Depends

from auth import get_session
from errors import ChatError, NotFound, http_error
from services.friends_service import accept_request, list_candidates, reject_request, send_friend_request
from session import AppSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/social", tags=["social"])


def _notice_from(session: AppSession, from_id: str):
    for notice in session.user.notifications:
        if notice.from_id == from_id:
            return notice
    raise NotFound("Friend request not found")


@router.get("/candidates")
async def get_candidates(q: str = "", session: AppSession = Depends(get_session)):
    """Users the caller can still send a friend request to."""
    users = await list_candidates(session.store, session.user, q)
    return [
        {"id": u.id, "name": u.display_name, "username": u.username, "avatar": u.avatar}
        for u in users
    ]


@router.get("/friends")
async def get_friends(session: AppSession = Depends(get_session)):
    return {"friends": session.user.friends}


@router.get("/notifications")
async def get_notifications(session: AppSession = Depends(get_session)):
    return [n.model_dump() for n in session.user.notifications]


@router.post("/requests")
async def send_request(
    recipient_id: str = Body(default="", embed=True),
    session: AppSession = Depends(get_session),
):
    try:
        request = await send_friend_request(session.store, session.user, recipient_id)
    except ChatError as e:
        raise http_error(e)
    return {"status": "success", "data": request.model_dump()}


@router.post("/requests/{from_id}/accept")
async def accept(from_id: str, session: AppSession = Depends(get_session)):
    try:
        await accept_request(session.store, session.user, _notice_from(session, from_id))
    except ChatError as e:
        raise http_error(e)
    return {"status": "success", "message": "Friend request accepted"}


@router.post("/requests/{from_id}/reject")
async def reject(from_id: str, session: AppSession = Depends(get_session)):
    try:
        await reject_request(session.store, session.user, _notice_from(session, from_id))
    except ChatError as e:
        raise http_error(e)
    return {"status": "success", "message": "Friend request rejected"}
