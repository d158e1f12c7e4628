import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile

from auth import get_session
from errors import ChatError, http_error
from routes.auth_routes import read_upload
from services.account_service import profile_complete, update_profile
from session import AppSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/profile", tags=["Profile"])


@router.get("")
async def get_profile(session: AppSession = Depends(get_session)):
    return {
        "status": "success",
        "data": {"user": session.user.model_dump(), "complete": profile_complete(session.user)},
    }


@router.put("")
async def put_profile(
    name: str = Form(...),
    bio: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    avatar: UploadFile | None = File(None),
    session: AppSession = Depends(get_session),
):
    """Edit name, bio, avatar and optionally the password."""
    try:
        user = await update_profile(
            session, name, bio,
            avatar=await read_upload(avatar),
            password=password,
            confirm_password=confirm_password,
        )
    except ChatError as e:
        logger.warning(f"Profile update rejected for {session.user_id}: {e.message}")
        raise http_error(e)
    return {"status": "success", "data": {"user": user.model_dump()}}
