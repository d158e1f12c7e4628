"""
Auth routes. Credentials are handled by Supabase Auth; the profile document
lives in the ``users`` collection of the document store.
"""
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel

from auth import get_auth, get_session, get_uploader
from database import get_store
from errors import ChatError, http_error
from services.account_service import profile_complete, send_password_reset, sign_in, sign_out, sign_up
from services.upload_service import ImageUpload
from session import AppSession
from stores import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


# ── Pydantic schemas ──────────────────────────────────────────────
class LoginRequest(BaseModel):
    email: str
    password: str


class ResetPasswordRequest(BaseModel):
    email: str


async def read_upload(file: UploadFile | None) -> ImageUpload | None:
    if file is None or not file.filename:
        return None
    return ImageUpload(
        filename=file.filename,
        content_type=file.content_type or "",
        data=await file.read(),
    )


def anonymous_session(request: Request, store: DocumentStore) -> AppSession:
    return AppSession(store=store, uploader=get_uploader(request), auth=get_auth(request))


# ── Routes ────────────────────────────────────────────────────────
@router.post("/signup")
async def signup(
    request: Request,
    username: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    confirm_password: str = Form(...),
    first_name: str = Form(""),
    last_name: str = Form(""),
    avatar: UploadFile | None = File(None),
    store: DocumentStore = Depends(get_store),
):
    """Create the auth account, the profile and an empty chat list."""
    session = anonymous_session(request, store)
    try:
        user = await sign_up(
            session, username, email, password, confirm_password,
            first_name=first_name, last_name=last_name, avatar=await read_upload(avatar),
        )
    except ChatError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Signup failed for {email}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "success", "data": {"user": user.model_dump()}}


@router.post("/login")
async def login(body: LoginRequest, request: Request, store: DocumentStore = Depends(get_store)):
    """Authenticate with email + password. ``next`` says where the client goes."""
    session = anonymous_session(request, store)
    try:
        user = await sign_in(session, body.email, body.password)
    except ChatError as e:
        raise http_error(e)
    except Exception as e:
        logger.warning(f"Login failed for {body.email}: {e}")
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {
        "status": "success",
        "data": {
            "token": session.access_token,
            "user": user.model_dump(),
            "next": "/chat" if profile_complete(user) else "/profile",
        },
    }


@router.post("/logout")
async def logout(session: AppSession = Depends(get_session)):
    try:
        await sign_out(session)
    except Exception as e:
        logger.error(f"Logout failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "success"}


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, request: Request, store: DocumentStore = Depends(get_store)):
    session = anonymous_session(request, store)
    try:
        await send_password_reset(session, body.email)
    except ChatError as e:
        raise http_error(e)
    return {"status": "success", "message": "Password reset email sent"}
