from fastapi import Depends, Request, HTTPException, status
from jose import jwt, JWTError

from config import JWT_SECRET, JWT_ALGORITHM, JWT_AUDIENCE
from database import get_store
from session import AppSession
from stores import DocumentStore
from errors import NotFound


def verify_token(token: str) -> dict | None:
    """Decode and verify a Supabase access token. Returns the payload or None on failure."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
        return payload
    except JWTError:
        return None


def bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_header.split(" ", 1)[1]


def user_id_from_token(token: str) -> str:
    payload = verify_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token payload missing required claims",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_auth(request: Request):
    return request.app.state.auth


def get_uploader(request: Request):
    return request.app.state.uploader


async def get_session(
    request: Request,
    store: DocumentStore = Depends(get_store),
) -> AppSession:
    """Session for the authenticated caller, profile loaded."""
    token = bearer_token(request)
    user_id = user_id_from_token(token)
    session = AppSession(store=store, uploader=get_uploader(request), auth=get_auth(request))
    try:
        await session.populate(user_id, token)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User profile not found")
    return session
