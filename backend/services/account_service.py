"""
account_service.py — Sign-up, sign-in, sign-out, password reset and profile edits.
Credentials live with the auth collaborator; profiles live in ``users``.
"""
import logging

from config import BIO_MAX_LENGTH, DEFAULT_BIO, MIN_PASSWORD_LENGTH
from errors import NotFound, ValidationError
from models import User, now_ms
from services.presence_service import touch_last_seen
from services.upload_service import ImageUpload, validate_image
from session import AppSession
from stores import Query

logger = logging.getLogger(__name__)


def validate_password(password: str, confirm_password: str):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if password != confirm_password:
        raise ValidationError("Passwords do not match")


async def sign_up(
    session: AppSession,
    username: str,
    email: str,
    password: str,
    confirm_password: str,
    first_name: str = "",
    last_name: str = "",
    avatar: ImageUpload | None = None,
) -> User:
    username = (username or "").strip().lower()
    email = (email or "").strip().lower()
    if not username:
        raise ValidationError("Username is required")
    if not email:
        raise ValidationError("Email is required")
    validate_password(password, confirm_password)
    if avatar is not None:
        validate_image(avatar)

    taken = await session.store.query(Query("users").where_eq("username", username).limit_to(1))
    if taken:
        raise ValidationError("Username already taken")

    user_id = await session.auth.sign_up(email, password, {"username": username})

    avatar_url = None
    if avatar is not None and session.uploader is not None:
        avatar_url = await session.uploader.upload(user_id, avatar)

    now = now_ms()
    user = User(
        id=user_id,
        username=username,
        email=email,
        name=f"{first_name} {last_name}".strip(),
        avatar=avatar_url,
        bio=DEFAULT_BIO,
        last_seen=now,
        created_at=now,
        updated_at=now,
    )
    await session.store.set_document("users", user_id, user.to_document())
    await session.store.set_document("chats", user_id, {"chatsData": [], "lastMessageAt": now})
    logger.info(f"User {user_id} signed up as {username}")
    return user


async def sign_in(session: AppSession, email: str, password: str) -> User:
    user_id, access_token = await session.auth.sign_in((email or "").strip().lower(), password)
    await touch_last_seen(session.store, user_id)
    user = await session.populate(user_id, access_token)
    logger.info(f"User {user_id} signed in")
    return user


async def sign_out(session: AppSession):
    if session.access_token:
        await session.auth.sign_out(session.access_token)
    await session.clear()


async def send_password_reset(session: AppSession, email: str):
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Enter your email")
    known = await session.store.query(Query("users").where_eq("email", email).limit_to(1))
    if not known:
        raise NotFound("Email doesn't exist")
    await session.auth.send_password_reset(email)


def profile_complete(user: User) -> bool:
    """Users without a name or avatar are sent to /profile after login."""
    return bool(user.avatar and user.name)


async def update_profile(
    session: AppSession,
    name: str,
    bio: str = "",
    avatar: ImageUpload | None = None,
    password: str = "",
    confirm_password: str = "",
) -> User:
    user_id = session.require_user_id()
    name = (name or "").strip()
    bio = bio or ""
    if not name:
        raise ValidationError("Name is required")
    if len(bio) > BIO_MAX_LENGTH:
        raise ValidationError(f"Bio must be less than {BIO_MAX_LENGTH} characters")
    if password:
        validate_password(password, confirm_password)
    if avatar is not None:
        validate_image(avatar)

    fields = {"name": name, "bio": bio, "updatedAt": now_ms()}
    if avatar is not None and session.uploader is not None:
        fields["avatar"] = await session.uploader.upload(user_id, avatar)
    await session.store.update_document("users", user_id, fields)

    if password:
        await session.auth.update_password(user_id, password)
    return await session.refresh_user()
