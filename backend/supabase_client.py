# supabase_client.py — Supabase client initialization, auth and storage helpers

import asyncio
import logging
import uuid

from supabase import create_client, Client
from config import (
    SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_ANON_KEY, SUPABASE_STORAGE_BUCKET,
)

logger = logging.getLogger(__name__)

# Global Supabase client instances
_supabase_admin: Client = None
_supabase_client: Client = None

def get_supabase_admin() -> Client:
    """
    Get Supabase client with service role key (admin privileges).
    Used for storage uploads, which bypass bucket RLS.
    """
    global _supabase_admin

    if _supabase_admin is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in environment variables")

        _supabase_admin = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _supabase_admin

def get_supabase_client() -> Client:
    """
    Get Supabase client with anonymous key (limited permissions).
    Used for the auth flows, which act on behalf of the end user.
    """
    global _supabase_client

    if _supabase_client is None:
        if not SUPABASE_URL or not SUPABASE_ANON_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set in environment variables")

        _supabase_client = create_client(SUPABASE_URL, SUPABASE_ANON_KEY)

    return _supabase_client

def is_supabase_configured() -> bool:
    """Check if Supabase is properly configured with required environment variables."""
    return bool(SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY and SUPABASE_ANON_KEY)


class SupabaseAuth:
    """Auth collaborator. The supabase client is synchronous, so calls run in a thread."""

    async def sign_up(self, email: str, password: str, metadata: dict = None) -> str:
        supabase = get_supabase_client()
        res = await asyncio.to_thread(supabase.auth.sign_up, {
            "email": email,
            "password": password,
            "options": {"data": metadata or {}},
        })
        return res.user.id

    async def sign_in(self, email: str, password: str) -> tuple[str, str]:
        """Returns (user_id, access_token)."""
        supabase = get_supabase_client()
        res = await asyncio.to_thread(supabase.auth.sign_in_with_password, {
            "email": email,
            "password": password,
        })
        return res.user.id, res.session.access_token

    async def sign_out(self, access_token: str):
        supabase = get_supabase_client()
        await asyncio.to_thread(supabase.auth.admin.sign_out, access_token)

    async def send_password_reset(self, email: str):
        supabase = get_supabase_client()
        await asyncio.to_thread(supabase.auth.reset_password_for_email, email)

    async def update_password(self, user_id: str, password: str):
        supabase = get_supabase_admin()
        await asyncio.to_thread(supabase.auth.admin.update_user_by_id, user_id, {"password": password})


async def upload_to_storage(owner_id: str, filename: str, content_type: str, data: bytes,
                            bucket_name: str = SUPABASE_STORAGE_BUCKET) -> str:
    """Upload bytes to Supabase Storage and return the public URL."""
    supabase = get_supabase_admin()
    # Unique path: {owner_id}/{uuid}_{filename}
    path = f"{owner_id}/{uuid.uuid4()}_{filename}"
    bucket = supabase.storage.from_(bucket_name)
    await asyncio.to_thread(bucket.upload, path=path, file=data, file_options={"content-type": content_type})
    return bucket.get_public_url(path)
