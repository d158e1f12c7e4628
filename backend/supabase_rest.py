"""
supabase_rest.py — HTTP client for Supabase's PostgREST API.
Backs the document store: every document is one row of the documents table
(collection, doc_id, data jsonb). Uses only httpx.
"""
from urllib.parse import quote

import httpx

from config import SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, HTTP_TIMEOUT_SECONDS


def _headers(prefer: str = "return=representation"):
    return {
        "apikey": SUPABASE_SERVICE_ROLE_KEY,
        "Authorization": f"Bearer {SUPABASE_SERVICE_ROLE_KEY}",
        "Content-Type": "application/json",
        "Prefer": prefer,
    }


def _filter_string(filters: dict | None) -> str:
    if not filters:
        return ""
    return "".join(f"&{key}=eq.{quote(str(value))}" for key, value in filters.items())


async def sb_select(table: str, filters: dict = None, columns: str = "*", query_string: str = None) -> list:
    """Select rows from a table with optional equality filters or raw query."""
    url = f"{SUPABASE_URL}/rest/v1/{table}?select={columns}{_filter_string(filters)}"
    if query_string:
        url += f"&{query_string}"

    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        resp = await client.get(url, headers=_headers())
        resp.raise_for_status()
        return resp.json()


async def sb_upsert(table: str, data: dict) -> dict:
    """Insert a row, replacing any row with the same primary key."""
    url = f"{SUPABASE_URL}/rest/v1/{table}"
    headers = _headers("return=representation,resolution=merge-duplicates")
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        resp = await client.post(url, json=data, headers=headers)
        resp.raise_for_status()
        result = resp.json()
        return result[0] if isinstance(result, list) and result else {}


async def sb_delete(table: str, filters: dict) -> None:
    """Delete rows matching the equality filters."""
    url = f"{SUPABASE_URL}/rest/v1/{table}?{_filter_string(filters).lstrip('&')}"
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        resp = await client.delete(url, headers=_headers())
        resp.raise_for_status()


async def sb_rpc(function: str, params: dict):
    """Call a Postgres function exposed by PostgREST and return its JSON result."""
    url = f"{SUPABASE_URL}/rest/v1/rpc/{function}"
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        resp = await client.post(url, json=params, headers=_headers())
        resp.raise_for_status()
        return resp.json()
