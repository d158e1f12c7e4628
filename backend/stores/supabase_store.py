"""
supabase_store.py — Document store on top of Supabase PostgREST.

The table and the ``update_document`` function live in supabase/documents.sql.

Field updates are sent as a list of ops and applied by that function under a
row lock, so concurrent writes to different fields of one document (typing vs
summary) and concurrent array unions do not overwrite each other.
String equality filters, ordering, the cursor and the limit are pushed down to
PostgREST when the query allows it; the result is always re-evaluated locally.
Subscriptions poll and only emit on change.
"""
import asyncio
import logging
import uuid
from typing import Callable
from urllib.parse import quote

import httpx

from config import DOCUMENTS_TABLE, DOCUMENTS_UPDATE_FUNCTION, POLL_INTERVAL_SECONDS
from errors import NetworkError, NotFound
from stores.base import (
    DOCUMENT_ID,
    ArrayRemove,
    ArrayUnion,
    DocumentSnapshot,
    DocumentStore,
    ErrorListener,
    Listener,
    Query,
    Subscription,
    evaluate_query,
)
from supabase_rest import sb_delete, sb_rpc, sb_select, sb_upsert

logger = logging.getLogger(__name__)


def encode_update(fields: dict) -> list[dict]:
    """Turn ``update_document`` fields into the op list the SQL function applies."""
    ops = []
    for path, value in fields.items():
        parts = path.split(".")
        if isinstance(value, ArrayUnion):
            ops.append({"path": parts, "op": "union", "values": list(value.values)})
        elif isinstance(value, ArrayRemove):
            ops.append({"path": parts, "op": "remove", "values": list(value.values)})
        else:
            ops.append({"path": parts, "op": "set", "value": value})
    return ops


def _column(name: str) -> str | None:
    if name == DOCUMENT_ID:
        return "doc_id"
    if "." in name:
        return None
    return f"data->{name}"


def _literal(column: str, value) -> str | None:
    """Cursor value as a PostgREST filter literal; None when it can't be pushed down."""
    if column == "doc_id":
        if not isinstance(value, str):
            return None
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return str(value)


def _cursor_filter(columns: list[str], directions: list[str], values: tuple) -> str | None:
    literals = [_literal(c, v) for c, v in zip(columns, values)]
    if len(literals) != len(columns) or None in literals:
        return None
    terms = []
    for i, (column, direction) in enumerate(zip(columns, directions)):
        op = "lt" if direction == "desc" else "gt"
        equal = [f"{columns[j]}.eq.{literals[j]}" for j in range(i)]
        term = f"{column}.{op}.{literals[i]}"
        terms.append(f"and({','.join(equal + [term])})" if equal else term)
    return f"or=({quote(','.join(terms), safe='(),.')})"


def postgrest_params(query: Query) -> tuple[dict, str | None]:
    """Equality filters plus the order/cursor/limit part of a PostgREST select.

    Anything left out is still applied by ``evaluate_query`` on the rows that
    come back, so only a superset of the answer is ever requested.
    """
    filters = {"collection": query.collection}
    pushed_all = True
    for name, op, value in query.where:
        if op == "==" and isinstance(value, str) and "." not in name:
            filters["doc_id" if name == DOCUMENT_ID else f"data->>{name}"] = value
        else:
            pushed_all = False

    columns = [_column(name) for name, _ in query.order_by]
    if not columns or None in columns:
        return filters, None
    directions = [direction for _, direction in query.order_by]

    # nulls sort lowest, as in evaluate_query
    parts = [
        "order=" + ",".join(
            f"{c}.desc.nullslast" if d == "desc" else f"{c}.asc.nullsfirst"
            for c, d in zip(columns, directions)
        )
    ]
    if query.start_after is not None:
        cursor = _cursor_filter(columns, directions, query.start_after)
        if cursor is None:
            return filters, parts[0]
        parts.append(cursor)
    if query.limit is not None and pushed_all:
        parts.append(f"limit={query.limit}")
    return filters, "&".join(parts)


class SupabaseStore(DocumentStore):
    def __init__(
        self,
        table: str = DOCUMENTS_TABLE,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        update_function: str = DOCUMENTS_UPDATE_FUNCTION,
    ):
        self.table = table
        self.update_function = update_function
        self.poll_interval = poll_interval
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    async def _call(self, coro):
        try:
            return await coro
        except httpx.HTTPError as e:
            logger.error(f"Supabase request failed: {e}")
            raise NetworkError(str(e)) from e

    async def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        rows = await self._call(sb_select(self.table, filters={"collection": collection, "doc_id": doc_id}))
        return DocumentSnapshot(id=doc_id, data=rows[0]["data"] if rows else None)

    async def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        await self._call(sb_upsert(self.table, {"collection": collection, "doc_id": doc_id, "data": data}))

    async def update_document(self, collection: str, doc_id: str, fields: dict, merge: bool = True) -> None:
        updated = await self._call(sb_rpc(self.update_function, {
            "p_collection": collection,
            "p_doc_id": doc_id,
            "p_ops": encode_update(fields),
            "p_merge": merge,
        }))
        if updated is None:
            raise NotFound(f"No document {collection}/{doc_id}")

    async def add_document(self, collection: str, data: dict, doc_id: str | None = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        await self.set_document(collection, doc_id, data)
        return doc_id

    async def delete_document(self, collection: str, doc_id: str) -> None:
        await self._call(sb_delete(self.table, {"collection": collection, "doc_id": doc_id}))

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        filters, query_string = postgrest_params(query)
        rows = await self._call(sb_select(self.table, filters=filters, columns="doc_id,data", query_string=query_string))
        return evaluate_query({row["doc_id"]: row["data"] for row in rows}, query)

    # ------------------------------------------------------------------
    def subscribe_document(
        self, collection: str, doc_id: str, on_next: Listener, on_error: ErrorListener | None = None
    ) -> Callable[[], None]:
        return self._poll(lambda: self.get_document(collection, doc_id), on_next, on_error)

    def subscribe_query(
        self, query: Query, on_next: Listener, on_error: ErrorListener | None = None
    ) -> Callable[[], None]:
        return self._poll(lambda: self.query(query), on_next, on_error)

    def _poll(self, fetch, on_next: Listener, on_error: ErrorListener | None) -> Callable[[], None]:
        sub = Subscription(on_next=on_next, on_error=on_error)

        async def run():
            first = True
            while sub.active:
                try:
                    state = await fetch()
                    if sub.active and (first or state != sub.last):
                        first = False
                        sub.last = state
                        sub.on_next(state)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning(f"Subscription poll failed: {e}")
                    if sub.on_error:
                        sub.on_error(e)
                await asyncio.sleep(self.poll_interval)

        task = asyncio.get_running_loop().create_task(run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        def unsubscribe():
            sub.active = False
            task.cancel()

        return unsubscribe

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
