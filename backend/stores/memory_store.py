"""
memory_store.py — In-process document store.
Used for local development (STORE_BACKEND=memory) and by the test-suite.
Listeners are called synchronously after each write, with the full new state.
"""
import copy
import logging
import uuid
from collections import defaultdict
from typing import Callable

from errors import NotFound
from stores.base import (
    DocumentSnapshot,
    DocumentStore,
    ErrorListener,
    Listener,
    Query,
    Subscription,
    apply_update,
    evaluate_query,
)

logger = logging.getLogger(__name__)


class MemoryStore(DocumentStore):
    def __init__(self):
        # collection path → {doc_id: data}
        self._collections: dict[str, dict[str, dict]] = defaultdict(dict)
        self._doc_subs: dict[tuple[str, str], list[Subscription]] = defaultdict(list)
        self._query_subs: list[tuple[Query, Subscription]] = []

    # ------------------------------------------------------------------
    async def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        data = self._collections[collection].get(doc_id)
        return DocumentSnapshot(id=doc_id, data=copy.deepcopy(data) if data is not None else None)

    async def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        self._collections[collection][doc_id] = copy.deepcopy(data)
        self._notify(collection, doc_id)

    async def update_document(self, collection: str, doc_id: str, fields: dict, merge: bool = True) -> None:
        current = self._collections[collection].get(doc_id)
        if current is None:
            raise NotFound(f"No document {collection}/{doc_id}")
        base = current if merge else {}
        self._collections[collection][doc_id] = apply_update(base, fields)
        self._notify(collection, doc_id)

    async def add_document(self, collection: str, data: dict, doc_id: str | None = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        self._collections[collection][doc_id] = copy.deepcopy(data)
        self._notify(collection, doc_id)
        return doc_id

    async def delete_document(self, collection: str, doc_id: str) -> None:
        if self._collections[collection].pop(doc_id, None) is not None:
            self._notify(collection, doc_id)

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        return evaluate_query(self._collections[query.collection], query)

    # ------------------------------------------------------------------
    def subscribe_document(
        self, collection: str, doc_id: str, on_next: Listener, on_error: ErrorListener | None = None
    ) -> Callable[[], None]:
        sub = Subscription(on_next=on_next, on_error=on_error)
        key = (collection, doc_id)
        self._doc_subs[key].append(sub)
        self._deliver(sub, self._doc_state(collection, doc_id))

        def unsubscribe():
            sub.active = False
            if sub in self._doc_subs[key]:
                self._doc_subs[key].remove(sub)

        return unsubscribe

    def subscribe_query(
        self, query: Query, on_next: Listener, on_error: ErrorListener | None = None
    ) -> Callable[[], None]:
        sub = Subscription(on_next=on_next, on_error=on_error)
        entry = (query, sub)
        self._query_subs.append(entry)
        self._deliver(sub, self._query_state(query))

        def unsubscribe():
            sub.active = False
            if entry in self._query_subs:
                self._query_subs.remove(entry)

        return unsubscribe

    # ------------------------------------------------------------------
    def _doc_state(self, collection: str, doc_id: str) -> DocumentSnapshot:
        data = self._collections[collection].get(doc_id)
        return DocumentSnapshot(id=doc_id, data=copy.deepcopy(data) if data is not None else None)

    def _query_state(self, query: Query) -> list[DocumentSnapshot]:
        return evaluate_query(self._collections[query.collection], query)

    def _notify(self, collection: str, doc_id: str):
        for sub in list(self._doc_subs.get((collection, doc_id), [])):
            state = self._doc_state(collection, doc_id)
            if state != sub.last:
                self._deliver(sub, state)
        for query, sub in list(self._query_subs):
            if query.collection != collection:
                continue
            state = self._query_state(query)
            if state != sub.last:
                self._deliver(sub, state)

    @staticmethod
    def _deliver(sub: Subscription, state):
        if not sub.active:
            return
        sub.last = state
        try:
            sub.on_next(state)
        except Exception as e:
            logger.error(f"Listener failed: {e}")
            if sub.on_error:
                sub.on_error(e)
