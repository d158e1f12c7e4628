import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Callable

# Ordering on this pseudo-field sorts by document id (tie-breaker for cursors)
DOCUMENT_ID = "__name__"


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time copy of one document. ``data`` is None when it doesn't exist."""

    id: str
    data: dict | None = None

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, key: str, default=None):
        return (self.data or {}).get(key, default)


@dataclass(frozen=True)
class ArrayUnion:
    """Append each value that is not already present in the array field."""

    values: tuple

    def __init__(self, *values):
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class ArrayRemove:
    """Remove every element equal to one of the values from the array field."""

    values: tuple

    def __init__(self, *values):
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class Query:
    """Ordered range query over one collection.

    ``where`` holds ``(field, "==", value)`` triples. ``start_after`` holds the
    values of the ``order_by`` fields of the row to resume after.
    """

    collection: str
    where: tuple = ()
    order_by: tuple = ()
    limit: int | None = None
    start_after: tuple | None = None

    def where_eq(self, field_name: str, value) -> "Query":
        return replace(self, where=self.where + ((field_name, "==", value),))

    def order(self, field_name: str, direction: str = "asc") -> "Query":
        return replace(self, order_by=self.order_by + ((field_name, direction),))

    def limit_to(self, n: int) -> "Query":
        return replace(self, limit=n)

    def after(self, values) -> "Query":
        return replace(self, start_after=tuple(values))


Listener = Callable[[Any], None]
ErrorListener = Callable[[Exception], None]


class DocumentStore(ABC):
    """Black-box document database used by every service.

    Collections are slash-separated paths, so a conversation's messages live in
    ``messages/{conversation_id}/messagesList``.
    """

    @abstractmethod
    async def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        ...

    @abstractmethod
    async def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    @abstractmethod
    async def update_document(self, collection: str, doc_id: str, fields: dict, merge: bool = True) -> None:
        """Apply field updates. Keys may be dotted paths (``typing.u1``) and values
        may be ArrayUnion / ArrayRemove. Raises NotFound if the document is missing."""
        ...

    @abstractmethod
    async def add_document(self, collection: str, data: dict, doc_id: str | None = None) -> str:
        ...

    @abstractmethod
    async def delete_document(self, collection: str, doc_id: str) -> None:
        ...

    @abstractmethod
    async def query(self, query: Query) -> list[DocumentSnapshot]:
        ...

    @abstractmethod
    def subscribe_document(
        self, collection: str, doc_id: str, on_next: Listener, on_error: ErrorListener | None = None
    ) -> Callable[[], None]:
        """Deliver the current snapshot, then one snapshot per change. Returns unsubscribe."""
        ...

    @abstractmethod
    def subscribe_query(
        self, query: Query, on_next: Listener, on_error: ErrorListener | None = None
    ) -> Callable[[], None]:
        """Deliver the current result list, then the full result list per change."""
        ...

    async def close(self) -> None:
        return None


# ------------------------------------------------------------------
# Helpers shared by the store implementations
# ------------------------------------------------------------------

def apply_update(data: dict, fields: dict) -> dict:
    """Return a copy of ``data`` with field-level updates applied."""
    result = copy.deepcopy(data)
    for path, value in fields.items():
        parts = path.split(".")
        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        leaf = parts[-1]
        if isinstance(value, ArrayUnion):
            current = list(target.get(leaf) or [])
            for v in value.values:
                if v not in current:
                    current.append(copy.deepcopy(v))
            target[leaf] = current
        elif isinstance(value, ArrayRemove):
            target[leaf] = [v for v in (target.get(leaf) or []) if v not in value.values]
        else:
            target[leaf] = copy.deepcopy(value)
    return result


def _field_value(doc_id: str, data: dict, name: str):
    if name == DOCUMENT_ID:
        return doc_id
    value = data
    for part in name.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _matches(doc_id: str, data: dict, clauses: tuple) -> bool:
    for name, op, expected in clauses:
        actual = _field_value(doc_id, data, name)
        if op == "==":
            if actual != expected:
                return False
        else:
            raise ValueError(f"Unsupported where operator: {op}")
    return True


def _sortable(value):
    # None sorts before everything else instead of raising TypeError
    return (value is not None, value if value is not None else 0)


def _is_after(values: tuple, cursor: tuple, directions: tuple) -> bool:
    for v, c, direction in zip(values, cursor, directions):
        if v == c:
            continue
        if direction == "desc":
            return _sortable(v) < _sortable(c)
        return _sortable(v) > _sortable(c)
    return False


def evaluate_query(rows: dict[str, dict], query: Query) -> list[DocumentSnapshot]:
    """Run a Query against ``{doc_id: data}`` in memory."""
    hits = [(doc_id, data) for doc_id, data in rows.items() if _matches(doc_id, data, query.where)]

    # stable sort, least significant key first
    for name, direction in reversed(query.order_by):
        hits.sort(key=lambda item: _sortable(_field_value(item[0], item[1], name)),
                  reverse=(direction == "desc"))

    if query.start_after is not None and query.order_by:
        names = tuple(name for name, _ in query.order_by)
        directions = tuple(direction for _, direction in query.order_by)
        hits = [
            (doc_id, data) for doc_id, data in hits
            if _is_after(tuple(_field_value(doc_id, data, n) for n in names), query.start_after, directions)
        ]

    if query.limit is not None:
        hits = hits[: query.limit]
    return [DocumentSnapshot(id=doc_id, data=copy.deepcopy(data)) for doc_id, data in hits]


@dataclass
class Subscription:
    """One registered listener and the last state it was sent."""

    on_next: Listener
    on_error: ErrorListener | None = None
    last: Any = None
    active: bool = True
