"""
In-process DocumentStore for local development and the test suite.

Filter and ordering semantics follow the Mongo adapter: equality against an
array field matches any element, ``!=``/``not-in`` match documents missing the
field, range operators never match a missing or null value, and missing values
sort first in ascending order.
"""

import asyncio
import copy
import uuid
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ....application.ports.document_store import DESC, DocumentStore, Filter, OrderBy
from ....core.exceptions import DocumentExistsError

_MISSING = object()


def resolve_path(doc: Dict[str, Any], path: str) -> Any:
    """Follow a dotted path through nested dicts."""
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _assign_path(doc: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = doc
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def _compare(left: Any, op: str, right: Any) -> bool:
    try:
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        return left >= right
    except TypeError:
        return False


def matches(doc: Dict[str, Any], f: Filter) -> bool:
    value = doc.get("id", _MISSING) if f.field == "id" else resolve_path(doc, f.field)

    if f.op in ("==", "array-contains"):
        if isinstance(value, list) and not isinstance(f.value, list):
            return f.value in value
        return value is not _MISSING and value == f.value
    if f.op == "!=":
        if isinstance(value, list):
            return f.value not in value
        return value is _MISSING or value != f.value
    if f.op == "in":
        if isinstance(value, list):
            return any(item in f.value for item in value)
        return value is not _MISSING and value in f.value
    if f.op == "not-in":
        if isinstance(value, list):
            return not any(item in f.value for item in value)
        return value is _MISSING or value not in f.value
    if value is _MISSING or value is None:
        return False
    return _compare(value, f.op, f.value)


def _sort_key(field: str):
    def key(doc: Dict[str, Any]):
        value = resolve_path(doc, field)
        if value is _MISSING or value is None:
            return (0, None)
        return (1, value)

    return key


class InMemoryDocumentStore(DocumentStore):
    """Dict-of-dicts store guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    def _out(self, doc_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        return {"id": doc_id, **copy.deepcopy(doc)}

    def _filtered(self, collection: str, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        docs = [self._out(doc_id, doc) for doc_id, doc in self._collections[collection].items()]
        return [doc for doc in docs if all(matches(doc, f) for f in filters)]

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._collections[collection].get(doc_id)
        return self._out(doc_id, doc) if doc is not None else None

    async def get_many(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        stored = self._collections[collection]
        return {
            doc_id: self._out(doc_id, stored[doc_id])
            for doc_id in set(doc_ids)
            if doc_id and doc_id in stored
        }

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: OrderBy = (),
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        docs = self._filtered(collection, filters)
        # Stable sorts applied from the least significant key up
        for field, direction in reversed(list(order_by)):
            docs.sort(key=_sort_key(field), reverse=direction == DESC)
        docs = docs[offset:]
        if limit is not None:
            docs = docs[:limit]
        return docs

    async def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        return len(self._filtered(collection, filters))

    async def add(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create(collection, uuid.uuid4().hex, data)

    async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            if doc_id in self._collections[collection]:
                raise DocumentExistsError(collection, doc_id)
            stamped = self._stamp_new(copy.deepcopy(data))
            self._collections[collection][doc_id] = stamped
        return self._out(doc_id, stamped)

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            stamped = self._stamp_new(copy.deepcopy(data))
            self._collections[collection][doc_id] = stamped
        return self._out(doc_id, stamped)

    async def update(
        self, collection: str, doc_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        async with self._lock:
            doc = self._collections[collection].get(doc_id)
            if doc is None:
                return None
            for path, value in self._stamp_update(copy.deepcopy(changes)).items():
                _assign_path(doc, path, value)
        return self._out(doc_id, doc)

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._lock:
            return self._collections[collection].pop(doc_id, None) is not None

    async def add_many(self, collection: str, docs: Sequence[Dict[str, Any]]) -> List[str]:
        ids = []
        for doc in docs:
            created = await self.add(collection, doc)
            ids.append(created["id"])
        return ids

    async def update_many(
        self, collection: str, doc_ids: Sequence[str], changes: Dict[str, Any]
    ) -> int:
        updated = 0
        for doc_id in doc_ids:
            if await self.update(collection, doc_id, changes) is not None:
                updated += 1
        return updated

    async def delete_many(self, collection: str, doc_ids: Sequence[str]) -> int:
        removed = 0
        for doc_id in doc_ids:
            if await self.delete(collection, doc_id):
                removed += 1
        return removed

    async def ping(self) -> bool:
        return True
