"""
MongoDB implementation of DocumentStore.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ....application.ports.document_store import DESC, DocumentStore, Filter, OrderBy
from ....core.exceptions import DocumentExistsError

logger = logging.getLogger(__name__)

_OPERATORS = {
    "!=": "$ne",
    "<": "$lt",
    "<=": "$lte",
    ">": "$gt",
    ">=": "$gte",
    "in": "$in",
    "not-in": "$nin",
}


def build_mongo_filter(filters: Sequence[Filter]) -> Dict[str, Any]:
    """Translate store filters into a Mongo query document."""
    clauses = []
    for f in filters:
        field = "_id" if f.field == "id" else f.field
        if f.op in ("==", "array-contains"):
            # Equality on an array field matches any element
            clauses.append({field: f.value})
        else:
            value = list(f.value) if f.op in ("in", "not-in") else f.value
            clauses.append({field: {_OPERATORS[f.op]: value}})
    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _to_document(raw: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    doc = dict(raw)
    doc["id"] = str(doc.pop("_id"))
    return doc


def _new_id() -> str:
    return uuid.uuid4().hex


class MongoDocumentStore(DocumentStore):
    """DocumentStore backed by a motor database; one Mongo collection per store collection."""

    def __init__(self, client: AsyncIOMotorClient, db_name: str):
        self.client = client
        self.db: AsyncIOMotorDatabase = client[db_name]

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raw = await self.db[collection].find_one({"_id": doc_id})
        return _to_document(raw)

    async def get_many(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = list({doc_id for doc_id in doc_ids if doc_id})
        if not ids:
            return {}
        cursor = self.db[collection].find({"_id": {"$in": ids}})
        result = {}
        async for raw in cursor:
            doc = _to_document(raw)
            result[doc["id"]] = doc
        return result

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: OrderBy = (),
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection].find(build_mongo_filter(filters))
        if order_by:
            cursor = cursor.sort(
                [
                    ("_id" if field == "id" else field, DESCENDING if direction == DESC else ASCENDING)
                    for field, direction in order_by
                ]
            )
        if offset:
            cursor = cursor.skip(offset)
        if limit is not None:
            cursor = cursor.limit(limit)
        return [_to_document(raw) async for raw in cursor]

    async def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        return await self.db[collection].count_documents(build_mongo_filter(filters))

    async def add(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create(collection, _new_id(), data)

    async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        stamped = self._stamp_new(data)
        try:
            await self.db[collection].insert_one({"_id": doc_id, **stamped})
        except DuplicateKeyError:
            raise DocumentExistsError(collection, doc_id)
        return {"id": doc_id, **stamped}

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        stamped = self._stamp_new(data)
        await self.db[collection].replace_one({"_id": doc_id}, stamped, upsert=True)
        return {"id": doc_id, **stamped}

    async def update(
        self, collection: str, doc_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        raw = await self.db[collection].find_one_and_update(
            {"_id": doc_id},
            {"$set": self._stamp_update(changes)},
            return_document=ReturnDocument.AFTER,
        )
        return _to_document(raw)

    async def delete(self, collection: str, doc_id: str) -> bool:
        result = await self.db[collection].delete_one({"_id": doc_id})
        return result.deleted_count > 0

    async def add_many(self, collection: str, docs: Sequence[Dict[str, Any]]) -> List[str]:
        if not docs:
            return []
        prepared = [{"_id": _new_id(), **self._stamp_new(doc)} for doc in docs]
        await self.db[collection].insert_many(prepared, ordered=True)
        return [doc["_id"] for doc in prepared]

    async def update_many(
        self, collection: str, doc_ids: Sequence[str], changes: Dict[str, Any]
    ) -> int:
        if not doc_ids:
            return 0
        result = await self.db[collection].update_many(
            {"_id": {"$in": list(doc_ids)}}, {"$set": self._stamp_update(changes)}
        )
        return result.modified_count

    async def delete_many(self, collection: str, doc_ids: Sequence[str]) -> int:
        if not doc_ids:
            return 0
        result = await self.db[collection].delete_many({"_id": {"$in": list(doc_ids)}})
        return result.deleted_count

    async def ping(self) -> bool:
        await self.client.admin.command("ping")
        return True

    async def close(self) -> None:
        self.client.close()
