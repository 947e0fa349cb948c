"""
Document store interface for data access abstraction.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ...core.utils.datetime_utils import get_current_timestamp

FILTER_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "not-in", "array-contains")
ASC = "asc"
DESC = "desc"

OrderBy = Sequence[Tuple[str, str]]


@dataclass(frozen=True)
class Filter:
    """A single predicate on a (possibly dotted) field path."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


def where(field: str, op: str, value: Any) -> Filter:
    return Filter(field, op, value)


class DocumentStore(ABC):
    """Collection-scoped access to the document database.

    Documents are plain dicts; reads return them with their key under ``id``.
    Writes stamp ``createdAt``/``updatedAt``.
    """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one document by id."""
        pass

    @abstractmethod
    async def get_many(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """Fetch several documents in one round trip, keyed by id."""
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: OrderBy = (),
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Run a filtered, ordered, paged query."""
        pass

    @abstractmethod
    async def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        """Count documents matching the filters."""
        pass

    @abstractmethod
    async def add(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document under a generated id."""
        pass

    @abstractmethod
    async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document under ``doc_id``; raise DocumentExistsError if taken."""
        pass

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create or replace the document at ``doc_id``."""
        pass

    @abstractmethod
    async def update(
        self, collection: str, doc_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Apply a partial update; return the updated document or None if missing."""
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Physically remove a document."""
        pass

    @abstractmethod
    async def add_many(self, collection: str, docs: Sequence[Dict[str, Any]]) -> List[str]:
        """Batched insert; returns the generated ids."""
        pass

    @abstractmethod
    async def update_many(
        self, collection: str, doc_ids: Sequence[str], changes: Dict[str, Any]
    ) -> int:
        """Batched partial update; returns how many documents changed."""
        pass

    @abstractmethod
    async def delete_many(self, collection: str, doc_ids: Sequence[str]) -> int:
        """Batched physical delete."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backing database answers."""
        pass

    async def close(self) -> None:
        """Release client resources."""
        return None

    # ------------------------------------------------------------------
    # helpers shared by adapters
    # ------------------------------------------------------------------

    @staticmethod
    def _stamp_new(data: Dict[str, Any]) -> Dict[str, Any]:
        now = get_current_timestamp()
        stamped = {k: v for k, v in data.items() if k != "id"}
        stamped.setdefault("createdAt", now)
        stamped["updatedAt"] = now
        return stamped

    @staticmethod
    def _stamp_update(changes: Dict[str, Any]) -> Dict[str, Any]:
        stamped = {k: v for k, v in changes.items() if k not in ("id", "createdAt")}
        stamped["updatedAt"] = get_current_timestamp()
        return stamped
