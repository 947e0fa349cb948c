"""
Batched joins: collect foreign keys from a page of documents, fetch each related
collection once, and attach compact summaries in memory.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..ports.document_store import DocumentStore

USERS = "users"

USER_SUMMARY_FIELDS = ("firstName", "lastName", "email", "avatar")


def user_summary(user: Optional[Dict[str, Any]], *extra: str) -> Optional[Dict[str, Any]]:
    """Public slice of a user document, or None when the user is unknown."""
    if user is None:
        return None
    summary = {"id": user["id"]}
    for field in USER_SUMMARY_FIELDS + extra:
        summary[field] = user.get(field)
    return summary


def collect_ids(docs: Iterable[Dict[str, Any]], *fields: str) -> List[str]:
    ids = []
    for doc in docs:
        for field in fields:
            value = doc.get(field)
            if value and value not in ids:
                ids.append(value)
    return ids


async def fetch_users(store: DocumentStore, docs: Sequence[Dict[str, Any]], *fields: str) -> Dict[str, Dict[str, Any]]:
    """One multi-get for every user referenced by ``fields`` across ``docs``."""
    return await store.get_many(USERS, collect_ids(docs, *fields))


async def attach_users(
    store: DocumentStore,
    docs: Sequence[Dict[str, Any]],
    mapping: Dict[str, str],
) -> List[Dict[str, Any]]:
    """Attach user summaries to each doc.

    ``mapping`` maps a foreign-key field to the key the summary is stored under,
    e.g. ``{"doctorId": "doctor", "patientId": "patient"}``.
    """
    users = await fetch_users(store, docs, *mapping.keys())
    enriched = []
    for doc in docs:
        item = dict(doc)
        for fk_field, target in mapping.items():
            item[target] = user_summary(users.get(doc.get(fk_field)))
        enriched.append(item)
    return enriched


def merge_profile_with_user(profile: Dict[str, Any], user: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Role profile (doctor/patient) flattened with its owning user's public fields."""
    merged = dict(profile)
    if user:
        for field in USER_SUMMARY_FIELDS + ("phoneNumber",):
            merged[field] = user.get(field)
    return merged
