"""
Filter, ordering and uniqueness semantics of the in-memory document store.
"""

import pytest

from carehub.adapters.db.memory.document_store import InMemoryDocumentStore
from carehub.application.ports.document_store import ASC, DESC, where
from carehub.core.exceptions import DocumentExistsError

from conftest import run


@pytest.fixture
def populated():
    store = InMemoryDocumentStore()
    run(store.set("doctors", "d1", {"name": "A", "rating": 4.5, "specialties": ["cardiology"], "address": {"city": "Lima"}}))
    run(store.set("doctors", "d2", {"name": "B", "rating": 3.0, "specialties": ["neurology", "cardiology"]}))
    run(store.set("doctors", "d3", {"name": "C", "specialties": []}))
    return store


def ids(docs):
    return sorted(doc["id"] for doc in docs)


def test_equality_and_array_contains(populated):
    assert ids(run(populated.query("doctors", [where("name", "==", "A")]))) == ["d1"]
    found = run(populated.query("doctors", [where("specialties", "array-contains", "cardiology")]))
    assert ids(found) == ["d1", "d2"]


def test_range_operators_skip_missing_fields(populated):
    assert ids(run(populated.query("doctors", [where("rating", ">=", 3.0)]))) == ["d1", "d2"]
    assert ids(run(populated.query("doctors", [where("rating", "<", 10)]))) == ["d1", "d2"]


def test_not_equal_and_not_in_match_missing_fields(populated):
    assert ids(run(populated.query("doctors", [where("rating", "!=", 4.5)]))) == ["d2", "d3"]
    assert ids(run(populated.query("doctors", [where("name", "not-in", ["A", "B"])]))) == ["d3"]


def test_in_operator_and_dotted_paths(populated):
    assert ids(run(populated.query("doctors", [where("id", "in", ["d1", "d3", "zz"])]))) == ["d1", "d3"]
    assert ids(run(populated.query("doctors", [where("address.city", "==", "Lima")]))) == ["d1"]


def test_ordering_offset_and_limit(populated):
    ordered = run(populated.query("doctors", order_by=[("rating", DESC)]))
    assert [doc["id"] for doc in ordered] == ["d1", "d2", "d3"]
    ascending = run(populated.query("doctors", order_by=[("rating", ASC)], offset=1, limit=1))
    assert [doc["id"] for doc in ascending] == ["d2"]


def test_create_rejects_existing_id():
    store = InMemoryDocumentStore()
    run(store.create("appointment_slots", "doc:20300101T1000", {"appointmentId": "a1"}))
    with pytest.raises(DocumentExistsError):
        run(store.create("appointment_slots", "doc:20300101T1000", {"appointmentId": "a2"}))


def test_timestamps_and_partial_updates():
    store = InMemoryDocumentStore()
    created = run(store.add("patients", {"profile": {"height": 170}}))
    assert created["createdAt"] == created["updatedAt"]

    updated = run(store.update("patients", created["id"], {"profile.weight": 65, "createdAt": "ignored"}))
    assert updated["profile"] == {"height": 170, "weight": 65}
    assert updated["createdAt"] == created["createdAt"]
    assert run(store.update("patients", "missing", {"a": 1})) is None


def test_get_many_and_bulk_helpers():
    store = InMemoryDocumentStore()
    new_ids = run(store.add_many("notifications", [{"n": 1}, {"n": 2}, {"n": 3}]))
    assert len(new_ids) == 3

    found = run(store.get_many("notifications", new_ids[:2] + ["missing", None]))
    assert set(found) == set(new_ids[:2])

    assert run(store.update_many("notifications", new_ids + ["missing"], {"isRead": True})) == 3
    assert run(store.count("notifications", [where("isRead", "==", True)])) == 3
    assert run(store.delete_many("notifications", new_ids[:2])) == 2
    assert run(store.count("notifications")) == 1
