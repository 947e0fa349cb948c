"""
Medical records: authorship, confidentiality and soft deletion.
"""

import pytest

from conftest import run

RECORDS = "/api/v1/medical-records"


@pytest.fixture
def people(seed):
    return {
        "doctor": seed.doctor("doc-1"),
        "other_doctor": seed.doctor("doc-2", "Allison", "Cameron"),
        "patient": seed.patient("pat-1"),
        "other_patient": seed.patient("pat-2", "Bruno", "Silva"),
        "admin": seed.admin(),
    }


def write_record(client, headers, **overrides):
    body = {
        "patientId": "pat-1",
        "doctorId": "doc-1",
        "type": "diagnosis",
        "title": "Seasonal asthma",
        "description": "Wheezing after exercise, responds to salbutamol",
        "diagnosis": ["J45.9"],
        "vitals": {"bloodPressure": "120/80", "heartRate": 72},
        "medications": [{"name": "Salbutamol", "dosage": "100mcg", "frequency": "as needed"}],
    }
    body.update(overrides)
    response = client.post(RECORDS, json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_doctor_writes_a_record(client, people):
    record = write_record(client, people["doctor"])
    assert record["recordNumber"].startswith("MR-")
    assert record["isActive"] is True
    assert record["isConfidential"] is False
    assert record["vitals"]["heartRate"] == 72
    assert record["labResults"] == []


def test_only_clinicians_author_records_in_their_own_name(client, people):
    as_patient = client.post(
        RECORDS,
        json={"patientId": "pat-1", "doctorId": "doc-1", "type": "consultation", "title": "x", "description": "y"},
        headers=people["patient"],
    )
    assert as_patient.status_code == 403

    impersonating = client.post(
        RECORDS,
        json={"patientId": "pat-1", "doctorId": "doc-1", "type": "consultation", "title": "x", "description": "y"},
        headers=people["other_doctor"],
    )
    assert impersonating.status_code == 403

    unknown_doctor = client.post(
        RECORDS,
        json={"patientId": "pat-1", "doctorId": "ghost", "type": "consultation", "title": "x", "description": "y"},
        headers=people["admin"],
    )
    assert unknown_doctor.json()["error"]["code"] == "DOCTOR_NOT_FOUND"


def test_patients_never_see_confidential_records(client, people):
    visible = write_record(client, people["doctor"], title="Visible")
    hidden = write_record(client, people["doctor"], title="Hidden", isConfidential=True)
    write_record(client, people["doctor"], patientId="pat-2", title="Someone else")

    listing = client.get(RECORDS, headers=people["patient"]).json()
    assert [r["id"] for r in listing["data"]] == [visible["id"]]
    assert listing["data"][0]["doctor"]["lastName"] == "House"

    assert client.get(f"{RECORDS}/{hidden['id']}", headers=people["patient"]).status_code == 403
    assert client.get(f"{RECORDS}/{hidden['id']}", headers=people["doctor"]).status_code == 200
    assert client.get(f"{RECORDS}/{visible['id']}", headers=people["other_patient"]).status_code == 403


def test_list_filters(client, people):
    write_record(client, people["doctor"], type="lab_result", title="CBC panel", description="Normal counts")
    write_record(client, people["doctor"], title="Migraine")

    labs = client.get(RECORDS, params={"type": "lab_result"}, headers=people["doctor"]).json()["data"]
    assert [r["title"] for r in labs] == ["CBC panel"]
    searched = client.get(RECORDS, params={"search": "counts"}, headers=people["doctor"]).json()
    assert searched["meta"]["total"] == 1
    assert client.get(RECORDS, params={"patientId": "pat-2"}, headers=people["admin"]).json()["meta"]["total"] == 0


def test_only_the_author_modifies(client, people):
    record = write_record(client, people["doctor"])
    path = f"{RECORDS}/{record['id']}"

    assert client.put(path, json={"title": "Changed"}, headers=people["other_doctor"]).status_code == 403
    updated = client.put(path, json={"treatments": ["inhaler"]}, headers=people["doctor"]).json()["data"]
    assert updated["treatments"] == ["inhaler"]
    assert updated["title"] == "Seasonal asthma"
    assert updated["updatedBy"] == "doc-1"


def test_deleted_record_disappears(client, people, store):
    record = write_record(client, people["doctor"])
    path = f"{RECORDS}/{record['id']}"

    deleted = client.delete(path, headers=people["admin"]).json()["data"]
    assert deleted["deleted"] is True
    assert run(store.get("medical_records", record["id"]))["deletedBy"] == "admin-1"

    response = client.get(path, headers=people["doctor"])
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "MEDICAL_RECORD_NOT_FOUND"
    assert client.get(RECORDS, headers=people["doctor"]).json()["meta"]["total"] == 0


def test_deleting_twice_keeps_the_first_deletion(client, people, store):
    record = write_record(client, people["doctor"])
    path = f"{RECORDS}/{record['id']}"

    first = client.delete(path, headers=people["doctor"]).json()["data"]
    second = client.delete(path, headers=people["admin"])
    assert second.status_code == 200
    assert second.json()["data"]["deletedAt"] == first["deletedAt"]
    assert run(store.get("medical_records", record["id"]))["deletedBy"] == "doc-1"

    missing = client.delete(f"{RECORDS}/nope", headers=people["admin"])
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "MEDICAL_RECORD_NOT_FOUND"
