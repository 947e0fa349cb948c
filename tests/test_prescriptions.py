"""
Prescriptions: issuing, derived status, pharmacy verification and dispensing.
"""

from datetime import datetime, timedelta, timezone

import pytest

from carehub.application.services.prescriptions import current_status, digital_signature, verify

from conftest import future, run

PRESCRIPTIONS = "/api/v1/prescriptions"


@pytest.fixture
def people(seed):
    return {
        "doctor": seed.doctor("doc-1"),
        "other_doctor": seed.doctor("doc-2", "Allison", "Cameron"),
        "patient": seed.patient("pat-1"),
        "other_patient": seed.patient("pat-2", "Bruno", "Silva"),
        "admin": seed.admin(),
    }


def prescription_body(**overrides):
    body = {
        "patientId": "pat-1",
        "doctorId": "doc-1",
        "medications": [
            {"name": "Amoxicillin", "dosage": "500mg", "frequency": "every 8 hours", "duration": "7 days"}
        ],
        "diagnosis": "Acute sinusitis",
        "validUntil": future(days=30).isoformat(),
    }
    body.update(overrides)
    return body


def issue(client, headers, **overrides):
    response = client.post(PRESCRIPTIONS, json=prescription_body(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_signature_embeds_number_timestamp():
    assert digital_signature("doc-1", "RX-1700000000000") == "DR_doc-1_1700000000000"


def test_status_is_derived_from_valid_until():
    now = datetime(2030, 6, 1, tzinfo=timezone.utc)
    assert current_status({"status": "active", "validUntil": now + timedelta(days=1)}, now) == "active"
    assert current_status({"status": "active", "validUntil": now - timedelta(seconds=1)}, now) == "expired"
    assert current_status({"status": "cancelled", "validUntil": now - timedelta(days=1)}, now) == "cancelled"


def test_unverified_doctor_only_downgrades_a_valid_verdict():
    number = "RX-1700000000000"
    signed = {
        "doctorId": "doc-1",
        "prescriptionNumber": number,
        "digitalSignature": digital_signature("doc-1", number),
        "status": "active",
        "validUntil": future(days=5),
    }
    assert verify(signed, {"isVerified": False}, 0)["verificationStatus"] == "warning"

    forged = {**signed, "digitalSignature": "DR_doc-9_1"}
    verdict = verify(forged, {"isVerified": False}, 2)
    assert verdict["verificationStatus"] == "invalid"
    assert verdict["digitalSignatureValid"] is False
    assert "Prescription already dispensed 2 time(s)" in verdict["warnings"]

    assert verify(forged, {"isVerified": True}, 0, check_signature=False)["verificationStatus"] == "valid"


def test_issue_prescription(client, people):
    prescription = issue(client, people["doctor"])
    assert prescription["prescriptionNumber"].startswith("RX-")
    assert prescription["digitalSignature"] == digital_signature("doc-1", prescription["prescriptionNumber"])
    assert prescription["status"] == "active"
    assert prescription["isExpired"] is False
    assert prescription["daysUntilExpiry"] in (30, 31)


def test_issue_is_restricted_to_clinicians(client, people):
    as_patient = client.post(PRESCRIPTIONS, json=prescription_body(), headers=people["patient"])
    assert as_patient.status_code == 403

    in_another_name = client.post(PRESCRIPTIONS, json=prescription_body(), headers=people["other_doctor"])
    assert in_another_name.status_code == 403

    unknown_patient = client.post(PRESCRIPTIONS, json=prescription_body(patientId="ghost"), headers=people["admin"])
    assert unknown_patient.json()["error"]["code"] == "PATIENT_NOT_FOUND"


def test_valid_until_must_be_in_the_future(client, people):
    response = client.post(
        PRESCRIPTIONS, json=prescription_body(validUntil=future(days=-1).isoformat()), headers=people["doctor"]
    )
    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "validUntil"


def test_list_derives_status_and_scopes_patients(client, people, seed):
    issue(client, people["doctor"])
    seed.doc(
        "prescriptions",
        "rx-old",
        {
            "patientId": "pat-1",
            "doctorId": "doc-1",
            "status": "active",
            "prescriptionNumber": "RX-1",
            "medications": [{"name": "Ibuprofen"}],
            "validUntil": future(days=-10),
        },
    )
    seed.doc(
        "prescriptions",
        "rx-other",
        {"patientId": "pat-2", "doctorId": "doc-1", "status": "active", "validUntil": future(days=10)},
    )

    mine = client.get(PRESCRIPTIONS, headers=people["patient"]).json()
    assert mine["meta"]["total"] == 2
    statuses = {item["id"]: item["status"] for item in mine["data"]}
    assert statuses["rx-old"] == "expired"

    expired = client.get(PRESCRIPTIONS, params={"status": "expired"}, headers=people["doctor"]).json()["data"]
    assert [item["id"] for item in expired] == ["rx-old"]
    by_drug = client.get(PRESCRIPTIONS, params={"medication": "ibu"}, headers=people["doctor"]).json()["data"]
    assert [item["id"] for item in by_drug] == ["rx-old"]
    assert by_drug[0]["patient"]["firstName"] == "Ana"


def test_patient_cannot_read_someone_elses_prescription(client, people):
    prescription = issue(client, people["doctor"])
    response = client.get(f"{PRESCRIPTIONS}/{prescription['id']}", headers=people["other_patient"])
    assert response.status_code == 403

    own = client.get(f"{PRESCRIPTIONS}/{prescription['id']}", headers=people["patient"]).json()["data"]
    assert own["doctor"]["licenseNumber"] == "LIC-doc-1"
    assert own["doctor"]["isVerified"] is True


def test_pharmacy_verification_is_recorded(client, people, store):
    prescription = issue(client, people["doctor"])
    number = prescription["prescriptionNumber"]

    result = client.get(
        f"{PRESCRIPTIONS}/verify", params={"prescriptionNumber": number, "pharmacyId": "ph-7"}
    ).json()["data"]
    assert result["verificationStatus"] == "valid"
    assert result["digitalSignatureValid"] is True
    assert result["verifiedBy"] == {"pharmacyId": "ph-7"}
    assert result["dispensingHistory"] == []

    [log] = run(store.query("prescription_verifications", []))
    assert log["prescriptionNumber"] == number
    assert log["verifiedBy"] == "ph-7"
    assert log["requestedBy"] is None


def test_verification_records_an_authenticated_caller_and_ignores_bad_tokens(client, people, store, seed):
    number = issue(client, people["doctor"])["prescriptionNumber"]
    pharmacist = seed.user("pharm-1", "staff")

    assert client.get(f"{PRESCRIPTIONS}/verify", params={"prescriptionNumber": number}, headers=pharmacist).status_code == 200
    bad = client.get(
        f"{PRESCRIPTIONS}/verify",
        params={"prescriptionNumber": number},
        headers={"Authorization": "Bearer expired"},
    )
    assert bad.status_code == 200

    requested_by = sorted(str(log["requestedBy"]) for log in run(store.query("prescription_verifications", [])))
    assert requested_by == ["None", "pharm-1"]


def test_verification_rejects_wrong_patient_and_unknown_number(client, people):
    prescription = issue(client, people["doctor"])
    mismatch = client.get(
        f"{PRESCRIPTIONS}/verify",
        params={"prescriptionNumber": prescription["prescriptionNumber"], "patientId": "pat-2"},
    )
    assert mismatch.status_code == 403
    assert mismatch.json()["error"]["code"] == "PRESCRIPTION_MISMATCH"

    unknown = client.get(f"{PRESCRIPTIONS}/verify", params={"prescriptionNumber": "RX-0"})
    assert unknown.status_code == 404
    assert unknown.json()["error"]["code"] == "PRESCRIPTION_NOT_FOUND"


def test_dispensing_shows_up_in_verification(client, people):
    prescription = issue(client, people["doctor"])
    number = prescription["prescriptionNumber"]

    dispensed = client.post(
        f"{PRESCRIPTIONS}/verify",
        json={"prescriptionNumber": number, "pharmacyId": "ph-7", "patientId": "pat-1"},
        headers=people["admin"],
    )
    assert dispensed.status_code == 200
    assert dispensed.json()["data"]["prescriptionId"] == prescription["id"]

    result = client.get(f"{PRESCRIPTIONS}/verify", params={"prescriptionNumber": number}).json()["data"]
    assert len(result["dispensingHistory"]) == 1
    assert result["warnings"] == ["Prescription already dispensed 1 time(s)"]
    assert result["verificationStatus"] == "valid"


def test_cancelled_prescription_is_not_dispensable(client, people):
    prescription = issue(client, people["doctor"])

    cancelled = client.delete(f"{PRESCRIPTIONS}/{prescription['id']}", headers=people["doctor"]).json()["data"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancelledBy"] == "doc-1"

    response = client.post(
        f"{PRESCRIPTIONS}/verify",
        json={"prescriptionNumber": prescription["prescriptionNumber"], "pharmacyId": "ph-7"},
        headers=people["admin"],
    )
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"status": "cancelled"}

    verdict = client.get(
        f"{PRESCRIPTIONS}/verify", params={"prescriptionNumber": prescription["prescriptionNumber"]}
    ).json()["data"]
    assert verdict["verificationStatus"] == "invalid"
    assert verdict["isCancelled"] is True


def test_only_the_prescriber_can_modify(client, people):
    prescription = issue(client, people["doctor"])
    path = f"{PRESCRIPTIONS}/{prescription['id']}"

    assert client.put(path, json={"notes": "x"}, headers=people["other_doctor"]).status_code == 403
    assert client.delete(path, headers=people["patient"]).status_code == 403

    updated = client.put(path, json={"notes": "Take with food"}, headers=people["doctor"]).json()["data"]
    assert updated["notes"] == "Take with food"
    assert updated["updatedBy"] == "doc-1"
