"""
Doctor profiles, verification, reviews and statistics.
"""

from datetime import datetime, timedelta, timezone

from carehub.application.services.doctor_stats import compute_doctor_stats, stats_window
from carehub.application.services.reviews import review_stats

from conftest import future, run

DOCTORS = "/api/v1/doctors"


def profile(uid, **overrides):
    body = {
        "uid": uid,
        "licenseNumber": "MED-1234",
        "specialties": ["cardiology"],
        "experience": 12,
        "bio": "Heart rhythm specialist",
        "consultationFee": 80,
        "availability": {"monday": ["09:00-13:00"]},
    }
    body.update(overrides)
    return body


def test_create_profile_fills_registration_placeholder(client, seed, store):
    headers = seed.user("doc-9", "doctor", "James", "Wilson")
    seed.doc("doctors", "doc-9", {"userId": "doc-9", "isProfileComplete": False, "isActive": False})
    placeholder_created = run(store.get("doctors", "doc-9"))["createdAt"]

    response = client.post(DOCTORS, json=profile("doc-9"), headers=headers)
    assert response.status_code == 201
    doctor = response.json()["data"]
    assert doctor["id"] == "doc-9"
    assert doctor["isProfileComplete"] is True
    assert doctor["isActive"] is True
    assert doctor["isVerified"] is False
    assert run(store.get("doctors", "doc-9"))["createdAt"] == placeholder_created

    again = client.post(DOCTORS, json=profile("doc-9"), headers=headers)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "DOCTOR_PROFILE_EXISTS"


def test_create_profile_checks_owner_and_role(client, seed):
    seed.user("pat-1", "patient")
    other = seed.user("doc-2", "doctor")
    admin = seed.admin()

    assert client.post(DOCTORS, json=profile("pat-1"), headers=other).status_code == 403
    response = client.post(DOCTORS, json=profile("pat-1"), headers=admin)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_ROLE"
    response = client.post(DOCTORS, json=profile("nobody"), headers=admin)
    assert response.json()["error"]["code"] == "USER_NOT_FOUND"


def test_create_profile_rejects_unknown_weekday_and_company(client, seed):
    headers = seed.user("doc-3", "doctor")
    bad_day = client.post(DOCTORS, json=profile("doc-3", availability={"funday": []}), headers=headers)
    assert bad_day.status_code == 400
    no_company = client.post(DOCTORS, json=profile("doc-3", companyId="missing"), headers=headers)
    assert no_company.status_code == 404
    assert no_company.json()["error"]["code"] == "COMPANY_NOT_FOUND"


def test_list_filters_and_search(client, seed):
    seed.doctor("doc-a", "Lisa", "Cuddy", specialties=["cardiology"], bio="Hospital dean")
    seed.doctor("doc-b", "Eric", "Foreman", specialties=["neurology"], isVerified=False)
    seed.doctor("doc-c", "Robert", "Chase", specialties=["surgery"], isActive=False)

    everyone = client.get(DOCTORS).json()
    assert everyone["meta"]["total"] == 2
    assert {d["id"] for d in everyone["data"]} == {"doc-a", "doc-b"}
    assert all(d["user"]["firstName"] for d in everyone["data"])

    assert [d["id"] for d in client.get(DOCTORS, params={"specialty": "neurology"}).json()["data"]] == ["doc-b"]
    assert [d["id"] for d in client.get(DOCTORS, params={"isVerified": "true"}).json()["data"]] == ["doc-a"]
    assert [d["id"] for d in client.get(DOCTORS, params={"search": "DEAN"}).json()["data"]] == ["doc-a"]

    paged = client.get(DOCTORS, params={"limit": "1", "page": "2"}).json()
    assert len(paged["data"]) == 1
    assert paged["meta"] == {"page": 2, "limit": 1, "total": 2, "totalPages": 2}


def test_list_query_string_coercion(client, seed):
    seed.doctor("doc-a", "Lisa", "Cuddy")
    seed.doctor("doc-b", "Eric", "Foreman", isVerified=False)

    garbage = client.get(DOCTORS, params={"page": "abc", "limit": "many"})
    assert garbage.status_code == 200
    assert garbage.json()["meta"] == {"page": 1, "limit": 10, "total": 2, "totalPages": 1}

    clamped = client.get(DOCTORS, params={"page": "-3", "limit": "500"}).json()["meta"]
    assert clamped["page"] == 1
    assert clamped["limit"] == 100

    # Only the literal "true" counts as true; anything else filters for unverified doctors
    for raw in ("True", "1", "yes"):
        listed = client.get(DOCTORS, params={"isVerified": raw}).json()["data"]
        assert [d["id"] for d in listed] == ["doc-b"], raw

    invalid = client.get(DOCTORS, params={"specialty": "astrology"})
    assert invalid.status_code == 400
    assert invalid.json()["error"]["code"] == "VALIDATION_ERROR"


def test_get_update_and_missing_doctor(client, seed):
    headers = seed.doctor("doc-a", consultationFee=50)
    intruder = seed.doctor("doc-b")

    fetched = client.get(f"{DOCTORS}/doc-a").json()["data"]
    assert fetched["user"]["lastName"] == "House"
    assert fetched["company"] is None

    assert client.put(f"{DOCTORS}/doc-a", json={"bio": "x"}, headers=intruder).status_code == 403
    updated = client.put(f"{DOCTORS}/doc-a", json={"consultationFee": 95}, headers=headers).json()["data"]
    assert updated["consultationFee"] == 95
    assert updated["licenseNumber"] == "LIC-doc-a"

    missing = client.get(f"{DOCTORS}/nope")
    assert missing.status_code == 404
    assert missing.json()["error"] == {
        "code": "DOCTOR_NOT_FOUND",
        "message": "Doctor not found",
        "details": {"doctorId": "nope"},
    }


def test_delete_refused_with_active_appointments(client, seed, store):
    headers = seed.doctor("doc-a")
    seed.doc("appointments", "apt-1", {"doctorId": "doc-a", "status": "confirmed", "scheduledAt": future()})

    response = client.delete(f"{DOCTORS}/doc-a", headers=headers)
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"activeAppointments": 1}

    run(store.update("appointments", "apt-1", {"status": "completed"}))
    assert client.delete(f"{DOCTORS}/doc-a", params={"permanent": "true"}, headers=headers).status_code == 403

    soft = client.delete(f"{DOCTORS}/doc-a", headers=headers).json()["data"]
    assert soft["permanent"] is False
    doctor = run(store.get("doctors", "doc-a"))
    assert doctor["isActive"] is False
    assert doctor["deletedBy"] == "doc-a"

    admin = seed.admin()
    again = client.delete(f"{DOCTORS}/doc-a", headers=admin)
    assert again.status_code == 200
    assert again.json()["data"]["deletedAt"] == soft["deletedAt"]
    assert run(store.get("doctors", "doc-a"))["deletedBy"] == "doc-a"


def test_verification_is_admin_only_and_logged(client, seed):
    doctor_headers = seed.doctor("doc-a", isVerified=False)
    admin = seed.admin()
    body = {"isVerified": True, "verificationNotes": "License checked"}

    assert client.put(f"{DOCTORS}/doc-a/verification", json=body, headers=doctor_headers).status_code == 403

    decided = client.put(f"{DOCTORS}/doc-a/verification", json=body, headers=admin).json()["data"]
    assert decided["verificationStatus"] == "verified"
    assert decided["verifierName"] == "Ada Admin"

    client.put(f"{DOCTORS}/doc-a/verification", json={"isVerified": False}, headers=admin)
    status = client.get(f"{DOCTORS}/doc-a/verification", headers=doctor_headers).json()["data"]
    assert status["currentStatus"]["isVerified"] is False
    assert status["currentStatus"]["verificationStatus"] == "rejected"
    assert sorted(entry["action"] for entry in status["history"]) == ["unverified", "verified"]


def test_review_flow_updates_rating(client, seed, store):
    seed.doctor("doc-a")
    patient = seed.patient("pat-1")
    seed.doc("appointments", "apt-done", {"doctorId": "doc-a", "patientId": "pat-1", "status": "completed"})
    seed.doc("appointments", "apt-open", {"doctorId": "doc-a", "patientId": "pat-1", "status": "scheduled"})
    review = {"patientId": "pat-1", "appointmentId": "apt-done", "rating": 4, "comment": "Thorough"}

    created = client.post(f"{DOCTORS}/doc-a/reviews", json=review, headers=patient)
    assert created.status_code == 201
    assert created.json()["data"]["id"] == "apt-done"
    assert run(store.get("doctors", "doc-a"))["rating"] == 4

    duplicate = client.post(f"{DOCTORS}/doc-a/reviews", json=review, headers=patient)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "REVIEW_EXISTS"

    not_done = client.post(f"{DOCTORS}/doc-a/reviews", json={**review, "appointmentId": "apt-open"}, headers=patient)
    assert not_done.json()["error"]["code"] == "APPOINTMENT_NOT_COMPLETED"

    listing = client.get(f"{DOCTORS}/doc-a/reviews").json()
    assert listing["data"]["stats"]["totalReviews"] == 1
    reviewer = listing["data"]["reviews"][0]["patient"]
    assert reviewer["firstName"] == "Ana"
    assert "email" not in reviewer


def test_review_for_someone_elses_appointment(client, seed):
    seed.doctor("doc-a")
    seed.patient("pat-2")
    patient = seed.patient("pat-1")
    seed.doc("appointments", "apt-x", {"doctorId": "doc-a", "patientId": "pat-2", "status": "completed"})

    response = client.post(
        f"{DOCTORS}/doc-a/reviews",
        json={"patientId": "pat-1", "appointmentId": "apt-x", "rating": 1},
        headers=patient,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "APPOINTMENT_MISMATCH"


def test_review_stats_distribution():
    stats = review_stats([{"rating": 5}, {"rating": 4}, {"rating": 4}])
    assert stats["averageRating"] == 4.33
    assert stats["ratingDistribution"] == {"5": 1, "4": 2, "3": 0, "2": 0, "1": 0}
    assert review_stats([])["averageRating"] == 0


def test_calendar_is_limited_to_owner_and_staff(client, seed):
    owner = seed.doctor("doc-a")
    other = seed.doctor("doc-b")
    seed.patient("pat-1")
    seed.doc(
        "appointments",
        "apt-1",
        {"doctorId": "doc-a", "patientId": "pat-1", "status": "scheduled", "scheduledAt": future(days=2)},
    )

    assert client.get(f"{DOCTORS}/doc-a/appointments", headers=other).status_code == 403
    calendar = client.get(f"{DOCTORS}/doc-a/appointments", headers=owner).json()
    assert calendar["data"]["stats"]["total"] == 1
    patient = calendar["data"]["appointments"][0]["patient"]
    assert patient["gender"] == "female"


def test_stats_window_defaults_to_month_to_date():
    now = datetime(2030, 3, 18, 15, 30, tzinfo=timezone.utc)
    start, end = stats_window("month", now=now)
    assert start == datetime(2030, 3, 1, tzinfo=timezone.utc)
    assert end == now
    week_start, _ = stats_window("week", now=now)
    assert week_start == datetime(2030, 3, 17, tzinfo=timezone.utc)


def test_compute_doctor_stats_counts_new_and_returning_patients():
    start = datetime(2030, 3, 1, tzinfo=timezone.utc)
    end = start + timedelta(days=2)
    appointments = [
        {"patientId": "p1", "status": "completed", "type": "consultation", "scheduledAt": start + timedelta(hours=9)},
        {"patientId": "p2", "status": "cancelled", "type": "follow-up", "scheduledAt": start + timedelta(hours=9)},
        {"patientId": "p1", "status": "completed", "type": "consultation", "scheduledAt": start + timedelta(days=1, hours=11)},
        {"patientId": "p3", "status": "scheduled", "type": "consultation", "scheduledAt": start + timedelta(days=1, hours=9)},
    ]
    stats = compute_doctor_stats(appointments, {"p2"}, 100, "custom", start, end)

    assert stats["overview"]["totalAppointments"] == 4
    assert stats["overview"]["completionRate"] == 50.0
    assert stats["overview"]["scheduledAppointments"] == 1
    assert stats["patients"] == {"total": 3, "new": 2, "returning": 1}
    assert stats["revenue"]["total"] == 200
    assert stats["popularTimeSlots"][0] == {"time": "09:00", "count": 3}
    assert stats["appointmentTypes"] == {"consultation": 3, "follow-up": 1}
