"""
Companies: ownership, unique names, counters and guarded deletion.
"""

import pytest

from conftest import run

COMPANIES = "/api/v1/companies"


def company_body(name="Northside Clinic", **overrides):
    body = {
        "name": name,
        "type": "clinic",
        "description": "Family medicine and pediatrics",
        "address": {"street": "12 Elm St", "city": "Guadalajara", "state": "Jalisco", "zipCode": "44100"},
        "contact": {"phone": "+52 33 1234 5678", "email": "Front.Desk@Northside.example"},
        "specialties": ["Pediatrics", "General Practice"],
    }
    body.update(overrides)
    return body


@pytest.fixture
def owner(seed):
    return seed.user("co-1", "company", "Clara", "Owner")


def create_company(client, headers, **overrides):
    response = client.post(COMPANIES, json=company_body(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_create_company_fills_registration_placeholder(client, owner, seed, store):
    seed.doc("companies", "co-1", {"ownerId": "co-1", "isProfileComplete": False, "isActive": True})

    company = create_company(client, owner)
    assert company["id"] == "co-1"
    assert company["address"]["country"] == "Mexico"
    assert company["contact"]["email"] == "front.desk@northside.example"
    assert company["stats"] == {"doctorsCount": 0, "activeJobsCount": 0, "totalJobsCount": 0}
    assert run(store.get("companies", "co-1"))["isProfileComplete"] is True


def test_company_names_are_unique(client, owner, seed):
    create_company(client, owner)
    other = seed.user("co-2", "company")
    duplicate = client.post(COMPANIES, json=company_body(), headers=other)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == {
        "code": "COMPANY_EXISTS",
        "message": "A company with this name already exists",
        "details": {"name": "Northside Clinic"},
    }


def test_invalid_contact_is_rejected(client, owner):
    body = company_body(contact={"phone": "1", "email": "not-an-email", "website": "ftp://x"})
    response = client.post(COMPANIES, json=body, headers=owner)
    assert response.status_code == 400
    fields = {detail["field"] for detail in response.json()["error"]["details"]}
    assert fields == {"contact.email", "contact.website"}


def test_list_counts_doctors_and_jobs(client, owner, seed):
    company = create_company(client, owner)
    create_company(
        client,
        owner,
        name="Eastside Hospital",
        type="hospital",
        address={"street": "1 Main", "city": "Monterrey", "state": "Nuevo Leon", "zipCode": "64000"},
        specialties=["Cardiology"],
    )
    seed.doctor("doc-1", companyId=company["id"])
    seed.doctor("doc-2", companyId=company["id"], isActive=False)
    seed.doc("job_listings", "job-1", {"companyId": company["id"], "status": "active"})
    seed.doc("job_listings", "job-2", {"companyId": company["id"], "status": "closed"})

    listing = client.get(COMPANIES).json()
    assert listing["meta"]["total"] == 2
    stats = {c["name"]: c["stats"] for c in listing["data"]}
    assert stats["Northside Clinic"] == {"doctorsCount": 1, "activeJobsCount": 1, "totalJobsCount": 2}

    assert [c["name"] for c in client.get(COMPANIES, params={"city": "monter"}).json()["data"]] == [
        "Eastside Hospital"
    ]
    assert [c["name"] for c in client.get(COMPANIES, params={"specialty": "pediat"}).json()["data"]] == [
        "Northside Clinic"
    ]
    assert [c["name"] for c in client.get(COMPANIES, params={"type": "hospital"}).json()["data"]] == [
        "Eastside Hospital"
    ]


def test_company_detail(client, owner, seed):
    company = create_company(client, owner)
    seed.doctor("doc-1", companyId=company["id"])
    seed.doctor("doc-2", companyId=company["id"], isVerified=False)
    seed.doc("appointments", "apt-1", {"companyId": company["id"], "status": "completed"})
    seed.doc("job_listings", "job-1", {"companyId": company["id"], "status": "active"})

    detail = client.get(f"{COMPANIES}/{company['id']}").json()["data"]
    assert detail["stats"]["doctors"] == {"total": 2, "verified": 1, "unverified": 1}
    assert detail["stats"]["jobs"] == {"total": 1, "active": 1, "closed": 0}
    assert detail["stats"]["appointments"] == {"total": 1, "completed": 1, "cancelled": 0}
    assert [job["id"] for job in detail["activeJobs"]] == ["job-1"]


def test_only_owner_updates(client, owner, seed):
    company = create_company(client, owner)
    create_company(client, owner, name="Taken Name")
    stranger = seed.user("co-2", "company")
    path = f"{COMPANIES}/{company['id']}"

    assert client.put(path, json={"description": "x"}, headers=stranger).status_code == 403
    assert client.put(path, json={}, headers=owner).status_code == 400

    renamed = client.put(path, json={"name": "Taken Name"}, headers=owner)
    assert renamed.status_code == 409
    assert renamed.json()["error"]["code"] == "COMPANY_NAME_EXISTS"

    updated = client.put(path, json={"numberOfEmployees": 40}, headers=owner).json()["data"]
    assert updated["numberOfEmployees"] == 40


def test_delete_refused_while_doctors_remain(client, owner, seed):
    company = create_company(client, owner)
    seed.doctor("doc-1", companyId=company["id"])
    path = f"{COMPANIES}/{company['id']}"

    response = client.delete(path, headers=owner)
    assert response.status_code == 409
    assert response.json()["error"]["details"] == {"doctorsCount": 1}

    run(seed.store.update("doctors", "doc-1", {"isActive": False}))
    assert client.delete(path, headers=owner).json()["data"]["deleted"] is True
    assert client.get(path).status_code == 404


def test_deleting_twice_keeps_the_first_deletion(client, owner):
    company = create_company(client, owner)
    path = f"{COMPANIES}/{company['id']}"

    first = client.delete(path, headers=owner).json()["data"]
    second = client.delete(path, headers=owner)
    assert second.status_code == 200
    assert second.json()["data"] == first

    missing = client.delete(f"{COMPANIES}/nope", headers=owner)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "COMPANY_NOT_FOUND"
