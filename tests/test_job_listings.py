"""
Job listings: publishing, filtering and closing.
"""

import pytest

from conftest import run

JOBS = "/api/v1/job-listings"


@pytest.fixture
def company(seed):
    headers = seed.user("co-1", "company", "Clara", "Owner")
    seed.doc(
        "companies",
        "acme",
        {"name": "Acme Hospital", "type": "hospital", "ownerId": "co-1", "isActive": True, "isVerified": True},
    )
    return headers


def job_body(**overrides):
    body = {
        "companyId": "acme",
        "title": "Night shift cardiologist",
        "description": "Cover the cardiac unit three nights a week",
        "location": {"city": "Puebla", "state": "Puebla", "country": "Mexico"},
        "position": {"specialty": "cardiology", "experienceLevel": "senior", "salary": {"min": 4000, "max": 6000}},
    }
    body.update(overrides)
    return body


def publish(client, headers, **overrides):
    response = client.post(JOBS, json=job_body(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_publish_sets_defaults(client, company):
    job = publish(client, company)
    assert job["status"] == "active"
    assert job["applicationsCount"] == 0
    assert job["position"]["type"] == "full_time"
    assert job["position"]["salary"]["currency"] == "USD"
    assert job["expiresAt"]
    assert job["company"] == {
        "id": "acme",
        "name": "Acme Hospital",
        "type": "hospital",
        "logo": None,
        "isVerified": True,
    }


def test_publishing_requires_company_access(client, company, seed):
    patient = seed.patient("pat-1")
    assert client.post(JOBS, json=job_body(), headers=patient).status_code == 403

    other_company = seed.user("co-2", "company")
    assert client.post(JOBS, json=job_body(), headers=other_company).status_code == 403

    missing = client.post(JOBS, json=job_body(companyId="nope"), headers=company)
    assert missing.status_code == 400
    assert missing.json()["error"]["code"] == "COMPANY_NOT_FOUND"


def test_salary_range_is_validated(client, company):
    body = job_body(position={"specialty": "cardiology", "salary": {"min": 5000, "max": 100}})
    response = client.post(JOBS, json=body, headers=company)
    assert response.status_code == 400


def test_list_filters(client, company):
    publish(client, company)
    publish(
        client,
        company,
        title="Remote radiology reader",
        location={"city": "Tijuana", "state": "Baja California", "country": "Mexico", "remote": True},
        position={"specialty": "radiology", "type": "contract", "experienceLevel": "mid"},
    )

    listing = client.get(JOBS).json()
    assert listing["meta"]["limit"] == 20
    assert listing["meta"]["total"] == 2

    assert [j["title"] for j in client.get(JOBS, params={"remote": "true"}).json()["data"]] == [
        "Remote radiology reader"
    ]
    assert [j["title"] for j in client.get(JOBS, params={"experienceLevel": "senior"}).json()["data"]] == [
        "Night shift cardiologist"
    ]
    assert [j["title"] for j in client.get(JOBS, params={"location": "baja"}).json()["data"]] == [
        "Remote radiology reader"
    ]
    assert client.get(JOBS, params={"status": "closed"}).json()["meta"]["total"] == 0


def test_update_and_close(client, company, store):
    job = publish(client, company)
    path = f"{JOBS}/{job['id']}"

    updated = client.put(path, json={"benefits": ["dental"]}, headers=company).json()["data"]
    assert updated["benefits"] == ["dental"]

    closed = client.delete(path, headers=company).json()["data"]
    assert closed["permanent"] is False
    assert run(store.get("job_listings", job["id"]))["status"] == "closed"
    assert client.get(JOBS).json()["meta"]["total"] == 0
    assert client.get(path).json()["data"]["status"] == "closed"


def test_closing_twice_keeps_the_first_closed_at(client, company, store):
    job = publish(client, company)
    path = f"{JOBS}/{job['id']}"

    first = client.delete(path, headers=company).json()["data"]
    second = client.delete(path, headers=company).json()["data"]
    assert second["closedAt"] == first["closedAt"]
    assert run(store.get("job_listings", job["id"]))["status"] == "closed"


def test_permanent_delete_is_admin_only(client, company, seed, store):
    job = publish(client, company)
    path = f"{JOBS}/{job['id']}"

    assert client.delete(path, params={"permanent": "true"}, headers=company).status_code == 403
    admin = seed.admin()
    assert client.delete(path, params={"permanent": "true"}, headers=admin).json()["data"]["permanent"] is True
    assert run(store.get("job_listings", job["id"])) is None
    assert client.get(path).json()["error"]["code"] == "JOB_LISTING_NOT_FOUND"
