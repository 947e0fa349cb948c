"""
Healthcare companies (clinics, hospitals, labs) and their aggregate counters.
"""

import logging
from collections import Counter
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Query, status

from ...application.ports.document_store import DESC, where
from ...application.services.pagination import (
    create_pagination_meta,
    page_offset,
    slice_page,
    validate_pagination,
)
from ...core.auth import AuthContext
from ...core.utils.datetime_utils import get_current_timestamp
from ..deps import CurrentUser, DocumentStoreDep
from ..errors import CompanyNotFoundError, ConflictError, ForbiddenError
from ..schemas.common import ApiResponse, error_responses
from ..schemas.companies import CompanyListQuery, CreateCompanyRequest, UpdateCompanyRequest
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/companies", tags=["companies"])

COMPANIES = "companies"
DOCTORS = "doctors"
JOB_LISTINGS = "job_listings"
APPOINTMENTS = "appointments"

RECENT_LIMIT = 5


async def _get_company(store, company_id: str, include_deleted: bool = False) -> Dict[str, Any]:
    company = await store.get(COMPANIES, company_id)
    if company is None or not (include_deleted or company.get("isActive", True)):
        raise CompanyNotFoundError(company_id)
    return company


def _ensure_can_manage(caller: AuthContext, company: Dict[str, Any]) -> None:
    if caller.role != "admin" and company.get("ownerId") != caller.uid:
        raise ForbiddenError("Only the company owner can modify this company")


async def _ensure_unique_name(store, name: str, code: str, exclude_id: Optional[str] = None) -> None:
    matches = await store.query(COMPANIES, [where("name", "==", name), where("isActive", "==", True)])
    if any(match["id"] != exclude_id for match in matches):
        raise ConflictError(code, "A company with this name already exists", {"name": name})


def _contains(value: Any, term: str) -> bool:
    return term.strip().lower() in str(value or "").lower()


def _matches(company: Dict[str, Any], query: CompanyListQuery) -> bool:
    address = company.get("address") or {}
    if query.city and not _contains(address.get("city"), query.city):
        return False
    if query.state and not _contains(address.get("state"), query.state):
        return False
    if query.specialty and not any(_contains(s, query.specialty) for s in company.get("specialties") or []):
        return False
    if query.search:
        return any(
            _contains(value, query.search)
            for value in (company.get("name"), company.get("description"), address.get("city"))
        )
    return True


async def _attach_stats(store, companies: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Doctor and job counters for a page of companies with one query per collection."""
    ids = [company["id"] for company in companies]
    if not ids:
        return []
    doctors = await store.query(DOCTORS, [where("companyId", "in", ids), where("isActive", "==", True)])
    jobs = await store.query(JOB_LISTINGS, [where("companyId", "in", ids)])

    doctor_counts = Counter(doctor["companyId"] for doctor in doctors)
    job_counts = Counter(job["companyId"] for job in jobs)
    active_job_counts = Counter(job["companyId"] for job in jobs if job.get("status") == "active")
    return [
        {
            **company,
            "stats": {
                "doctorsCount": doctor_counts[company["id"]],
                "activeJobsCount": active_job_counts[company["id"]],
                "totalJobsCount": job_counts[company["id"]],
            },
        }
        for company in companies
    ]


@router.get("", response_model=ApiResponse[list], summary="List companies")
async def fetch_companies(query: Annotated[CompanyListQuery, Query()], store: DocumentStoreDep):
    """
    Active companies, newest first.

    ``city``, ``state``, ``specialty`` and ``search`` are case-insensitive
    substrings matched in memory.
    """
    page, limit = validate_pagination(query.page, query.limit)

    filters = [where("isActive", "==", True)]
    if query.type:
        filters.append(where("type", "==", query.type))
    if query.is_verified is not None:
        filters.append(where("isVerified", "==", query.is_verified))
    order_by = [("createdAt", DESC)]

    if query.city or query.state or query.specialty or query.search:
        companies = [c for c in await store.query(COMPANIES, filters, order_by) if _matches(c, query)]
        total = len(companies)
        companies = slice_page(companies, page, limit)
    else:
        total = await store.count(COMPANIES, filters)
        companies = await store.query(COMPANIES, filters, order_by, page_offset(page, limit), limit)

    return ok(await _attach_stats(store, companies), create_pagination_meta(page, limit, total))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(409),
    summary="Create a company",
)
async def create_company(body: CreateCompanyRequest, caller: CurrentUser, store: DocumentStoreDep):
    await _ensure_unique_name(store, body.name, "COMPANY_EXISTS")

    data = body.to_document()
    data.update({"ownerId": caller.uid, "isVerified": False, "isActive": True, "isProfileComplete": True})
    # Company accounts get a placeholder profile at registration; fill that one in
    placeholder = await store.get(COMPANIES, caller.uid) if caller.role == "company" else None
    if placeholder is not None and not placeholder.get("isProfileComplete", True):
        data["createdAt"] = placeholder.get("createdAt")
        company = await store.set(COMPANIES, caller.uid, data)
    else:
        company = await store.add(COMPANIES, data)
    logger.info(f"Company {company['id']} created by {caller.uid}")
    return created({**company, "stats": {"doctorsCount": 0, "activeJobsCount": 0, "totalJobsCount": 0}})


@router.get("/{company_id}", response_model=ApiResponse[dict], summary="Get a company")
async def fetch_company(company_id: str, store: DocumentStoreDep):
    """Company with detailed counters, its newest doctors and its newest active jobs."""
    company = await _get_company(store, company_id)

    doctors = await store.query(DOCTORS, [where("companyId", "==", company_id)], [("createdAt", DESC)])
    jobs = await store.query(JOB_LISTINGS, [where("companyId", "==", company_id)], [("createdAt", DESC)])
    appointment_statuses = Counter(
        a.get("status") for a in await store.query(APPOINTMENTS, [where("companyId", "==", company_id)])
    )

    verified = sum(1 for doctor in doctors if doctor.get("isVerified"))
    active_jobs = [job for job in jobs if job.get("status") == "active"]
    stats = {
        "doctors": {"total": len(doctors), "verified": verified, "unverified": len(doctors) - verified},
        "jobs": {"total": len(jobs), "active": len(active_jobs), "closed": len(jobs) - len(active_jobs)},
        "appointments": {
            "total": sum(appointment_statuses.values()),
            "completed": appointment_statuses.get("completed", 0),
            "cancelled": appointment_statuses.get("cancelled", 0),
        },
    }
    return ok(
        {
            **company,
            "stats": stats,
            "recentDoctors": doctors[:RECENT_LIMIT],
            "activeJobs": active_jobs[:RECENT_LIMIT],
        }
    )


@router.put(
    "/{company_id}", response_model=ApiResponse[dict], responses=error_responses(403, 409), summary="Update a company"
)
async def update_company(
    company_id: str, body: UpdateCompanyRequest, caller: CurrentUser, store: DocumentStoreDep
):
    company = await _get_company(store, company_id)
    _ensure_can_manage(caller, company)
    if body.name and body.name != company.get("name"):
        await _ensure_unique_name(store, body.name, "COMPANY_NAME_EXISTS", exclude_id=company_id)

    return ok(await store.update(COMPANIES, company_id, body.to_changes()))


@router.delete(
    "/{company_id}", response_model=ApiResponse[dict], responses=error_responses(403, 409), summary="Delete a company"
)
async def delete_company(company_id: str, caller: CurrentUser, store: DocumentStoreDep):
    """
    Soft delete, refused while active doctors still belong to the company.
    Repeating it keeps the first ``deletedAt``.
    """
    company = await _get_company(store, company_id, include_deleted=True)
    _ensure_can_manage(caller, company)
    if not company.get("isActive", True) and company.get("deletedAt") is not None:
        return ok({"id": company_id, "deleted": True, "deletedAt": company["deletedAt"]})

    doctors = await store.count(DOCTORS, [where("companyId", "==", company_id), where("isActive", "==", True)])
    if doctors:
        raise ConflictError(
            "COMPANY_HAS_DOCTORS",
            "Cannot delete a company with associated doctors",
            {"doctorsCount": doctors},
        )

    now = get_current_timestamp()
    await store.update(COMPANIES, company_id, {"isActive": False, "deletedAt": now, "deletedBy": caller.uid})
    logger.info(f"Company {company_id} deleted by {caller.uid}")
    return ok({"id": company_id, "deleted": True, "deletedAt": now})
