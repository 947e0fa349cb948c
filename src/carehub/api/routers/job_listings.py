"""
Job listings published by healthcare companies.
"""

import logging
from datetime import timedelta
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Query, status

from ...application.ports.document_store import DESC, where
from ...application.services.pagination import (
    create_pagination_meta,
    page_offset,
    slice_page,
    validate_pagination,
)
from ...core.auth import AuthContext, AuthService
from ...core.utils.datetime_utils import get_current_timestamp
from ..deps import CompanyManager, DocumentStoreDep
from ..errors import BadRequestError, ForbiddenError, JobListingNotFoundError
from ..schemas.common import ApiResponse, DeleteQuery, error_responses
from ..schemas.job_listings import (
    DEFAULT_JOB_LIMIT,
    CreateJobListingRequest,
    JobListingQuery,
    UpdateJobListingRequest,
)
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/job-listings", tags=["job-listings"])

JOB_LISTINGS = "job_listings"
COMPANIES = "companies"

LISTING_LIFETIME_DAYS = 30


async def _get_listing(store, job_id: str) -> Dict[str, Any]:
    listing = await store.get(JOB_LISTINGS, job_id)
    if listing is None:
        raise JobListingNotFoundError(job_id)
    return listing


def _ensure_company_access(caller: AuthContext, company: Dict[str, Any]) -> None:
    if caller.role != "admin" and company.get("ownerId") != caller.uid:
        raise ForbiddenError("Only the company owner can manage its job listings")


def _company_summary(company) -> Optional[Dict[str, Any]]:
    if company is None:
        return None
    return {
        "id": company["id"],
        "name": company.get("name"),
        "type": company.get("type"),
        "logo": company.get("logo"),
        "isVerified": company.get("isVerified", False),
    }


def _in_location(listing: Dict[str, Any], term: str) -> bool:
    location = listing.get("location") or {}
    term = term.strip().lower()
    return any(term in str(location.get(field) or "").lower() for field in ("city", "state", "country"))


async def _attach_companies(store, listings: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    companies = await store.get_many(COMPANIES, {listing["companyId"] for listing in listings if listing.get("companyId")})
    return [{**listing, "company": _company_summary(companies.get(listing.get("companyId")))} for listing in listings]


@router.get("", response_model=ApiResponse[list], summary="List job listings")
async def fetch_job_listings(query: Annotated[JobListingQuery, Query()], store: DocumentStoreDep):
    """Listings newest first, 20 per page by default; ``location`` matches city, state or country."""
    page, limit = validate_pagination(query.page, query.limit, default_limit=DEFAULT_JOB_LIMIT)

    filters = [where("status", "==", query.status)]
    if query.specialty:
        filters.append(where("position.specialty", "==", query.specialty))
    if query.type:
        filters.append(where("position.type", "==", query.type))
    if query.experience_level:
        filters.append(where("position.experienceLevel", "==", query.experience_level))
    if query.remote is not None:
        filters.append(where("location.remote", "==", query.remote))
    if query.company_id:
        filters.append(where("companyId", "==", query.company_id))
    order_by = [("createdAt", DESC)]

    if query.location:
        listings = [j for j in await store.query(JOB_LISTINGS, filters, order_by) if _in_location(j, query.location)]
        total = len(listings)
        listings = slice_page(listings, page, limit)
    else:
        total = await store.count(JOB_LISTINGS, filters)
        listings = await store.query(JOB_LISTINGS, filters, order_by, page_offset(page, limit), limit)

    return ok(await _attach_companies(store, listings), create_pagination_meta(page, limit, total))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Publish a job listing",
)
async def create_job_listing(body: CreateJobListingRequest, caller: CompanyManager, store: DocumentStoreDep):
    company = await store.get(COMPANIES, body.company_id)
    if company is None or not company.get("isActive", True):
        raise BadRequestError("COMPANY_NOT_FOUND", "Company not found", {"companyId": body.company_id})
    _ensure_company_access(caller, company)

    data = body.to_document()
    data.setdefault("expiresAt", get_current_timestamp() + timedelta(days=LISTING_LIFETIME_DAYS))
    data.update({"status": "active", "applicationsCount": 0, "createdBy": caller.uid})
    listing = await store.add(JOB_LISTINGS, data)

    logger.info(f"Job listing {listing['id']} published for company={body.company_id}")
    return created({**listing, "company": _company_summary(company)})


@router.get("/{job_id}", response_model=ApiResponse[dict], summary="Get a job listing")
async def fetch_job_listing(job_id: str, store: DocumentStoreDep):
    listing = await _get_listing(store, job_id)
    [item] = await _attach_companies(store, [listing])
    return ok(item)


@router.put(
    "/{job_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Update a job listing"
)
async def update_job_listing(
    job_id: str, body: UpdateJobListingRequest, caller: CompanyManager, store: DocumentStoreDep
):
    listing = await _get_listing(store, job_id)
    company = await store.get(COMPANIES, listing.get("companyId")) or {}
    _ensure_company_access(caller, company)

    changes = body.to_changes()
    changes["updatedBy"] = caller.uid
    return ok(await store.update(JOB_LISTINGS, job_id, changes))


@router.delete(
    "/{job_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Close a job listing"
)
async def delete_job_listing(
    job_id: str,
    query: Annotated[DeleteQuery, Query()],
    caller: CompanyManager,
    store: DocumentStoreDep,
):
    """
    Close the listing; closing it again keeps the first ``closedAt``.
    ``permanent=true`` removes it and is limited to admins.
    """
    listing = await _get_listing(store, job_id)
    if query.permanent:
        AuthService.require_role(caller, ("admin",))
        await store.delete(JOB_LISTINGS, job_id)
        logger.warning(f"Job listing {job_id} permanently deleted by {caller.uid}")
        return ok({"id": job_id, "deleted": True, "permanent": True})

    company = await store.get(COMPANIES, listing.get("companyId")) or {}
    _ensure_company_access(caller, company)
    closed_at = listing.get("closedAt")
    if listing.get("status") != "closed" or closed_at is None:
        closed_at = get_current_timestamp()
        await store.update(JOB_LISTINGS, job_id, {"status": "closed", "closedAt": closed_at, "closedBy": caller.uid})
    return ok({"id": job_id, "deleted": True, "permanent": False, "closedAt": closed_at})
