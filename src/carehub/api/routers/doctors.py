"""
Doctor profiles and their sub-resources: calendar, stats, verification, reviews.
"""

import logging
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Query, status

from ...application.ports.document_store import ASC, DESC, where
from ...application.services.doctor_stats import (
    calendar_summary,
    compute_doctor_stats,
    schedule_window,
    stats_window,
)
from ...application.services.enrichment import attach_users, collect_ids, fetch_users, user_summary
from ...application.services.pagination import (
    create_pagination_meta,
    page_offset,
    slice_page,
    validate_pagination,
)
from ...application.services.reviews import refresh_doctor_rating
from ...core.auth import AuthService
from ...core.exceptions import DocumentExistsError
from ...core.utils.datetime_utils import get_current_timestamp
from ...domain.enums import ACTIVE_APPOINTMENT_STATUSES
from ..deps import AdminUser, CurrentUser, DocumentStoreDep
from ..errors import (
    AppointmentNotFoundError,
    BadRequestError,
    CompanyNotFoundError,
    ConflictError,
    DoctorNotFoundError,
    UserNotFoundError,
)
from ..schemas.common import ApiResponse, DeleteQuery, error_responses
from ..schemas.doctors import (
    CreateDoctorRequest,
    CreateReviewRequest,
    DoctorAppointmentsQuery,
    DoctorListQuery,
    DoctorStatsQuery,
    ReviewsQuery,
    UpdateDoctorRequest,
    VerificationRequest,
)
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["doctors"])

DOCTORS = "doctors"
USERS = "users"
PATIENTS = "patients"
COMPANIES = "companies"
APPOINTMENTS = "appointments"
REVIEWS = "reviews"
VERIFICATION_LOGS = "verification_logs"

CALENDAR_VIEWERS = ("admin", "staff")

REVIEW_ORDERING = {
    "newest": [("createdAt", DESC)],
    "oldest": [("createdAt", ASC)],
    "rating_high": [("rating", DESC), ("createdAt", DESC)],
    "rating_low": [("rating", ASC), ("createdAt", DESC)],
}


async def _get_doctor(store, doctor_id: str) -> Dict[str, Any]:
    doctor = await store.get(DOCTORS, doctor_id)
    if doctor is None:
        raise DoctorNotFoundError(doctor_id)
    return doctor


def _company_summary(company: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if company is None:
        return None
    return {"id": company["id"], "name": company.get("name"), "type": company.get("type"), "logo": company.get("logo")}


def _matches_search(doctor: Dict[str, Any], term: str) -> bool:
    user = doctor.get("user") or {}
    haystack = " ".join(
        str(value or "") for value in (user.get("firstName"), user.get("lastName"), doctor.get("bio"))
    )
    return term.strip().lower() in haystack.lower()


@router.get("", response_model=ApiResponse[list], responses=error_responses(), summary="List doctors")
async def fetch_doctors(query: Annotated[DoctorListQuery, Query()], store: DocumentStoreDep):
    """
    Active doctors, newest first, each joined with its user summary.

    ``search`` matches first name, last name and bio; it is applied after the
    join, so searched listings are paged in memory.
    """
    page, limit = validate_pagination(query.page, query.limit)
    filters = [where("isActive", "==", True)]
    if query.specialty:
        filters.append(where("specialties", "array-contains", query.specialty))
    if query.company_id:
        filters.append(where("companyId", "==", query.company_id))
    if query.is_verified is not None:
        filters.append(where("isVerified", "==", query.is_verified))
    order_by = [("createdAt", DESC)]

    if query.search:
        doctors = await attach_users(store, await store.query(DOCTORS, filters, order_by), {"id": "user"})
        doctors = [doctor for doctor in doctors if _matches_search(doctor, query.search)]
        total = len(doctors)
        doctors = slice_page(doctors, page, limit)
    else:
        total = await store.count(DOCTORS, filters)
        page_docs = await store.query(DOCTORS, filters, order_by, page_offset(page, limit), limit)
        doctors = await attach_users(store, page_docs, {"id": "user"})

    return ok(doctors, create_pagination_meta(page, limit, total))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(403, 409),
    summary="Create a doctor profile",
)
async def create_doctor(body: CreateDoctorRequest, caller: CurrentUser, store: DocumentStoreDep):
    """Create the profile for a user with the doctor role; the profile id is the user id."""
    AuthService.require_self_or_role(caller, body.uid)

    user = await store.get(USERS, body.uid)
    if user is None:
        raise UserNotFoundError(body.uid)
    if user.get("role") != "doctor":
        raise BadRequestError("INVALID_ROLE", "User does not have the doctor role")

    existing = await store.get(DOCTORS, body.uid)
    # Registration leaves an incomplete placeholder that this call fills in
    if existing is not None and existing.get("isProfileComplete", True):
        raise ConflictError("DOCTOR_PROFILE_EXISTS", "Doctor profile already exists")
    if body.company_id and await store.get(COMPANIES, body.company_id) is None:
        raise CompanyNotFoundError(body.company_id)

    data = body.to_document()
    data.pop("uid")
    data.update(
        {
            "userId": body.uid,
            "isVerified": False,
            "isActive": True,
            "isProfileComplete": True,
            "rating": 0,
            "reviewCount": 0,
        }
    )
    if existing is None:
        try:
            doctor = await store.create(DOCTORS, body.uid, data)
        except DocumentExistsError:
            raise ConflictError("DOCTOR_PROFILE_EXISTS", "Doctor profile already exists")
    else:
        data["createdAt"] = existing.get("createdAt")
        doctor = await store.set(DOCTORS, body.uid, data)

    logger.info(f"Doctor profile created for uid={body.uid}")
    return created(doctor)


@router.get("/{doctor_id}", response_model=ApiResponse[dict], summary="Get a doctor")
async def fetch_doctor(doctor_id: str, store: DocumentStoreDep):
    doctor = await _get_doctor(store, doctor_id)
    user = await store.get(USERS, doctor_id)
    company = await store.get(COMPANIES, doctor["companyId"]) if doctor.get("companyId") else None
    return ok({**doctor, "user": user_summary(user, "phoneNumber"), "company": _company_summary(company)})


@router.put("/{doctor_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Update a doctor")
async def update_doctor(
    doctor_id: str, body: UpdateDoctorRequest, caller: CurrentUser, store: DocumentStoreDep
):
    AuthService.require_self_or_role(caller, doctor_id)
    await _get_doctor(store, doctor_id)
    if body.company_id and await store.get(COMPANIES, body.company_id) is None:
        raise CompanyNotFoundError(body.company_id)

    doctor = await store.update(DOCTORS, doctor_id, body.to_changes())
    if doctor is None:
        raise DoctorNotFoundError(doctor_id)
    return ok(doctor)


@router.delete(
    "/{doctor_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Delete a doctor"
)
async def delete_doctor(
    doctor_id: str,
    query: Annotated[DeleteQuery, Query()],
    caller: CurrentUser,
    store: DocumentStoreDep,
):
    """
    Soft delete by default; repeating it keeps the first ``deletedAt``.
    ``permanent=true`` removes the document and is restricted to admins.
    """
    if query.permanent:
        AuthService.require_role(caller, ("admin",))
    else:
        AuthService.require_self_or_role(caller, doctor_id)
    doctor = await _get_doctor(store, doctor_id)
    if not query.permanent and not doctor.get("isActive", True) and doctor.get("deletedAt") is not None:
        return ok({"id": doctor_id, "deleted": True, "permanent": False, "deletedAt": doctor["deletedAt"]})

    active = await store.count(
        APPOINTMENTS,
        [where("doctorId", "==", doctor_id), where("status", "in", list(ACTIVE_APPOINTMENT_STATUSES))],
    )
    if active:
        raise BadRequestError(
            "DOCTOR_HAS_ACTIVE_APPOINTMENTS",
            "Doctor has active appointments; cancel or complete them first",
            {"activeAppointments": active},
        )

    if query.permanent:
        await store.delete(DOCTORS, doctor_id)
        logger.warning(f"Doctor {doctor_id} permanently deleted by {caller.uid}")
        return ok({"id": doctor_id, "deleted": True, "permanent": True})

    now = get_current_timestamp()
    await store.update(DOCTORS, doctor_id, {"isActive": False, "deletedAt": now, "deletedBy": caller.uid})
    return ok({"id": doctor_id, "deleted": True, "permanent": False, "deletedAt": now})


@router.get(
    "/{doctor_id}/appointments",
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Doctor calendar",
)
async def fetch_doctor_appointments(
    doctor_id: str,
    query: Annotated[DoctorAppointmentsQuery, Query()],
    caller: CurrentUser,
    store: DocumentStoreDep,
):
    """Appointments in a window (next 7 days by default), earliest first."""
    AuthService.require_self_or_role(caller, doctor_id, CALENDAR_VIEWERS)
    await _get_doctor(store, doctor_id)

    page, limit = validate_pagination(query.page, query.limit)
    start, end = schedule_window(query.period, query.start_date, query.end_date)
    filters = [
        where("doctorId", "==", doctor_id),
        where("scheduledAt", ">=", start),
        where("scheduledAt", "<=", end),
    ]
    if query.status and query.status != "all":
        filters.append(where("status", "==", query.status))
    if query.patient_id:
        filters.append(where("patientId", "==", query.patient_id))

    total = await store.count(APPOINTMENTS, filters)
    appointments = await store.query(
        APPOINTMENTS, filters, [("scheduledAt", ASC)], page_offset(page, limit), limit
    )

    users = await fetch_users(store, appointments, "patientId")
    profiles = await store.get_many(PATIENTS, collect_ids(appointments, "patientId"))
    items = []
    for appointment in appointments:
        patient_id = appointment.get("patientId")
        patient = user_summary(users.get(patient_id), "phoneNumber")
        if patient is not None:
            profile = profiles.get(patient_id, {})
            for field in ("dateOfBirth", "gender", "bloodType"):
                patient[field] = profile.get(field)
        items.append({**appointment, "patient": patient})

    return ok(
        {"appointments": items, "stats": calendar_summary(items, total)},
        create_pagination_meta(page, limit, total),
    )


@router.get(
    "/{doctor_id}/stats", response_model=ApiResponse[dict], responses=error_responses(403), summary="Doctor statistics"
)
async def fetch_doctor_stats(
    doctor_id: str,
    query: Annotated[DoctorStatsQuery, Query()],
    caller: CurrentUser,
    store: DocumentStoreDep,
):
    AuthService.require_self_or_role(caller, doctor_id, CALENDAR_VIEWERS)
    doctor = await _get_doctor(store, doctor_id)
    start, end = stats_window(query.period, query.start_date, query.end_date)

    appointments = await store.query(
        APPOINTMENTS,
        [
            where("doctorId", "==", doctor_id),
            where("scheduledAt", ">=", start),
            where("scheduledAt", "<=", end),
        ],
    )
    patient_ids = collect_ids(appointments, "patientId")
    earlier = []
    if patient_ids:
        earlier = await store.query(
            APPOINTMENTS,
            [
                where("doctorId", "==", doctor_id),
                where("patientId", "in", patient_ids),
                where("scheduledAt", "<", start),
            ],
        )

    stats = compute_doctor_stats(
        appointments,
        {appointment["patientId"] for appointment in earlier},
        doctor.get("consultationFee") or 0,
        query.period,
        start,
        end,
    )
    return ok(stats)


@router.get("/{doctor_id}/verification", response_model=ApiResponse[dict], summary="Verification status")
async def fetch_doctor_verification(doctor_id: str, caller: CurrentUser, store: DocumentStoreDep):
    doctor = await _get_doctor(store, doctor_id)
    history = await store.query(
        VERIFICATION_LOGS, [where("doctorId", "==", doctor_id)], [("timestamp", DESC)]
    )
    return ok(
        {
            "doctorId": doctor_id,
            "currentStatus": {
                "isVerified": doctor.get("isVerified", False),
                "verificationStatus": doctor.get("verificationStatus"),
                "verificationDate": doctor.get("verificationDate"),
                "verificationNotes": doctor.get("verificationNotes"),
                "verifiedBy": doctor.get("verifiedBy"),
                "verifierName": doctor.get("verifierName"),
                "verificationDocuments": doctor.get("verificationDocuments") or [],
            },
            "history": history,
        }
    )


@router.put(
    "/{doctor_id}/verification",
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Verify or unverify a doctor",
)
async def update_doctor_verification(
    doctor_id: str, body: VerificationRequest, caller: AdminUser, store: DocumentStoreDep
):
    """Admin decision; the verifier is always the caller and every decision is logged."""
    doctor = await _get_doctor(store, doctor_id)
    verifier = await store.get(USERS, caller.uid)
    verifier_name = (
        f"{verifier.get('firstName', '')} {verifier.get('lastName', '')}".strip() if verifier else caller.email
    )
    now = get_current_timestamp()
    verification_status = "verified" if body.is_verified else "rejected"

    await store.update(
        DOCTORS,
        doctor_id,
        {
            "isVerified": body.is_verified,
            "verificationStatus": verification_status,
            "verificationDate": now,
            "verificationNotes": body.verification_notes,
            "verifiedBy": caller.uid,
            "verifierName": verifier_name,
            "verificationDocuments": body.verification_documents or [],
        },
    )
    await store.add(
        VERIFICATION_LOGS,
        {
            "doctorId": doctor_id,
            "action": "verified" if body.is_verified else "unverified",
            "previousStatus": doctor.get("isVerified", False),
            "newStatus": body.is_verified,
            "notes": body.verification_notes,
            "verifiedBy": caller.uid,
            "verifierName": verifier_name,
            "timestamp": now,
        },
    )
    logger.info(f"Doctor {doctor_id} {verification_status} by {caller.uid}")
    return ok(
        {
            "doctorId": doctor_id,
            "isVerified": body.is_verified,
            "verificationStatus": verification_status,
            "verificationDate": now,
            "verifiedBy": caller.uid,
            "verifierName": verifier_name,
        }
    )


@router.get("/{doctor_id}/reviews", response_model=ApiResponse[dict], summary="Doctor reviews")
async def fetch_doctor_reviews(
    doctor_id: str, query: Annotated[ReviewsQuery, Query()], store: DocumentStoreDep
):
    """Paged reviews with rating stats; also refreshes the doctor's stored rating."""
    await _get_doctor(store, doctor_id)
    page, limit = validate_pagination(query.page, query.limit)

    filters = [where("doctorId", "==", doctor_id)]
    if query.rating is not None and 1 <= query.rating <= 5:
        filters.append(where("rating", "==", query.rating))

    total = await store.count(REVIEWS, filters)
    reviews = await store.query(
        REVIEWS, filters, REVIEW_ORDERING[query.sort_by], page_offset(page, limit), limit
    )
    users = await fetch_users(store, reviews, "patientId")
    items = []
    for review in reviews:
        reviewer = user_summary(users.get(review.get("patientId")))
        if reviewer is not None:
            # Reviews are public
            reviewer.pop("email", None)
        items.append({**review, "patient": reviewer})

    stats = await refresh_doctor_rating(store, doctor_id)
    return ok({"reviews": items, "stats": stats}, create_pagination_meta(page, limit, total))


@router.post(
    "/{doctor_id}/reviews",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(403, 409),
    summary="Review a completed appointment",
)
async def create_doctor_review(
    doctor_id: str, body: CreateReviewRequest, caller: CurrentUser, store: DocumentStoreDep
):
    """One review per appointment; the review id is the appointment id."""
    AuthService.require_self_or_role(caller, body.patient_id)
    await _get_doctor(store, doctor_id)

    appointment = await store.get(APPOINTMENTS, body.appointment_id)
    if appointment is None or appointment.get("doctorId") != doctor_id:
        raise AppointmentNotFoundError(body.appointment_id)
    if appointment.get("patientId") != body.patient_id:
        raise BadRequestError("APPOINTMENT_MISMATCH", "Appointment does not belong to this patient")
    if appointment.get("status") != "completed":
        raise BadRequestError("APPOINTMENT_NOT_COMPLETED", "Only completed appointments can be reviewed")

    data = body.to_document()
    data["doctorId"] = doctor_id
    try:
        review = await store.create(REVIEWS, body.appointment_id, data)
    except DocumentExistsError:
        raise ConflictError("REVIEW_EXISTS", "This appointment has already been reviewed")

    await refresh_doctor_rating(store, doctor_id)
    return created(review)
