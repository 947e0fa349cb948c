"""
Patient profiles and the patient's appointment history.
"""

import logging
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Query, status

from ...application.ports.document_store import DESC, where
from ...application.services.enrichment import (
    attach_users,
    fetch_users,
    merge_profile_with_user,
    user_summary,
)
from ...application.services.pagination import (
    create_pagination_meta,
    page_offset,
    slice_page,
    validate_pagination,
)
from ...core.auth import AuthService
from ...core.exceptions import DocumentExistsError
from ...core.utils.datetime_utils import ensure_utc, get_current_timestamp
from ..deps import CurrentUser, DocumentStoreDep
from ..errors import (
    BadRequestError,
    CompanyNotFoundError,
    ConflictError,
    PatientNotFoundError,
    UserNotFoundError,
)
from ..schemas.common import ApiResponse, error_responses
from ..schemas.patients import (
    CreatePatientRequest,
    PatientAppointmentsQuery,
    PatientListQuery,
    UpdatePatientRequest,
)
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients", tags=["patients"])

PATIENTS = "patients"
USERS = "users"
DOCTORS = "doctors"
COMPANIES = "companies"
APPOINTMENTS = "appointments"

CARE_TEAM_ROLES = ("admin", "doctor", "staff")
UPCOMING_STATUSES = ("scheduled", "confirmed")


async def _get_patient(store, patient_id: str) -> Dict[str, Any]:
    patient = await store.get(PATIENTS, patient_id)
    if patient is None:
        raise PatientNotFoundError(patient_id)
    return patient


def _matches_search(patient: Dict[str, Any], term: str) -> bool:
    user = patient.get("user") or {}
    haystack = " ".join(str(user.get(field) or "") for field in ("firstName", "lastName", "email"))
    return term.strip().lower() in haystack.lower()


def _appointment_overview(appointments: List[Dict[str, Any]]) -> Dict[str, Any]:
    now = get_current_timestamp()
    upcoming = sorted(
        (
            a
            for a in appointments
            if a.get("status") in UPCOMING_STATUSES and ensure_utc(a["scheduledAt"]) > now
        ),
        key=lambda a: ensure_utc(a["scheduledAt"]),
    )
    past = sorted(
        (a for a in appointments if ensure_utc(a["scheduledAt"]) <= now),
        key=lambda a: ensure_utc(a["scheduledAt"]),
        reverse=True,
    )
    return {
        "appointmentStats": {
            "total": len(appointments),
            "completed": sum(1 for a in appointments if a.get("status") == "completed"),
            "cancelled": sum(1 for a in appointments if a.get("status") == "cancelled"),
            "upcoming": len(upcoming),
        },
        "nextAppointment": upcoming[0] if upcoming else None,
        "lastAppointment": past[0] if past else None,
    }


@router.get("", response_model=ApiResponse[list], responses=error_responses(403), summary="List patients")
async def fetch_patients(
    query: Annotated[PatientListQuery, Query()], caller: CurrentUser, store: DocumentStoreDep
):
    """
    Patients visible to the care team, newest first.

    ``hasInsurance`` and ``search`` are evaluated after the user join and page
    the result in memory.
    """
    AuthService.require_role(caller, CARE_TEAM_ROLES)
    page, limit = validate_pagination(query.page, query.limit)

    filters = []
    if query.gender:
        filters.append(where("gender", "==", query.gender))
    if query.blood_type:
        filters.append(where("bloodType", "==", query.blood_type))
    if query.is_active is not None:
        filters.append(where("isActive", "==", query.is_active))
    order_by = [("createdAt", DESC)]

    if query.search or query.has_insurance is not None:
        patients = await attach_users(store, await store.query(PATIENTS, filters, order_by), {"id": "user"})
        if query.has_insurance is not None:
            patients = [p for p in patients if bool(p.get("insuranceInfo")) == query.has_insurance]
        if query.search:
            patients = [p for p in patients if _matches_search(p, query.search)]
        total = len(patients)
        patients = slice_page(patients, page, limit)
    else:
        total = await store.count(PATIENTS, filters)
        page_docs = await store.query(PATIENTS, filters, order_by, page_offset(page, limit), limit)
        patients = await attach_users(store, page_docs, {"id": "user"})

    return ok(patients, create_pagination_meta(page, limit, total))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(403, 409),
    summary="Create a patient profile",
)
async def create_patient(body: CreatePatientRequest, caller: CurrentUser, store: DocumentStoreDep):
    AuthService.require_self_or_role(caller, body.uid, ("admin", "staff"))

    user = await store.get(USERS, body.uid)
    if user is None:
        raise UserNotFoundError(body.uid)
    if user.get("role") != "patient":
        raise BadRequestError("INVALID_ROLE", "User does not have the patient role")

    existing = await store.get(PATIENTS, body.uid)
    if existing is not None and existing.get("isProfileComplete", True):
        raise ConflictError("PATIENT_PROFILE_EXISTS", "Patient profile already exists")
    if body.company_id and await store.get(COMPANIES, body.company_id) is None:
        raise CompanyNotFoundError(body.company_id)

    data = body.to_document()
    data.pop("uid")
    data.setdefault("allergies", [])
    data.setdefault("chronicConditions", [])
    data.setdefault("medications", [])
    data.update({"userId": body.uid, "isActive": True, "isProfileComplete": True})

    if existing is None:
        try:
            patient = await store.create(PATIENTS, body.uid, data)
        except DocumentExistsError:
            raise ConflictError("PATIENT_PROFILE_EXISTS", "Patient profile already exists")
    else:
        data["createdAt"] = existing.get("createdAt")
        patient = await store.set(PATIENTS, body.uid, data)

    logger.info(f"Patient profile created for uid={body.uid}")
    return created(patient)


@router.get("/{patient_id}", response_model=ApiResponse[dict], summary="Get a patient")
async def fetch_patient(patient_id: str, caller: CurrentUser, store: DocumentStoreDep):
    """Profile flattened with its user, plus appointment counters and the next and last visits."""
    AuthService.require_self_or_role(caller, patient_id, CARE_TEAM_ROLES)
    patient = await _get_patient(store, patient_id)
    user = await store.get(USERS, patient_id)
    if user is None:
        raise UserNotFoundError(patient_id)

    appointments = await store.query(APPOINTMENTS, [where("patientId", "==", patient_id)])
    merged = merge_profile_with_user(patient, user)
    merged["isActive"] = user.get("isActive", patient.get("isActive"))
    return ok({**merged, **_appointment_overview(appointments)})


@router.put("/{patient_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Update a patient")
async def update_patient(
    patient_id: str, body: UpdatePatientRequest, caller: CurrentUser, store: DocumentStoreDep
):
    AuthService.require_self_or_role(caller, patient_id, ("admin", "staff"))
    await _get_patient(store, patient_id)
    if body.company_id and await store.get(COMPANIES, body.company_id) is None:
        raise CompanyNotFoundError(body.company_id)

    patient = await store.update(PATIENTS, patient_id, body.to_changes())
    if patient is None:
        raise PatientNotFoundError(patient_id)
    user = await store.get(USERS, patient_id)
    return ok(merge_profile_with_user(patient, user))


@router.delete(
    "/{patient_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Deactivate a patient"
)
async def delete_patient(patient_id: str, caller: CurrentUser, store: DocumentStoreDep):
    """Soft delete; the owning user is deactivated too. Repeating it keeps the first ``deletedAt``."""
    AuthService.require_self_or_role(caller, patient_id)
    patient = await _get_patient(store, patient_id)

    deleted_at: Optional[Any] = patient.get("deletedAt")
    if patient.get("isActive", True) or deleted_at is None:
        deleted_at = get_current_timestamp()
        await store.update(PATIENTS, patient_id, {"isActive": False, "deletedAt": deleted_at})
        await store.update(USERS, patient_id, {"isActive": False})
        logger.info(f"Patient {patient_id} deactivated by {caller.uid}")

    return ok({"id": patient_id, "deleted": True, "deletedAt": deleted_at})


@router.get(
    "/{patient_id}/appointments",
    response_model=ApiResponse[list],
    responses=error_responses(403),
    summary="Patient appointment history",
)
async def fetch_patient_appointments(
    patient_id: str,
    query: Annotated[PatientAppointmentsQuery, Query()],
    caller: CurrentUser,
    store: DocumentStoreDep,
):
    AuthService.require_self_or_role(caller, patient_id, CARE_TEAM_ROLES)
    await _get_patient(store, patient_id)
    page, limit = validate_pagination(query.page, query.limit)

    filters = [where("patientId", "==", patient_id)]
    if query.status != "all":
        filters.append(where("status", "==", query.status))

    total = await store.count(APPOINTMENTS, filters)
    appointments = await store.query(
        APPOINTMENTS, filters, [("scheduledAt", DESC)], page_offset(page, limit), limit
    )
    users = await fetch_users(store, appointments, "doctorId")
    doctors = await store.get_many(DOCTORS, [a["doctorId"] for a in appointments if a.get("doctorId")])

    items = []
    for appointment in appointments:
        doctor_id = appointment.get("doctorId")
        doctor = user_summary(users.get(doctor_id))
        if doctor is not None:
            doctor["specialties"] = doctors.get(doctor_id, {}).get("specialties", [])
        items.append({**appointment, "doctor": doctor})

    return ok(items, create_pagination_meta(page, limit, total))
