"""
Prescriptions, plus the pharmacy-facing verification and dispensing endpoints.
"""

import logging
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Query, status

from ...application.ports.document_store import DESC, where
from ...application.services.enrichment import attach_users, collect_ids, user_summary
from ...application.services.pagination import (
    create_pagination_meta,
    page_offset,
    slice_page,
    validate_pagination,
)
from ...application.services.prescriptions import (
    DISPENSING_HISTORY_LIMIT,
    DISPENSING_RECORDS,
    PRESCRIPTION_VERIFICATIONS,
    PRESCRIPTIONS,
    current_status,
    digital_signature,
    prescription_number,
    verify,
    with_status,
)
from ...core.auth import AuthContext
from ...core.utils.datetime_utils import get_current_timestamp
from ..deps import ClinicianUser, CurrentUser, DocumentStoreDep, OptionalUser
from ..errors import (
    BadRequestError,
    DoctorNotFoundError,
    ForbiddenError,
    PatientNotFoundError,
    PrescriptionNotFoundError,
)
from ..schemas.common import ApiResponse, error_responses
from ..schemas.prescriptions import (
    CreatePrescriptionRequest,
    DispensePrescriptionRequest,
    PrescriptionListQuery,
    UpdatePrescriptionRequest,
    VerifyPrescriptionQuery,
)
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])

USERS = "users"
DOCTORS = "doctors"
PATIENTS = "patients"


async def _get_prescription(store, prescription_id: str) -> Dict[str, Any]:
    prescription = await store.get(PRESCRIPTIONS, prescription_id)
    if prescription is None:
        raise PrescriptionNotFoundError(prescription_id)
    return prescription


async def _find_by_number(store, number: str) -> Dict[str, Any]:
    matches = await store.query(PRESCRIPTIONS, [where("prescriptionNumber", "==", number)], limit=1)
    if not matches:
        raise PrescriptionNotFoundError(number)
    return matches[0]


def _ensure_can_read(caller: AuthContext, prescription: Dict[str, Any]) -> None:
    if caller.role == "patient" and prescription.get("patientId") != caller.uid:
        raise ForbiddenError("Access denied")


def _ensure_can_modify(caller: AuthContext, prescription: Dict[str, Any]) -> None:
    if caller.role != "admin" and prescription.get("doctorId") != caller.uid:
        raise ForbiddenError("Only the prescribing doctor can modify this prescription")


def _prescriber_summary(user, profile) -> Dict[str, Any]:
    summary = user_summary(user)
    if summary is not None:
        profile = profile or {}
        summary["licenseNumber"] = profile.get("licenseNumber")
        summary["isVerified"] = profile.get("isVerified", False)
        summary["specialties"] = profile.get("specialties", [])
    return summary


def _mentions_medication(prescription: Dict[str, Any], term: str) -> bool:
    term = term.strip().lower()
    return any(term in (med.get("name") or "").lower() for med in prescription.get("medications") or [])


@router.get("", response_model=ApiResponse[list], summary="List prescriptions")
async def fetch_prescriptions(
    query: Annotated[PrescriptionListQuery, Query()], caller: CurrentUser, store: DocumentStoreDep
):
    """
    Prescriptions newest first, each carrying its derived status.

    Patients only see their own prescriptions. ``medication`` is a
    case-insensitive substring over medication names, applied in memory.
    """
    page, limit = validate_pagination(query.page, query.limit)
    now = get_current_timestamp()

    filters = []
    if caller.role == "patient":
        filters.append(where("patientId", "==", caller.uid))
    if query.patient_id:
        filters.append(where("patientId", "==", query.patient_id))
    if query.doctor_id:
        filters.append(where("doctorId", "==", query.doctor_id))
    if query.start_date:
        filters.append(where("createdAt", ">=", query.start_date))
    if query.end_date:
        filters.append(where("createdAt", "<=", query.end_date))
    if query.status == "cancelled":
        filters.append(where("status", "==", "cancelled"))
    elif query.status == "active":
        filters += [where("status", "!=", "cancelled"), where("validUntil", ">=", now)]
    elif query.status == "expired":
        filters += [where("status", "!=", "cancelled"), where("validUntil", "<", now)]
    order_by = [("createdAt", DESC)]

    if query.medication:
        prescriptions = [
            p for p in await store.query(PRESCRIPTIONS, filters, order_by) if _mentions_medication(p, query.medication)
        ]
        total = len(prescriptions)
        prescriptions = slice_page(prescriptions, page, limit)
    else:
        total = await store.count(PRESCRIPTIONS, filters)
        prescriptions = await store.query(PRESCRIPTIONS, filters, order_by, page_offset(page, limit), limit)

    items = await attach_users(store, prescriptions, {"doctorId": "doctor", "patientId": "patient"})
    return ok([with_status(item, now) for item in items], create_pagination_meta(page, limit, total))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Issue a prescription",
)
async def create_prescription(body: CreatePrescriptionRequest, caller: ClinicianUser, store: DocumentStoreDep):
    """Issue a prescription with its number and digital signature."""
    if caller.role == "doctor" and body.doctor_id != caller.uid:
        raise ForbiddenError("Doctors can only issue prescriptions in their own name")
    if await store.get(DOCTORS, body.doctor_id) is None:
        raise DoctorNotFoundError(body.doctor_id)
    if await store.get(PATIENTS, body.patient_id) is None:
        raise PatientNotFoundError(body.patient_id)

    number = prescription_number()
    data = body.to_document()
    data.update(
        {
            "prescriptionNumber": number,
            "digitalSignature": digital_signature(body.doctor_id, number),
            "status": "active",
            "createdBy": caller.uid,
        }
    )
    prescription = await store.add(PRESCRIPTIONS, data)
    logger.info(f"Prescription {number} issued by doctor={body.doctor_id} for patient={body.patient_id}")
    return created(with_status(prescription))


# Declared before /{prescription_id} so "verify" is not captured as an id
@router.get(
    "/verify", response_model=ApiResponse[dict], responses=error_responses(403), summary="Verify a prescription"
)
async def verify_prescription(
    query: Annotated[VerifyPrescriptionQuery, Query()], store: DocumentStoreDep, caller: OptionalUser
):
    """
    Pharmacy check by prescription number. Every call is recorded in
    ``prescription_verifications``, with the caller's uid when a valid token
    was sent.
    """
    prescription = await _find_by_number(store, query.prescription_number)
    if query.patient_id and prescription.get("patientId") != query.patient_id:
        raise ForbiddenError(
            "Prescription does not belong to the specified patient", code="PRESCRIPTION_MISMATCH"
        )

    history = await store.query(
        DISPENSING_RECORDS,
        [where("prescriptionId", "==", prescription["id"])],
        [("dispensedAt", DESC)],
    )
    users = await store.get_many(USERS, collect_ids([prescription], "doctorId", "patientId"))
    doctor_profile = await store.get(DOCTORS, prescription["doctorId"]) if prescription.get("doctorId") else None
    verdict = verify(prescription, doctor_profile, len(history), query.check_digital_signature)

    now = get_current_timestamp()
    derived = with_status(prescription, now)
    result = {
        "prescriptionId": prescription["id"],
        "prescriptionNumber": prescription["prescriptionNumber"],
        **verdict,
        "isExpired": derived["isExpired"],
        "isCancelled": prescription.get("status") == "cancelled",
        "daysUntilExpiry": derived["daysUntilExpiry"],
        "medications": prescription.get("medications", []),
        "diagnosis": prescription.get("diagnosis"),
        "createdAt": prescription.get("createdAt"),
        "validUntil": prescription.get("validUntil"),
        "doctor": _prescriber_summary(users.get(prescription.get("doctorId")), doctor_profile),
        "patient": user_summary(users.get(prescription.get("patientId"))),
        "dispensingHistory": history[:DISPENSING_HISTORY_LIMIT],
        "verifiedAt": now,
        "verifiedBy": {"pharmacyId": query.pharmacy_id} if query.pharmacy_id else None,
    }

    await store.add(
        PRESCRIPTION_VERIFICATIONS,
        {
            "prescriptionId": prescription["id"],
            "prescriptionNumber": prescription["prescriptionNumber"],
            "verificationStatus": verdict["verificationStatus"],
            "verifiedAt": now,
            "verifiedBy": query.pharmacy_id or "unknown",
            "requestedBy": caller.uid if caller else None,
            "warnings": verdict["warnings"],
        },
    )
    return ok(result)


@router.post(
    "/verify", response_model=ApiResponse[dict], responses=error_responses(403), summary="Dispense a prescription"
)
async def dispense_prescription(body: DispensePrescriptionRequest, caller: CurrentUser, store: DocumentStoreDep):
    """Record that a pharmacy dispensed the prescription. Cancelled or expired ones are refused."""
    prescription = await _find_by_number(store, body.prescription_number)
    if body.patient_id and prescription.get("patientId") != body.patient_id:
        raise ForbiddenError(
            "Prescription does not belong to the specified patient", code="PRESCRIPTION_MISMATCH"
        )
    prescription_status = current_status(prescription)
    if prescription_status != "active":
        raise BadRequestError(
            "PRESCRIPTION_NOT_DISPENSABLE",
            f"Prescription is {prescription_status}",
            {"status": prescription_status},
        )

    record = await store.add(
        DISPENSING_RECORDS,
        {
            "prescriptionId": prescription["id"],
            "prescriptionNumber": body.prescription_number,
            "pharmacyId": body.pharmacy_id,
            "notes": body.notes,
            "dispensedAt": get_current_timestamp(),
            "dispensedBy": caller.uid,
        },
    )
    logger.info(f"Prescription {body.prescription_number} dispensed by pharmacy={body.pharmacy_id}")
    return ok(
        {
            "prescriptionId": prescription["id"],
            "dispensingRecordId": record["id"],
            "dispensedAt": record["dispensedAt"],
        }
    )


@router.get(
    "/{prescription_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Get a prescription"
)
async def fetch_prescription(prescription_id: str, caller: CurrentUser, store: DocumentStoreDep):
    prescription = await _get_prescription(store, prescription_id)
    _ensure_can_read(caller, prescription)

    users = await store.get_many(USERS, collect_ids([prescription], "doctorId", "patientId"))
    doctor_profile = await store.get(DOCTORS, prescription["doctorId"]) if prescription.get("doctorId") else None
    item = with_status(prescription)
    item["doctor"] = _prescriber_summary(users.get(prescription.get("doctorId")), doctor_profile)
    item["patient"] = user_summary(users.get(prescription.get("patientId")))
    return ok(item)


@router.put(
    "/{prescription_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Update a prescription"
)
async def update_prescription(
    prescription_id: str, body: UpdatePrescriptionRequest, caller: CurrentUser, store: DocumentStoreDep
):
    prescription = await _get_prescription(store, prescription_id)
    _ensure_can_modify(caller, prescription)

    changes = body.to_changes()
    if changes.get("status") == "cancelled" and prescription.get("status") != "cancelled":
        changes.update({"cancelledBy": caller.uid, "cancelledAt": get_current_timestamp()})
    changes["updatedBy"] = caller.uid
    updated = await store.update(PRESCRIPTIONS, prescription_id, changes)
    return ok(with_status(updated))


@router.delete(
    "/{prescription_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Cancel a prescription"
)
async def cancel_prescription(prescription_id: str, caller: CurrentUser, store: DocumentStoreDep):
    """Soft cancel; repeating it returns the prescription unchanged."""
    prescription = await _get_prescription(store, prescription_id)
    _ensure_can_modify(caller, prescription)

    if prescription.get("status") != "cancelled":
        prescription = await store.update(
            PRESCRIPTIONS,
            prescription_id,
            {"status": "cancelled", "cancelledBy": caller.uid, "cancelledAt": get_current_timestamp()},
        )
        logger.info(f"Prescription {prescription_id} cancelled by {caller.uid}")
    return ok(with_status(prescription))
