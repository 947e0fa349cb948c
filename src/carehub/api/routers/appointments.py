"""
Appointment booking, listing, rescheduling and cancellation.
"""

import logging
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Query, status

from ...application.ports.document_store import DESC, where
from ...application.services.enrichment import attach_users
from ...application.services.pagination import create_pagination_meta, page_offset, validate_pagination
from ...application.services.scheduling import DEFAULT_DURATION_MINUTES, AppointmentScheduler
from ...core.auth import AuthContext, AuthService
from ...core.utils.datetime_utils import ensure_utc, get_current_timestamp
from ..deps import CurrentUser, DocumentStoreDep
from ..errors import AppointmentNotFoundError, BadRequestError, ForbiddenError
from ..schemas.appointments import AppointmentListQuery, CreateAppointmentRequest, UpdateAppointmentRequest
from ..schemas.common import ApiResponse, error_responses
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["appointments"])

APPOINTMENTS = "appointments"
USERS = "users"

STAFF_ROLES = ("admin", "staff")
PARTICIPANT_LINKS = {"doctorId": "doctor", "patientId": "patient"}


async def _get_appointment(store, appointment_id: str) -> Dict[str, Any]:
    appointment = await store.get(APPOINTMENTS, appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError(appointment_id)
    return appointment


def _ensure_participant(caller: AuthContext, appointment: Dict[str, Any]) -> None:
    if caller.has_role(*STAFF_ROLES):
        return
    if caller.uid in (appointment.get("doctorId"), appointment.get("patientId"), appointment.get("createdBy")):
        return
    raise ForbiddenError("Access denied")


@router.get("", response_model=ApiResponse[list], summary="List appointments")
async def fetch_appointments(
    query: Annotated[AppointmentListQuery, Query()], caller: CurrentUser, store: DocumentStoreDep
):
    """
    Appointments newest first, joined with doctor and patient summaries.

    Doctors and patients only ever see their own appointments.
    """
    page, limit = validate_pagination(query.page, query.limit)

    filters = []
    if caller.role == "doctor":
        filters.append(where("doctorId", "==", caller.uid))
    elif caller.role == "patient":
        filters.append(where("patientId", "==", caller.uid))
    if query.status:
        filters.append(where("status", "==", query.status))
    if query.doctor_id:
        filters.append(where("doctorId", "==", query.doctor_id))
    if query.patient_id:
        filters.append(where("patientId", "==", query.patient_id))
    if query.start_date:
        filters.append(where("scheduledAt", ">=", query.start_date))
    if query.end_date:
        filters.append(where("scheduledAt", "<=", query.end_date))

    total = await store.count(APPOINTMENTS, filters)
    appointments = await store.query(
        APPOINTMENTS, filters, [("scheduledAt", DESC)], page_offset(page, limit), limit
    )
    items = await attach_users(store, appointments, PARTICIPANT_LINKS)
    return ok(items, create_pagination_meta(page, limit, total))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(403, 409),
    summary="Book an appointment",
)
async def create_appointment(body: CreateAppointmentRequest, caller: CurrentUser, store: DocumentStoreDep):
    """Book after checking both participants' roles; 409 TIME_CONFLICT when the doctor is busy."""
    AuthService.require_self_or_role(caller, body.patient_id, STAFF_ROLES + ("doctor",))

    participants = await store.get_many(USERS, [body.doctor_id, body.patient_id])
    if participants.get(body.doctor_id, {}).get("role") != "doctor":
        raise BadRequestError("INVALID_DOCTOR", "Doctor not found or user is not a doctor")
    if participants.get(body.patient_id, {}).get("role") != "patient":
        raise BadRequestError("INVALID_PATIENT", "Patient not found or user is not a patient")

    data = body.to_document()
    data.update({"status": "scheduled", "createdBy": caller.uid})
    appointment = await AppointmentScheduler(store).book(data)

    logger.info(
        f"Appointment {appointment['id']} booked with doctor={body.doctor_id} at {body.scheduled_at.isoformat()}"
    )
    return created(appointment)


@router.get("/{appointment_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Get an appointment")
async def fetch_appointment(appointment_id: str, caller: CurrentUser, store: DocumentStoreDep):
    appointment = await _get_appointment(store, appointment_id)
    _ensure_participant(caller, appointment)
    [item] = await attach_users(store, [appointment], PARTICIPANT_LINKS)
    return ok(item)


@router.put(
    "/{appointment_id}",
    response_model=ApiResponse[dict],
    responses=error_responses(403, 409),
    summary="Update an appointment",
)
async def update_appointment(
    appointment_id: str, body: UpdateAppointmentRequest, caller: CurrentUser, store: DocumentStoreDep
):
    """
    Apply the allowed changes. Moving the time window re-checks the doctor's
    calendar (ignoring this appointment) and moves its slot claims.
    """
    appointment = await _get_appointment(store, appointment_id)
    _ensure_participant(caller, appointment)
    scheduler = AppointmentScheduler(store)

    changes = body.to_changes()
    old_duration = appointment.get("duration") or DEFAULT_DURATION_MINUTES
    new_start = body.scheduled_at or appointment["scheduledAt"]
    new_duration = body.duration or old_duration
    time_changed = (
        ensure_utc(new_start) != ensure_utc(appointment["scheduledAt"]) or new_duration != old_duration
    )
    was_cancelled = appointment.get("status") == "cancelled"
    new_status = changes.get("status", appointment.get("status"))

    if new_status == "cancelled":
        if not was_cancelled:
            await scheduler.cancel(appointment)
            changes.update({"cancelledBy": caller.uid, "cancelledAt": get_current_timestamp()})
    elif was_cancelled:
        # Reactivation needs the window to be free again
        await scheduler.ensure_available(appointment["doctorId"], new_start, new_duration, exclude_id=appointment_id)
        await scheduler.claim_slots(appointment["doctorId"], new_start, new_duration, appointment_id)
    elif time_changed:
        await scheduler.reschedule(appointment, new_start, new_duration)

    changes["updatedBy"] = caller.uid
    updated = await store.update(APPOINTMENTS, appointment_id, changes)
    if updated is None:
        raise AppointmentNotFoundError(appointment_id)
    return ok(updated)


@router.delete(
    "/{appointment_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Cancel an appointment"
)
async def cancel_appointment(appointment_id: str, caller: CurrentUser, store: DocumentStoreDep):
    """Soft cancel. Cancelling an already cancelled appointment returns it unchanged."""
    appointment = await _get_appointment(store, appointment_id)
    _ensure_participant(caller, appointment)

    if appointment.get("status") == "cancelled":
        return ok(appointment)

    await AppointmentScheduler(store).cancel(appointment)
    cancelled = await store.update(
        APPOINTMENTS,
        appointment_id,
        {"status": "cancelled", "cancelledBy": caller.uid, "cancelledAt": get_current_timestamp()},
    )
    logger.info(f"Appointment {appointment_id} cancelled by {caller.uid}")
    return ok(cancelled)
