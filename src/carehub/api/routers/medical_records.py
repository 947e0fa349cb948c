"""
Clinical records written by doctors about their patients.
"""

import logging
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Query, status

from ...application.ports.document_store import DESC, where
from ...application.services.enrichment import attach_users
from ...application.services.pagination import (
    create_pagination_meta,
    page_offset,
    slice_page,
    validate_pagination,
)
from ...core.auth import AuthContext
from ...core.utils.datetime_utils import epoch_millis, get_current_timestamp
from ..deps import ClinicianUser, CurrentUser, DocumentStoreDep
from ..errors import DoctorNotFoundError, ForbiddenError, MedicalRecordNotFoundError, PatientNotFoundError
from ..schemas.common import ApiResponse, error_responses
from ..schemas.medical_records import (
    CreateMedicalRecordRequest,
    MedicalRecordListQuery,
    UpdateMedicalRecordRequest,
)
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/medical-records", tags=["medical-records"])

MEDICAL_RECORDS = "medical_records"
DOCTORS = "doctors"
PATIENTS = "patients"


async def _get_record(store, record_id: str, include_deleted: bool = False) -> Dict[str, Any]:
    record = await store.get(MEDICAL_RECORDS, record_id)
    if record is None or not (include_deleted or record.get("isActive", True)):
        raise MedicalRecordNotFoundError(record_id)
    return record


def _ensure_can_read(caller: AuthContext, record: Dict[str, Any]) -> None:
    if caller.role != "patient":
        return
    if record.get("patientId") != caller.uid or record.get("isConfidential"):
        raise ForbiddenError("Access denied")


def _ensure_can_modify(caller: AuthContext, record: Dict[str, Any]) -> None:
    if caller.role != "admin" and record.get("doctorId") != caller.uid:
        raise ForbiddenError("Only the authoring doctor can modify this record")


def _matches_search(record: Dict[str, Any], term: str) -> bool:
    term = term.strip().lower()
    return term in (record.get("title") or "").lower() or term in (record.get("description") or "").lower()


@router.get("", response_model=ApiResponse[list], summary="List medical records")
async def fetch_medical_records(
    query: Annotated[MedicalRecordListQuery, Query()], caller: CurrentUser, store: DocumentStoreDep
):
    """
    Active records, newest first. Patients only see their own records that
    are not marked confidential.
    """
    page, limit = validate_pagination(query.page, query.limit)

    filters = [where("isActive", "==", True)]
    if caller.role == "patient":
        filters += [where("patientId", "==", caller.uid), where("isConfidential", "==", False)]
    if query.patient_id:
        filters.append(where("patientId", "==", query.patient_id))
    if query.doctor_id:
        filters.append(where("doctorId", "==", query.doctor_id))
    if query.type:
        filters.append(where("type", "==", query.type))
    if query.start_date:
        filters.append(where("createdAt", ">=", query.start_date))
    if query.end_date:
        filters.append(where("createdAt", "<=", query.end_date))
    order_by = [("createdAt", DESC)]

    if query.search:
        records = [r for r in await store.query(MEDICAL_RECORDS, filters, order_by) if _matches_search(r, query.search)]
        total = len(records)
        records = slice_page(records, page, limit)
    else:
        total = await store.count(MEDICAL_RECORDS, filters)
        records = await store.query(MEDICAL_RECORDS, filters, order_by, page_offset(page, limit), limit)

    items = await attach_users(store, records, {"doctorId": "doctor", "patientId": "patient"})
    return ok(items, create_pagination_meta(page, limit, total))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Create a medical record",
)
async def create_medical_record(
    body: CreateMedicalRecordRequest, caller: ClinicianUser, store: DocumentStoreDep
):
    if caller.role == "doctor" and body.doctor_id != caller.uid:
        raise ForbiddenError("Doctors can only author records in their own name")
    if await store.get(PATIENTS, body.patient_id) is None:
        raise PatientNotFoundError(body.patient_id)
    if await store.get(DOCTORS, body.doctor_id) is None:
        raise DoctorNotFoundError(body.doctor_id)

    data = body.to_document()
    data.update(
        {
            "recordNumber": f"MR-{epoch_millis()}",
            "isActive": True,
            "createdBy": caller.uid,
        }
    )
    record = await store.add(MEDICAL_RECORDS, data)
    logger.info(f"Medical record {record['recordNumber']} created for patient={body.patient_id}")
    return created(record)


@router.get(
    "/{record_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Get a medical record"
)
async def fetch_medical_record(record_id: str, caller: CurrentUser, store: DocumentStoreDep):
    record = await _get_record(store, record_id)
    _ensure_can_read(caller, record)
    [item] = await attach_users(store, [record], {"doctorId": "doctor", "patientId": "patient"})
    return ok(item)


@router.put(
    "/{record_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Update a medical record"
)
async def update_medical_record(
    record_id: str, body: UpdateMedicalRecordRequest, caller: CurrentUser, store: DocumentStoreDep
):
    record = await _get_record(store, record_id)
    _ensure_can_modify(caller, record)

    changes = body.to_changes()
    changes["updatedBy"] = caller.uid
    return ok(await store.update(MEDICAL_RECORDS, record_id, changes))


@router.delete(
    "/{record_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Delete a medical record"
)
async def delete_medical_record(record_id: str, caller: CurrentUser, store: DocumentStoreDep):
    """
    Soft delete; the record disappears from every read afterwards. Repeating it
    keeps the first ``deletedAt``.
    """
    record = await _get_record(store, record_id, include_deleted=True)
    _ensure_can_modify(caller, record)

    deleted_at = record.get("deletedAt")
    if record.get("isActive", True) or deleted_at is None:
        deleted_at = get_current_timestamp()
        await store.update(
            MEDICAL_RECORDS, record_id, {"isActive": False, "deletedAt": deleted_at, "deletedBy": caller.uid}
        )
        logger.info(f"Medical record {record_id} deleted by {caller.uid}")
    return ok({"id": record_id, "deleted": True, "deletedAt": deleted_at})
