"""
Prescription status and verification rules.

Status is never persisted as "expired": it is derived at read time from the
stored status and ``validUntil``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from ...core.utils.datetime_utils import days_until, ensure_utc, epoch_millis, get_current_timestamp
from ...domain.enums import PrescriptionStatus

PRESCRIPTIONS = "prescriptions"
DISPENSING_RECORDS = "dispensing_records"
PRESCRIPTION_VERIFICATIONS = "prescription_verifications"

DISPENSING_HISTORY_LIMIT = 5


def prescription_number(now: Optional[datetime] = None) -> str:
    return f"RX-{epoch_millis(now)}"


def digital_signature(doctor_id: str, number: str) -> str:
    """Signature bound to the issuing doctor and the prescription number's timestamp."""
    return f"DR_{doctor_id}_{number.split('-', 1)[-1]}"


def is_expired(prescription: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    valid_until = prescription.get("validUntil")
    if valid_until is None:
        return False
    return ensure_utc(valid_until) < (now or get_current_timestamp())


def current_status(prescription: Dict[str, Any], now: Optional[datetime] = None) -> str:
    if prescription.get("status") == PrescriptionStatus.CANCELLED.value:
        return PrescriptionStatus.CANCELLED.value
    if is_expired(prescription, now):
        return PrescriptionStatus.EXPIRED.value
    return PrescriptionStatus.ACTIVE.value


def with_status(prescription: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Copy of the prescription carrying its derived status and expiry fields."""
    now = now or get_current_timestamp()
    item = dict(prescription)
    item["status"] = current_status(prescription, now)
    item["isExpired"] = is_expired(prescription, now)
    valid_until = prescription.get("validUntil")
    item["daysUntilExpiry"] = days_until(valid_until, now) if valid_until is not None else None
    return item


def verify(
    prescription: Dict[str, Any],
    doctor_profile: Optional[Dict[str, Any]],
    dispensing_count: int,
    check_signature: bool = True,
) -> Dict[str, Any]:
    """Pharmacy-facing verdict for a prescription.

    Returns ``verificationStatus`` (valid, invalid or warning), whether the
    signature matched and the list of warnings that led there.
    """
    warnings: List[str] = []
    verification_status = "valid"
    status = current_status(prescription)

    if status == PrescriptionStatus.CANCELLED.value:
        verification_status = "invalid"
        warnings.append("Prescription has been cancelled")
    elif status == PrescriptionStatus.EXPIRED.value:
        verification_status = "invalid"
        warnings.append("Prescription has expired")

    signature_valid = True
    if check_signature:
        expected = digital_signature(prescription.get("doctorId", ""), prescription.get("prescriptionNumber", ""))
        signature_valid = prescription.get("digitalSignature") == expected
        if not signature_valid:
            verification_status = "invalid"
            warnings.append("Digital signature is invalid")

    if dispensing_count:
        warnings.append(f"Prescription already dispensed {dispensing_count} time(s)")

    if doctor_profile is not None and not doctor_profile.get("isVerified"):
        # An unverified prescriber downgrades a valid result but never upgrades an invalid one
        if verification_status == "valid":
            verification_status = "warning"
        warnings.append("Prescribing doctor is not verified")

    return {
        "status": status,
        "verificationStatus": verification_status,
        "digitalSignatureValid": signature_valid,
        "warnings": warnings,
    }
