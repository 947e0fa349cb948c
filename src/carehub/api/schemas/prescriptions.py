"""
Pydantic schemas for prescriptions and pharmacy verification.
"""

from typing import List, Literal, Optional

from pydantic import Field, field_validator, validator

from ...core.utils.datetime_utils import get_current_timestamp
from .common import CamelModel, DateRangeQuery, UtcDateTime, parse_bool_param


class PrescribedMedication(CamelModel):
    name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    frequency: str = Field(..., min_length=1)
    duration: str = Field(..., min_length=1)
    instructions: Optional[str] = None


class CreatePrescriptionRequest(CamelModel):
    """Request schema for issuing a prescription."""

    patient_id: str = Field(..., min_length=1)
    doctor_id: str = Field(..., min_length=1)
    appointment_id: Optional[str] = None
    medications: List[PrescribedMedication] = Field(..., min_length=1)
    diagnosis: str = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=2000)
    valid_until: UtcDateTime

    @validator("valid_until")
    def validate_valid_until(cls, v):
        if v <= get_current_timestamp():
            raise ValueError("validUntil must be in the future")
        return v


class UpdatePrescriptionRequest(CamelModel):
    notes: Optional[str] = Field(None, max_length=2000)
    valid_until: Optional[UtcDateTime] = None
    status: Optional[Literal["active", "cancelled"]] = None


class PrescriptionListQuery(DateRangeQuery):
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None
    status: Literal["active", "expired", "cancelled", "all"] = "all"
    medication: Optional[str] = None


class VerifyPrescriptionQuery(CamelModel):
    prescription_number: str = Field(..., min_length=1)
    patient_id: Optional[str] = None
    pharmacy_id: Optional[str] = None
    check_digital_signature: bool = True

    @field_validator("check_digital_signature", mode="before")
    @classmethod
    def coerce_bool(cls, v):
        if v is None:
            return True
        return parse_bool_param(v)


class DispensePrescriptionRequest(CamelModel):
    """Request schema for recording a pharmacy dispensation."""

    prescription_number: str = Field(..., min_length=1)
    pharmacy_id: str = Field(..., min_length=1)
    patient_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)
