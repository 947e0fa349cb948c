"""
Pydantic schemas for patient profiles.
"""

from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from ...domain.enums import BloodType, Gender
from .common import CamelModel, PaginationQuery, UtcDateTime, parse_bool_param


class PatientMedication(CamelModel):
    name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    frequency: str = Field(..., min_length=1)
    start_date: UtcDateTime
    end_date: Optional[UtcDateTime] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class EmergencyContact(CamelModel):
    name: str = Field(..., min_length=1)
    relationship: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)


class InsuranceInfo(CamelModel):
    provider: str = Field(..., min_length=1)
    policy_number: str = Field(..., min_length=1)
    group_number: Optional[str] = None


class PatientProfileFields(CamelModel):
    date_of_birth: Optional[UtcDateTime] = None
    gender: Optional[Gender] = None
    blood_type: Optional[BloodType] = None
    height: Optional[float] = Field(None, ge=0, description="Height in cm")
    weight: Optional[float] = Field(None, ge=0, description="Weight in kg")
    allergies: Optional[List[str]] = None
    chronic_conditions: Optional[List[str]] = None
    medications: Optional[List[PatientMedication]] = None
    emergency_contact: Optional[EmergencyContact] = None
    insurance_info: Optional[InsuranceInfo] = None
    company_id: Optional[str] = None


class CreatePatientRequest(PatientProfileFields):
    """Request schema for creating a patient profile."""

    uid: str = Field(..., min_length=1, description="Owning user id")
    date_of_birth: UtcDateTime
    gender: Gender


class UpdatePatientRequest(PatientProfileFields):
    """Request schema for partial patient updates."""


class PatientListQuery(PaginationQuery):
    gender: Optional[Gender] = None
    blood_type: Optional[BloodType] = None
    is_active: Optional[bool] = None
    has_insurance: Optional[bool] = None
    search: Optional[str] = None

    @field_validator("is_active", "has_insurance", mode="before")
    @classmethod
    def coerce_bool(cls, v):
        return parse_bool_param(v)


class PatientAppointmentsQuery(PaginationQuery):
    status: Literal["scheduled", "confirmed", "in-progress", "completed", "cancelled", "no-show", "all"] = "all"
