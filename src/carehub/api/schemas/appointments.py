"""
Pydantic schemas for appointment booking and management.
"""

from typing import Literal, Optional

from pydantic import Field, validator

from ...domain.enums import AppointmentStatus, AppointmentType
from .common import CamelModel, DateRangeQuery, UtcDateTime


class AppointmentLocation(CamelModel):
    type: Literal["in-person", "telemedicine"]
    address: Optional[str] = None
    room: Optional[str] = None
    meeting_url: Optional[str] = None

    @validator("meeting_url")
    def validate_meeting_url(cls, v):
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("meetingUrl must be an http(s) URL")
        return v


class CreateAppointmentRequest(CamelModel):
    """Request schema for booking an appointment."""

    doctor_id: str = Field(..., min_length=1)
    patient_id: str = Field(..., min_length=1)
    company_id: Optional[str] = None
    scheduled_at: UtcDateTime = Field(..., description="Start time (ISO 8601)")
    duration: int = Field(30, ge=15, le=240, description="Length in minutes")
    type: AppointmentType
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=2000)
    location: Optional[AppointmentLocation] = None
    fee: Optional[float] = Field(None, ge=0)


class UpdateAppointmentRequest(CamelModel):
    """Only these fields can change after booking."""

    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = Field(None, max_length=2000)
    scheduled_at: Optional[UtcDateTime] = None
    duration: Optional[int] = Field(None, ge=15, le=240)
    type: Optional[AppointmentType] = None


class AppointmentListQuery(DateRangeQuery):
    status: Optional[AppointmentStatus] = None
    doctor_id: Optional[str] = None
    patient_id: Optional[str] = None
