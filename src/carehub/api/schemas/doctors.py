"""
Pydantic schemas for doctor profiles and their sub-resources.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator, validator

from ...domain.enums import Specialty
from .common import CamelModel, DateRangeQuery, PaginationQuery, UtcDateTime, parse_bool_param, parse_int_param

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Education(CamelModel):
    institution: str = Field(..., min_length=1)
    degree: str = Field(..., min_length=1)
    year: int = Field(..., ge=1950)

    @validator("year")
    def validate_year(cls, v):
        if v > datetime.now().year:
            raise ValueError("Graduation year cannot be in the future")
        return v


class DoctorProfileFields(CamelModel):
    """Mutable profile fields shared by create and update."""

    license_number: Optional[str] = Field(None, min_length=1, description="Medical license number")
    specialties: Optional[List[Specialty]] = Field(None, min_length=1)
    education: Optional[List[Education]] = None
    experience: Optional[int] = Field(None, ge=0, description="Years of practice")
    bio: Optional[str] = Field(None, max_length=2000)
    consultation_fee: Optional[float] = Field(None, ge=0)
    availability: Optional[Dict[str, List[str]]] = Field(
        None, description="Weekday -> list of HH:MM-HH:MM ranges"
    )
    company_id: Optional[str] = None
    languages: Optional[List[str]] = None

    @validator("availability")
    def validate_availability(cls, v):
        if v is None:
            return v
        unknown = [day for day in v if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        return v


class CreateDoctorRequest(DoctorProfileFields):
    """Request schema for creating a doctor profile."""

    uid: str = Field(..., min_length=1, description="Owning user id")
    license_number: str = Field(..., min_length=1, description="Medical license number")
    specialties: List[Specialty] = Field(..., min_length=1)


class UpdateDoctorRequest(DoctorProfileFields):
    """Request schema for partial doctor updates."""


class DoctorListQuery(PaginationQuery):
    specialty: Optional[Specialty] = None
    company_id: Optional[str] = None
    is_verified: Optional[bool] = None
    search: Optional[str] = None

    @field_validator("is_verified", mode="before")
    @classmethod
    def coerce_bool(cls, v):
        return parse_bool_param(v)


class DoctorAppointmentsQuery(DateRangeQuery):
    status: Optional[Literal["scheduled", "confirmed", "in-progress", "completed", "cancelled", "no-show", "all"]] = "all"
    period: Optional[Literal["today", "tomorrow", "week", "month"]] = None
    patient_id: Optional[str] = None


class DoctorStatsQuery(CamelModel):
    period: Literal["day", "week", "month", "year"] = "month"
    start_date: Optional[UtcDateTime] = None
    end_date: Optional[UtcDateTime] = None


class VerificationRequest(CamelModel):
    """Request schema for an admin verification decision."""

    is_verified: bool
    verification_notes: Optional[str] = Field(None, max_length=2000)
    verification_documents: Optional[List[str]] = None


class ReviewsQuery(PaginationQuery):
    rating: Optional[int] = None
    sort_by: Literal["newest", "oldest", "rating_high", "rating_low"] = "newest"

    @field_validator("rating", mode="before")
    @classmethod
    def coerce_rating(cls, v):
        return parse_int_param(v)


class ReviewCategories(CamelModel):
    punctuality: Optional[int] = Field(None, ge=1, le=5)
    communication: Optional[int] = Field(None, ge=1, le=5)
    expertise: Optional[int] = Field(None, ge=1, le=5)
    facilities: Optional[int] = Field(None, ge=1, le=5)


class CreateReviewRequest(CamelModel):
    """Request schema for reviewing a completed appointment."""

    patient_id: str = Field(..., min_length=1)
    appointment_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)
    categories: Optional[ReviewCategories] = None


__all__ = [
    "CreateDoctorRequest",
    "CreateReviewRequest",
    "DoctorAppointmentsQuery",
    "DoctorListQuery",
    "DoctorStatsQuery",
    "ReviewsQuery",
    "UpdateDoctorRequest",
    "VerificationRequest",
]
