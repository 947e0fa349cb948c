"""
Pydantic schemas for job listings.
"""

from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ...domain.enums import ExperienceLevel, JobStatus, JobType
from .common import CamelModel, PaginationQuery, UtcDateTime, parse_bool_param

DEFAULT_JOB_LIMIT = 20


class JobLocation(CamelModel):
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    remote: bool = False


class Salary(CamelModel):
    min: float = Field(0, ge=0)
    max: float = Field(0, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)

    @model_validator(mode="after")
    def check_range(self):
        if self.max and self.max < self.min:
            raise ValueError("salary.max must not be lower than salary.min")
        return self


class Position(CamelModel):
    type: JobType = JobType.FULL_TIME
    specialty: str = Field(..., min_length=1)
    experience_level: ExperienceLevel = ExperienceLevel.MID
    salary: Salary = Field(default_factory=Salary)


class CreateJobListingRequest(CamelModel):
    """Request schema for publishing a job listing."""

    company_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    location: JobLocation
    position: Position
    requirements: List[str] = Field(default_factory=list)
    benefits: List[str] = Field(default_factory=list)
    expires_at: Optional[UtcDateTime] = None


class UpdateJobListingRequest(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    location: Optional[JobLocation] = None
    position: Optional[Position] = None
    requirements: Optional[List[str]] = None
    benefits: Optional[List[str]] = None
    status: Optional[JobStatus] = None
    expires_at: Optional[UtcDateTime] = None


class JobListingQuery(PaginationQuery):
    status: JobStatus = JobStatus.ACTIVE
    specialty: Optional[str] = None
    type: Optional[JobType] = None
    experience_level: Optional[ExperienceLevel] = None
    remote: Optional[bool] = None
    company_id: Optional[str] = None
    location: Optional[str] = None

    @field_validator("remote", mode="before")
    @classmethod
    def coerce_bool(cls, v):
        return parse_bool_param(v)
