"""
Pydantic schemas for healthcare companies.
"""

from typing import List, Optional

from pydantic import Field, field_validator, model_validator, validator

from ...domain.enums import CompanyType
from .auth import validate_email_address
from .common import Address, CamelModel, PaginationQuery, parse_bool_param


class CompanyContact(CamelModel):
    phone: str = Field(..., min_length=1)
    email: str
    website: Optional[str] = None

    @validator("email")
    def validate_email(cls, v):
        return validate_email_address(v)

    @validator("website")
    def validate_website(cls, v):
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("website must be an http(s) URL")
        return v


class CreateCompanyRequest(CamelModel):
    """Request schema for registering a company."""

    name: str = Field(..., min_length=1, max_length=200)
    type: CompanyType
    description: Optional[str] = Field(None, max_length=2000)
    address: Address
    contact: CompanyContact
    specialties: List[str] = Field(default_factory=list)
    number_of_employees: Optional[int] = Field(None, ge=1)
    license_number: Optional[str] = None
    logo: Optional[str] = None

    @validator("name")
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Company name cannot be empty")
        return v.strip()


class UpdateCompanyRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[CompanyType] = None
    description: Optional[str] = Field(None, max_length=2000)
    address: Optional[Address] = None
    contact: Optional[CompanyContact] = None
    specialties: Optional[List[str]] = None
    number_of_employees: Optional[int] = Field(None, ge=1)
    license_number: Optional[str] = None
    logo: Optional[str] = None

    @model_validator(mode="after")
    def require_any_field(self):
        if not self.to_changes():
            raise ValueError("At least one field must be provided")
        return self


class CompanyListQuery(PaginationQuery):
    type: Optional[CompanyType] = None
    is_verified: Optional[bool] = None
    city: Optional[str] = None
    state: Optional[str] = None
    specialty: Optional[str] = None
    search: Optional[str] = None

    @field_validator("is_verified", mode="before")
    @classmethod
    def coerce_bool(cls, v):
        return parse_bool_param(v)
