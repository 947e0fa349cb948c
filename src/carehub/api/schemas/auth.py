"""
Pydantic schemas for registration and the current-user endpoint.
"""

import re
from typing import Literal, Optional

from pydantic import Field, validator

from .common import CamelModel

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_email_address(v: str) -> str:
    s = (v or "").strip().lower()
    if not EMAIL_PATTERN.match(s):
        raise ValueError("Invalid email address")
    return s


class RegisterRequest(CamelModel):
    """Request schema for account registration."""

    email: str = Field(..., description="Login email")
    password: str = Field(..., min_length=6, description="Password (at least 6 characters)")
    first_name: str = Field(..., min_length=1, max_length=60)
    last_name: str = Field(..., min_length=1, max_length=60)
    role: Literal["doctor", "patient", "company"] = Field("patient", description="Account role")
    phone_number: Optional[str] = Field(None, description="Phone in E.164 format")

    @validator("email")
    def validate_email(cls, v):
        return validate_email_address(v)

    @validator("first_name", "last_name")
    def validate_names(cls, v):
        if not v.strip():
            raise ValueError("Name fields cannot be empty")
        return v.strip()

    @validator("phone_number")
    def validate_phone(cls, v):
        if v is None:
            return v
        s = v.strip()
        if not re.fullmatch(r"^\+[1-9]\d{7,14}$", s):
            raise ValueError("Phone must be E.164 (+country code and 7-14 digits)")
        return s
