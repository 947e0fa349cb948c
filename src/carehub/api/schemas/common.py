"""
Common schemas and reusable components shared by every resource.
"""

from datetime import datetime
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ...core.utils.datetime_utils import ensure_utc

T = TypeVar("T")

# Naive datetimes in requests are read as UTC
UtcDateTime = Annotated[datetime, AfterValidator(ensure_utc)]

# ============================================================================
# BASE MODELS
# ============================================================================


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire and in storage."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )

    def to_document(self) -> dict:
        """Fields the caller supplied or that carry a default, keyed by alias."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_changes(self) -> dict:
        """Only the non-null fields present in the request, for partial updates."""
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


def parse_int_param(value: Any) -> Optional[int]:
    """Integer query parameter; absent or unparseable values fall back to None."""
    if value is None or isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_bool_param(value: Any) -> Optional[bool]:
    """Boolean query parameter: true only for the literal string "true"."""
    if value is None or isinstance(value, bool):
        return value
    return value == "true"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


# ============================================================================
# QUERY STRING SCHEMAS
# ============================================================================


class PaginationQuery(CamelModel):
    """page/limit as they arrive in the query string, clamped later."""

    page: Optional[int] = None
    limit: Optional[int] = None

    @field_validator("page", "limit", mode="before")
    @classmethod
    def coerce_int(cls, v):
        return parse_int_param(v)


class DateRangeQuery(PaginationQuery):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def to_utc(cls, v):
        return as_utc(v)


class DeleteQuery(CamelModel):
    """``?permanent=true`` asks for a physical delete instead of the soft one."""

    permanent: bool = False

    @field_validator("permanent", mode="before")
    @classmethod
    def coerce_bool(cls, v):
        return parse_bool_param(v) or False


# ============================================================================
# ENVELOPES
# ============================================================================


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(..., alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class ErrorBody(BaseModel):
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Field errors or extra context")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = Field(True, description="Operation success status")
    data: Optional[T] = Field(None, description="Response payload")
    meta: Optional[PaginationMeta] = Field(None, description="Pagination metadata")


class ErrorResponse(BaseModel):
    """Standardized error response schema."""

    success: bool = Field(False, description="Operation success status")
    error: ErrorBody


# ============================================================================
# REUSABLE COMPONENT SCHEMAS
# ============================================================================


class Address(CamelModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = "Mexico"


class MedicationEntry(CamelModel):
    name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    frequency: str = Field(..., min_length=1)


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    404: {"model": ErrorResponse, "description": "Not found"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}


def error_responses(*extra: int) -> dict:
    """OpenAPI error entries for a route: the common ones plus ``extra`` codes."""
    descriptions = {403: "Insufficient role", 409: "Conflict", 503: "Service degraded"}
    responses = dict(ERROR_RESPONSES)
    for code in extra:
        responses[code] = {"model": ErrorResponse, "description": descriptions.get(code, "Error")}
    return responses


__all__ = [
    "Address",
    "ApiResponse",
    "CamelModel",
    "DateRangeQuery",
    "DeleteQuery",
    "ErrorBody",
    "ErrorResponse",
    "MedicationEntry",
    "PaginationMeta",
    "PaginationQuery",
    "UtcDateTime",
    "as_utc",
    "error_responses",
    "parse_bool_param",
    "parse_int_param",
]
