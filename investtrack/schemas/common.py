"""
Common / shared Pydantic schemas used across multiple endpoints.

Defines the standard error payloads (so OpenAPI documents the error
contract, not just the happy path), the ``JsonDecimal`` annotated types
that render ``Decimal`` as JSON numbers, and the pagination envelope.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, PlainSerializer

from investtrack.core.clock import as_utc, utc_now

T = TypeVar("T")

# Pydantic v2 serialises Decimal as a string by default; clients of this API
# expect plain JSON numbers for amounts, rates and percentages.
JsonDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
OptionalJsonDecimal = Annotated[
    Optional[Decimal],
    PlainSerializer(lambda v: None if v is None else float(v), when_used="json"),
]


def not_in_future(value: Optional[datetime], field: str) -> Optional[datetime]:
    """Normalise a booking date to UTC and reject instants after now."""
    if value is None:
        return value
    value = as_utc(value)
    if value > utc_now():
        raise ValueError(f"{field} cannot be in the future")
    return value


class ErrorResponse(BaseModel):
    """
    Standard error envelope returned by all non-validation error handlers.

    ``code`` is stable and machine-readable (``NOT_FOUND``, ``INVALID_STATE``,
    ``NEGATIVE_BALANCE`` ...); ``message`` is for humans.
    """

    error: bool = Field(default=True, description="Always ``true`` for errors")
    code: str = Field(..., description="Error kind", examples=["NOT_FOUND"])
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Investment with id '...' not found"],
    )
    details: Optional[Any] = Field(default=None, description="Optional structured context")


class ValidationErrorDetail(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(
        ...,
        description="Dot-separated path to the invalid field",
        examples=["body -> initial_amount"],
    )
    message: str = Field(
        ...,
        description="Explanation of the validation failure",
        examples=["Input should be greater than 0"],
    )


class ValidationErrorResponse(BaseModel):
    """
    Response body for 422 Unprocessable Entity (validation failure).

    Includes a ``details`` array so clients can map errors to individual
    form fields.
    """

    error: bool = Field(default=True, description="Always ``true`` for errors")
    code: str = Field(default="VALIDATION_ERROR")
    message: str = Field(default="Validation failed", description="Summary message")
    details: List[ValidationErrorDetail] = Field(..., description="Per-field validation failures")


class Page(BaseModel, Generic[T]):
    """One page of results plus the unpaginated total."""

    items: List[T]
    total: int = Field(..., ge=0, description="Total matching records")
    skip: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
