"""
Pydantic schemas for Investment API request / response serialisation.

Separating schemas from the SQLModel table keeps the API contract decoupled
from the persistence layer.  Cross-field business rules that need the stored
record (FIXED requires a rate, CANCELLED is terminal) live in the service.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from investtrack.core.clock import as_utc
from investtrack.models.investment import CompoundingFrequency, InvestmentStatus, ReturnType
from investtrack.schemas.common import JsonDecimal, OptionalJsonDecimal

# ── Shared validation helpers ──


def _strip_required(v: str) -> str:
    if not v.strip():
        raise ValueError("must not be blank")
    return v.strip()


def _normalise_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if len(v) != 3 or not v.isalpha():
        raise ValueError("currency must be a three-letter ISO-4217 code")
    return v.upper()


class InvestmentCreate(BaseModel):
    """
    Schema for ``POST /investments``.

    ``current_balance`` is not accepted; it starts at ``initial_amount``.
    ``currency`` falls back to the configured default when omitted.
    """

    name: str = Field(..., min_length=1, max_length=255, examples=["Treasury Bill 2026"])
    category: str = Field(..., min_length=1, max_length=100, examples=["Fixed Income"])
    currency: Optional[str] = Field(default=None, examples=["NGN"])
    initial_amount: Decimal = Field(
        ..., gt=0, max_digits=20, decimal_places=2, examples=[10000.00]
    )
    return_type: ReturnType
    interest_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        max_digits=9,
        decimal_places=6,
        description="Annual rate in percent (12 means 12 %); required for FIXED",
        examples=[12],
    )
    compounding_frequency: CompoundingFrequency = CompoundingFrequency.MONTHLY
    start_date: datetime
    end_date: Optional[datetime] = None
    auto_calculate_interest: bool = False
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("name", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("currency")
    @classmethod
    def normalise_currency(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_currency(v)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalise_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return None if v is None else as_utc(v)

    @model_validator(mode="after")
    def check_date_order(self) -> "InvestmentCreate":
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class InvestmentUpdate(BaseModel):
    """
    Schema for ``PUT /investments/{id}``.

    Only the fields present in the body are changed.  Balances, status and
    scheduling have dedicated endpoints.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    currency: Optional[str] = None
    return_type: Optional[ReturnType] = None
    interest_rate: Optional[Decimal] = Field(
        default=None, ge=0, le=100, max_digits=9, decimal_places=6
    )
    compounding_frequency: Optional[CompoundingFrequency] = None
    end_date: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("currency")
    @classmethod
    def normalise_currency(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_currency(v)

    @field_validator("name", "category")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _strip_required(v)

    @field_validator("end_date")
    @classmethod
    def normalise_end_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return None if v is None else as_utc(v)


class InvestmentStatusUpdate(BaseModel):
    """Schema for ``PATCH /investments/{id}/status``."""

    status: InvestmentStatus
    notes: Optional[str] = Field(default=None, max_length=1000)


class BalanceOverride(BaseModel):
    """Schema for ``PATCH /investments/{id}/balance``."""

    current_balance: Decimal = Field(..., ge=0, max_digits=20, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=500)


class InvestmentFilters(BaseModel):
    """Optional list filters; ``None`` means "do not filter"."""

    status: Optional[InvestmentStatus] = None
    return_type: Optional[ReturnType] = None
    currency: Optional[str] = None
    category: Optional[str] = None
    start_from: Optional[datetime] = None
    start_to: Optional[datetime] = None


class InvestmentResponse(BaseModel):
    """Schema returned by all investment endpoints."""

    id: UUID
    owner_id: UUID
    name: str
    category: str
    currency: str
    initial_amount: JsonDecimal
    current_balance: JsonDecimal
    return_type: ReturnType
    interest_rate: OptionalJsonDecimal = None
    compounding_frequency: CompoundingFrequency
    start_date: datetime
    end_date: Optional[datetime] = None
    status: InvestmentStatus
    last_interest_calculated: Optional[datetime] = None
    next_interest_due: Optional[datetime] = None
    auto_calculate_interest: bool
    notes: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvestmentSummary(BaseModel):
    """Registry totals for ``GET /investments/summary``."""

    total_investments: int
    total_principal: JsonDecimal
    total_current_value: JsonDecimal
    total_returns: JsonDecimal
    return_percentage: JsonDecimal
    by_status: Dict[InvestmentStatus, int]
