"""
Pydantic schemas for the interest / return engine endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from investtrack.models.interest_calculation import CalculationType
from investtrack.models.investment import CompoundingFrequency
from investtrack.schemas.common import JsonDecimal, not_in_future
from investtrack.schemas.investment import InvestmentResponse
from investtrack.schemas.transaction import TransactionResponse

# ── Requests ──


class RevertRequest(BaseModel):
    """Body for ``POST /interest/revert/{id}``; the caller must confirm."""

    confirm_revert: bool = Field(..., description="Must be true")

    @field_validator("confirm_revert")
    @classmethod
    def must_confirm(cls, v: bool) -> bool:
        if not v:
            raise ValueError("confirm_revert must be true to revert a calculation")
        return v


class _VariableUpdate(BaseModel):
    effective_date: Optional[datetime] = Field(
        default=None, description="Defaults to now; cannot be in the future"
    )
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("effective_date")
    @classmethod
    def check_effective_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return not_in_future(v, "effective_date")


class PercentageUpdate(_VariableUpdate):
    """Body for ``POST /interest/variable/update-percentage/{id}``."""

    percentage: Decimal = Field(
        ..., ge=-100, le=1000, max_digits=12, decimal_places=4, examples=[5.5]
    )


class BalanceUpdate(_VariableUpdate):
    """Body for ``POST /interest/variable/update-balance/{id}``."""

    new_balance: Decimal = Field(..., ge=0, max_digits=20, decimal_places=2)


class ScheduleUpdate(BaseModel):
    """Body for ``PATCH /interest/schedule/{id}``."""

    auto_calculate_interest: bool
    compounding_frequency: Optional[CompoundingFrequency] = None


# ── Responses ──


class InterestCalculationResponse(BaseModel):
    id: UUID
    investment_id: UUID
    calculation_type: CalculationType
    calculated_at: datetime
    period_start: datetime
    period_end: datetime
    principal_amount: JsonDecimal
    interest_rate: JsonDecimal
    interest_earned: JsonDecimal
    new_balance: JsonDecimal
    transaction_id: Optional[UUID] = None
    is_reverted: bool
    reverted_at: Optional[datetime] = None
    reverted_by: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)


class CalculationResult(BaseModel):
    """Outcome of calculate-now: the audit row, its ledger entry and the investment."""

    calculation: InterestCalculationResponse
    transaction: TransactionResponse
    investment: InvestmentResponse

    model_config = ConfigDict(from_attributes=True)


class RevertResult(BaseModel):
    calculation: InterestCalculationResponse
    investment: InvestmentResponse
    reverted_amount: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class VariableUpdateResult(BaseModel):
    transaction: TransactionResponse
    investment: InvestmentResponse
    previous_balance: JsonDecimal
    change_amount: JsonDecimal
    percentage: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class InterestPreview(BaseModel):
    """What calculate-now would do at this instant.  Nothing is written."""

    investment_id: UUID
    period_start: datetime
    period_end: datetime
    days: int
    principal: JsonDecimal
    interest_rate: JsonDecimal
    compounding_frequency: CompoundingFrequency
    interest: JsonDecimal
    new_balance: JsonDecimal
    effective_rate: JsonDecimal

    model_config = ConfigDict(from_attributes=True)
