"""
Pydantic schemas for the returns toolkit: manual and bulk returns, the
stateless compound-interest calculator, projections and the next monthly
return estimate.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from investtrack.models.transaction import TransactionType
from investtrack.schemas.common import JsonDecimal, not_in_future
from investtrack.schemas.investment import InvestmentResponse
from investtrack.schemas.transaction import TransactionResponse

# ── Manual returns ──


class ManualReturn(BaseModel):
    """
    Body for ``POST /returns/manual``.

    Exactly one of ``amount`` (signed; negative is a loss) or ``percentage``
    of the current balance must be given.
    """

    investment_id: UUID
    type: TransactionType = TransactionType.RETURN
    amount: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    percentage: Optional[Decimal] = Field(
        default=None, ge=-100, le=1000, max_digits=12, decimal_places=4
    )
    transaction_date: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("transaction_date")
    @classmethod
    def check_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return not_in_future(v, "transaction_date")

    @model_validator(mode="after")
    def exactly_one_measure(self) -> "ManualReturn":
        if self.type not in (TransactionType.RETURN, TransactionType.DIVIDEND):
            raise ValueError("manual returns must be RETURN or DIVIDEND")
        if (self.amount is None) == (self.percentage is None):
            raise ValueError("specify exactly one of amount or percentage")
        if self.amount is not None and self.amount == 0:
            raise ValueError("amount must not be zero")
        return self


class ManualReturnResult(BaseModel):
    investment: InvestmentResponse
    transaction: TransactionResponse

    model_config = ConfigDict(from_attributes=True)


class BulkReturns(BaseModel):
    """Body for ``POST /returns/bulk``."""

    returns: List[ManualReturn] = Field(..., min_length=1, max_length=100)


class BulkReturnSuccess(BaseModel):
    index: int
    investment_id: UUID
    transaction: TransactionResponse
    new_balance: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class BulkReturnFailure(BaseModel):
    index: int
    investment_id: UUID
    code: str
    error: str

    model_config = ConfigDict(from_attributes=True)


class BulkReturnResult(BaseModel):
    total_processed: int
    successful: int
    failed: int
    results: List[BulkReturnSuccess]
    errors: List[BulkReturnFailure]

    model_config = ConfigDict(from_attributes=True)


# ── Calculators ──


class CompoundInterestRequest(BaseModel):
    """Body for ``POST /returns/calculate``."""

    principal: Decimal = Field(..., gt=0, max_digits=20, decimal_places=2, examples=[10000])
    annual_rate: Decimal = Field(..., ge=0, le=100, examples=[12])
    compounding_frequency: int = Field(default=12, ge=1, le=365)
    years: Decimal = Field(..., gt=0, le=50, examples=[5])


class CompoundInterestResponse(BaseModel):
    principal: JsonDecimal
    future_value: JsonDecimal
    total_returns: JsonDecimal
    annual_rate: JsonDecimal
    effective_annual_rate: JsonDecimal
    periods_per_year: int
    years: JsonDecimal
    percentage_gain: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class ProjectionRequest(BaseModel):
    """
    Body for ``POST /returns/{id}/projections``.

    ``annual_rate`` defaults to the investment's rate, or 5 % when it has
    none.
    """

    years: Decimal = Field(default=Decimal("1"), gt=0, le=50)
    monthly_contribution: Decimal = Field(default=Decimal("0"), ge=0)
    annual_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    compounding_frequency: int = Field(default=12, ge=1, le=365)


class CurrentPerformance(BaseModel):
    total_returns: JsonDecimal
    return_percentage: JsonDecimal
    investment_age_years: JsonDecimal
    annualized_return_percentage: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class ProjectedValue(BaseModel):
    future_value: JsonDecimal
    total_returns: JsonDecimal
    total_invested: JsonDecimal
    return_percentage: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class MonthlyProjection(BaseModel):
    month: int
    balance: JsonDecimal
    returns: JsonDecimal
    monthly_return: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class ProjectionResponse(BaseModel):
    investment_id: UUID
    current_balance: JsonDecimal
    initial_amount: JsonDecimal
    years: JsonDecimal
    annual_rate: JsonDecimal
    monthly_contribution: JsonDecimal
    compounding_frequency: int
    current_performance: CurrentPerformance
    projected: ProjectedValue
    monthly_projections: List[MonthlyProjection]

    model_config = ConfigDict(from_attributes=True)


class NextMonthlyReturn(BaseModel):
    investment_id: UUID
    current_balance: JsonDecimal
    interest_rate: JsonDecimal
    monthly_return: JsonDecimal
    new_balance: JsonDecimal
    monthly_rate: JsonDecimal
    next_interest_due: Optional[datetime] = None
    calculated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AppliedMonthlyReturnResult(BaseModel):
    """Result of ``POST /returns/{id}/apply-monthly``."""

    investment: InvestmentResponse
    transaction: TransactionResponse
    calculation: NextMonthlyReturn

    model_config = ConfigDict(from_attributes=True)


class PortfolioHolding(BaseModel):
    investment_id: UUID
    name: str
    principal: JsonDecimal
    current: JsonDecimal
    return_percentage: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class CategoryBreakdown(BaseModel):
    category: str
    count: int
    total_principal: JsonDecimal
    total_current_value: JsonDecimal
    return_percentage: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class PortfolioReport(BaseModel):
    """``GET /reports/portfolio``."""

    total_principal: JsonDecimal
    total_current_value: JsonDecimal
    total_returns: JsonDecimal
    return_percentage: JsonDecimal
    number_of_investments: int
    average_return: JsonDecimal
    best_performing: Optional[PortfolioHolding] = None
    worst_performing: Optional[PortfolioHolding] = None
    categories: List[CategoryBreakdown]
    generated_at: datetime

    model_config = ConfigDict(from_attributes=True)

