"""
Pydantic schemas for ledger transactions.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from investtrack.models.transaction import TransactionType
from investtrack.schemas.common import JsonDecimal, OptionalJsonDecimal, not_in_future


class TransactionCreate(BaseModel):
    """
    Schema for ``POST /transactions``.

    ``amount`` is signed for RETURN (negative is a loss).  WITHDRAWAL always
    reduces the balance by the absolute value.  ``transaction_date`` defaults
    to now.
    """

    investment_id: UUID
    type: TransactionType
    amount: Decimal = Field(..., max_digits=20, decimal_places=2, examples=[250.00])
    percentage: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=4)
    transaction_date: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("transaction_date")
    @classmethod
    def check_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return not_in_future(v, "transaction_date")

    @model_validator(mode="after")
    def check_amount(self) -> "TransactionCreate":
        if self.amount == 0:
            raise ValueError("amount must not be zero")
        if self.type in (TransactionType.DEPOSIT, TransactionType.DIVIDEND) and self.amount < 0:
            raise ValueError(f"{self.type.value} amount must be positive")
        return self


class TransactionUpdate(BaseModel):
    """Schema for ``PUT /transactions/{id}``.  Type and investment are fixed."""

    amount: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    percentage: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=4)
    transaction_date: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("transaction_date")
    @classmethod
    def check_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return not_in_future(v, "transaction_date")

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v == 0:
            raise ValueError("amount must not be zero")
        return v


class TransactionFilters(BaseModel):
    """List filters and ordering for ``GET /transactions``."""

    investment_id: Optional[UUID] = None
    type: Optional[TransactionType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    sort_by: Literal["transaction_date", "amount", "created_at"] = "transaction_date"
    sort_order: Literal["asc", "desc"] = "desc"


class TransactionResponse(BaseModel):
    id: UUID
    investment_id: UUID
    type: TransactionType
    amount: JsonDecimal
    balance: JsonDecimal
    percentage: OptionalJsonDecimal = None
    transaction_date: datetime
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionDeleted(BaseModel):
    """Result of ``DELETE /transactions/{id}``."""

    id: UUID
    investment_id: UUID
    balance_adjustment: JsonDecimal
    new_balance: JsonDecimal

    model_config = ConfigDict(from_attributes=True)


class TypeTotal(BaseModel):
    total: JsonDecimal
    count: int

    model_config = ConfigDict(from_attributes=True)


class TransactionSummary(BaseModel):
    """Per-investment ledger totals for ``GET /transactions/investment/{id}/summary``."""

    investment_id: UUID
    initial_amount: JsonDecimal
    current_balance: JsonDecimal
    total_transactions: int
    net_change: JsonDecimal
    by_type: Dict[TransactionType, TypeTotal]

    model_config = ConfigDict(from_attributes=True)
