"""
Investment domain model.

An investment is a principal committed by one owner.  ``current_balance`` is
the authoritative running value; it moves only together with a row in
``transactions`` so that it always equals ``initial_amount`` plus the signed
sum of the investment's transactions.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReturnType(str, Enum):
    """How an investment earns: contractual rate or manually entered returns."""

    FIXED = "FIXED"
    VARIABLE = "VARIABLE"


class CompoundingFrequency(str, Enum):
    """Compounding period; see :data:`PERIODS_PER_YEAR`."""

    DAILY = "DAILY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUALLY = "ANNUALLY"


PERIODS_PER_YEAR = {
    CompoundingFrequency.DAILY: 365,
    CompoundingFrequency.MONTHLY: 12,
    CompoundingFrequency.QUARTERLY: 4,
    CompoundingFrequency.ANNUALLY: 1,
}


class InvestmentStatus(str, Enum):
    """Lifecycle states.  CANCELLED is terminal."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Investment(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for investments.

    Design notes:
    - Money columns are DECIMAL(20,2); ``interest_rate`` is an annual
      percentage (12 means 12 %) stored as DECIMAL(9,6).
    - ``version`` is bumped by every balance mutation; repositories compare
      and increment it in a single guarded UPDATE.
    - The composite index ``ix_investments_due`` covers the scheduler sweep.
    """

    __tablename__ = "investments"  # type: ignore[assignment]

    __table_args__ = (
        Index(
            "ix_investments_due",
            "return_type",
            "auto_calculate_interest",
            "status",
            "next_interest_due",
        ),
        CheckConstraint("initial_amount > 0", name="ck_investments_initial_positive"),
        CheckConstraint("current_balance >= 0", name="ck_investments_balance_non_negative"),
        CheckConstraint("length(name) > 0", name="ck_investments_name_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner_id: uuid.UUID = Field(index=True)
    name: str = Field(max_length=255)
    category: str = Field(max_length=100)
    currency: str = Field(default="NGN", max_length=3)
    initial_amount: Decimal = Field(max_digits=20, decimal_places=2)
    current_balance: Decimal = Field(max_digits=20, decimal_places=2)
    return_type: ReturnType
    interest_rate: Optional[Decimal] = Field(default=None, max_digits=9, decimal_places=6)
    compounding_frequency: CompoundingFrequency = Field(default=CompoundingFrequency.MONTHLY)
    start_date: datetime = Field(sa_type=DateTime(timezone=True))  # type: ignore[arg-type]
    end_date: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    status: InvestmentStatus = Field(default=InvestmentStatus.ACTIVE, index=True)
    last_interest_calculated: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    next_interest_due: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    auto_calculate_interest: bool = Field(default=False)
    notes: Optional[str] = Field(default=None, max_length=1000)
    version: int = Field(default=1, nullable=False)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        sa_column_kwargs={"onupdate": _utcnow},
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvestmentStatus.CANCELLED

    def __repr__(self) -> str:
        return (
            f"<Investment id={self.id} name='{self.name}' "
            f"type={self.return_type.value} balance={self.current_balance}>"
        )
