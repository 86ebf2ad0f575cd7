"""
Interest calculation audit trail.

One row per fixed-rate calculate-now.  Rows are never deleted; a revert flips
``is_reverted`` and stamps who reverted it and when.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel


class CalculationType(str, Enum):
    """Who triggered the calculation: the scheduler or a user."""

    AUTOMATIC = "AUTOMATIC"
    MANUAL = "MANUAL"


class InterestCalculation(SQLModel, table=True):
    """
    SQLModel table definition for interest calculations.

    ``ix_interest_calculations_latest`` serves the "latest non-reverted
    calculation" lookup used by revert.
    """

    __tablename__ = "interest_calculations"  # type: ignore[assignment]

    __table_args__ = (
        Index(
            "ix_interest_calculations_latest",
            "investment_id",
            "is_reverted",
            "calculated_at",
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investment_id: uuid.UUID = Field(
        foreign_key="investments.id",
        index=True,
        ondelete="RESTRICT",
    )
    calculation_type: CalculationType = Field(default=CalculationType.MANUAL)
    calculated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    period_start: datetime = Field(sa_type=DateTime(timezone=True))  # type: ignore[arg-type]
    period_end: datetime = Field(sa_type=DateTime(timezone=True))  # type: ignore[arg-type]
    principal_amount: Decimal = Field(max_digits=20, decimal_places=2)
    interest_rate: Decimal = Field(max_digits=9, decimal_places=6)
    interest_earned: Decimal = Field(max_digits=20, decimal_places=2)
    new_balance: Decimal = Field(max_digits=20, decimal_places=2)
    transaction_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="transactions.id",
        ondelete="SET NULL",
    )
    is_reverted: bool = Field(default=False)
    reverted_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    reverted_by: Optional[uuid.UUID] = Field(default=None)

    def __repr__(self) -> str:
        return (
            f"<InterestCalculation id={self.id} investment={self.investment_id} "
            f"earned={self.interest_earned} reverted={self.is_reverted}>"
        )
