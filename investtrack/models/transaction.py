"""
Ledger transaction model.

Every change to an investment's balance is recorded here together with the
balance snapshot *after* the change.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel


class TransactionType(str, Enum):
    """Kinds of balance-affecting entries."""

    RETURN = "RETURN"
    WITHDRAWAL = "WITHDRAWAL"
    DEPOSIT = "DEPOSIT"
    DIVIDEND = "DIVIDEND"


def balance_impact(txn_type: TransactionType, amount: Decimal) -> Decimal:
    """
    Signed effect of a transaction on its investment's balance.

    RETURN, DIVIDEND and DEPOSIT add ``amount`` as given (a negative RETURN is
    a loss).  WITHDRAWAL always subtracts its absolute value.
    """
    if txn_type == TransactionType.WITHDRAWAL:
        return -abs(amount)
    return amount


class Transaction(SQLModel, table=True):
    """SQLModel table definition for ledger transactions."""

    __tablename__ = "transactions"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_transactions_investment_date", "investment_id", "transaction_date"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investment_id: uuid.UUID = Field(
        foreign_key="investments.id",
        index=True,
        ondelete="RESTRICT",
    )
    type: TransactionType = Field(index=True)
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    balance: Decimal = Field(max_digits=20, decimal_places=2)
    percentage: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=4)
    transaction_date: datetime = Field(sa_type=DateTime(timezone=True))  # type: ignore[arg-type]
    description: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    @property
    def impact(self) -> Decimal:
        return balance_impact(self.type, self.amount)

    def __repr__(self) -> str:
        return (
            f"<Transaction id={self.id} investment={self.investment_id} "
            f"type={self.type.value} amount={self.amount}>"
        )
