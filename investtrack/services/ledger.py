"""
Balance ledger primitives shared by every service that moves money.

Each balance change goes through :class:`Ledger` so that the same rules
apply everywhere:

1. CANCELLED investments never change balance.
2. A change that would take the balance below zero is rejected before
   anything is written.
3. The investment row is claimed (``version`` compare-and-increment) before
   it is modified; a lost race surfaces as ``ConflictException``.

Callers own the unit of work: wrap calls in ``atomic(session)`` so the
transaction row and the balance land together or not at all.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from investtrack.core.exceptions import (
    ConflictException,
    InvalidStateError,
    NegativeBalanceError,
)
from investtrack.models.investment import Investment
from investtrack.models.transaction import Transaction, TransactionType, balance_impact
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository

logger = logging.getLogger(__name__)


class Ledger:
    """Applies signed balance changes to an already-loaded investment."""

    def __init__(self, invest_repo: InvestmentRepository, txn_repo: TransactionRepository):
        self._invest_repo = invest_repo
        self._txn_repo = txn_repo

    @staticmethod
    def ensure_mutable(investment: Investment) -> None:
        if investment.is_cancelled:
            raise InvalidStateError(
                f"Investment '{investment.name}' is cancelled; its balance cannot change"
            )

    async def claim(self, investment: Investment) -> None:
        if not await self._invest_repo.claim(investment):
            logger.warning(
                "Version conflict on investment %s",
                investment.id,
                extra={"investment_id": str(investment.id)},
            )
            raise ConflictException(
                "Investment was modified by another request; reload and retry"
            )

    async def adjust(self, investment: Investment, delta: Decimal) -> Decimal:
        """Apply ``delta`` to the balance without writing a transaction row."""
        self.ensure_mutable(investment)
        new_balance = investment.current_balance + delta
        if new_balance < 0:
            raise NegativeBalanceError(
                f"Operation would make the balance negative "
                f"({investment.current_balance} {delta:+} = {new_balance})"
            )
        await self.claim(investment)
        investment.current_balance = new_balance
        await self._invest_repo.save(investment)
        return new_balance

    async def post(
        self,
        investment: Investment,
        txn_type: TransactionType,
        amount: Decimal,
        *,
        transaction_date: datetime,
        percentage: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> Transaction:
        """
        Record a transaction and move the balance by its impact.

        WITHDRAWAL is checked against the balance up front so the error names
        the withdrawal rather than a generic negative balance.
        """
        self.ensure_mutable(investment)
        if txn_type == TransactionType.WITHDRAWAL and abs(amount) > investment.current_balance:
            raise NegativeBalanceError(
                f"Withdrawal of {abs(amount)} exceeds the current balance of "
                f"{investment.current_balance}"
            )

        new_balance = await self.adjust(investment, balance_impact(txn_type, amount))
        txn = Transaction(
            investment_id=investment.id,
            type=txn_type,
            amount=amount,
            balance=new_balance,
            percentage=percentage,
            transaction_date=transaction_date,
            description=description,
        )
        return await self._txn_repo.add(txn)
