"""
Transaction service: the ledger's create / read / update / delete surface.

Every write keeps ``current_balance == initial_amount + sum(impacts)`` by
moving the investment balance by exactly the change in impact, inside one
``atomic`` block, via :class:`~investtrack.services.ledger.Ledger`.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Tuple
from uuid import UUID

from investtrack.core.clock import Clock, utc_now
from investtrack.core.exceptions import InvalidInputError, NotFoundException
from investtrack.db.session import atomic
from investtrack.models.investment import Investment
from investtrack.models.transaction import Transaction, TransactionType, balance_impact
from investtrack.repositories.calculation_repo import CalculationRepository
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.schemas.transaction import TransactionCreate, TransactionFilters, TransactionUpdate
from investtrack.services.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class DeletedTransaction:
    id: UUID
    investment_id: UUID
    balance_adjustment: Decimal
    new_balance: Decimal


@dataclass
class TypeTotal:
    total: Decimal
    count: int


@dataclass
class LedgerSummary:
    investment_id: UUID
    initial_amount: Decimal
    current_balance: Decimal
    total_transactions: int
    net_change: Decimal
    by_type: Dict[TransactionType, TypeTotal]


class TransactionService:
    """Encapsulates ledger CRUD and its balance rules."""

    def __init__(
        self,
        invest_repo: InvestmentRepository,
        txn_repo: TransactionRepository,
        calc_repo: CalculationRepository,
        clock: Clock = utc_now,
    ):
        self._invest_repo = invest_repo
        self._txn_repo = txn_repo
        self._calc_repo = calc_repo
        self._ledger = Ledger(invest_repo, txn_repo)
        self._clock = clock

    async def _investment(self, investment_id: UUID, owner_id: UUID) -> Investment:
        investment = await self._invest_repo.get_owned(investment_id, owner_id)
        if not investment:
            raise NotFoundException("Investment", investment_id)
        return investment

    # ── Queries ──

    async def get_transaction(self, transaction_id: UUID, owner_id: UUID) -> Transaction:
        txn = await self._txn_repo.get_owned(transaction_id, owner_id)
        if not txn:
            raise NotFoundException("Transaction", transaction_id)
        return txn

    async def list_transactions(
        self, owner_id: UUID, filters: TransactionFilters, skip: int = 0, limit: int = 20
    ) -> Tuple[List[Transaction], int]:
        if filters.investment_id is not None:
            await self._investment(filters.investment_id, owner_id)
        return await self._txn_repo.list_for_owner(owner_id, filters, skip=skip, limit=limit)

    async def get_summary(self, investment_id: UUID, owner_id: UUID) -> LedgerSummary:
        """
        Totals per transaction type for one investment.

        ``net_change`` is the balance movement since creation, which by the
        ledger identity equals the signed sum of all transaction impacts.
        """
        investment = await self._investment(investment_id, owner_id)
        totals = await self._txn_repo.totals_by_type(investment.id)
        return LedgerSummary(
            investment_id=investment.id,
            initial_amount=investment.initial_amount,
            current_balance=investment.current_balance,
            total_transactions=sum(count for _, count in totals.values()),
            net_change=investment.current_balance - investment.initial_amount,
            by_type={t: TypeTotal(total=s, count=c) for t, (s, c) in totals.items()},
        )

    # ── Commands ──

    async def create_transaction(self, owner_id: UUID, payload: TransactionCreate) -> Transaction:
        investment = await self._investment(payload.investment_id, owner_id)
        async with atomic(self._txn_repo.db):
            txn = await self._ledger.post(
                investment,
                payload.type,
                payload.amount,
                transaction_date=payload.transaction_date or self._clock(),
                percentage=payload.percentage,
                description=payload.description,
            )
        logger.info(
            "Recorded %s of %s on investment %s (balance %s)",
            txn.type.value,
            txn.amount,
            investment.id,
            txn.balance,
            extra={"investment_id": str(investment.id), "transaction_id": str(txn.id)},
        )
        return txn

    async def update_transaction(
        self, transaction_id: UUID, owner_id: UUID, payload: TransactionUpdate
    ) -> Transaction:
        """
        Edit a transaction in place.

        An amount change moves the investment balance by the difference in
        impact and refreshes the transaction's ``balance`` snapshot.  Date,
        description and percentage changes never touch the balance.
        """
        txn = await self.get_transaction(transaction_id, owner_id)
        changes = payload.model_dump(exclude_unset=True)
        new_amount = changes.pop("amount", None)
        if changes.get("transaction_date", True) is None:
            del changes["transaction_date"]

        if (
            new_amount is not None
            and txn.type in (TransactionType.DEPOSIT, TransactionType.DIVIDEND)
            and new_amount < 0
        ):
            raise InvalidInputError(f"{txn.type.value} amount must be positive")

        async with atomic(self._txn_repo.db):
            if new_amount is not None and new_amount != txn.amount:
                investment = await self._invest_repo.get(txn.investment_id)
                delta = balance_impact(txn.type, new_amount) - txn.impact
                txn.balance = await self._ledger.adjust(investment, delta)
                txn.amount = new_amount
            for field, value in changes.items():
                setattr(txn, field, value)
            await self._txn_repo.save(txn)

        logger.info(
            "Updated transaction %s (%s)",
            txn.id,
            ", ".join(sorted(payload.model_fields_set)) or "no fields",
            extra={"transaction_id": str(txn.id), "investment_id": str(txn.investment_id)},
        )
        return txn

    async def delete_transaction(self, transaction_id: UUID, owner_id: UUID) -> DeletedTransaction:
        """
        Remove a transaction and reverse its impact on the balance.

        Interest calculations that pointed at it keep their audit row with the
        link cleared.
        """
        txn = await self.get_transaction(transaction_id, owner_id)
        investment = await self._invest_repo.get(txn.investment_id)
        adjustment = -txn.impact

        async with atomic(self._txn_repo.db):
            new_balance = await self._ledger.adjust(investment, adjustment)
            for calculation in await self._calc_repo.linked_to_transaction(txn.id):
                calculation.transaction_id = None
                await self._calc_repo.save(calculation)
            await self._txn_repo.remove(txn)

        logger.info(
            "Deleted transaction %s on investment %s (adjustment %s, balance %s)",
            transaction_id,
            investment.id,
            adjustment,
            new_balance,
            extra={"investment_id": str(investment.id), "transaction_id": str(transaction_id)},
        )
        return DeletedTransaction(
            id=transaction_id,
            investment_id=investment.id,
            balance_adjustment=adjustment,
            new_balance=new_balance,
        )
