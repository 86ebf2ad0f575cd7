"""
Interest / return engine.

Fixed-rate investments accrue interest through **calculate-now** (also run by
the scheduler) and can undo the latest accrual with **revert**.  Variable
investments are moved by a percentage or to an explicit new balance.

Every operation is owner-scoped: an investment that is missing or belongs to
someone else is reported as not found.  "Now" comes from the injected clock.
Writes happen inside one ``atomic`` block per operation; a raised error
leaves the database untouched.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Tuple
from uuid import UUID

from investtrack.core.clock import Clock, as_utc, utc_now
from investtrack.core.exceptions import InvalidStateError, NotFoundException
from investtrack.db.session import atomic
from investtrack.models.interest_calculation import CalculationType, InterestCalculation
from investtrack.models.investment import (
    CompoundingFrequency,
    Investment,
    InvestmentStatus,
    ReturnType,
)
from investtrack.models.transaction import Transaction, TransactionType
from investtrack.repositories.calculation_repo import CalculationRepository
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.schemas.interest import BalanceUpdate, PercentageUpdate, ScheduleUpdate
from investtrack.services.calculations import (
    HUNDRED,
    days_between,
    next_due_date,
    period_interest,
    round_money,
    round_stored_percent,
)
from investtrack.services.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class CalculationOutcome:
    calculation: InterestCalculation
    transaction: Transaction
    investment: Investment


@dataclass
class RevertOutcome:
    calculation: InterestCalculation
    investment: Investment
    reverted_amount: Decimal


@dataclass
class VariableUpdateOutcome:
    transaction: Transaction
    investment: Investment
    previous_balance: Decimal
    change_amount: Decimal
    percentage: Decimal


@dataclass
class Preview:
    investment_id: UUID
    period_start: datetime
    period_end: datetime
    days: int
    principal: Decimal
    interest_rate: Decimal
    compounding_frequency: CompoundingFrequency
    interest: Decimal
    new_balance: Decimal
    effective_rate: Decimal


def _day_label(days: int) -> str:
    return f"{days} day" if days == 1 else f"{days} days"


class InterestService:
    """Interest accrual, revert and variable-return updates."""

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

    # ── Helpers ──

    async def _get(self, investment_id: UUID, owner_id: UUID) -> Investment:
        investment = await self._invest_repo.get_owned(investment_id, owner_id)
        if not investment:
            raise NotFoundException("Investment", investment_id)
        return investment

    @staticmethod
    def _require_fixed_with_rate(investment: Investment, action: str) -> None:
        if investment.return_type != ReturnType.FIXED:
            raise InvalidStateError(f"{action} is only available for FIXED investments")
        if investment.interest_rate is None:
            raise InvalidStateError(f"{action} requires an interest rate on the investment")

    @staticmethod
    def _require_active(investment: Investment, action: str) -> None:
        if investment.status != InvestmentStatus.ACTIVE:
            raise InvalidStateError(
                f"{action} is only available for ACTIVE investments "
                f"(status is {investment.status.value})"
            )

    @staticmethod
    def _require_variable(investment: Investment, action: str) -> None:
        if investment.return_type != ReturnType.VARIABLE:
            raise InvalidStateError(f"{action} is only available for VARIABLE investments")

    @staticmethod
    def _period_start(investment: Investment) -> datetime:
        return as_utc(investment.last_interest_calculated or investment.start_date)

    # ── Fixed-rate accrual ──

    async def calculate_now(
        self,
        investment_id: UUID,
        owner_id: UUID,
        calculation_type: CalculationType = CalculationType.MANUAL,
    ) -> CalculationOutcome:
        """
        Accrue interest from the last calculation (or start date) up to now.

        Writes a RETURN transaction, an :class:`InterestCalculation` linked to
        it, and moves ``last_interest_calculated`` / ``next_interest_due``.
        """
        investment = await self._get(investment_id, owner_id)
        self._require_fixed_with_rate(investment, "Interest calculation")
        self._require_active(investment, "Interest calculation")

        now = self._clock()
        period_start = self._period_start(investment)
        days = days_between(period_start, now)
        if days <= 0:
            raise InvalidStateError(
                f"No new period to calculate interest for since {period_start.isoformat()}"
            )

        principal = investment.current_balance
        result = period_interest(
            principal, investment.interest_rate, investment.compounding_frequency, days
        )

        async with atomic(self._invest_repo.db):
            txn = await self._ledger.post(
                investment,
                TransactionType.RETURN,
                result.interest,
                transaction_date=now,
                description=f"Auto interest for {_day_label(days)}",
            )
            calculation = await self._calc_repo.add(
                InterestCalculation(
                    investment_id=investment.id,
                    calculation_type=calculation_type,
                    calculated_at=now,
                    period_start=period_start,
                    period_end=now,
                    principal_amount=principal,
                    interest_rate=investment.interest_rate,
                    interest_earned=result.interest,
                    new_balance=result.new_balance,
                    transaction_id=txn.id,
                )
            )
            investment.last_interest_calculated = now
            investment.next_interest_due = next_due_date(now, investment.compounding_frequency)
            await self._invest_repo.save(investment)

        logger.info(
            "Applied %s interest of %s to investment %s over %s (balance %s -> %s)",
            calculation_type.value.lower(),
            result.interest,
            investment.id,
            _day_label(days),
            principal,
            investment.current_balance,
            extra={"investment_id": str(investment.id), "owner_id": str(owner_id)},
        )
        return CalculationOutcome(calculation=calculation, transaction=txn, investment=investment)

    async def revert_last(self, investment_id: UUID, owner_id: UUID) -> RevertOutcome:
        """
        Undo the most recent non-reverted calculation.

        The calculation row is kept and flagged; its ledger transaction is
        deleted; the balance, ``last_interest_calculated`` and
        ``next_interest_due`` return to what the previous calculation left.

        The balance moves back by the linked transaction's impact.  When that
        transaction was already deleted through the ledger (which reversed
        its impact then) the balance is left alone.
        """
        investment = await self._get(investment_id, owner_id)
        if investment.return_type != ReturnType.FIXED:
            raise InvalidStateError("Revert is only available for FIXED investments")

        calculation = await self._calc_repo.latest_active(investment.id)
        if calculation is None:
            raise InvalidStateError("No interest calculation to revert")

        txn = None
        if calculation.transaction_id is not None:
            txn = await self._txn_repo.get(calculation.transaction_id)
        reverted_amount = txn.impact if txn is not None else Decimal("0")

        now = self._clock()
        async with atomic(self._invest_repo.db):
            await self._ledger.adjust(investment, -reverted_amount)

            calculation.is_reverted = True
            calculation.reverted_at = now
            calculation.reverted_by = owner_id
            calculation.transaction_id = None
            await self._calc_repo.save(calculation)
            if txn is not None:
                await self._txn_repo.remove(txn)

            previous = await self._calc_repo.latest_active(
                investment.id, before=calculation.calculated_at
            )
            if previous is not None:
                investment.last_interest_calculated = previous.calculated_at
                investment.next_interest_due = next_due_date(
                    previous.calculated_at, investment.compounding_frequency
                )
            else:
                investment.last_interest_calculated = None
                investment.next_interest_due = next_due_date(
                    now, investment.compounding_frequency
                )
            await self._invest_repo.save(investment)

        logger.info(
            "Reverted calculation %s on investment %s (-%s, balance now %s)",
            calculation.id,
            investment.id,
            reverted_amount,
            investment.current_balance,
            extra={"investment_id": str(investment.id), "owner_id": str(owner_id)},
        )
        return RevertOutcome(
            calculation=calculation,
            investment=investment,
            reverted_amount=reverted_amount,
        )

    async def preview(self, investment_id: UUID, owner_id: UUID) -> Preview:
        """What :meth:`calculate_now` would apply at this instant; nothing is written."""
        investment = await self._get(investment_id, owner_id)
        self._require_fixed_with_rate(investment, "Interest preview")

        now = self._clock()
        period_start = self._period_start(investment)
        days = max(days_between(period_start, now), 0)
        result = period_interest(
            investment.current_balance,
            investment.interest_rate,
            investment.compounding_frequency,
            days,
        )
        return Preview(
            investment_id=investment.id,
            period_start=period_start,
            period_end=now,
            days=days,
            principal=investment.current_balance,
            interest_rate=investment.interest_rate,
            compounding_frequency=investment.compounding_frequency,
            interest=result.interest,
            new_balance=result.new_balance,
            effective_rate=result.effective_rate,
        )

    async def history(
        self, investment_id: UUID, owner_id: UUID, skip: int = 0, limit: int = 20
    ) -> Tuple[List[InterestCalculation], int]:
        investment = await self._get(investment_id, owner_id)
        return await self._calc_repo.history(investment.id, skip=skip, limit=limit)

    async def update_schedule(
        self, investment_id: UUID, owner_id: UUID, payload: ScheduleUpdate
    ) -> Investment:
        """
        Toggle automatic accrual and optionally change the compounding frequency.

        Switching automatic accrual on seeds ``next_interest_due`` from the last
        calculation (or the start date) when no due date is set yet.
        """
        investment = await self._get(investment_id, owner_id)
        if payload.auto_calculate_interest:
            self._require_fixed_with_rate(investment, "Automatic interest")

        async with atomic(self._invest_repo.db):
            if payload.compounding_frequency is not None:
                investment.compounding_frequency = payload.compounding_frequency
            investment.auto_calculate_interest = payload.auto_calculate_interest
            if payload.auto_calculate_interest and investment.next_interest_due is None:
                investment.next_interest_due = next_due_date(
                    self._period_start(investment), investment.compounding_frequency
                )
            await self._invest_repo.save(investment)

        logger.info(
            "Schedule for investment %s: auto=%s frequency=%s next_due=%s",
            investment.id,
            investment.auto_calculate_interest,
            investment.compounding_frequency.value,
            investment.next_interest_due,
            extra={"investment_id": str(investment.id)},
        )
        return investment

    # ── Variable returns ──

    async def _post_variable(
        self,
        investment: Investment,
        amount: Decimal,
        percentage: Decimal,
        payload,
        default_description: str,
    ) -> VariableUpdateOutcome:
        previous = investment.current_balance
        async with atomic(self._invest_repo.db):
            txn = await self._ledger.post(
                investment,
                TransactionType.RETURN,
                amount,
                transaction_date=payload.effective_date or self._clock(),
                percentage=percentage,
                description=payload.description or default_description,
            )
        logger.info(
            "Variable return on investment %s: %s (%s%%), balance %s -> %s",
            investment.id,
            amount,
            percentage,
            previous,
            investment.current_balance,
            extra={"investment_id": str(investment.id), "transaction_id": str(txn.id)},
        )
        return VariableUpdateOutcome(
            transaction=txn,
            investment=investment,
            previous_balance=previous,
            change_amount=amount,
            percentage=percentage,
        )

    async def update_by_percentage(
        self, investment_id: UUID, owner_id: UUID, payload: PercentageUpdate
    ) -> VariableUpdateOutcome:
        """Apply a percentage change: ``amount = balance * pct / 100``."""
        investment = await self._get(investment_id, owner_id)
        self._require_variable(investment, "Percentage update")
        self._require_active(investment, "Percentage update")

        pct = payload.percentage
        amount = round_money(investment.current_balance * pct / HUNDRED)
        return await self._post_variable(
            investment, amount, pct, payload, f"Variable return {pct}%"
        )

    async def update_by_balance(
        self, investment_id: UUID, owner_id: UUID, payload: BalanceUpdate
    ) -> VariableUpdateOutcome:
        """Set the balance outright; the implied return is recorded as a RETURN."""
        investment = await self._get(investment_id, owner_id)
        self._require_variable(investment, "Balance update")
        self._require_active(investment, "Balance update")

        current = investment.current_balance
        amount = payload.new_balance - current
        pct: Decimal = (
            round_stored_percent(amount / current * HUNDRED) if current > 0 else Decimal("0")
        )
        return await self._post_variable(
            investment,
            amount,
            pct,
            payload,
            f"Variable return via balance update ({pct:.2f}%)",
        )

