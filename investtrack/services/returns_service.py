"""
Returns toolkit: manual and bulk returns, projections, and the next monthly
return estimate for fixed-rate investments.

Manual and monthly returns are ledger entries; projections and estimates
are read-only.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from investtrack.core.clock import Clock, utc_now
from investtrack.core.exceptions import (
    AppException,
    InvalidStateError,
    NegativeBalanceError,
    NotFoundException,
)
from investtrack.db.session import atomic
from investtrack.models.investment import Investment, InvestmentStatus, ReturnType
from investtrack.models.transaction import Transaction, TransactionType
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.schemas.returns import (
    BulkReturnFailure,
    BulkReturns,
    BulkReturnSuccess,
    CompoundInterestRequest,
    ManualReturn,
    ProjectionRequest,
)
from investtrack.schemas.transaction import TransactionResponse
from investtrack.services.calculations import (
    HUNDRED,
    MONTHS_PER_YEAR,
    ZERO,
    CompoundInterestResult,
    annualized_return,
    compound_interest,
    future_value_with_contributions,
    monthly_return,
    return_percentage,
    round_money,
    round_stored_percent,
    years_between,
)
from investtrack.services.ledger import Ledger

logger = logging.getLogger(__name__)

DEFAULT_PROJECTION_RATE = Decimal("5")


@dataclass
class ManualReturnOutcome:
    investment: Investment
    transaction: Transaction


@dataclass
class BulkOutcome:
    total_processed: int
    successful: int
    failed: int
    results: List[BulkReturnSuccess]
    errors: List[BulkReturnFailure]


@dataclass
class CurrentPerformance:
    total_returns: Decimal
    return_percentage: Decimal
    investment_age_years: Decimal
    annualized_return_percentage: Decimal


@dataclass
class ProjectedValue:
    future_value: Decimal
    total_returns: Decimal
    total_invested: Decimal
    return_percentage: Decimal


@dataclass
class MonthlyProjection:
    month: int
    balance: Decimal
    returns: Decimal
    monthly_return: Decimal


@dataclass
class Projection:
    investment_id: UUID
    current_balance: Decimal
    initial_amount: Decimal
    years: Decimal
    annual_rate: Decimal
    monthly_contribution: Decimal
    compounding_frequency: int
    current_performance: CurrentPerformance
    projected: ProjectedValue
    monthly_projections: List[MonthlyProjection]


@dataclass
class NextMonthly:
    investment_id: UUID
    current_balance: Decimal
    interest_rate: Decimal
    monthly_return: Decimal
    new_balance: Decimal
    monthly_rate: Decimal
    next_interest_due: Optional[datetime]
    calculated_at: datetime


@dataclass
class AppliedMonthlyReturn:
    investment: Investment
    transaction: Transaction
    calculation: NextMonthly


class ReturnsService:
    def __init__(
        self,
        invest_repo: InvestmentRepository,
        txn_repo: TransactionRepository,
        clock: Clock = utc_now,
    ):
        self._invest_repo = invest_repo
        self._ledger = Ledger(invest_repo, txn_repo)
        self._clock = clock

    async def _get(self, investment_id: UUID, owner_id: UUID) -> Investment:
        investment = await self._invest_repo.get_owned(investment_id, owner_id)
        if not investment:
            raise NotFoundException("Investment", investment_id)
        return investment

    # ── Manual returns ──

    async def add_manual_return(self, owner_id: UUID, payload: ManualReturn) -> ManualReturnOutcome:
        """
        Record a return given as an amount or as a percentage of the balance.

        A loss larger than the balance is rejected before anything is written.
        """
        investment = await self._get(payload.investment_id, owner_id)
        self._ledger.ensure_mutable(investment)
        balance = investment.current_balance

        if payload.percentage is not None:
            amount = round_money(balance * payload.percentage / HUNDRED)
            pct: Optional[Decimal] = payload.percentage
        else:
            amount = payload.amount
            pct = round_stored_percent(amount / balance * HUNDRED) if balance > 0 else None

        if amount < 0 and -amount > balance:
            raise NegativeBalanceError(
                f"Loss of {-amount} cannot exceed the current balance of {balance}"
            )

        async with atomic(self._invest_repo.db):
            txn = await self._ledger.post(
                investment,
                payload.type,
                amount,
                transaction_date=payload.transaction_date or self._clock(),
                percentage=pct,
                description=(
                    (payload.description or "").strip()
                    or f"Manual {payload.type.value.lower()} of {amount:+}"
                ),
            )

        logger.info(
            "Manual %s of %s on investment %s (balance %s)",
            payload.type.value,
            amount,
            investment.id,
            investment.current_balance,
            extra={"investment_id": str(investment.id), "transaction_id": str(txn.id)},
        )
        return ManualReturnOutcome(investment=investment, transaction=txn)

    async def add_bulk_returns(self, owner_id: UUID, payload: BulkReturns) -> BulkOutcome:
        """
        Apply each entry independently; one failure does not stop the rest.

        Successful entries are snapshotted immediately because a later
        entry's rollback expires every object loaded in the session.
        """
        results: List[BulkReturnSuccess] = []
        errors: List[BulkReturnFailure] = []

        for index, entry in enumerate(payload.returns):
            try:
                outcome = await self.add_manual_return(owner_id, entry)
            except AppException as exc:
                logger.warning(
                    "Bulk return entry %d for investment %s failed: %s",
                    index,
                    entry.investment_id,
                    exc.message,
                    extra={"investment_id": str(entry.investment_id)},
                )
                errors.append(
                    BulkReturnFailure(
                        index=index,
                        investment_id=entry.investment_id,
                        code=exc.code,
                        error=exc.message,
                    )
                )
                continue
            results.append(
                BulkReturnSuccess(
                    index=index,
                    investment_id=entry.investment_id,
                    transaction=TransactionResponse.model_validate(outcome.transaction),
                    new_balance=outcome.investment.current_balance,
                )
            )

        logger.info(
            "Bulk returns processed: %d successful, %d failed", len(results), len(errors)
        )
        return BulkOutcome(
            total_processed=len(payload.returns),
            successful=len(results),
            failed=len(errors),
            results=results,
            errors=errors,
        )

    # ── Read-only estimates ──

    @staticmethod
    def compound_calculator(payload: CompoundInterestRequest) -> CompoundInterestResult:
        return compound_interest(
            payload.principal, payload.annual_rate, payload.compounding_frequency, payload.years
        )

    async def project(
        self, investment_id: UUID, owner_id: UUID, payload: ProjectionRequest
    ) -> Projection:
        """
        Current performance plus a forward projection from today's balance.

        With monthly contributions the projection uses
        :func:`future_value_with_contributions`; otherwise plain compound
        interest.  Month-by-month figures cover at most the first year.
        """
        investment = await self._get(investment_id, owner_id)
        rate = payload.annual_rate
        if rate is None:
            rate = investment.interest_rate
        if rate is None:
            rate = DEFAULT_PROJECTION_RATE
        balance = investment.current_balance
        freq = payload.compounding_frequency

        age = years_between(investment.start_date, self._clock())
        performance = return_percentage(investment.initial_amount, balance)
        annualized = ZERO
        if age > 0:
            annualized = annualized_return(
                investment.initial_amount, balance, age
            ).annualized_return_percentage

        if payload.monthly_contribution > 0:
            fv = future_value_with_contributions(
                balance, payload.monthly_contribution, rate, payload.years
            )
            projected = ProjectedValue(
                future_value=fv.total_future_value,
                total_returns=fv.total_returns,
                total_invested=fv.total_invested,
                return_percentage=fv.return_percentage,
            )
        else:
            if balance <= 0:
                raise InvalidStateError("Cannot project an investment with a zero balance")
            ci = compound_interest(balance, rate, freq, payload.years)
            projected = ProjectedValue(
                future_value=ci.future_value,
                total_returns=ci.total_returns,
                total_invested=round_money(balance),
                return_percentage=ci.percentage_gain,
            )

        monthly: List[MonthlyProjection] = []
        if balance > 0:
            months = min(12, int(payload.years * MONTHS_PER_YEAR))
            previous_returns = ZERO
            for month in range(1, months + 1):
                step = compound_interest(balance, rate, freq, Decimal(month) / MONTHS_PER_YEAR)
                monthly.append(
                    MonthlyProjection(
                        month=month,
                        balance=step.future_value,
                        returns=step.total_returns,
                        monthly_return=step.total_returns - previous_returns,
                    )
                )
                previous_returns = step.total_returns

        return Projection(
            investment_id=investment.id,
            current_balance=balance,
            initial_amount=investment.initial_amount,
            years=payload.years,
            annual_rate=rate,
            monthly_contribution=payload.monthly_contribution,
            compounding_frequency=freq,
            current_performance=CurrentPerformance(
                total_returns=performance.absolute_return,
                return_percentage=performance.return_percentage,
                investment_age_years=age,
                annualized_return_percentage=annualized,
            ),
            projected=projected,
            monthly_projections=monthly,
        )

    def _monthly_estimate(self, investment: Investment) -> NextMonthly:
        if investment.return_type != ReturnType.FIXED:
            raise InvalidStateError(
                "Monthly return calculation is only available for FIXED investments"
            )
        if investment.interest_rate is None:
            raise InvalidStateError("Investment has no interest rate defined")
        if investment.status != InvestmentStatus.ACTIVE:
            raise InvalidStateError(
                "Monthly return calculation is only available for ACTIVE investments"
            )
        if investment.current_balance <= 0:
            raise InvalidStateError("Investment balance is zero")

        result = monthly_return(investment.current_balance, investment.interest_rate, compound=True)
        return NextMonthly(
            investment_id=investment.id,
            current_balance=result.current_balance,
            interest_rate=investment.interest_rate,
            monthly_return=result.monthly_return,
            new_balance=result.new_balance,
            monthly_rate=result.monthly_rate,
            next_interest_due=investment.next_interest_due,
            calculated_at=self._clock(),
        )

    async def next_monthly_return(self, investment_id: UUID, owner_id: UUID) -> NextMonthly:
        investment = await self._get(investment_id, owner_id)
        return self._monthly_estimate(investment)

    async def apply_monthly_return(
        self, investment_id: UUID, owner_id: UUID
    ) -> AppliedMonthlyReturn:
        """
        Book the next monthly return as a RETURN transaction.

        The amount is exactly what :meth:`next_monthly_return` reports at
        this instant.
        """
        investment = await self._get(investment_id, owner_id)
        estimate = self._monthly_estimate(investment)
        monthly_pct = estimate.monthly_rate * HUNDRED

        async with atomic(self._invest_repo.db):
            txn = await self._ledger.post(
                investment,
                TransactionType.RETURN,
                estimate.monthly_return,
                transaction_date=estimate.calculated_at,
                percentage=round_stored_percent(monthly_pct),
                description=(
                    f"Monthly return - {monthly_pct.normalize():f}% "
                    f"of {estimate.current_balance}"
                ),
            )

        logger.info(
            "Applied monthly return of %s to investment %s (balance %s)",
            estimate.monthly_return,
            investment.id,
            investment.current_balance,
            extra={"investment_id": str(investment.id), "transaction_id": str(txn.id)},
        )
        return AppliedMonthlyReturn(investment=investment, transaction=txn, calculation=estimate)
