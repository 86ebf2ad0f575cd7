"""
Tests for InterestService against an in-memory SQLite database.

Every step runs in its own session so the assertions read what was actually
committed.  Tests cover:
- calculate-now: amount, ledger entry, audit row, accrual dates
- double calculation at the same instant is rejected
- revert as the exact inverse of calculate, including the previous
  calculation's dates and a transaction deleted in between
- variable updates by percentage and by balance
- preview, history, schedule toggling and ownership
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from investtrack.core.clock import as_utc, fixed_clock
from investtrack.core.exceptions import InvalidStateError, NotFoundException
from investtrack.models.interest_calculation import CalculationType, InterestCalculation
from investtrack.models.investment import Investment, InvestmentStatus
from investtrack.models.transaction import Transaction, TransactionType
from investtrack.repositories.calculation_repo import CalculationRepository
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.schemas.interest import BalanceUpdate, PercentageUpdate, ScheduleUpdate
from investtrack.services.interest_service import InterestService
from investtrack.services.transaction_service import TransactionService

from .conftest import (
    INVESTMENT_ID,
    NOW,
    OTHER_OWNER_ID,
    OWNER_ID,
    make_investment,
    make_variable_investment,
    persist,
)

CENT = Decimal("0.01")
MARCH = datetime(2025, 3, 1, tzinfo=timezone.utc)
APRIL = datetime(2025, 4, 1, tzinfo=timezone.utc)


def _interest(session, now=NOW) -> InterestService:
    return InterestService(
        InvestmentRepository(Investment, session),
        TransactionRepository(Transaction, session),
        CalculationRepository(InterestCalculation, session),
        clock=fixed_clock(now),
    )


async def _calculate(session_factory, now=NOW):
    async with session_factory() as s:
        return await _interest(s, now).calculate_now(INVESTMENT_ID, OWNER_ID)


async def _revert(session_factory, now=NOW):
    async with session_factory() as s:
        return await _interest(s, now).revert_last(INVESTMENT_ID, OWNER_ID)


async def _load(session_factory) -> Investment:
    async with session_factory() as s:
        return await s.get(Investment, INVESTMENT_ID)


async def _count(session_factory, model) -> int:
    async with session_factory() as s:
        return (await s.execute(select(func.count()).select_from(model))).scalar_one()


async def _ledger_sum(session_factory) -> Decimal:
    async with session_factory() as s:
        rows = await TransactionRepository(Transaction, s).list_for_investment(INVESTMENT_ID)
    return sum((t.impact for t in rows), Decimal("0"))


# ────────────────────────────────────────────────────────────────────────────
# calculate_now
# ────────────────────────────────────────────────────────────────────────────


class TestCalculateNow:
    @pytest.mark.asyncio
    async def test_thirty_one_days_at_twelve_percent(self, session_factory):
        await persist(session_factory, make_investment())

        outcome = await _calculate(session_factory)

        assert abs(outcome.calculation.interest_earned - Decimal("101.86")) <= CENT
        assert outcome.transaction.type == TransactionType.RETURN
        assert outcome.transaction.description == "Auto interest for 31 days"
        assert outcome.calculation.transaction_id == outcome.transaction.id
        assert outcome.calculation.calculation_type == CalculationType.MANUAL

        stored = await _load(session_factory)
        assert stored.current_balance == Decimal("10000") + outcome.calculation.interest_earned
        assert as_utc(stored.last_interest_calculated) == NOW
        assert as_utc(stored.next_interest_due) == MARCH
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_single_day_label(self, session_factory):
        await persist(session_factory, make_investment(last_interest_calculated=NOW))

        outcome = await _calculate(session_factory, now=datetime(2025, 2, 2, tzinfo=timezone.utc))

        assert outcome.transaction.description == "Auto interest for 1 day"

    @pytest.mark.asyncio
    async def test_second_calculation_at_same_instant_is_rejected(self, session_factory):
        await persist(session_factory, make_investment())
        await _calculate(session_factory)

        with pytest.raises(InvalidStateError, match="No new period"):
            await _calculate(session_factory)

        assert await _count(session_factory, Transaction) == 1
        assert await _count(session_factory, InterestCalculation) == 1

    @pytest.mark.asyncio
    async def test_balance_identity_after_several_periods(self, session_factory):
        await persist(session_factory, make_investment())
        for now in (NOW, MARCH, APRIL):
            await _calculate(session_factory, now=now)

        stored = await _load(session_factory)
        assert stored.current_balance == stored.initial_amount + await _ledger_sum(
            session_factory
        )

    @pytest.mark.asyncio
    async def test_variable_investment_is_rejected(self, session_factory):
        await persist(session_factory, make_variable_investment())

        with pytest.raises(InvalidStateError, match="FIXED"):
            await _calculate(session_factory)

    @pytest.mark.asyncio
    async def test_inactive_investment_is_rejected(self, session_factory):
        await persist(session_factory, make_investment(status=InvestmentStatus.COMPLETED))

        with pytest.raises(InvalidStateError, match="ACTIVE"):
            await _calculate(session_factory)

    @pytest.mark.asyncio
    async def test_other_owner_sees_not_found(self, session_factory):
        await persist(session_factory, make_investment())

        async with session_factory() as s:
            with pytest.raises(NotFoundException):
                await _interest(s).calculate_now(INVESTMENT_ID, OTHER_OWNER_ID)


# ────────────────────────────────────────────────────────────────────────────
# revert_last
# ────────────────────────────────────────────────────────────────────────────


class TestRevert:
    @pytest.mark.asyncio
    async def test_revert_is_exact_inverse(self, session_factory):
        await persist(session_factory, make_investment())
        calculated = await _calculate(session_factory)

        outcome = await _revert(session_factory)

        assert outcome.reverted_amount == calculated.calculation.interest_earned
        assert outcome.calculation.is_reverted is True
        assert outcome.calculation.reverted_by == OWNER_ID
        assert outcome.calculation.transaction_id is None

        stored = await _load(session_factory)
        assert stored.current_balance == Decimal("10000")
        assert stored.last_interest_calculated is None
        assert as_utc(stored.next_interest_due) == MARCH
        assert await _count(session_factory, Transaction) == 0
        assert await _count(session_factory, InterestCalculation) == 1

    @pytest.mark.asyncio
    async def test_nothing_to_revert(self, session_factory):
        await persist(session_factory, make_investment())

        with pytest.raises(InvalidStateError, match="No interest calculation to revert"):
            await _revert(session_factory)

    @pytest.mark.asyncio
    async def test_second_revert_goes_back_one_more(self, session_factory):
        await persist(session_factory, make_investment())
        await _calculate(session_factory, now=NOW)
        await _calculate(session_factory, now=MARCH)

        await _revert(session_factory, now=MARCH)
        stored = await _load(session_factory)
        assert as_utc(stored.last_interest_calculated) == NOW
        assert as_utc(stored.next_interest_due) == MARCH

        await _revert(session_factory, now=MARCH)
        stored = await _load(session_factory)
        assert stored.current_balance == Decimal("10000")
        assert stored.last_interest_calculated is None

        with pytest.raises(InvalidStateError):
            await _revert(session_factory, now=MARCH)

    @pytest.mark.asyncio
    async def test_revert_after_transaction_was_deleted(self, session_factory):
        await persist(session_factory, make_investment())
        calculated = await _calculate(session_factory)

        async with session_factory() as s:
            await TransactionService(
                InvestmentRepository(Investment, s),
                TransactionRepository(Transaction, s),
                CalculationRepository(InterestCalculation, s),
            ).delete_transaction(calculated.transaction.id, OWNER_ID)

        outcome = await _revert(session_factory)

        assert outcome.reverted_amount == Decimal("0")
        stored = await _load(session_factory)
        assert stored.current_balance == Decimal("10000")
        assert stored.last_interest_calculated is None

    @pytest.mark.asyncio
    async def test_recalculate_after_revert(self, session_factory):
        await persist(session_factory, make_investment())
        first = await _calculate(session_factory)
        await _revert(session_factory)

        again = await _calculate(session_factory)

        assert again.calculation.interest_earned == first.calculation.interest_earned


# ────────────────────────────────────────────────────────────────────────────
# preview / history / schedule
# ────────────────────────────────────────────────────────────────────────────


class TestPreviewAndHistory:
    @pytest.mark.asyncio
    async def test_preview_writes_nothing(self, session_factory):
        await persist(session_factory, make_investment())

        async with session_factory() as s:
            preview = await _interest(s).preview(INVESTMENT_ID, OWNER_ID)

        assert preview.days == 31
        assert abs(preview.interest - Decimal("101.86")) <= CENT
        assert await _count(session_factory, Transaction) == 0
        assert (await _load(session_factory)).current_balance == Decimal("10000")

    @pytest.mark.asyncio
    async def test_preview_matches_calculation(self, session_factory):
        await persist(session_factory, make_investment())
        async with session_factory() as s:
            preview = await _interest(s).preview(INVESTMENT_ID, OWNER_ID)

        outcome = await _calculate(session_factory)

        assert preview.interest == outcome.calculation.interest_earned

    @pytest.mark.asyncio
    async def test_history_includes_reverted_rows(self, session_factory):
        await persist(session_factory, make_investment())
        await _calculate(session_factory, now=NOW)
        await _calculate(session_factory, now=MARCH)
        await _revert(session_factory, now=MARCH)

        async with session_factory() as s:
            items, total = await _interest(s).history(INVESTMENT_ID, OWNER_ID)

        assert total == 2
        assert [c.is_reverted for c in items] == [True, False]


class TestSchedule:
    @pytest.mark.asyncio
    async def test_enable_seeds_next_due(self, session_factory):
        await persist(session_factory, make_investment())

        async with session_factory() as s:
            updated = await _interest(s).update_schedule(
                INVESTMENT_ID, OWNER_ID, ScheduleUpdate(auto_calculate_interest=True)
            )

        assert updated.auto_calculate_interest is True
        assert as_utc(updated.next_interest_due) == NOW

    @pytest.mark.asyncio
    async def test_enable_on_variable_is_rejected(self, session_factory):
        await persist(session_factory, make_variable_investment())

        async with session_factory() as s:
            with pytest.raises(InvalidStateError):
                await _interest(s).update_schedule(
                    INVESTMENT_ID, OWNER_ID, ScheduleUpdate(auto_calculate_interest=True)
                )


# ────────────────────────────────────────────────────────────────────────────
# Variable returns
# ────────────────────────────────────────────────────────────────────────────


class TestVariableUpdates:
    @pytest.mark.asyncio
    async def test_percentage_then_balance(self, session_factory):
        await persist(session_factory, make_variable_investment())

        async with session_factory() as s:
            up = await _interest(s).update_by_percentage(
                INVESTMENT_ID, OWNER_ID, PercentageUpdate(percentage=Decimal("10"))
            )
        assert up.change_amount == Decimal("1000.00")
        assert up.previous_balance == Decimal("10000")
        assert up.transaction.description == "Variable return 10%"

        async with session_factory() as s:
            down = await _interest(s).update_by_balance(
                INVESTMENT_ID, OWNER_ID, BalanceUpdate(new_balance=Decimal("9900"))
            )
        assert down.change_amount == Decimal("-1100")
        assert down.percentage == Decimal("-10.0000")
        assert down.transaction.description == "Variable return via balance update (-10.00%)"

        stored = await _load(session_factory)
        assert stored.current_balance == Decimal("9900")
        assert stored.current_balance == stored.initial_amount + await _ledger_sum(
            session_factory
        )

    @pytest.mark.asyncio
    async def test_loss_of_everything_reaches_zero(self, session_factory):
        await persist(session_factory, make_variable_investment())

        async with session_factory() as s:
            outcome = await _interest(s).update_by_percentage(
                INVESTMENT_ID, OWNER_ID, PercentageUpdate(percentage=Decimal("-100"))
            )

        assert outcome.investment.current_balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_fixed_investment_is_rejected(self, session_factory):
        await persist(session_factory, make_investment())

        async with session_factory() as s:
            with pytest.raises(InvalidStateError, match="VARIABLE"):
                await _interest(s).update_by_percentage(
                    INVESTMENT_ID, OWNER_ID, PercentageUpdate(percentage=Decimal("1"))
                )
