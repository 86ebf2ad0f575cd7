"""
Tests for the interest scheduler.

``run_once`` is exercised against SQLite: due investments are processed in
isolation so one failure neither stops nor rolls back the others.  The
APScheduler wiring is checked without waiting for a tick.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from investtrack.core.clock import fixed_clock
from investtrack.models.interest_calculation import CalculationType, InterestCalculation
from investtrack.models.investment import Investment, InvestmentStatus
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.services.scheduler import SWEEP_JOB_ID, InterestScheduler

from .conftest import NOW, make_investment, make_variable_investment, persist

DUE = datetime(2025, 1, 31, tzinfo=timezone.utc)


def _due_investment(**kwargs) -> Investment:
    kwargs.setdefault("id", uuid4())
    kwargs.setdefault("next_interest_due", DUE)
    return make_investment(auto_calculate_interest=True, **kwargs)


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, session_factory):
        first = _due_investment(next_interest_due=datetime(2025, 1, 29, tzinfo=timezone.utc))
        broken = _due_investment(
            interest_rate=None, next_interest_due=datetime(2025, 1, 30, tzinfo=timezone.utc)
        )
        third = _due_investment(next_interest_due=DUE)
        await persist(session_factory, third, broken, first)

        async with session_factory() as s:
            due = await InvestmentRepository(Investment, s).find_due(NOW)
        assert [investment_id for investment_id, _ in due] == [first.id, broken.id, third.id]

        summary = await InterestScheduler(
            session_factory, interval_seconds=60, clock=fixed_clock(NOW)
        ).run_once()

        assert summary.processed == 3
        assert summary.succeeded == 2
        assert summary.failed == 1
        assert summary.errors[0].investment_id == broken.id
        assert "interest rate" in summary.errors[0].error

        async with session_factory() as s:
            calcs = (await s.execute(select(InterestCalculation))).scalars().all()
            stored = {i.id: await s.get(Investment, i.id) for i in (first, broken, third)}
        assert {c.investment_id for c in calcs} == {first.id, third.id}
        assert all(c.calculation_type == CalculationType.AUTOMATIC for c in calcs)
        assert stored[first.id].current_balance > Decimal("10000")
        assert stored[third.id].current_balance > Decimal("10000")
        assert stored[first.id].next_interest_due is not None
        assert stored[third.id].last_interest_calculated is not None
        assert stored[broken.id].current_balance == Decimal("10000")
        assert stored[broken.id].last_interest_calculated is None

    @pytest.mark.asyncio
    async def test_only_due_investments_are_picked(self, session_factory):
        due_now = _due_investment()
        await persist(
            session_factory,
            due_now,
            _due_investment(next_interest_due=datetime(2025, 3, 1, tzinfo=timezone.utc)),
            _due_investment(status=InvestmentStatus.COMPLETED),
            make_variable_investment(id=uuid4()),
            make_investment(id=uuid4(), auto_calculate_interest=False, next_interest_due=DUE),
        )

        summary = await InterestScheduler(
            session_factory, interval_seconds=60, clock=fixed_clock(NOW)
        ).run_once()

        assert summary.processed == 1
        assert summary.succeeded == 1

        async with session_factory() as s:
            calcs = (await s.execute(select(InterestCalculation))).scalars().all()
        assert [c.investment_id for c in calcs] == [due_now.id]

    @pytest.mark.asyncio
    async def test_processed_investment_is_not_due_again(self, session_factory):
        await persist(session_factory, _due_investment())
        scheduler = InterestScheduler(session_factory, interval_seconds=60, clock=fixed_clock(NOW))

        await scheduler.run_once()
        second = await scheduler.run_once()

        assert second.processed == 0

    @pytest.mark.asyncio
    async def test_nothing_due(self, session_factory):
        summary = await InterestScheduler(
            session_factory, interval_seconds=60, clock=fixed_clock(NOW)
        ).run_once()

        assert summary.processed == 0
        assert summary.errors == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_registers_single_job_and_stop(self, session_factory):
        scheduler = InterestScheduler(session_factory, interval_seconds=3600)

        scheduler.start()
        scheduler.start()
        try:
            assert scheduler.running
            jobs = scheduler._scheduler.get_jobs()
            assert [job.id for job in jobs] == [SWEEP_JOB_ID]
            assert jobs[0].max_instances == 1
            assert jobs[0].coalesce is True
        finally:
            scheduler.stop(wait=False)

        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_stop_without_start_is_harmless(self, session_factory):
        InterestScheduler(session_factory, interval_seconds=60).stop()
