"""
Scheduled interest accrual.

:class:`InterestScheduler` finds FIXED, auto-calculating, ACTIVE investments
whose ``next_interest_due`` has passed and runs calculate-now on each one.

- Every investment gets its **own session and unit of work**, so one failure
  (rate missing, version conflict, database error) rolls back only that
  investment and the sweep carries on.
- The sweep is registered on an APScheduler ``AsyncIOScheduler`` with an
  ``IntervalTrigger``; the application lifespan starts and stops it.
- ``run_once`` is usable directly (tests, admin tooling) and returns a
  summary of what happened.
"""

import logging
from dataclasses import dataclass, field
from datetime import timezone
from typing import List, Optional
from uuid import UUID

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from investtrack.core.clock import Clock, utc_now
from investtrack.core.exceptions import AppException
from investtrack.models.interest_calculation import CalculationType, InterestCalculation
from investtrack.models.investment import Investment
from investtrack.models.transaction import Transaction
from investtrack.repositories.calculation_repo import CalculationRepository
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.services.interest_service import InterestService

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "interest_sweep"


@dataclass
class SweepError:
    investment_id: UUID
    error: str


@dataclass
class SweepSummary:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: List[SweepError] = field(default_factory=list)


class InterestScheduler:
    """Periodic driver for automatic interest calculation."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: int,
        clock: Clock = utc_now,
    ):
        self._session_factory = session_factory
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _service(self, session: AsyncSession) -> InterestService:
        return InterestService(
            InvestmentRepository(Investment, session),
            TransactionRepository(Transaction, session),
            CalculationRepository(InterestCalculation, session),
            clock=self._clock,
        )

    async def run_once(self) -> SweepSummary:
        """Process every investment due at this instant, one at a time."""
        now = self._clock()
        async with self._session_factory() as session:
            due = await InvestmentRepository(Investment, session).find_due(now)

        summary = SweepSummary(processed=len(due))
        for investment_id, owner_id in due:
            try:
                async with self._session_factory() as session:
                    await self._service(session).calculate_now(
                        investment_id, owner_id, calculation_type=CalculationType.AUTOMATIC
                    )
            except AppException as exc:
                logger.warning(
                    "Scheduled interest skipped for investment %s: %s",
                    investment_id,
                    exc.message,
                    extra={"investment_id": str(investment_id)},
                )
                summary.failed += 1
                summary.errors.append(SweepError(investment_id=investment_id, error=exc.message))
            except Exception as exc:
                logger.exception(
                    "Scheduled interest failed for investment %s",
                    investment_id,
                    extra={"investment_id": str(investment_id)},
                )
                summary.failed += 1
                summary.errors.append(SweepError(investment_id=investment_id, error=str(exc)))
            else:
                summary.succeeded += 1

        if summary.processed:
            logger.info(
                "Interest sweep: %d due, %d succeeded, %d failed",
                summary.processed,
                summary.succeeded,
                summary.failed,
            )
        else:
            logger.debug("Interest sweep: nothing due")
        return summary

    async def _sweep(self) -> None:
        try:
            await self.run_once()
        except Exception:
            # Failing to even list due investments must not stop later sweeps.
            logger.exception("Interest sweep crashed")

    def start(self) -> None:
        """Register the sweep job and start the scheduler.  Idempotent."""
        if self._scheduler is not None:
            return
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            self._sweep,
            IntervalTrigger(seconds=self._interval_seconds),
            id=SWEEP_JOB_ID,
            name="Apply due interest to fixed-rate investments",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Interest scheduler started (every %ss)", self._interval_seconds)

    def stop(self, wait: bool = True) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Interest scheduler stopped")
