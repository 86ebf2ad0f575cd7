"""
Investment repository — data-access layer for the ``investments`` table.

Every lookup that serves a user request is scoped by ``owner_id``; callers
treat a ``None`` result as "not found" whether the row is missing or owned by
someone else.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.future import select
from sqlalchemy.orm.attributes import set_committed_value

from investtrack.models.investment import Investment, InvestmentStatus, ReturnType
from investtrack.repositories.base import BaseRepository
from investtrack.schemas.investment import InvestmentFilters


class InvestmentRepository(BaseRepository[Investment]):
    """Concrete repository for :class:`Investment` entities."""

    async def get_owned(self, investment_id: UUID, owner_id: UUID) -> Optional[Investment]:
        """Return the investment only if ``owner_id`` owns it."""
        stmt = select(self.model).where(
            self.model.id == investment_id, self.model.owner_id == owner_id
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    def _filtered(self, owner_id: UUID, filters: InvestmentFilters):
        stmt = select(self.model).where(self.model.owner_id == owner_id)
        if filters.status is not None:
            stmt = stmt.where(self.model.status == filters.status)
        if filters.return_type is not None:
            stmt = stmt.where(self.model.return_type == filters.return_type)
        if filters.currency:
            stmt = stmt.where(self.model.currency == filters.currency.upper())
        if filters.category:
            stmt = stmt.where(self.model.category.ilike(f"%{filters.category}%"))
        if filters.start_from is not None:
            stmt = stmt.where(self.model.start_date >= filters.start_from)
        if filters.start_to is not None:
            stmt = stmt.where(self.model.start_date <= filters.start_to)
        return stmt

    async def list_for_owner(
        self, owner_id: UUID, filters: InvestmentFilters, skip: int = 0, limit: int = 20
    ) -> Tuple[List[Investment], int]:
        """
        Return one page of the owner's investments plus the unpaginated total.

        Newest first, with ``id`` as a tie-breaker for stable pagination.
        """
        stmt = self._filtered(owner_id, filters)
        total = (
            await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()
        page = stmt.order_by(self.model.created_at.desc(), self.model.id).offset(skip).limit(limit)
        result = await self.db.execute(page)
        return list(result.scalars().all()), total

    async def list_all_for_owner(self, owner_id: UUID) -> List[Investment]:
        stmt = (
            select(self.model)
            .where(self.model.owner_id == owner_id)
            .order_by(self.model.created_at, self.model.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_due(self, now: datetime) -> List[Tuple[UUID, UUID]]:
        """
        ``(investment_id, owner_id)`` pairs due for scheduled interest.

        FIXED, auto-calculating, ACTIVE, and ``next_interest_due <= now``.
        """
        stmt = (
            select(self.model.id, self.model.owner_id)
            .where(
                self.model.return_type == ReturnType.FIXED,
                self.model.auto_calculate_interest.is_(True),
                self.model.status == InvestmentStatus.ACTIVE,
                self.model.next_interest_due.is_not(None),
                self.model.next_interest_due <= now,
            )
            .order_by(self.model.next_interest_due)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def claim(self, investment: Investment) -> bool:
        """
        Compare-and-increment the row version.

        Issues ``UPDATE ... SET version = v + 1 WHERE id = :id AND version = v``.
        Returns ``False`` when no row matched, i.e. another writer changed the
        investment since it was read.
        """
        expected = investment.version
        stmt = (
            update(self.model)
            .where(self.model.id == investment.id, self.model.version == expected)
            .values(version=expected + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            return False
        set_committed_value(investment, "version", expected + 1)
        return True

    async def totals_for_owner(self, owner_id: UUID) -> Tuple[int, Decimal, Decimal]:
        """``(count, sum(initial_amount), sum(current_balance))`` for an owner."""
        stmt = select(
            func.count(self.model.id),
            func.coalesce(func.sum(self.model.initial_amount), 0),
            func.coalesce(func.sum(self.model.current_balance), 0),
        ).where(self.model.owner_id == owner_id)
        count, principal, balance = (await self.db.execute(stmt)).one()
        return int(count), Decimal(str(principal)), Decimal(str(balance))

    async def status_counts(self, owner_id: UUID) -> Dict[InvestmentStatus, int]:
        stmt = (
            select(self.model.status, func.count(self.model.id))
            .where(self.model.owner_id == owner_id)
            .group_by(self.model.status)
        )
        result = await self.db.execute(stmt)
        return {InvestmentStatus(status): int(count) for status, count in result.all()}
