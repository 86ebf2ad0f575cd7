"""
Interest calculation repository.

"Last calculation" is always derived from an ordered scan of non-reverted
rows (``calculated_at`` descending); no pointer column is kept on the
investment.
"""

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.future import select

from investtrack.models.interest_calculation import InterestCalculation
from investtrack.repositories.base import BaseRepository


class CalculationRepository(BaseRepository[InterestCalculation]):
    """Concrete repository for :class:`InterestCalculation` entities."""

    async def latest_active(
        self, investment_id: UUID, before: Optional[datetime] = None
    ) -> Optional[InterestCalculation]:
        """
        Most recent non-reverted calculation for an investment.

        With ``before`` set, only calculations strictly earlier than it are
        considered (used to find the one preceding a reverted calculation).
        """
        stmt = select(self.model).where(
            self.model.investment_id == investment_id,
            self.model.is_reverted.is_(False),
        )
        if before is not None:
            stmt = stmt.where(self.model.calculated_at < before)
        stmt = stmt.order_by(self.model.calculated_at.desc()).limit(1)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def history(
        self, investment_id: UUID, skip: int = 0, limit: int = 20
    ) -> Tuple[List[InterestCalculation], int]:
        """A page of calculations, newest first, plus the total count."""
        total = (
            await self.db.execute(
                select(func.count())
                .select_from(self.model)
                .where(self.model.investment_id == investment_id)
            )
        ).scalar_one()
        stmt = (
            select(self.model)
            .where(self.model.investment_id == investment_id)
            .order_by(self.model.calculated_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def linked_to_transaction(self, transaction_id: UUID) -> List[InterestCalculation]:
        stmt = select(self.model).where(self.model.transaction_id == transaction_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
