"""
Transaction repository — data-access layer for the ``transactions`` table.

Ownership lives on the parent investment, so owner-scoped queries join
``investments``.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.future import select

from investtrack.models.investment import Investment
from investtrack.models.transaction import Transaction, TransactionType
from investtrack.repositories.base import BaseRepository
from investtrack.schemas.transaction import TransactionFilters

_SORT_COLUMNS = {
    "transaction_date": Transaction.transaction_date,
    "amount": Transaction.amount,
    "created_at": Transaction.created_at,
}


class TransactionRepository(BaseRepository[Transaction]):
    """Concrete repository for :class:`Transaction` entities."""

    def _owned(self, owner_id: UUID):
        return (
            select(self.model)
            .join(Investment, Investment.id == self.model.investment_id)
            .where(Investment.owner_id == owner_id)
        )

    async def get_owned(self, transaction_id: UUID, owner_id: UUID) -> Optional[Transaction]:
        """Return the transaction only if its investment belongs to ``owner_id``."""
        stmt = self._owned(owner_id).where(self.model.id == transaction_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_for_owner(
        self, owner_id: UUID, filters: TransactionFilters, skip: int = 0, limit: int = 20
    ) -> Tuple[List[Transaction], int]:
        """
        One page of the owner's transactions plus the unpaginated total.

        ``created_at`` breaks ties so several entries on the same effective
        date keep their insertion order (newest first when descending).
        """
        stmt = self._owned(owner_id)
        if filters.investment_id is not None:
            stmt = stmt.where(self.model.investment_id == filters.investment_id)
        if filters.type is not None:
            stmt = stmt.where(self.model.type == filters.type)
        if filters.start_date is not None:
            stmt = stmt.where(self.model.transaction_date >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(self.model.transaction_date <= filters.end_date)
        if filters.min_amount is not None:
            stmt = stmt.where(self.model.amount >= filters.min_amount)
        if filters.max_amount is not None:
            stmt = stmt.where(self.model.amount <= filters.max_amount)

        total = (
            await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()

        column = _SORT_COLUMNS[filters.sort_by]
        if filters.sort_order == "asc":
            stmt = stmt.order_by(column.asc(), self.model.created_at.asc())
        else:
            stmt = stmt.order_by(column.desc(), self.model.created_at.desc())
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def list_for_investment(self, investment_id: UUID) -> List[Transaction]:
        stmt = (
            select(self.model)
            .where(self.model.investment_id == investment_id)
            .order_by(self.model.transaction_date, self.model.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def totals_by_type(
        self, investment_id: UUID
    ) -> Dict[TransactionType, Tuple[Decimal, int]]:
        """``{type: (sum(amount), count)}`` for one investment."""
        stmt = (
            select(self.model.type, func.coalesce(func.sum(self.model.amount), 0), func.count())
            .where(self.model.investment_id == investment_id)
            .group_by(self.model.type)
        )
        result = await self.db.execute(stmt)
        return {
            TransactionType(txn_type): (Decimal(str(total)), int(count))
            for txn_type, total, count in result.all()
        }
