"""
Investment service — business logic layer for the investment registry.

Owns the rules that tie ``return_type`` to ``interest_rate``: a FIXED
investment always carries a rate, a VARIABLE one never does.  CANCELLED is
terminal; nothing moves an investment out of it.

Balance changes made here (the manual override) go through the ledger like
every other balance change, so the override shows up as a RETURN transaction.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from investtrack.core.clock import Clock, as_utc, utc_now
from investtrack.core.config import settings
from investtrack.core.exceptions import InvalidInputError, InvalidStateError, NotFoundException
from investtrack.db.session import atomic
from investtrack.models.investment import Investment, InvestmentStatus, ReturnType
from investtrack.models.transaction import TransactionType
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.schemas.investment import (
    BalanceOverride,
    InvestmentCreate,
    InvestmentFilters,
    InvestmentStatusUpdate,
    InvestmentUpdate,
)
from investtrack.services.calculations import (
    HUNDRED,
    ZERO,
    next_due_date,
    round_percent,
    round_stored_percent,
)
from investtrack.services.ledger import Ledger

logger = logging.getLogger(__name__)

CANCELLED_BY_USER_NOTE = "Investment cancelled by user"

# Fields whose explicit ``null`` in an update body is ignored rather than
# written, because the column is NOT NULL.
_REQUIRED_FIELDS = ("name", "category", "currency", "return_type", "compounding_frequency")


@dataclass
class RegistrySummary:
    total_investments: int
    total_principal: Decimal
    total_current_value: Decimal
    total_returns: Decimal
    return_percentage: Decimal
    by_status: Dict[InvestmentStatus, int]


class InvestmentService:
    """Encapsulates CRUD + business rules for :class:`Investment`."""

    def __init__(
        self,
        invest_repo: InvestmentRepository,
        txn_repo: TransactionRepository,
        clock: Clock = utc_now,
        default_currency: Optional[str] = None,
    ):
        self._invest_repo = invest_repo
        self._txn_repo = txn_repo
        self._ledger = Ledger(invest_repo, txn_repo)
        self._clock = clock
        self._default_currency = default_currency or settings.DEFAULT_CURRENCY

    # ── Queries ──

    async def get_investment(self, investment_id: UUID, owner_id: UUID) -> Investment:
        investment = await self._invest_repo.get_owned(investment_id, owner_id)
        if not investment:
            raise NotFoundException("Investment", investment_id)
        return investment

    async def list_investments(
        self, owner_id: UUID, filters: InvestmentFilters, skip: int = 0, limit: int = 20
    ) -> Tuple[List[Investment], int]:
        return await self._invest_repo.list_for_owner(owner_id, filters, skip=skip, limit=limit)

    async def get_summary(self, owner_id: UUID) -> RegistrySummary:
        count, principal, balance = await self._invest_repo.totals_for_owner(owner_id)
        by_status = {status: 0 for status in InvestmentStatus}
        by_status.update(await self._invest_repo.status_counts(owner_id))
        returns = balance - principal
        return RegistrySummary(
            total_investments=count,
            total_principal=principal,
            total_current_value=balance,
            total_returns=returns,
            return_percentage=(
                round_percent(returns / principal * HUNDRED) if principal > 0 else ZERO
            ),
            by_status=by_status,
        )

    # ── Commands ──

    async def create_investment(self, owner_id: UUID, payload: InvestmentCreate) -> Investment:
        """
        Register a new investment.

        Validation sequence:
        1. FIXED requires ``interest_rate`` -> 422 if missing.
        2. VARIABLE drops any supplied rate and cannot auto-accrue.

        The balance starts at the principal and status at ACTIVE.  When
        automatic accrual is requested the first due date is one compounding
        period after ``start_date``.
        """
        is_fixed = payload.return_type == ReturnType.FIXED
        if is_fixed and payload.interest_rate is None:
            raise InvalidInputError(
                "interest_rate is required for FIXED investments",
                details=[{"field": "interest_rate", "message": "required for FIXED"}],
            )
        auto = payload.auto_calculate_interest and is_fixed

        investment = Investment(
            owner_id=owner_id,
            name=payload.name,
            category=payload.category,
            currency=payload.currency or self._default_currency,
            initial_amount=payload.initial_amount,
            current_balance=payload.initial_amount,
            return_type=payload.return_type,
            interest_rate=payload.interest_rate if is_fixed else None,
            compounding_frequency=payload.compounding_frequency,
            start_date=payload.start_date,
            end_date=payload.end_date,
            status=InvestmentStatus.ACTIVE,
            auto_calculate_interest=auto,
            next_interest_due=(
                next_due_date(payload.start_date, payload.compounding_frequency) if auto else None
            ),
            notes=payload.notes,
        )
        async with atomic(self._invest_repo.db):
            created = await self._invest_repo.add(investment)

        logger.info(
            "Created %s investment %s '%s' for %s %s",
            created.return_type.value,
            created.id,
            created.name,
            created.currency,
            created.initial_amount,
            extra={"investment_id": str(created.id), "owner_id": str(owner_id)},
        )
        return created

    async def update_investment(
        self, investment_id: UUID, owner_id: UUID, payload: InvestmentUpdate
    ) -> Investment:
        """
        Partial update of descriptive fields and the return model.

        Switching to VARIABLE clears the rate and turns automatic accrual off;
        switching to (or staying) FIXED requires a rate.
        """
        investment = await self.get_investment(investment_id, owner_id)
        changes = {
            field: value
            for field, value in payload.model_dump(exclude_unset=True).items()
            if not (value is None and field in _REQUIRED_FIELDS)
        }

        return_type = changes.get("return_type", investment.return_type)
        rate = changes.get("interest_rate", investment.interest_rate)
        if return_type == ReturnType.FIXED and rate is None:
            raise InvalidInputError("interest_rate is required for FIXED investments")

        end_date = changes.get("end_date", investment.end_date)
        if end_date is not None and as_utc(end_date) <= as_utc(investment.start_date):
            raise InvalidInputError("end_date must be after start_date")

        async with atomic(self._invest_repo.db):
            for field, value in changes.items():
                setattr(investment, field, value)
            if return_type == ReturnType.VARIABLE:
                investment.interest_rate = None
                investment.auto_calculate_interest = False
                investment.next_interest_due = None
            await self._invest_repo.save(investment)

        logger.info(
            "Updated investment %s (%s)",
            investment.id,
            ", ".join(sorted(changes)) or "no fields",
            extra={"investment_id": str(investment.id)},
        )
        return investment

    async def change_status(
        self, investment_id: UUID, owner_id: UUID, payload: InvestmentStatusUpdate
    ) -> Investment:
        investment = await self.get_investment(investment_id, owner_id)
        if investment.status == payload.status:
            raise InvalidStateError(f"Investment is already {payload.status.value}")
        if investment.is_cancelled:
            raise InvalidStateError("Cancelled investments cannot change status")

        previous = investment.status
        async with atomic(self._invest_repo.db):
            investment.status = payload.status
            if payload.notes:
                investment.notes = payload.notes.strip()
            await self._invest_repo.save(investment)

        logger.info(
            "Investment %s status %s -> %s",
            investment.id,
            previous.value,
            investment.status.value,
            extra={"investment_id": str(investment.id)},
        )
        return investment

    async def cancel_investment(self, investment_id: UUID, owner_id: UUID) -> Investment:
        """Soft delete: the investment and its ledger stay, the status becomes CANCELLED."""
        return await self.change_status(
            investment_id,
            owner_id,
            InvestmentStatusUpdate(
                status=InvestmentStatus.CANCELLED, notes=CANCELLED_BY_USER_NOTE
            ),
        )

    async def override_balance(
        self, investment_id: UUID, owner_id: UUID, payload: BalanceOverride
    ) -> Investment:
        """
        Set ``current_balance`` to an explicit value.

        The difference is recorded as a RETURN so the ledger identity still
        holds.  Setting the balance it already has records nothing.
        """
        investment = await self.get_investment(investment_id, owner_id)
        self._ledger.ensure_mutable(investment)

        current = investment.current_balance
        delta = payload.current_balance - current
        if delta == 0:
            return investment

        pct = round_stored_percent(delta / current * HUNDRED) if current > 0 else None
        async with atomic(self._invest_repo.db):
            await self._ledger.post(
                investment,
                TransactionType.RETURN,
                delta,
                transaction_date=self._clock(),
                percentage=pct,
                description=payload.description or "Manual balance adjustment",
            )

        logger.info(
            "Manual balance override on investment %s: %s -> %s",
            investment.id,
            current,
            investment.current_balance,
            extra={"investment_id": str(investment.id), "owner_id": str(owner_id)},
        )
        return investment
