"""
Portfolio reporting across all of an owner's investments.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from investtrack.core.clock import Clock, utc_now
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.services.calculations import (
    HUNDRED,
    ZERO,
    Holding,
    RankedHolding,
    portfolio_metrics,
    round_money,
    round_percent,
)

logger = logging.getLogger(__name__)


@dataclass
class HoldingView:
    investment_id: UUID
    name: str
    principal: Decimal
    current: Decimal
    return_percentage: Decimal


@dataclass
class CategoryView:
    category: str
    count: int
    total_principal: Decimal
    total_current_value: Decimal
    return_percentage: Decimal


@dataclass
class PortfolioSummary:
    total_principal: Decimal
    total_current_value: Decimal
    total_returns: Decimal
    return_percentage: Decimal
    number_of_investments: int
    average_return: Decimal
    best_performing: Optional[HoldingView]
    worst_performing: Optional[HoldingView]
    categories: List[CategoryView]
    generated_at: datetime


def _percent(principal: Decimal, current: Decimal) -> Decimal:
    if principal <= 0:
        return ZERO
    return round_percent((current - principal) / principal * HUNDRED)


def _view(ranked: Optional[RankedHolding]) -> Optional[HoldingView]:
    if ranked is None:
        return None
    return HoldingView(
        investment_id=ranked.key,
        name=ranked.name,
        principal=ranked.principal,
        current=ranked.current,
        return_percentage=ranked.return_percentage,
    )


class ReportService:
    def __init__(self, invest_repo: InvestmentRepository, clock: Clock = utc_now):
        self._invest_repo = invest_repo
        self._clock = clock

    async def portfolio(self, owner_id: UUID) -> PortfolioSummary:
        """
        Totals, best and worst performers and a per-category breakdown.

        Every investment counts, whatever its status.
        """
        investments = await self._invest_repo.list_all_for_owner(owner_id)
        metrics = portfolio_metrics(
            [
                Holding(
                    key=inv.id,
                    name=inv.name,
                    principal=inv.initial_amount,
                    current=inv.current_balance,
                )
                for inv in investments
            ]
        )

        groups: Dict[str, Dict[str, Any]] = {}
        for inv in investments:
            group = groups.setdefault(
                inv.category, {"count": 0, "principal": ZERO, "current": ZERO}
            )
            group["count"] += 1
            group["principal"] += inv.initial_amount
            group["current"] += inv.current_balance

        categories = [
            CategoryView(
                category=name,
                count=group["count"],
                total_principal=round_money(group["principal"]),
                total_current_value=round_money(group["current"]),
                return_percentage=_percent(group["principal"], group["current"]),
            )
            for name, group in sorted(groups.items())
        ]

        logger.debug(
            "Portfolio report for %s: %d investments", owner_id, metrics.number_of_investments
        )
        return PortfolioSummary(
            total_principal=metrics.total_principal,
            total_current_value=metrics.total_current_value,
            total_returns=metrics.total_returns,
            return_percentage=metrics.return_percentage,
            number_of_investments=metrics.number_of_investments,
            average_return=metrics.average_return,
            best_performing=_view(metrics.best_performing),
            worst_performing=_view(metrics.worst_performing),
            categories=categories,
            generated_at=self._clock(),
        )
