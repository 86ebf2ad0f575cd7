"""
Reporting endpoints.

- GET /reports/portfolio — Portfolio totals, best / worst performer, categories
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from investtrack.api.deps import get_clock, get_current_owner
from investtrack.core.clock import Clock
from investtrack.db.session import get_db
from investtrack.models.investment import Investment
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.schemas.returns import PortfolioReport
from investtrack.services.report_service import ReportService

router = APIRouter()


def _get_report_service(
    db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock)
) -> ReportService:
    return ReportService(InvestmentRepository(Investment, db), clock=clock)


@router.get(
    "/portfolio",
    response_model=PortfolioReport,
    summary="Portfolio report",
    description="Covers every investment the caller owns, whatever its status.",
)
async def portfolio_report(
    owner_id: UUID = Depends(get_current_owner),
    service: ReportService = Depends(_get_report_service),
) -> PortfolioReport:
    report = await service.portfolio(owner_id)
    return PortfolioReport.model_validate(report)
