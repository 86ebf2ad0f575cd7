"""
Returns toolkit endpoints.

- POST /returns/manual              — Record a return (amount or percentage)
- POST /returns/bulk                — Record many returns; partial success is 207
- POST /returns/calculate           — Stateless compound-interest calculator
- POST /returns/{id}/projections    — Current performance and forward projection
- GET  /returns/{id}/next-monthly   — Next month's return for a FIXED investment
- POST /returns/{id}/apply-monthly  — Book that monthly return as a RETURN
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from investtrack.api.deps import get_clock, get_current_owner
from investtrack.core.clock import Clock
from investtrack.db.session import get_db
from investtrack.models.investment import Investment
from investtrack.models.transaction import Transaction
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.schemas.common import ErrorResponse, ValidationErrorResponse
from investtrack.schemas.returns import (
    AppliedMonthlyReturnResult,
    BulkReturnResult,
    BulkReturns,
    CompoundInterestRequest,
    CompoundInterestResponse,
    ManualReturn,
    ManualReturnResult,
    NextMonthlyReturn,
    ProjectionRequest,
    ProjectionResponse,
)
from investtrack.services.returns_service import ReturnsService

router = APIRouter()

MULTI_STATUS = 207


# ── Dependency injection ──


def _get_returns_service(
    db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock)
) -> ReturnsService:
    """Build a ReturnsService wired to the current request's DB session."""
    return ReturnsService(
        InvestmentRepository(Investment, db),
        TransactionRepository(Transaction, db),
        clock=clock,
    )


_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Investment not found"},
    409: {"model": ErrorResponse, "description": "Operation not allowed in this state"},
}


# ── Endpoints ──


@router.post(
    "/manual",
    response_model=ManualReturnResult,
    status_code=201,
    summary="Record a manual return",
    description=(
        "Give exactly one of ``amount`` (negative for a loss) or ``percentage`` "
        "of the current balance."
    ),
    responses={
        **_RESPONSES,
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def add_manual_return(
    payload: ManualReturn,
    owner_id: UUID = Depends(get_current_owner),
    service: ReturnsService = Depends(_get_returns_service),
) -> ManualReturnResult:
    outcome = await service.add_manual_return(owner_id, payload)
    return ManualReturnResult.model_validate(outcome)


@router.post(
    "/bulk",
    response_model=BulkReturnResult,
    status_code=201,
    summary="Record returns in bulk",
    description=(
        "Each entry is applied on its own; a failing entry is reported in "
        "``errors`` and does not undo the others.  Responds 207 when any "
        "entry failed."
    ),
    responses={MULTI_STATUS: {"model": BulkReturnResult, "description": "Partial success"}},
)
async def add_bulk_returns(
    payload: BulkReturns,
    response: Response,
    owner_id: UUID = Depends(get_current_owner),
    service: ReturnsService = Depends(_get_returns_service),
) -> BulkReturnResult:
    outcome = await service.add_bulk_returns(owner_id, payload)
    if outcome.failed:
        response.status_code = MULTI_STATUS
    return BulkReturnResult.model_validate(outcome)


@router.post(
    "/calculate",
    response_model=CompoundInterestResponse,
    summary="Compound interest calculator",
    description="Pure calculation; nothing is stored and no investment is needed.",
    dependencies=[Depends(get_current_owner)],
)
async def compound_calculator(payload: CompoundInterestRequest) -> CompoundInterestResponse:
    return CompoundInterestResponse.model_validate(ReturnsService.compound_calculator(payload))


@router.post(
    "/{investment_id}/projections",
    response_model=ProjectionResponse,
    summary="Project an investment forward",
    description=(
        "Uses the request rate, else the investment's rate, else 5%.  Monthly "
        "figures cover at most the first twelve months."
    ),
    responses=_RESPONSES,
)
async def project_investment(
    investment_id: UUID,
    payload: ProjectionRequest,
    owner_id: UUID = Depends(get_current_owner),
    service: ReturnsService = Depends(_get_returns_service),
) -> ProjectionResponse:
    projection = await service.project(investment_id, owner_id, payload)
    return ProjectionResponse.model_validate(projection)


@router.get(
    "/{investment_id}/next-monthly",
    response_model=NextMonthlyReturn,
    summary="Next monthly return",
    responses=_RESPONSES,
)
async def next_monthly_return(
    investment_id: UUID,
    owner_id: UUID = Depends(get_current_owner),
    service: ReturnsService = Depends(_get_returns_service),
) -> NextMonthlyReturn:
    result = await service.next_monthly_return(investment_id, owner_id)
    return NextMonthlyReturn.model_validate(result)


@router.post(
    "/{investment_id}/apply-monthly",
    response_model=AppliedMonthlyReturnResult,
    status_code=201,
    summary="Apply the next monthly return",
    description=(
        "Computes the next monthly return of a FIXED investment and records it "
        "as a RETURN transaction."
    ),
    responses=_RESPONSES,
)
async def apply_monthly_return(
    investment_id: UUID,
    owner_id: UUID = Depends(get_current_owner),
    service: ReturnsService = Depends(_get_returns_service),
) -> AppliedMonthlyReturnResult:
    outcome = await service.apply_monthly_return(investment_id, owner_id)
    return AppliedMonthlyReturnResult.model_validate(outcome)
