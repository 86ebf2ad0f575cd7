"""
Interest / return engine endpoints.

- POST  /interest/calculate/{id}                  — Accrue interest up to now (FIXED)
- POST  /interest/revert/{id}                     — Undo the latest accrual (FIXED)
- GET   /interest/history/{id}                    — Calculation audit trail
- GET   /interest/preview/{id}                    — What calculate would apply now
- PATCH /interest/schedule/{id}                   — Toggle automatic accrual
- POST  /interest/variable/update-percentage/{id} — Apply a percentage return (VARIABLE)
- POST  /interest/variable/update-balance/{id}    — Set a new balance (VARIABLE)
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from investtrack.api.deps import get_clock, get_current_owner
from investtrack.core.clock import Clock
from investtrack.db.session import get_db
from investtrack.models.interest_calculation import InterestCalculation
from investtrack.models.investment import Investment
from investtrack.models.transaction import Transaction
from investtrack.repositories.calculation_repo import CalculationRepository
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.schemas.common import ErrorResponse, Page
from investtrack.schemas.interest import (
    BalanceUpdate,
    CalculationResult,
    InterestCalculationResponse,
    InterestPreview,
    PercentageUpdate,
    RevertRequest,
    RevertResult,
    ScheduleUpdate,
    VariableUpdateResult,
)
from investtrack.schemas.investment import InvestmentResponse
from investtrack.services.interest_service import InterestService

router = APIRouter()


# ── Dependency injection ──


def _get_interest_service(
    db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock)
) -> InterestService:
    """Build an InterestService wired to the current request's DB session."""
    return InterestService(
        InvestmentRepository(Investment, db),
        TransactionRepository(Transaction, db),
        CalculationRepository(InterestCalculation, db),
        clock=clock,
    )


_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Investment not found"},
    409: {"model": ErrorResponse, "description": "Operation not allowed in this state"},
}


# ── Fixed-rate endpoints ──


@router.post(
    "/calculate/{investment_id}",
    response_model=CalculationResult,
    status_code=201,
    summary="Calculate interest now",
    description=(
        "Accrues interest on the current balance from the last calculation (or the "
        "start date) until now and records it as a RETURN transaction."
    ),
    responses=_RESPONSES,
)
async def calculate_interest(
    investment_id: UUID,
    owner_id: UUID = Depends(get_current_owner),
    service: InterestService = Depends(_get_interest_service),
) -> CalculationResult:
    outcome = await service.calculate_now(investment_id, owner_id)
    return CalculationResult.model_validate(outcome)


@router.post(
    "/revert/{investment_id}",
    response_model=RevertResult,
    summary="Revert the latest calculation",
    description=(
        "Undoes the most recent non-reverted calculation: its transaction is "
        "deleted, the balance and accrual dates are restored, and the calculation "
        "is kept flagged as reverted."
    ),
    responses=_RESPONSES,
)
async def revert_interest(
    investment_id: UUID,
    payload: RevertRequest,
    owner_id: UUID = Depends(get_current_owner),
    service: InterestService = Depends(_get_interest_service),
) -> RevertResult:
    outcome = await service.revert_last(investment_id, owner_id)
    return RevertResult.model_validate(outcome)


@router.get(
    "/history/{investment_id}",
    response_model=Page[InterestCalculationResponse],
    summary="Calculation history",
    description="Newest first; reverted calculations are included and flagged.",
    responses={404: _RESPONSES[404]},
)
async def calculation_history(
    investment_id: UUID,
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Max records to return"),
    owner_id: UUID = Depends(get_current_owner),
    service: InterestService = Depends(_get_interest_service),
) -> Page[InterestCalculationResponse]:
    items, total = await service.history(investment_id, owner_id, skip=skip, limit=limit)
    return Page[InterestCalculationResponse](
        items=[InterestCalculationResponse.model_validate(c) for c in items],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/preview/{investment_id}",
    response_model=InterestPreview,
    summary="Preview the next calculation",
    responses=_RESPONSES,
)
async def preview_interest(
    investment_id: UUID,
    owner_id: UUID = Depends(get_current_owner),
    service: InterestService = Depends(_get_interest_service),
) -> InterestPreview:
    preview = await service.preview(investment_id, owner_id)
    return InterestPreview.model_validate(preview)


@router.patch(
    "/schedule/{investment_id}",
    response_model=InvestmentResponse,
    summary="Configure automatic interest",
    responses=_RESPONSES,
)
async def update_schedule(
    investment_id: UUID,
    payload: ScheduleUpdate,
    owner_id: UUID = Depends(get_current_owner),
    service: InterestService = Depends(_get_interest_service),
) -> InvestmentResponse:
    return await service.update_schedule(investment_id, owner_id, payload)


# ── Variable-return endpoints ──


@router.post(
    "/variable/update-percentage/{investment_id}",
    response_model=VariableUpdateResult,
    status_code=201,
    summary="Apply a percentage return",
    description="Records ``balance * percentage / 100`` as a RETURN transaction.",
    responses=_RESPONSES,
)
async def update_by_percentage(
    investment_id: UUID,
    payload: PercentageUpdate,
    owner_id: UUID = Depends(get_current_owner),
    service: InterestService = Depends(_get_interest_service),
) -> VariableUpdateResult:
    outcome = await service.update_by_percentage(investment_id, owner_id, payload)
    return VariableUpdateResult.model_validate(outcome)


@router.post(
    "/variable/update-balance/{investment_id}",
    response_model=VariableUpdateResult,
    status_code=201,
    summary="Set a new balance",
    description="Records the difference to the current balance as a RETURN transaction.",
    responses=_RESPONSES,
)
async def update_by_balance(
    investment_id: UUID,
    payload: BalanceUpdate,
    owner_id: UUID = Depends(get_current_owner),
    service: InterestService = Depends(_get_interest_service),
) -> VariableUpdateResult:
    outcome = await service.update_by_balance(investment_id, owner_id, payload)
    return VariableUpdateResult.model_validate(outcome)
