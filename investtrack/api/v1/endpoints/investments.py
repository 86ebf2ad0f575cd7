"""
Investment API endpoints.

- POST  /investments               — Register an investment
- GET   /investments               — List the caller's investments (filtered, paginated)
- GET   /investments/summary       — Registry totals and status breakdown
- GET   /investments/{id}          — Retrieve one investment
- PUT   /investments/{id}          — Update descriptive fields / return model
- PATCH /investments/{id}/status   — Change lifecycle status
- PATCH /investments/{id}/balance  — Manual balance override
- DELETE /investments/{id}         — Cancel (soft delete)
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from investtrack.api.deps import get_clock, get_current_owner
from investtrack.core.clock import Clock
from investtrack.db.session import get_db
from investtrack.models.investment import Investment, InvestmentStatus, ReturnType
from investtrack.models.transaction import Transaction
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.schemas.common import ErrorResponse, Page, ValidationErrorResponse
from investtrack.schemas.investment import (
    BalanceOverride,
    InvestmentCreate,
    InvestmentFilters,
    InvestmentResponse,
    InvestmentStatusUpdate,
    InvestmentSummary,
    InvestmentUpdate,
)
from investtrack.services.investment_service import InvestmentService

router = APIRouter()


# ── Dependency injection ──


def _get_investment_service(
    db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock)
) -> InvestmentService:
    """Build an InvestmentService wired to the current request's DB session."""
    return InvestmentService(
        InvestmentRepository(Investment, db),
        TransactionRepository(Transaction, db),
        clock=clock,
    )


def _filters(
    status: Optional[InvestmentStatus] = Query(None),
    return_type: Optional[ReturnType] = Query(None),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    category: Optional[str] = Query(None, description="Case-insensitive substring"),
    start_from: Optional[datetime] = Query(None, description="start_date >= this"),
    start_to: Optional[datetime] = Query(None, description="start_date <= this"),
) -> InvestmentFilters:
    return InvestmentFilters(
        status=status,
        return_type=return_type,
        currency=currency,
        category=category,
        start_from=start_from,
        start_to=start_to,
    )


_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Investment not found"}}


# ── Endpoints ──


@router.post(
    "",
    response_model=InvestmentResponse,
    status_code=201,
    summary="Register an investment",
    description=(
        "Creates an investment owned by the caller.  The balance starts at "
        "``initial_amount``.  FIXED investments require ``interest_rate`` "
        "(annual percent)."
    ),
    responses={422: {"model": ValidationErrorResponse, "description": "Validation error"}},
)
async def create_investment(
    payload: InvestmentCreate,
    owner_id: UUID = Depends(get_current_owner),
    service: InvestmentService = Depends(_get_investment_service),
) -> InvestmentResponse:
    return await service.create_investment(owner_id, payload)


@router.get(
    "",
    response_model=Page[InvestmentResponse],
    summary="List investments",
    description="Newest first.  Use ``skip`` and ``limit`` to page through results.",
)
async def list_investments(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Max records to return"),
    filters: InvestmentFilters = Depends(_filters),
    owner_id: UUID = Depends(get_current_owner),
    service: InvestmentService = Depends(_get_investment_service),
) -> Page[InvestmentResponse]:
    items, total = await service.list_investments(owner_id, filters, skip=skip, limit=limit)
    return Page[InvestmentResponse](
        items=[InvestmentResponse.model_validate(i) for i in items],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/summary",
    response_model=InvestmentSummary,
    summary="Registry summary",
    description="Count, principal, current value, returns and status breakdown.",
)
async def get_summary(
    owner_id: UUID = Depends(get_current_owner),
    service: InvestmentService = Depends(_get_investment_service),
) -> InvestmentSummary:
    summary = await service.get_summary(owner_id)
    return InvestmentSummary.model_validate(summary, from_attributes=True)


@router.get(
    "/{investment_id}",
    response_model=InvestmentResponse,
    summary="Get an investment",
    responses=_NOT_FOUND,
)
async def get_investment(
    investment_id: UUID,
    owner_id: UUID = Depends(get_current_owner),
    service: InvestmentService = Depends(_get_investment_service),
) -> InvestmentResponse:
    return await service.get_investment(investment_id, owner_id)


@router.put(
    "/{investment_id}",
    response_model=InvestmentResponse,
    summary="Update an investment",
    description=(
        "Partial update: only fields present in the body change.  Switching to "
        "VARIABLE clears the rate and disables automatic interest."
    ),
    responses={
        **_NOT_FOUND,
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def update_investment(
    investment_id: UUID,
    payload: InvestmentUpdate,
    owner_id: UUID = Depends(get_current_owner),
    service: InvestmentService = Depends(_get_investment_service),
) -> InvestmentResponse:
    return await service.update_investment(investment_id, owner_id, payload)


@router.patch(
    "/{investment_id}/status",
    response_model=InvestmentResponse,
    summary="Change investment status",
    description="CANCELLED is terminal.  Setting the current status again is rejected.",
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Status change not allowed"},
    },
)
async def change_status(
    investment_id: UUID,
    payload: InvestmentStatusUpdate,
    owner_id: UUID = Depends(get_current_owner),
    service: InvestmentService = Depends(_get_investment_service),
) -> InvestmentResponse:
    return await service.change_status(investment_id, owner_id, payload)


@router.delete(
    "/{investment_id}",
    response_model=InvestmentResponse,
    summary="Cancel an investment",
    description=(
        "Soft delete: the status becomes CANCELLED and the ledger is kept.  "
        "Cancelling an already cancelled investment is rejected."
    ),
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Already cancelled"},
    },
)
async def cancel_investment(
    investment_id: UUID,
    owner_id: UUID = Depends(get_current_owner),
    service: InvestmentService = Depends(_get_investment_service),
) -> InvestmentResponse:
    return await service.cancel_investment(investment_id, owner_id)


@router.patch(
    "/{investment_id}/balance",
    response_model=InvestmentResponse,
    summary="Override the balance",
    description="Sets the balance and records the difference as a RETURN transaction.",
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Investment is cancelled"},
    },
)
async def override_balance(
    investment_id: UUID,
    payload: BalanceOverride,
    owner_id: UUID = Depends(get_current_owner),
    service: InvestmentService = Depends(_get_investment_service),
) -> InvestmentResponse:
    return await service.override_balance(investment_id, owner_id, payload)
