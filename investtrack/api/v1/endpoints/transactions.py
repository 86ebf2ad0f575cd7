"""
Transaction (ledger) API endpoints.

- POST   /transactions                          — Record a transaction
- GET    /transactions                          — List the caller's transactions
- GET    /transactions/investment/{id}/summary  — Per-type totals for one investment
- GET    /transactions/{id}                     — Retrieve one transaction
- PUT    /transactions/{id}                     — Edit amount / date / description
- DELETE /transactions/{id}                     — Delete and reverse its balance impact
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from investtrack.api.deps import get_clock, get_current_owner
from investtrack.core.clock import Clock
from investtrack.db.session import get_db
from investtrack.models.interest_calculation import InterestCalculation
from investtrack.models.investment import Investment
from investtrack.models.transaction import Transaction, TransactionType
from investtrack.repositories.calculation_repo import CalculationRepository
from investtrack.repositories.investment_repo import InvestmentRepository
from investtrack.repositories.transaction_repo import TransactionRepository
from investtrack.schemas.common import ErrorResponse, Page, ValidationErrorResponse
from investtrack.schemas.transaction import (
    TransactionCreate,
    TransactionDeleted,
    TransactionFilters,
    TransactionResponse,
    TransactionSummary,
    TransactionUpdate,
)
from investtrack.services.transaction_service import TransactionService

router = APIRouter()


# ── Dependency injection ──


def _get_transaction_service(
    db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock)
) -> TransactionService:
    """Build a TransactionService wired to the current request's DB session."""
    return TransactionService(
        InvestmentRepository(Investment, db),
        TransactionRepository(Transaction, db),
        CalculationRepository(InterestCalculation, db),
        clock=clock,
    )


def _filters(
    investment_id: Optional[UUID] = Query(None),
    type: Optional[TransactionType] = Query(None),
    start_date: Optional[datetime] = Query(None, description="transaction_date >= this"),
    end_date: Optional[datetime] = Query(None, description="transaction_date <= this"),
    min_amount: Optional[Decimal] = Query(None),
    max_amount: Optional[Decimal] = Query(None),
    sort_by: Literal["transaction_date", "amount", "created_at"] = Query("transaction_date"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
) -> TransactionFilters:
    return TransactionFilters(
        investment_id=investment_id,
        type=type,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        sort_by=sort_by,
        sort_order=sort_order,
    )


_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Not found"}}


# ── Endpoints ──


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=201,
    summary="Record a transaction",
    description=(
        "Adds a ledger entry and moves the investment balance by its impact.  "
        "A WITHDRAWAL larger than the balance is rejected."
    ),
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Investment cancelled or version conflict"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_transaction(
    payload: TransactionCreate,
    owner_id: UUID = Depends(get_current_owner),
    service: TransactionService = Depends(_get_transaction_service),
) -> TransactionResponse:
    return await service.create_transaction(owner_id, payload)


@router.get(
    "",
    response_model=Page[TransactionResponse],
    summary="List transactions",
    description="Filter by investment, type, date range and amount; sortable.",
)
async def list_transactions(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Max records to return"),
    filters: TransactionFilters = Depends(_filters),
    owner_id: UUID = Depends(get_current_owner),
    service: TransactionService = Depends(_get_transaction_service),
) -> Page[TransactionResponse]:
    items, total = await service.list_transactions(owner_id, filters, skip=skip, limit=limit)
    return Page[TransactionResponse](
        items=[TransactionResponse.model_validate(t) for t in items],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/investment/{investment_id}/summary",
    response_model=TransactionSummary,
    summary="Ledger summary for an investment",
    responses=_NOT_FOUND,
)
async def transaction_summary(
    investment_id: UUID,
    owner_id: UUID = Depends(get_current_owner),
    service: TransactionService = Depends(_get_transaction_service),
) -> TransactionSummary:
    summary = await service.get_summary(investment_id, owner_id)
    return TransactionSummary.model_validate(summary)


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a transaction",
    responses=_NOT_FOUND,
)
async def get_transaction(
    transaction_id: UUID,
    owner_id: UUID = Depends(get_current_owner),
    service: TransactionService = Depends(_get_transaction_service),
) -> TransactionResponse:
    return await service.get_transaction(transaction_id, owner_id)


@router.put(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Update a transaction",
    description="An amount change moves the investment balance by the difference in impact.",
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Balance would go negative"},
    },
)
async def update_transaction(
    transaction_id: UUID,
    payload: TransactionUpdate,
    owner_id: UUID = Depends(get_current_owner),
    service: TransactionService = Depends(_get_transaction_service),
) -> TransactionResponse:
    return await service.update_transaction(transaction_id, owner_id, payload)


@router.delete(
    "/{transaction_id}",
    response_model=TransactionDeleted,
    summary="Delete a transaction",
    description="Reverses the transaction's impact on the investment balance.",
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Balance would go negative"},
    },
)
async def delete_transaction(
    transaction_id: UUID,
    owner_id: UUID = Depends(get_current_owner),
    service: TransactionService = Depends(_get_transaction_service),
) -> TransactionDeleted:
    deleted = await service.delete_transaction(transaction_id, owner_id)
    return TransactionDeleted.model_validate(deleted)
