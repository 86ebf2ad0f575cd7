"""
Shared pytest fixtures for unit and integration tests.

All tests run with ``USE_SQLITE=true`` and file logging disabled, so no
PostgreSQL or log directory is needed.  Unit tests mock the repositories;
integration tests get a fresh in-memory SQLite database per test.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("INTEREST_SCHEDULER_ENABLED", "false")

import uuid  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import investtrack.models  # noqa: E402,F401
from investtrack.core.config import Settings  # noqa: E402
from investtrack.db.session import build_engine, build_session_factory  # noqa: E402
from investtrack.models.interest_calculation import (  # noqa: E402
    CalculationType,
    InterestCalculation,
)
from investtrack.models.investment import (  # noqa: E402
    CompoundingFrequency,
    Investment,
    InvestmentStatus,
    ReturnType,
)
from investtrack.models.transaction import Transaction, TransactionType  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers — create domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

OWNER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
OTHER_OWNER_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
INVESTMENT_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
TRANSACTION_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")
CALCULATION_ID = uuid.UUID("55555555-5555-5555-5555-555555555555")

START = datetime(2025, 1, 1, tzinfo=timezone.utc)
NOW = datetime(2025, 2, 1, tzinfo=timezone.utc)


def make_investment(
    *,
    id: uuid.UUID = INVESTMENT_ID,
    owner_id: uuid.UUID = OWNER_ID,
    name: str = "Treasury Bill",
    category: str = "Fixed Income",
    initial_amount: Decimal = Decimal("10000.00"),
    current_balance: Optional[Decimal] = None,
    return_type: ReturnType = ReturnType.FIXED,
    interest_rate: Optional[Decimal] = Decimal("12"),
    compounding_frequency: CompoundingFrequency = CompoundingFrequency.MONTHLY,
    start_date: datetime = START,
    status: InvestmentStatus = InvestmentStatus.ACTIVE,
    auto_calculate_interest: bool = False,
    last_interest_calculated: Optional[datetime] = None,
    next_interest_due: Optional[datetime] = None,
) -> Investment:
    """Create an Investment domain object with sensible test defaults."""
    return Investment(
        id=id,
        owner_id=owner_id,
        name=name,
        category=category,
        currency="NGN",
        initial_amount=initial_amount,
        current_balance=initial_amount if current_balance is None else current_balance,
        return_type=return_type,
        interest_rate=interest_rate,
        compounding_frequency=compounding_frequency,
        start_date=start_date,
        status=status,
        auto_calculate_interest=auto_calculate_interest,
        last_interest_calculated=last_interest_calculated,
        next_interest_due=next_interest_due,
        created_at=START,
        updated_at=START,
    )


def make_variable_investment(**kwargs) -> Investment:
    kwargs.setdefault("name", "Equity Fund")
    kwargs.setdefault("category", "Equities")
    return make_investment(return_type=ReturnType.VARIABLE, interest_rate=None, **kwargs)


def make_transaction(
    *,
    id: uuid.UUID = TRANSACTION_ID,
    investment_id: uuid.UUID = INVESTMENT_ID,
    type: TransactionType = TransactionType.RETURN,
    amount: Decimal = Decimal("100.00"),
    balance: Decimal = Decimal("10100.00"),
    transaction_date: datetime = NOW,
) -> Transaction:
    """Create a Transaction domain object with sensible test defaults."""
    return Transaction(
        id=id,
        investment_id=investment_id,
        type=type,
        amount=amount,
        balance=balance,
        transaction_date=transaction_date,
        created_at=transaction_date,
    )


def make_calculation(
    *,
    id: uuid.UUID = CALCULATION_ID,
    investment_id: uuid.UUID = INVESTMENT_ID,
    transaction_id: Optional[uuid.UUID] = TRANSACTION_ID,
    calculated_at: datetime = NOW,
    interest_earned: Decimal = Decimal("100.00"),
) -> InterestCalculation:
    return InterestCalculation(
        id=id,
        investment_id=investment_id,
        calculation_type=CalculationType.MANUAL,
        calculated_at=calculated_at,
        period_start=START,
        period_end=calculated_at,
        principal_amount=Decimal("10000.00"),
        interest_rate=Decimal("12"),
        interest_earned=interest_earned,
        new_balance=Decimal("10000.00") + interest_earned,
        transaction_id=transaction_id,
    )


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/flush/commit/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.delete = AsyncMock()
    return session


@pytest.fixture()
def invest_repo(mock_db):
    """Mocked InvestmentRepository; ``claim`` succeeds and writes echo back."""
    repo = AsyncMock()
    repo.db = mock_db
    repo.claim.return_value = True
    repo.add.side_effect = lambda entity: entity
    repo.save.side_effect = lambda entity: entity
    return repo


@pytest.fixture()
def txn_repo(mock_db):
    repo = AsyncMock()
    repo.db = mock_db
    repo.add.side_effect = lambda entity: entity
    repo.save.side_effect = lambda entity: entity
    return repo


@pytest.fixture()
def calc_repo(mock_db):
    repo = AsyncMock()
    repo.db = mock_db
    repo.add.side_effect = lambda entity: entity
    repo.save.side_effect = lambda entity: entity
    return repo


@pytest_asyncio.fixture()
async def session_factory():
    """A fresh in-memory SQLite database with all tables created."""
    engine = build_engine(Settings(USE_SQLITE=True, _env_file=None))  # type: ignore[call-arg]
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture()
async def session(session_factory):
    async with session_factory() as s:
        yield s


async def persist(session_factory, *entities) -> None:
    """Insert rows through a throwaway session."""
    async with session_factory() as s:
        for entity in entities:
            s.add(entity)
        await s.commit()
