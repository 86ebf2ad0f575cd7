"""
Unit tests for Pydantic schemas — validation rules, serializers, edge cases.

Tests cover:
- InvestmentCreate / InvestmentUpdate validators
- TransactionCreate / TransactionUpdate validators
- ManualReturn / BulkReturns measure rules
- RevertRequest confirmation and variable update bounds
- Decimal → float serialization
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from investtrack.models.investment import CompoundingFrequency, ReturnType
from investtrack.models.transaction import TransactionType
from investtrack.schemas.investment import InvestmentCreate, InvestmentUpdate
from investtrack.schemas.transaction import TransactionCreate, TransactionUpdate

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _investment(**overrides) -> InvestmentCreate:
    data = dict(
        name="Treasury Bill",
        category="Fixed Income",
        initial_amount=Decimal("10000"),
        return_type=ReturnType.FIXED,
        interest_rate=Decimal("12"),
        start_date=START,
    )
    data.update(overrides)
    return InvestmentCreate(**data)


# ────────────────────────────────────────────────────────────────────────────
# Investment schema tests
# ────────────────────────────────────────────────────────────────────────────


class TestInvestmentCreate:
    """Validation tests for InvestmentCreate schema."""

    def test_valid_investment_create(self):
        inv = _investment()
        assert inv.name == "Treasury Bill"
        assert inv.interest_rate == Decimal("12")
        assert inv.compounding_frequency == CompoundingFrequency.MONTHLY
        assert inv.currency is None
        assert inv.auto_calculate_interest is False

    def test_name_and_category_stripped(self):
        inv = _investment(name="  T-Bill  ", category=" Bonds ")
        assert inv.name == "T-Bill"
        assert inv.category == "Bonds"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError, match="name"):
            _investment(name="   ")

    def test_empty_category_rejected(self):
        with pytest.raises(ValidationError, match="category"):
            _investment(category="")

    def test_currency_uppercased(self):
        assert _investment(currency="usd").currency == "USD"

    @pytest.mark.parametrize("currency", ["US", "DOLLAR", "U$D"])
    def test_invalid_currency_rejected(self, currency):
        with pytest.raises(ValidationError, match="currency"):
            _investment(currency=currency)

    def test_zero_amount_rejected(self):
        with pytest.raises(ValidationError, match="initial_amount"):
            _investment(initial_amount=Decimal("0"))

    def test_rate_above_hundred_rejected(self):
        with pytest.raises(ValidationError, match="interest_rate"):
            _investment(interest_rate=Decimal("100.5"))

    def test_end_date_must_follow_start(self):
        with pytest.raises(ValidationError, match="end_date must be after start_date"):
            _investment(end_date=START)

    def test_naive_dates_treated_as_utc(self):
        inv = _investment(start_date=datetime(2025, 1, 1))
        assert inv.start_date.tzinfo is not None
        assert inv.start_date == START


class TestInvestmentUpdate:
    def test_all_fields_optional(self):
        update = InvestmentUpdate()
        assert update.model_dump(exclude_unset=True) == {}

    def test_only_sent_fields_are_set(self):
        update = InvestmentUpdate(name=" Renamed ", currency="eur")
        assert update.model_dump(exclude_unset=True) == {"name": "Renamed", "currency": "EUR"}

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError, match="name"):
            InvestmentUpdate(name="  ")


class TestInvestmentResponse:
    def test_decimal_serialized_as_float(self):
        from investtrack.schemas.investment import InvestmentResponse

        from .conftest import make_investment

        resp = InvestmentResponse.model_validate(make_investment())
        dumped = resp.model_dump(mode="json")
        assert isinstance(dumped["current_balance"], float)
        assert dumped["current_balance"] == 10000.0
        assert dumped["interest_rate"] == 12.0

    def test_null_rate_stays_null(self):
        from investtrack.schemas.investment import InvestmentResponse

        from .conftest import make_variable_investment

        resp = InvestmentResponse.model_validate(make_variable_investment())
        assert resp.model_dump(mode="json")["interest_rate"] is None


# ────────────────────────────────────────────────────────────────────────────
# Transaction schema tests
# ────────────────────────────────────────────────────────────────────────────


class TestTransactionCreate:
    def test_negative_return_is_a_loss(self):
        txn = TransactionCreate(
            investment_id=uuid4(), type=TransactionType.RETURN, amount=Decimal("-50")
        )
        assert txn.amount == Decimal("-50")
        assert txn.transaction_date is None

    def test_zero_amount_rejected(self):
        with pytest.raises(ValidationError, match="amount must not be zero"):
            TransactionCreate(
                investment_id=uuid4(), type=TransactionType.RETURN, amount=Decimal("0")
            )

    @pytest.mark.parametrize("txn_type", [TransactionType.DEPOSIT, TransactionType.DIVIDEND])
    def test_negative_inflow_rejected(self, txn_type):
        with pytest.raises(ValidationError, match="must be positive"):
            TransactionCreate(investment_id=uuid4(), type=txn_type, amount=Decimal("-10"))

    def test_future_date_rejected(self):
        with pytest.raises(ValidationError, match="transaction_date"):
            TransactionCreate(
                investment_id=uuid4(),
                type=TransactionType.DEPOSIT,
                amount=Decimal("10"),
                transaction_date=datetime.now(timezone.utc) + timedelta(days=1),
            )

    def test_too_many_decimal_places_rejected(self):
        with pytest.raises(ValidationError, match="amount"):
            TransactionCreate(
                investment_id=uuid4(), type=TransactionType.DEPOSIT, amount=Decimal("1.001")
            )


class TestTransactionUpdate:
    def test_zero_amount_rejected(self):
        with pytest.raises(ValidationError, match="amount must not be zero"):
            TransactionUpdate(amount=Decimal("0"))

    def test_partial_update(self):
        update = TransactionUpdate(description="fixed typo")
        assert update.model_dump(exclude_unset=True) == {"description": "fixed typo"}


# ────────────────────────────────────────────────────────────────────────────
# Returns and interest schema tests
# ────────────────────────────────────────────────────────────────────────────


class TestManualReturn:
    def test_amount_only(self):
        from investtrack.schemas.returns import ManualReturn

        ret = ManualReturn(investment_id=uuid4(), amount=Decimal("25"))
        assert ret.type == TransactionType.RETURN
        assert ret.percentage is None

    def test_percentage_only(self):
        from investtrack.schemas.returns import ManualReturn

        ret = ManualReturn(
            investment_id=uuid4(), type=TransactionType.DIVIDEND, percentage=Decimal("1.5")
        )
        assert ret.percentage == Decimal("1.5")

    @pytest.mark.parametrize(
        "measure",
        [{}, {"amount": Decimal("1"), "percentage": Decimal("1")}],
    )
    def test_exactly_one_measure(self, measure):
        from investtrack.schemas.returns import ManualReturn

        with pytest.raises(ValidationError, match="exactly one of amount or percentage"):
            ManualReturn(investment_id=uuid4(), **measure)

    @pytest.mark.parametrize("txn_type", [TransactionType.DEPOSIT, TransactionType.WITHDRAWAL])
    def test_only_return_or_dividend(self, txn_type):
        from investtrack.schemas.returns import ManualReturn

        with pytest.raises(ValidationError, match="RETURN or DIVIDEND"):
            ManualReturn(investment_id=uuid4(), type=txn_type, amount=Decimal("5"))

    def test_percentage_below_minus_hundred_rejected(self):
        from investtrack.schemas.returns import ManualReturn

        with pytest.raises(ValidationError, match="percentage"):
            ManualReturn(investment_id=uuid4(), percentage=Decimal("-100.01"))


class TestBulkReturns:
    def test_empty_batch_rejected(self):
        from investtrack.schemas.returns import BulkReturns

        with pytest.raises(ValidationError, match="returns"):
            BulkReturns(returns=[])

    def test_batch_limit(self):
        from investtrack.schemas.returns import BulkReturns, ManualReturn

        entry = ManualReturn(investment_id=uuid4(), amount=Decimal("1"))
        assert len(BulkReturns(returns=[entry] * 100).returns) == 100
        with pytest.raises(ValidationError, match="returns"):
            BulkReturns(returns=[entry] * 101)


class TestInterestSchemas:
    def test_revert_requires_confirmation(self):
        from investtrack.schemas.interest import RevertRequest

        assert RevertRequest(confirm_revert=True).confirm_revert is True
        with pytest.raises(ValidationError, match="confirm_revert"):
            RevertRequest(confirm_revert=False)

    @pytest.mark.parametrize("pct", [Decimal("-100.0001"), Decimal("1000.0001")])
    def test_percentage_update_bounds(self, pct):
        from investtrack.schemas.interest import PercentageUpdate

        with pytest.raises(ValidationError, match="percentage"):
            PercentageUpdate(percentage=pct)

    def test_balance_update_rejects_negative(self):
        from investtrack.schemas.interest import BalanceUpdate

        with pytest.raises(ValidationError, match="new_balance"):
            BalanceUpdate(new_balance=Decimal("-1"))

    def test_future_effective_date_rejected(self):
        from investtrack.schemas.interest import PercentageUpdate

        with pytest.raises(ValidationError, match="effective_date"):
            PercentageUpdate(
                percentage=Decimal("1"),
                effective_date=datetime.now(timezone.utc) + timedelta(hours=1),
            )


class TestCompoundInterestRequest:
    def test_defaults_to_monthly_compounding(self):
        from investtrack.schemas.returns import CompoundInterestRequest

        req = CompoundInterestRequest(
            principal=Decimal("1000"), annual_rate=Decimal("5"), years=Decimal("2")
        )
        assert req.compounding_frequency == 12

    def test_zero_years_rejected(self):
        from investtrack.schemas.returns import CompoundInterestRequest

        with pytest.raises(ValidationError, match="years"):
            CompoundInterestRequest(
                principal=Decimal("1000"), annual_rate=Decimal("5"), years=Decimal("0")
            )


class TestNotInFuture:
    def test_none_passes_through(self):
        from investtrack.schemas.common import not_in_future

        assert not_in_future(None, "transaction_date") is None

    def test_naive_past_is_normalised_to_utc(self):
        from investtrack.schemas.common import not_in_future

        assert not_in_future(datetime(2025, 1, 1), "effective_date") == START

    def test_error_names_the_field(self):
        from investtrack.schemas.common import not_in_future

        with pytest.raises(ValueError, match="effective_date cannot be in the future"):
            not_in_future(datetime.now(timezone.utc) + timedelta(days=1), "effective_date")

    def test_transaction_update_uses_same_rule(self):
        with pytest.raises(ValidationError, match="transaction_date cannot be in the future"):
            TransactionUpdate(transaction_date=datetime.now(timezone.utc) + timedelta(days=1))

    def test_manual_return_uses_same_rule(self):
        from investtrack.schemas.returns import ManualReturn

        with pytest.raises(ValidationError, match="transaction_date cannot be in the future"):
            ManualReturn(
                investment_id=uuid4(),
                amount=Decimal("1"),
                transaction_date=datetime.now(timezone.utc) + timedelta(days=1),
            )
