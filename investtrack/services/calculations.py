"""
Financial calculation library.

Pure functions over :class:`~decimal.Decimal`: no I/O, no clock, no global
state.  Rates are annual percentages (``12`` means 12 %); callers validate
the range at the API boundary and nothing here guesses whether a value is a
fraction or a percentage.

Money results are rounded half-up to cents.  Intermediate growth factors keep
full context precision, so rounding happens once per result.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence, Union

from dateutil.relativedelta import relativedelta

from investtrack.core.clock import as_utc
from investtrack.core.exceptions import InvalidInputError
from investtrack.models.investment import PERIODS_PER_YEAR, CompoundingFrequency

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = Decimal("12")
DAYS_PER_YEAR = Decimal("365.25")

CENT = Decimal("0.01")
RATE_PLACES = Decimal("0.000001")
YEAR_PLACES = Decimal("0.0001")
PERCENT_PLACES = Decimal("0.0001")

_NEXT_PERIOD = {
    CompoundingFrequency.DAILY: relativedelta(days=1),
    CompoundingFrequency.MONTHLY: relativedelta(months=1),
    CompoundingFrequency.QUARTERLY: relativedelta(months=3),
    CompoundingFrequency.ANNUALLY: relativedelta(years=1),
}


# ── Result types ──


@dataclass(frozen=True)
class CompoundInterestResult:
    principal: Decimal
    future_value: Decimal
    total_returns: Decimal
    annual_rate: Decimal
    effective_annual_rate: Decimal
    periods_per_year: int
    years: Decimal
    percentage_gain: Decimal


@dataclass(frozen=True)
class SimpleInterestResult:
    principal: Decimal
    future_value: Decimal
    total_interest: Decimal
    annual_rate: Decimal
    years: Decimal
    percentage_gain: Decimal


@dataclass(frozen=True)
class PeriodInterestResult:
    """Interest for an exact day span; ``new_balance == principal + interest``."""

    principal: Decimal
    interest: Decimal
    new_balance: Decimal
    effective_rate: Decimal
    period_days: int


@dataclass(frozen=True)
class MonthlyReturnResult:
    current_balance: Decimal
    monthly_return: Decimal
    new_balance: Decimal
    monthly_rate: Decimal
    annual_rate: Decimal
    is_compound: bool


@dataclass(frozen=True)
class ReturnPercentageResult:
    initial_value: Decimal
    current_value: Decimal
    absolute_return: Decimal
    return_percentage: Decimal
    is_profit: bool
    is_loss: bool


@dataclass(frozen=True)
class AnnualizedReturnResult:
    initial_value: Decimal
    final_value: Decimal
    years: Decimal
    annualized_return: Decimal
    annualized_return_percentage: Decimal
    total_return: Decimal
    total_return_percentage: Decimal


@dataclass(frozen=True)
class ContributionsResult:
    initial_principal: Decimal
    monthly_contribution: Decimal
    total_contributions: Decimal
    total_invested: Decimal
    future_value_of_principal: Decimal
    future_value_of_contributions: Decimal
    total_future_value: Decimal
    total_returns: Decimal
    annual_rate: Decimal
    years: Decimal
    months: Decimal
    return_percentage: Decimal


@dataclass(frozen=True)
class Holding:
    """One position fed to :func:`portfolio_metrics`."""

    key: Any
    name: str
    principal: Decimal
    current: Decimal


@dataclass(frozen=True)
class RankedHolding:
    key: Any
    name: str
    index: int
    principal: Decimal
    current: Decimal
    return_percentage: Decimal


@dataclass(frozen=True)
class PortfolioMetrics:
    total_principal: Decimal
    total_current_value: Decimal
    total_returns: Decimal
    return_percentage: Decimal
    number_of_investments: int
    average_return: Decimal
    best_performing: Optional[RankedHolding]
    worst_performing: Optional[RankedHolding]


# ── Helpers ──


def to_decimal(value: Number) -> Decimal:
    """Convert without inheriting binary float noise (``0.1`` -> ``Decimal('0.1')``)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    return value.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def round_stored_percent(value: Decimal) -> Decimal:
    """Four places, the precision of ``transactions.percentage``."""
    return value.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


def rate_fraction(annual_rate_percent: Number) -> Decimal:
    return to_decimal(annual_rate_percent) / HUNDRED


def periods_per_year(frequency: Union[CompoundingFrequency, str, None]) -> int:
    """Map a compounding frequency to ``n``; ``None`` means MONTHLY."""
    if frequency is None:
        return PERIODS_PER_YEAR[CompoundingFrequency.MONTHLY]
    return PERIODS_PER_YEAR[CompoundingFrequency(frequency)]


def _growth(rate: Decimal, n: Decimal, exponent: Decimal) -> Decimal:
    """``(1 + rate/n) ** exponent`` with a fractional exponent allowed."""
    if exponent == 0:
        return ONE
    return (ONE + rate / n) ** exponent


# ── Interest ──


def compound_interest(
    principal: Number, annual_rate: Number, compounding_frequency: int, years: Number
) -> CompoundInterestResult:
    """Future value ``P * (1 + r/n) ** (n * t)`` and derived figures."""
    p = to_decimal(principal)
    pct = to_decimal(annual_rate)
    t = to_decimal(years)
    if p <= 0 or pct < 0 or compounding_frequency <= 0 or t < 0:
        raise InvalidInputError("Invalid input parameters for compound interest calculation")

    r = pct / HUNDRED
    n = Decimal(compounding_frequency)
    future_value = p * _growth(r, n, n * t)
    total_returns = future_value - p
    effective = _growth(r, n, n) - ONE

    return CompoundInterestResult(
        principal=round_money(p),
        future_value=round_money(future_value),
        total_returns=round_money(total_returns),
        annual_rate=r,
        effective_annual_rate=round_rate(effective),
        periods_per_year=compounding_frequency,
        years=t,
        percentage_gain=round_percent(total_returns / p * HUNDRED),
    )


def simple_interest(principal: Number, annual_rate: Number, years: Number) -> SimpleInterestResult:
    """``I = P * r * t``."""
    p = to_decimal(principal)
    pct = to_decimal(annual_rate)
    t = to_decimal(years)
    if p <= 0 or pct < 0 or t < 0:
        raise InvalidInputError("Invalid input parameters for simple interest calculation")

    r = pct / HUNDRED
    interest = p * r * t
    return SimpleInterestResult(
        principal=round_money(p),
        future_value=round_money(p + interest),
        total_interest=round_money(interest),
        annual_rate=r,
        years=t,
        percentage_gain=round_percent(interest / p * HUNDRED),
    )


def period_interest(
    principal: Number,
    annual_rate: Number,
    compounding_frequency: Union[CompoundingFrequency, str, None],
    period_days: int,
) -> PeriodInterestResult:
    """
    Interest earned over exactly ``period_days`` days.

    Uses the effective rate for the span, compounding inside partial periods::

        t = days / 365.25
        effective = (1 + r/n) ** (n * t) - 1

    This is not a flat pro-rata share of the annual rate.  ``interest`` is
    rounded to cents and ``new_balance`` is ``principal + interest`` exactly.
    """
    p = to_decimal(principal)
    pct = to_decimal(annual_rate)
    if p < 0 or pct < 0 or period_days < 0:
        raise InvalidInputError("Invalid input parameters for period interest calculation")

    n = Decimal(periods_per_year(compounding_frequency))
    t = Decimal(period_days) / DAYS_PER_YEAR
    effective = _growth(pct / HUNDRED, n, n * t) - ONE
    interest = round_money(p * effective)
    return PeriodInterestResult(
        principal=p,
        interest=interest,
        new_balance=p + interest,
        effective_rate=effective,
        period_days=period_days,
    )


def monthly_return(
    current_balance: Number, annual_rate: Number, compound: bool = False
) -> MonthlyReturnResult:
    """One month of interest at ``r / 12``."""
    p = to_decimal(current_balance)
    pct = to_decimal(annual_rate)
    if p <= 0 or pct < 0:
        raise InvalidInputError("Invalid input parameters for monthly return calculation")

    r = pct / HUNDRED
    monthly_rate = r / MONTHS_PER_YEAR
    if compound:
        new_balance = p * (ONE + monthly_rate)
        earned = new_balance - p
    else:
        earned = p * monthly_rate
        new_balance = p + earned

    return MonthlyReturnResult(
        current_balance=round_money(p),
        monthly_return=round_money(earned),
        new_balance=round_money(new_balance),
        monthly_rate=round_rate(monthly_rate),
        annual_rate=r,
        is_compound=compound,
    )


# ── Dates ──


def days_between(start: Union[datetime, date], end: Union[datetime, date]) -> int:
    """
    Whole days from ``start`` to ``end``, rounded up.

    Any part of a day counts as a full day.  Zero or negative when ``end`` is
    not after ``start``; callers that charge interest must reject those.
    """
    delta = as_utc(end) - as_utc(start)
    partial = delta - timedelta(days=delta.days)
    return delta.days + (1 if partial else 0)


def years_between(start: Union[datetime, date], end: Union[datetime, date]) -> Decimal:
    """Elapsed years (days / 365.25) to four places."""
    return (Decimal(days_between(start, end)) / DAYS_PER_YEAR).quantize(
        YEAR_PLACES, rounding=ROUND_HALF_UP
    )


def next_due_date(
    start: Union[datetime, date], frequency: Union[CompoundingFrequency, str, None]
) -> datetime:
    """
    ``start`` advanced by one compounding period.

    Month-based periods land on the same day of the month, clamped to the
    last day of shorter months (Jan 31 + 1 month -> Feb 28/29).
    """
    key = CompoundingFrequency(frequency) if frequency else CompoundingFrequency.MONTHLY
    return as_utc(start) + _NEXT_PERIOD[key]


# ── Returns ──


def return_percentage(initial_value: Number, current_value: Number) -> ReturnPercentageResult:
    initial = to_decimal(initial_value)
    current = to_decimal(current_value)
    if initial <= 0:
        raise InvalidInputError("Initial value must be greater than zero")

    absolute = current - initial
    return ReturnPercentageResult(
        initial_value=round_money(initial),
        current_value=round_money(current),
        absolute_return=round_money(absolute),
        return_percentage=round_percent(absolute / initial * HUNDRED),
        is_profit=absolute > 0,
        is_loss=absolute < 0,
    )


def annualized_return(
    initial_value: Number, final_value: Number, years: Number
) -> AnnualizedReturnResult:
    """``(final / initial) ** (1 / years) - 1``."""
    initial = to_decimal(initial_value)
    final = to_decimal(final_value)
    t = to_decimal(years)
    if initial <= 0 or t <= 0 or final < 0:
        raise InvalidInputError("Invalid input parameters for annualized return calculation")

    ratio = final / initial
    annualized = (ratio ** (ONE / t) if ratio > 0 else ZERO) - ONE
    total = (final - initial) / initial
    return AnnualizedReturnResult(
        initial_value=round_money(initial),
        final_value=round_money(final),
        years=t.quantize(CENT, rounding=ROUND_HALF_UP),
        annualized_return=round_rate(annualized),
        annualized_return_percentage=round_percent(annualized * HUNDRED),
        total_return=round_rate(total),
        total_return_percentage=round_percent(total * HUNDRED),
    )


def future_value_with_contributions(
    initial_principal: Number,
    monthly_contribution: Number,
    annual_rate: Number,
    years: Number,
) -> ContributionsResult:
    """
    Principal compounded monthly plus level monthly contributions.

    Contributions accumulate as an ordinary annuity,
    ``C * ((1 + i) ** m - 1) / i``; with a zero rate they are simply summed.
    """
    p = to_decimal(initial_principal)
    c = to_decimal(monthly_contribution)
    pct = to_decimal(annual_rate)
    t = to_decimal(years)
    if p < 0 or c < 0 or pct < 0 or t < 0:
        raise InvalidInputError(
            "Invalid input parameters for future value with contributions calculation"
        )

    i = pct / HUNDRED / MONTHS_PER_YEAR
    months = t * MONTHS_PER_YEAR
    growth = (ONE + i) ** months if months else ONE

    fv_principal = p * growth
    if c > 0 and i > 0:
        fv_contributions = c * (growth - ONE) / i
    else:
        fv_contributions = c * months

    total_future = fv_principal + fv_contributions
    total_contributions = c * months
    total_invested = p + total_contributions
    total_returns = total_future - total_invested
    pct_return = total_returns / total_invested * HUNDRED if total_invested > 0 else ZERO

    return ContributionsResult(
        initial_principal=round_money(p),
        monthly_contribution=round_money(c),
        total_contributions=round_money(total_contributions),
        total_invested=round_money(total_invested),
        future_value_of_principal=round_money(fv_principal),
        future_value_of_contributions=round_money(fv_contributions),
        total_future_value=round_money(total_future),
        total_returns=round_money(total_returns),
        annual_rate=pct / HUNDRED,
        years=t,
        months=months,
        return_percentage=round_percent(pct_return),
    )


def portfolio_metrics(holdings: Sequence[Holding]) -> PortfolioMetrics:
    """
    Totals plus best and worst performers by return percentage.

    Only holdings with a positive principal can rank.  On ties the first
    holding seen keeps the spot.  ``average_return`` is the mean absolute
    return per holding, not a percentage.
    """
    if not holdings:
        return PortfolioMetrics(
            total_principal=ZERO,
            total_current_value=ZERO,
            total_returns=ZERO,
            return_percentage=ZERO,
            number_of_investments=0,
            average_return=ZERO,
            best_performing=None,
            worst_performing=None,
        )

    total_principal = ZERO
    total_current = ZERO
    best: Optional[RankedHolding] = None
    worst: Optional[RankedHolding] = None

    for index, holding in enumerate(holdings):
        principal = to_decimal(holding.principal)
        current = to_decimal(holding.current)
        total_principal += principal
        total_current += current
        if principal <= 0:
            continue

        ranked = RankedHolding(
            key=holding.key,
            name=holding.name,
            index=index,
            principal=principal,
            current=current,
            return_percentage=round_percent((current - principal) / principal * HUNDRED),
        )
        pct = (current - principal) / principal
        if best is None or pct > (best.current - best.principal) / best.principal:
            best = ranked
        if worst is None or pct < (worst.current - worst.principal) / worst.principal:
            worst = ranked

    total_returns = total_current - total_principal
    overall = total_returns / total_principal * HUNDRED if total_principal > 0 else ZERO

    return PortfolioMetrics(
        total_principal=round_money(total_principal),
        total_current_value=round_money(total_current),
        total_returns=round_money(total_returns),
        return_percentage=round_percent(overall),
        number_of_investments=len(holdings),
        average_return=round_money(total_returns / len(holdings)),
        best_performing=best,
        worst_performing=worst,
    )
