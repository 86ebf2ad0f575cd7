"""SQLModel table models — import here so metadata is populated."""

from investtrack.models.interest_calculation import InterestCalculation  # noqa: F401
from investtrack.models.investment import Investment  # noqa: F401
from investtrack.models.transaction import Transaction  # noqa: F401
