"""
Time source used by the services.

Services take a ``clock`` callable instead of calling ``datetime.now`` so that
period arithmetic can be tested against a fixed instant.
"""

from datetime import date, datetime, time, timezone
from typing import Callable, Union

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Union[datetime, date]) -> datetime:
    """
    Normalise a stored or user-supplied value to an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are UTC by construction here.  Plain dates are taken as
    midnight UTC.
    """
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def fixed_clock(instant: datetime) -> Clock:
    """Return a clock frozen at ``instant``."""
    frozen = as_utc(instant)
    return lambda: frozen
