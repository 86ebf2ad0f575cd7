"""
Shared FastAPI dependencies.

- ``get_current_owner``: caller identity from the ``X-User-ID`` header.  The
  gateway in front of this service authenticates the user and sets the
  header; this service only parses it.
- ``get_clock``: the time source handed to services.  Tests override it with
  ``app.dependency_overrides[get_clock]`` to pin "now".
"""

from typing import Optional
from uuid import UUID

from fastapi import Header

from investtrack.core.clock import Clock, utc_now
from investtrack.core.exceptions import UnauthorizedException

USER_ID_HEADER = "X-User-ID"


async def get_current_owner(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
) -> UUID:
    if not x_user_id:
        raise UnauthorizedException(f"Missing {USER_ID_HEADER} header")
    try:
        return UUID(x_user_id)
    except ValueError:
        raise UnauthorizedException(f"Malformed {USER_ID_HEADER} header")


def get_clock() -> Clock:
    return utc_now
