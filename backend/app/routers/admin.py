import hmac
from typing import Optional

from fastapi import Header

from .. import config
from ..exceptions import http_problem


async def require_admin(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
) -> None:
    """Allow the request only when ``X-Admin-Token`` matches ``ADMIN_TOKEN``.

    With no ``ADMIN_TOKEN`` configured every admin route is closed.
    """
    expected = config.ADMIN_TOKEN
    if (
        not expected
        or not x_admin_token
        or not hmac.compare_digest(x_admin_token, expected)
    ):
        raise http_problem(
            status_code=403,
            detail="forbidden",
            code="admin_forbidden",
        )
