"""Apply paywall cookie updates to a response."""

from __future__ import annotations

from collections.abc import Iterable

from starlette.responses import Response

from kiosk.components.paywall import CookieUpdate


def apply_cookie_updates(response: Response, updates: Iterable[CookieUpdate]) -> None:
    """All kiosk cookies are HTTP-only, secure, SameSite=Lax and scoped to "/"."""
    for update in updates:
        if update.value is None:
            response.delete_cookie(
                update.name, path="/", secure=True, httponly=True, samesite="lax"
            )
        else:
            response.set_cookie(
                key=update.name,
                value=update.value,
                expires=update.expires,
                path="/",
                secure=True,
                httponly=True,
                samesite="lax",
            )
