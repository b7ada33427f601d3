"""
Customer sign-in / sign-out routes.

Sign-in looks the customer up by email in the billing provider and stores a
customer session in HTTP-only cookies. There are no passwords; the billing
provider's customer record is the identity.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from kiosk.api.cookies import apply_cookie_updates
from kiosk.api.deps import KioskRuntime, get_runtime
from kiosk.components.paywall import clear_session_cookie_updates, session_cookie_updates
from kiosk.core.errors import CustomerNotFoundError
from kiosk.core.ports.billing import BillingError

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_email(request: Request) -> str | None:
    try:
        body: Any = await request.json()
    except ValueError:
        return None
    email = body.get("email") if isinstance(body, dict) else None
    if not isinstance(email, str) or "@" not in email:
        return None
    return email


@router.post("/signin")
async def signin(request: Request, runtime: KioskRuntime = Depends(get_runtime)) -> Response:
    """Body: {"email": "..."}."""
    email = await _read_email(request)
    if email is None:
        return JSONResponse({"error": "Valid email is required"}, status_code=400)

    try:
        session = await runtime.client.create_customer_session(email)
    except (CustomerNotFoundError, BillingError) as e:
        logger.warning(f"Sign-in failed: {e}")
        return JSONResponse({"error": str(e)}, status_code=401)

    response = JSONResponse({"success": True})
    apply_cookie_updates(
        response,
        session_cookie_updates(session.token, session.customer_id, email, session.expires_at),
    )
    return response


@router.post("/signout")
def signout(request: Request) -> Response:
    """Clear the session cookies and go back where the customer came from."""
    response = RedirectResponse(request.headers.get("referer") or "/", status_code=302)
    apply_cookie_updates(response, clear_session_cookie_updates())
    return response
