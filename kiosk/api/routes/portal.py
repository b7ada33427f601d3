"""Customer portal redirect: GET /api/kiosk/portal?return=<url>."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from kiosk.api.deps import KioskRuntime, get_runtime, request_origin
from kiosk.components.paywall import CUSTOMER_ID_COOKIE
from kiosk.core.ports.billing import BillingError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/portal")
async def portal(request: Request, runtime: KioskRuntime = Depends(get_runtime)) -> Response:
    customer_id = request.cookies.get(CUSTOMER_ID_COOKIE)
    if not customer_id:
        return JSONResponse(
            {"error": "No customer authentication found. Please sign in first."},
            status_code=401,
        )

    return_url = request.query_params.get("return") or request_origin(request)
    try:
        portal_url = await runtime.billing.create_portal_url(customer_id, return_url=return_url)
    except BillingError as e:
        logger.error(f"Customer portal failed for {customer_id}: {e}")
        return JSONResponse({"error": "Failed to open customer portal"}, status_code=502)

    return RedirectResponse(portal_url, status_code=302)
