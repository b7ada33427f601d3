"""
Checkout route.

GET /api/kiosk/checkout?content=<content_id> redirects to the billing
provider's hosted checkout for the content's product.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from kiosk.api.deps import KioskRuntime, get_runtime, request_origin
from kiosk.components.paywall import CUSTOMER_EMAIL_COOKIE
from kiosk.core.ports.billing import BillingError
from kiosk.domain.i18n import build_content_url, strip_group_index

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/checkout")
async def checkout(
    request: Request,
    content: str | None = None,
    runtime: KioskRuntime = Depends(get_runtime),
) -> Response:
    """Redirect to checkout; the success URL returns the customer to the content."""
    if not content:
        return JSONResponse({"error": "Missing content parameter"}, status_code=400)

    try:
        product_id = await runtime.client.find_product_by_content_id(content)
        if not product_id:
            return JSONResponse({"error": "Product not found for this content"}, status_code=404)

        url_path = strip_group_index(content, runtime.rules.collections)
        success_url = build_content_url(request_origin(request), url_path, runtime.i18n)
        checkout_url = await runtime.billing.create_checkout(
            product_id,
            success_url=success_url,
            customer_email=request.cookies.get(CUSTOMER_EMAIL_COOKIE),
        )
    except BillingError as e:
        logger.error(f"Checkout failed for {content}: {e}")
        return JSONResponse({"error": "Failed to create checkout"}, status_code=502)

    return RedirectResponse(checkout_url, status_code=302)
