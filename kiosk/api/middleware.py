"""
Paywall middleware.

Resolves the paywall state before the page handler runs, exposes it as
``request.state.paywall`` and, after the handler, applies cookie updates and
injects the download panel into HTML responses.

Invariants:
- Billing or resolution failures never fail the page; the request passes
  through unpaywalled
- Non-HTML responses are never rewritten
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.datastructures import MutableHeaders
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from kiosk.api.cookies import apply_cookie_updates
from kiosk.components.paywall import (
    PaywallOutcome,
    RequestContext,
    inject_html_before_body_close,
)
from kiosk.core.errors import KioskError
from kiosk.core.ports.billing import BillingError

logger = logging.getLogger(__name__)


def build_request_context(request: Request) -> RequestContext:
    return RequestContext(
        path=request.url.path,
        query=dict(request.query_params),
        cookies=dict(request.cookies),
        headers=dict(request.headers),
    )


async def _inject_downloads(response: Response, section: str) -> Response:
    body = b""
    async for chunk in response.body_iterator:  # type: ignore[attr-defined]
        body += chunk if isinstance(chunk, bytes) else chunk.encode(response.charset)

    html = inject_html_before_body_close(body.decode(response.charset), section)
    headers = MutableHeaders(
        raw=[(k, v) for k, v in response.raw_headers if k.lower() != b"content-length"]
    )
    return Response(content=html, status_code=response.status_code, headers=headers)


class PaywallMiddleware(BaseHTTPMiddleware):
    """Attach ``PaywallState`` to every content request."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        runtime = request.app.state.kiosk
        request.state.paywall = None

        outcome: PaywallOutcome | None = None
        try:
            outcome = await runtime.resolver.resolve(build_request_context(request))
        except (BillingError, KioskError) as e:
            logger.error(f"Paywall resolution failed for {request.url.path}: {e}")
        except Exception:
            logger.exception(f"Unexpected paywall error for {request.url.path}")

        if outcome is None:
            return await call_next(request)

        request.state.paywall = outcome.state
        response = await call_next(request)

        section = outcome.state.downloadable_section
        content_type = response.headers.get("content-type", "")
        if outcome.state.has_access and section and content_type.startswith("text/html"):
            response = await _inject_downloads(response, section)

        apply_cookie_updates(response, outcome.cookies)
        return response
