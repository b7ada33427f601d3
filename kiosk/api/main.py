"""
FastAPI application factory.

Run with ``uvicorn --factory kiosk.api.main:create_app``. Rules are loaded and
validated when the app is built, so a bad configuration fails before the
first request.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from kiosk.adapters.billing_polar import PolarBillingAdapter
from kiosk.adapters.clock import SystemClock
from kiosk.adapters.content_fs import FileSystemContentLoader
from kiosk.api.deps import KioskRuntime, get_settings
from kiosk.api.middleware import PaywallMiddleware
from kiosk.api.routes import auth, checkout, content, portal
from kiosk.components.entitlements import EntitlementClient, ProductCache
from kiosk.components.paywall import KioskHooks, PaywallResolver
from kiosk.core.ports.billing import BillingPort
from kiosk.core.ports.clock import ClockPort
from kiosk.core.ports.content import ContentLoaderPort
from kiosk.domain.i18n import resolve_i18n
from kiosk.rules.loader import load_kiosk_rules, validate_rules
from kiosk.rules.models import KioskRules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    runtime: KioskRuntime = app.state.kiosk
    logger.info(
        f"Kiosk ready: {len(runtime.rules.collections)} collection(s), "
        f"billing server {runtime.rules.billing.server}"
    )
    yield
    if isinstance(runtime.billing, PolarBillingAdapter):
        await runtime.billing.close()


def create_app(
    rules: KioskRules | None = None,
    billing: BillingPort | None = None,
    loader: ContentLoaderPort | None = None,
    hooks: KioskHooks | None = None,
    clock: ClockPort | None = None,
) -> FastAPI:
    """
    Build the kiosk app.

    Collaborators default to the production adapters: kiosk.yaml from the
    working directory, the Polar API and the filesystem content loader.
    """
    settings = get_settings()
    if rules is None:
        rules = load_kiosk_rules(settings.rules_path)
    else:
        validate_rules(rules)

    billing = billing if billing is not None else PolarBillingAdapter(rules.billing)
    loader = (
        loader
        if loader is not None
        else FileSystemContentLoader(rules.content_root, cwd=settings.base_dir)
    )
    i18n = resolve_i18n(rules.i18n)
    client = EntitlementClient(billing, rules.billing.organization_id, ProductCache())
    resolver = PaywallResolver(
        rules, client, loader, hooks=hooks, clock=clock or SystemClock(), i18n=i18n
    )

    app = FastAPI(
        title="Content Kiosk",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.kiosk = KioskRuntime(
        rules=rules,
        billing=billing,
        client=client,
        loader=loader,
        resolver=resolver,
        i18n=i18n,
    )

    @app.get("/health")
    def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "service": "kiosk"}

    # --- Routers ---
    app.include_router(checkout.router, prefix="/api/kiosk", tags=["Checkout"])
    app.include_router(auth.router, prefix="/api/kiosk/auth", tags=["Auth"])
    app.include_router(portal.router, prefix="/api/kiosk", tags=["Portal"])
    app.include_router(content.router, prefix="", tags=["SSR"])

    app.add_middleware(PaywallMiddleware)
    return app
