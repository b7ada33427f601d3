"""
Dependency wiring for the HTTP shell.

The app factory builds one ``KioskRuntime`` and stores it on ``app.state``;
route dependencies read it back from the request.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from fastapi import Request

from kiosk.components.entitlements import EntitlementClient
from kiosk.components.paywall import PaywallResolver
from kiosk.core.ports.billing import BillingPort
from kiosk.core.ports.content import ContentLoaderPort
from kiosk.domain.i18n import ResolvedI18n
from kiosk.rules.loader import DEFAULT_RULES_PATH, RULES_PATH_ENV
from kiosk.rules.models import KioskRules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.rules_path = self.base_dir / os.environ.get(RULES_PATH_ENV, DEFAULT_RULES_PATH)


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Runtime ---
@dataclass
class KioskRuntime:
    """Process-wide collaborators shared by the middleware and the routes."""

    rules: KioskRules
    billing: BillingPort
    client: EntitlementClient
    loader: ContentLoaderPort
    resolver: PaywallResolver
    i18n: ResolvedI18n | None = None


def get_runtime(request: Request) -> KioskRuntime:
    return request.app.state.kiosk


def request_origin(request: Request) -> str:
    """Scheme and host of the incoming request, e.g. "https://example.com"."""
    return f"{request.url.scheme}://{request.url.netloc}"
