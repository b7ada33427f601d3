"""
Paywall component models.

Request context, resolved content and the per-request ``PaywallState`` the
page render step consumes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from kiosk.components.entitlements import DownloadableFile
from kiosk.core.entities import RecurringInterval
from kiosk.core.ports.content import ContentEntry
from kiosk.domain.i18n import ParsedPath
from kiosk.domain.payable import PayableData
from kiosk.rules.models import CollectionRules

# --- Cookies ---

SESSION_COOKIE = "kiosk_session"
CUSTOMER_ID_COOKIE = "kiosk_customer_id"
CUSTOMER_EMAIL_COOKIE = "kiosk_customer_email"
ACCESS_COOKIE = "kiosk_access"

SESSION_COOKIES = (SESSION_COOKIE, CUSTOMER_ID_COOKIE, CUSTOMER_EMAIL_COOKIE)

CUSTOMER_SESSION_TOKEN_PARAM = "customer_session_token"

ContentKind = Literal["prose", "slide_deck"]


@dataclass(frozen=True)
class RequestContext:
    """Framework-agnostic view of the incoming request."""

    path: str
    query: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CookieUpdate:
    """
    A cookie to set on the response.

    ``value=None`` deletes the cookie. All kiosk cookies are HTTP-only,
    secure, SameSite=Lax and scoped to "/".
    """

    name: str
    value: str | None
    expires: datetime | None = None


@dataclass(frozen=True)
class ResolvedContent:
    """
    Payable content behind a request path.

    For inherited children ``entry`` is the parent (index) entry that carries
    the product, and ``inherited`` is set.
    """

    content_id: str
    product_id: str
    entry: ContentEntry
    payable: PayableData
    collection: CollectionRules
    parsed: ParsedPath
    inherited: bool = False
    requested: ContentEntry | None = None

    @property
    def page_entry(self) -> ContentEntry:
        """The entry the request path names (the child for inherited content)."""
        return self.requested or self.entry


@dataclass(frozen=True)
class Session:
    """Customer session recovered from cookies or a provider redirect."""

    token: str | None = None
    customer_id: str | None = None
    email: str | None = None

    @property
    def is_present(self) -> bool:
        return bool(self.token and self.customer_id)


@dataclass(frozen=True)
class PaywallState:
    """
    Per-request paywall view for the page render step.

    Price, currency and interval are omitted for inherited children.
    ``preview`` is set only when access is denied; download fields only when
    access is granted and the content declares downloads.
    """

    is_payable: bool
    is_authenticated: bool
    has_access: bool
    product_id: str
    content_id: str
    price: int | None = None
    currency: str | None = None
    interval: RecurringInterval | None = None
    title: str | None = None
    description: str | None = None
    preview: str | None = None
    has_downloads: bool = False
    download_count: int = 0
    downloadable_files: tuple[DownloadableFile, ...] = ()
    downloadable_section: str | None = None


@dataclass(frozen=True)
class PaywallOutcome:
    state: PaywallState
    cookies: tuple[CookieUpdate, ...] = ()
