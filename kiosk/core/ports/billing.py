"""
Billing provider port.

The provider is an opaque remote service with paginated list, create and
update semantics. List operations yield one page (a list of items) at a time;
callers stop iterating as soon as they find what they need.

Filters accepted by list operations:
- organization_id: owning organization
- metadata: {key: value} exact-match metadata filter
- type: benefit type
- email: customer email
- limit: page size
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol, TypeVar

from kiosk.core.entities import (
    BenefitGrant,
    Customer,
    CustomerSession,
    Downloadable,
    RemoteBenefit,
    RemoteProduct,
)

T = TypeVar("T")

ListFn = Callable[[dict[str, Any]], AsyncIterator[list[T]]]

PAGE_SIZE = 20


class BillingError(Exception):
    """Error returned by the billing provider."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class BillingPort(Protocol):
    """Port for the billing provider."""

    # --- Products ---

    def list_products(self, filters: dict[str, Any]) -> AsyncIterator[list[RemoteProduct]]:
        ...

    async def create_product(self, payload: dict[str, Any]) -> RemoteProduct:
        ...

    async def update_product(self, product_id: str, payload: dict[str, Any]) -> RemoteProduct:
        ...

    async def update_product_benefits(
        self, product_id: str, benefit_ids: list[str]
    ) -> RemoteProduct:
        """Replace the product's benefit set with exactly ``benefit_ids``."""
        ...

    # --- Benefits ---

    def list_benefits(self, filters: dict[str, Any]) -> AsyncIterator[list[RemoteBenefit]]:
        ...

    async def create_benefit(self, payload: dict[str, Any]) -> RemoteBenefit:
        ...

    async def update_benefit(self, benefit_id: str, payload: dict[str, Any]) -> RemoteBenefit:
        ...

    async def list_benefit_grants(
        self,
        benefit_id: str,
        *,
        customer_id: str,
        is_granted: bool = True,
        limit: int = 1,
    ) -> list[BenefitGrant]:
        ...

    # --- Customers ---

    def list_customers(self, filters: dict[str, Any]) -> AsyncIterator[list[Customer]]:
        ...

    async def create_customer_session(self, customer_id: str) -> CustomerSession:
        ...

    async def get_customer(self, customer_token: str) -> Customer:
        """Resolve the customer behind a customer session token."""
        ...

    async def list_downloadables(
        self, customer_token: str, benefit_id: str, limit: int = 100
    ) -> list[Downloadable]:
        ...

    # --- Checkout / portal ---

    async def create_checkout(
        self,
        product_id: str,
        *,
        success_url: str,
        customer_email: str | None = None,
    ) -> str:
        """Create a checkout and return its URL."""
        ...

    async def create_portal_url(self, customer_id: str, *, return_url: str) -> str:
        ...

    # --- Files ---

    async def upload_file(self, *, name: str, mime_type: str, data: bytes) -> str:
        """Upload a downloadable file and return its remote ID."""
        ...
