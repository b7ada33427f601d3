"""
In-memory billing adapter (dev/tests).

Satisfies BillingPort without network access. Request bodies use the same
shape the Polar adapter sends, so sync code is exercised unchanged.
Every call is recorded in ``calls`` as ``(method, *args)``.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from kiosk.core.entities import (
    BenefitGrant,
    Customer,
    CustomerSession,
    Downloadable,
    DownloadableFileInfo,
    FileDownload,
    RemoteBenefit,
    RemotePrice,
    RemoteProduct,
)
from kiosk.core.ports.billing import PAGE_SIZE, BillingError

logger = logging.getLogger(__name__)


def _metadata_equals(metadata: dict[str, Any], expected: dict[str, Any]) -> bool:
    for key, value in expected.items():
        actual = metadata.get(key)
        if actual is None or str(actual) != str(value):
            return False
    return True


@dataclass
class StoredFile:
    name: str
    mime_type: str
    data: bytes
    uploaded_at: datetime


@dataclass
class InMemoryBillingAdapter:
    """
    Billing double holding products, benefits, customers and files in dicts.

    Set ``fail_with`` to make every subsequent call raise that error.
    """

    organization_id: str = "org_test"
    products: dict[str, RemoteProduct] = field(default_factory=dict)
    benefits: dict[str, RemoteBenefit] = field(default_factory=dict)
    customers: dict[str, Customer] = field(default_factory=dict)
    grants: list[BenefitGrant] = field(default_factory=list)
    sessions: dict[str, CustomerSession] = field(default_factory=dict)
    files: dict[str, StoredFile] = field(default_factory=dict)
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    fail_with: BillingError | None = None
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        if self.fail_with is not None:
            raise self.fail_with

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == method]

    async def _paginate(self, items: list[Any], filters: dict[str, Any]) -> AsyncIterator[list[Any]]:
        limit = int(filters.get("limit") or PAGE_SIZE)
        for start in range(0, len(items), limit):
            yield items[start : start + limit]

    # --- Seeding helpers ---

    def add_customer(self, email: str) -> Customer:
        customer = Customer(id=self._next_id("cus"), email=email)
        self.customers[customer.id] = customer
        return customer

    def grant(self, customer_id: str, benefit_id: str) -> BenefitGrant:
        grant = BenefitGrant(
            id=self._next_id("grant"), benefit_id=benefit_id, customer_id=customer_id
        )
        self.grants.append(grant)
        return grant

    # --- Products ---

    async def list_products(self, filters: dict[str, Any]) -> AsyncIterator[list[RemoteProduct]]:
        self._record("list_products", filters)
        expected = filters.get("metadata") or {}
        items = [p for p in self.products.values() if _metadata_equals(p.metadata, expected)]
        async for page in self._paginate(items, filters):
            yield page

    def _build_prices(
        self, raw_prices: list[dict[str, Any]], existing: list[RemotePrice]
    ) -> list[RemotePrice]:
        by_id = {price.id: price for price in existing}
        prices: list[RemotePrice] = []
        for raw in raw_prices:
            if "id" in raw:
                if raw["id"] not in by_id:
                    raise BillingError(f"Unknown price {raw['id']}", code="422")
                prices.append(by_id[raw["id"]])
            else:
                prices.append(
                    RemotePrice(
                        id=self._next_id("price"),
                        amount_type=raw.get("amount_type", "fixed"),
                        price_amount=raw.get("price_amount"),
                        price_currency=raw.get("price_currency"),
                    )
                )
        return prices

    async def create_product(self, payload: dict[str, Any]) -> RemoteProduct:
        self._record("create_product", payload)
        product = RemoteProduct(
            id=self._next_id("prod"),
            name=payload["name"],
            description=payload.get("description"),
            recurring_interval=payload.get("recurring_interval"),
            metadata=dict(payload.get("metadata") or {}),
            prices=self._build_prices(payload.get("prices") or [], []),
        )
        self.products[product.id] = product
        return product

    async def update_product(self, product_id: str, payload: dict[str, Any]) -> RemoteProduct:
        self._record("update_product", product_id, payload)
        existing = self.products.get(product_id)
        if existing is None:
            raise BillingError(f"Product {product_id} not found", code="404")
        if existing.is_archived:
            raise BillingError(f"Product {product_id} is archived", code="403")

        update: dict[str, Any] = {
            key: payload[key] for key in ("name", "description", "metadata") if key in payload
        }
        if "prices" in payload:
            update["prices"] = self._build_prices(payload["prices"], existing.prices)
        product = existing.model_copy(update=update)
        self.products[product_id] = product
        return product

    async def update_product_benefits(
        self, product_id: str, benefit_ids: list[str]
    ) -> RemoteProduct:
        self._record("update_product_benefits", product_id, list(benefit_ids))
        existing = self.products.get(product_id)
        if existing is None:
            raise BillingError(f"Product {product_id} not found", code="404")
        benefits = [self.benefits[benefit_id] for benefit_id in benefit_ids]
        product = existing.model_copy(update={"benefits": benefits})
        self.products[product_id] = product
        return product

    # --- Benefits ---

    async def list_benefits(self, filters: dict[str, Any]) -> AsyncIterator[list[RemoteBenefit]]:
        self._record("list_benefits", filters)
        expected = filters.get("metadata") or {}
        benefit_type = filters.get("type")
        items = [
            b
            for b in self.benefits.values()
            if _metadata_equals(b.metadata, expected)
            and (benefit_type is None or b.type == benefit_type)
        ]
        async for page in self._paginate(items, filters):
            yield page

    async def create_benefit(self, payload: dict[str, Any]) -> RemoteBenefit:
        self._record("create_benefit", payload)
        benefit = RemoteBenefit(
            id=self._next_id("ben"),
            type=payload["type"],
            description=payload.get("description", ""),
            metadata=dict(payload.get("metadata") or {}),
            properties=dict(payload.get("properties") or {}),
        )
        self.benefits[benefit.id] = benefit
        return benefit

    async def update_benefit(self, benefit_id: str, payload: dict[str, Any]) -> RemoteBenefit:
        self._record("update_benefit", benefit_id, payload)
        existing = self.benefits.get(benefit_id)
        if existing is None:
            raise BillingError(f"Benefit {benefit_id} not found", code="404")
        update = {
            key: payload[key]
            for key in ("description", "metadata", "properties")
            if key in payload
        }
        benefit = existing.model_copy(update=update)
        self.benefits[benefit_id] = benefit
        return benefit

    async def list_benefit_grants(
        self,
        benefit_id: str,
        *,
        customer_id: str,
        is_granted: bool = True,
        limit: int = 1,
    ) -> list[BenefitGrant]:
        self._record("list_benefit_grants", benefit_id, customer_id)
        matches = [
            g
            for g in self.grants
            if g.benefit_id == benefit_id
            and g.customer_id == customer_id
            and g.is_granted == is_granted
        ]
        return matches[:limit]

    # --- Customers ---

    async def list_customers(self, filters: dict[str, Any]) -> AsyncIterator[list[Customer]]:
        self._record("list_customers", filters)
        email = filters.get("email")
        items = [
            c
            for c in self.customers.values()
            if email is None or c.email.strip().lower() == str(email).strip().lower()
        ]
        async for page in self._paginate(items, filters):
            yield page

    async def create_customer_session(self, customer_id: str) -> CustomerSession:
        self._record("create_customer_session", customer_id)
        if customer_id not in self.customers:
            raise BillingError(f"Customer {customer_id} not found", code="404")
        session = CustomerSession(
            token=self._next_id("cst"),
            expires_at=datetime.now(UTC) + timedelta(hours=1),
            customer_id=customer_id,
        )
        self.sessions[session.token] = session
        return session

    def _customer_for_token(self, customer_token: str) -> Customer:
        session = self.sessions.get(customer_token)
        if session is None:
            raise BillingError("Invalid customer session", code="401")
        return self.customers[session.customer_id]

    async def get_customer(self, customer_token: str) -> Customer:
        self._record("get_customer", customer_token)
        return self._customer_for_token(customer_token)

    async def list_downloadables(
        self, customer_token: str, benefit_id: str, limit: int = 100
    ) -> list[Downloadable]:
        self._record("list_downloadables", customer_token, benefit_id)
        customer = self._customer_for_token(customer_token)
        granted = any(
            g.benefit_id == benefit_id and g.customer_id == customer.id and g.is_granted
            for g in self.grants
        )
        benefit = self.benefits.get(benefit_id)
        if not granted or benefit is None:
            return []

        items: list[Downloadable] = []
        for file_id in benefit.properties.get("files", []):
            stored = self.files.get(file_id)
            if stored is None:
                continue
            items.append(
                Downloadable(
                    id=self._next_id("dl"),
                    benefit_id=benefit_id,
                    file=DownloadableFileInfo(
                        id=file_id,
                        name=stored.name,
                        size=len(stored.data),
                        mime_type=stored.mime_type,
                        last_modified_at=stored.uploaded_at,
                        download=FileDownload(url=f"https://files.example.test/{file_id}"),
                    ),
                )
            )
        return items[:limit]

    # --- Checkout / portal ---

    async def create_checkout(
        self,
        product_id: str,
        *,
        success_url: str,
        customer_email: str | None = None,
    ) -> str:
        self._record("create_checkout", product_id, success_url, customer_email)
        if product_id not in self.products:
            raise BillingError(f"Product {product_id} not found", code="404")
        return f"https://checkout.example.test/{product_id}"

    async def create_portal_url(self, customer_id: str, *, return_url: str) -> str:
        self._record("create_portal_url", customer_id, return_url)
        if customer_id not in self.customers:
            raise BillingError(f"Customer {customer_id} not found", code="404")
        return f"https://portal.example.test/{customer_id}"

    # --- Files ---

    async def upload_file(self, *, name: str, mime_type: str, data: bytes) -> str:
        self._record("upload_file", name, mime_type)
        file_id = self._next_id("file")
        self.files[file_id] = StoredFile(
            name=name, mime_type=mime_type, data=data, uploaded_at=datetime.now(UTC)
        )
        logger.debug(f"InMemoryBillingAdapter.upload_file: {name} -> {file_id}")
        return file_id
