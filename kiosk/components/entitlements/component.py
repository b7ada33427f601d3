"""
Remote entitlement client.

Find primitives over the billing provider's paginated lists, with
candidate-based metadata search so products written under legacy content ID
spellings are still found.

Invariants:
- Candidates are tried in order, so a canonical match wins over an alias
- Find paths never mutate remote state; only the ProductCache changes
- Request-time checks degrade to "no access" / "no files" on remote failure
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any, TypeVar

from kiosk.components.content_id import generate_content_id_candidates
from kiosk.core.entities import Customer, CustomerSession, RemoteBenefit, RemoteProduct
from kiosk.core.errors import CustomerNotFoundError
from kiosk.core.ports.billing import PAGE_SIZE, BillingError, BillingPort, ListFn

from .cache import ProductCache
from .models import DownloadableFile

logger = logging.getLogger(__name__)

T = TypeVar("T")


def normalise_metadata_value(value: Any) -> str | None:
    """Strings as-is, numbers as strings (integral floats without ".0"), else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return None


async def find_first_list_item(
    list_fn: ListFn[T],
    filters: dict[str, Any],
    predicate: Callable[[T], bool] | None = None,
) -> T | None:
    """First item across pages matching ``predicate`` (or the first item at all)."""
    async for page in list_fn(filters):
        if not page:
            continue
        if predicate is None:
            return page[0]
        for item in page:
            if predicate(item):
                return item
    return None


async def find_by_metadata_candidates(
    list_fn: ListFn[T],
    build_args: Callable[[str], dict[str, Any]],
    candidates: Iterable[str],
    get_metadata_value: Callable[[T], Any],
    normalise: Callable[[Any], str | None] = normalise_metadata_value,
) -> T | None:
    """For each candidate in order, the first item whose metadata equals it exactly."""
    for candidate in candidates:
        async for page in list_fn(build_args(candidate)):
            for item in page:
                if normalise(get_metadata_value(item)) == candidate:
                    return item
    return None


def detect_versions(files: list[DownloadableFile]) -> list[DownloadableFile]:
    """Mark newest/legacy versions among files sharing a name; order is kept."""
    by_name: dict[str, list[int]] = {}
    for index, file in enumerate(files):
        by_name.setdefault(file.name, []).append(index)

    result = list(files)
    for indexes in by_name.values():
        if len(indexes) < 2:
            continue
        newest_first = sorted(
            indexes,
            key=lambda i: files[i].last_modified_at.timestamp()
            if files[i].last_modified_at
            else 0.0,
            reverse=True,
        )
        for rank, i in enumerate(newest_first):
            result[i] = _with_badges(files[i], is_new=rank == 0, is_legacy=rank > 0)
    return result


def _with_badges(file: DownloadableFile, *, is_new: bool, is_legacy: bool) -> DownloadableFile:
    return replace(file, is_new=is_new, is_legacy=is_legacy)


class EntitlementClient:
    """
    Billing lookups shared by sync, routes and the paywall resolver.

    Args:
        billing: Billing provider port
        organization_id: Organization that owns products and benefits
        cache: Shared product/benefit ID cache
    """

    def __init__(
        self,
        billing: BillingPort,
        organization_id: str,
        cache: ProductCache | None = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.billing = billing
        self.organization_id = organization_id
        self.cache = cache if cache is not None else ProductCache()
        self.page_size = page_size

    def _metadata_filters(self, content_id: str, **extra: Any) -> dict[str, Any]:
        filters: dict[str, Any] = {
            "organization_id": self.organization_id,
            "metadata": {"content_id": content_id},
            "limit": self.page_size,
        }
        filters.update(extra)
        return filters

    # --- Products ---

    async def find_existing_product(self, candidates: Iterable[str]) -> RemoteProduct | None:
        return await find_by_metadata_candidates(
            self.billing.list_products,
            self._metadata_filters,
            candidates,
            lambda product: product.metadata.get("content_id"),
        )

    async def find_product_by_content_id(self, content_id: str) -> str | None:
        """Product ID for a content ID; a cache miss searches remotely and back-fills."""
        cached = self.cache.get_product_id_for_content(content_id)
        if cached:
            return cached

        candidates = generate_content_id_candidates(content_id)
        product = await self.find_existing_product(candidates)
        if product is None:
            return None

        canonical = normalise_metadata_value(product.metadata.get("content_id")) or content_id
        self.cache.cache_product_mappings(canonical, product.id, candidates)
        return product.id

    # --- Benefits ---

    async def find_benefit_by_content_id(
        self, content_id: str, benefit_type: str = "custom"
    ) -> RemoteBenefit | None:
        benefit = await find_first_list_item(
            self.billing.list_benefits,
            self._metadata_filters(content_id, type=benefit_type),
            lambda item: item.type == benefit_type
            and normalise_metadata_value(item.metadata.get("content_id")) == content_id,
        )
        if benefit is not None:
            self.cache.set_benefit_id(content_id, benefit.id, benefit_type)
        return benefit

    async def _benefit_id(self, content_id: str, benefit_type: str) -> str | None:
        cached = self.cache.get_benefit_id(content_id, benefit_type)
        if cached:
            return cached
        benefit = await self.find_benefit_by_content_id(content_id, benefit_type)
        return benefit.id if benefit else None

    async def validate_customer_access(
        self, customer_token: str | None, customer_id: str | None, content_id: str | None
    ) -> bool:
        """True when the customer holds a granted benefit for the content."""
        if not customer_token or not customer_id or not content_id:
            return False

        try:
            benefit_id = await self._benefit_id(content_id, "custom")
            if benefit_id is None:
                logger.warning(
                    f"No benefit found for content_id: {content_id}. "
                    "Run a sync first to create products and benefits."
                )
                return False

            grants = await self.billing.list_benefit_grants(
                benefit_id, customer_id=customer_id, is_granted=True, limit=1
            )
            return len(grants) > 0
        except BillingError as e:
            logger.error(f"Failed to validate customer access for {content_id}: {e}")
            return False

    # --- Customers ---

    async def find_customer_by_email(self, email: str) -> Customer | None:
        normalised = email.strip().lower()
        try:
            return await find_first_list_item(
                self.billing.list_customers,
                {"organization_id": self.organization_id, "email": normalised},
                lambda item: item.email.strip().lower() == normalised,
            )
        except BillingError as e:
            logger.error(f"Error finding customer by email: {e}")
            return None

    async def create_customer_session(self, email: str) -> CustomerSession:
        """Session for an existing customer. Raises CustomerNotFoundError."""
        customer = await self.find_customer_by_email(email)
        if customer is None:
            raise CustomerNotFoundError(
                "Customer not found. Please purchase content first or check your email address."
            )
        return await self.billing.create_customer_session(customer.id)

    async def get_customer_from_token(self, customer_token: str) -> Customer | None:
        try:
            return await self.billing.get_customer(customer_token)
        except BillingError as e:
            logger.error(f"Error getting customer from token: {e}")
            return None

    # --- Downloads ---

    async def get_downloadable_files(
        self, content_id: str, customer_token: str | None
    ) -> list[DownloadableFile]:
        """Signed download links for the content's downloadables benefit."""
        if not customer_token:
            return []

        try:
            benefit_id = await self._benefit_id(content_id, "downloadables")
            if benefit_id is None:
                return []
            items = await self.billing.list_downloadables(customer_token, benefit_id, limit=100)
        except BillingError as e:
            logger.error(f"Failed to get downloadable files for {content_id}: {e}")
            return []

        return detect_versions([DownloadableFile.from_downloadable(item) for item in items])
