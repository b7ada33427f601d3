"""
Unit tests for the entitlements component.

Tests:
- Metadata normalisation and paginated finders
- ProductCache mappings (canonical vs alias registration)
- EntitlementClient product, benefit, customer and download lookups
- Degradation to "no access" on remote failure
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

import pytest

from kiosk.adapters.billing_memory import InMemoryBillingAdapter
from kiosk.components.entitlements import (
    DownloadableFile,
    EntitlementClient,
    ProductCache,
    detect_versions,
    find_by_metadata_candidates,
    find_first_list_item,
    normalise_metadata_value,
)
from kiosk.core.errors import CustomerNotFoundError
from kiosk.core.ports.billing import BillingError

# --- Fixtures ---


@pytest.fixture
def billing() -> InMemoryBillingAdapter:
    return InMemoryBillingAdapter()


@pytest.fixture
def client(billing: InMemoryBillingAdapter) -> EntitlementClient:
    return EntitlementClient(billing, billing.organization_id, ProductCache())


async def _product(billing: InMemoryBillingAdapter, content_id: str) -> str:
    product = await billing.create_product(
        {"name": content_id, "metadata": {"content_id": content_id}, "prices": []}
    )
    return product.id


def _pages(*pages: list[Any]):
    async def list_fn(filters: dict[str, Any]) -> AsyncIterator[list[Any]]:
        for page in pages:
            yield page

    return list_fn


# --- Finder Tests ---


class TestNormaliseMetadataValue:
    """Tests for metadata normalisation."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("blog/a", "blog/a"), (42, "42"), (1700000000.0, "1700000000"), (1.5, "1.5")],
    )
    def test_scalars(self, value: Any, expected: str) -> None:
        assert normalise_metadata_value(value) == expected

    @pytest.mark.parametrize("value", [None, True, ["a"], {"a": 1}])
    def test_other_types(self, value: Any) -> None:
        assert normalise_metadata_value(value) is None


class TestFinders:
    """Tests for paginated finders."""

    @pytest.mark.asyncio
    async def test_first_item_without_predicate(self) -> None:
        assert await find_first_list_item(_pages([], [1, 2]), {}) == 1

    @pytest.mark.asyncio
    async def test_predicate_across_pages(self) -> None:
        found = await find_first_list_item(_pages([1, 2], [3, 4]), {}, lambda x: x > 2)
        assert found == 3

    @pytest.mark.asyncio
    async def test_no_match(self) -> None:
        assert await find_first_list_item(_pages([1]), {}, lambda x: x > 5) is None

    @pytest.mark.asyncio
    async def test_candidates_in_order(self) -> None:
        """The canonical candidate wins even when an alias also matches."""
        items = [{"content_id": "launch"}, {"content_id": "blog/launch"}]
        seen: list[str] = []

        def build_args(candidate: str) -> dict[str, Any]:
            seen.append(candidate)
            return {"candidate": candidate}

        found = await find_by_metadata_candidates(
            _pages(items), build_args, ["blog/launch", "launch"], lambda i: i["content_id"]
        )
        assert found == {"content_id": "blog/launch"}
        assert seen == ["blog/launch"]

    @pytest.mark.asyncio
    async def test_candidates_exact_match_only(self) -> None:
        items = [{"content_id": "blog/launch-2"}]
        found = await find_by_metadata_candidates(
            _pages(items), lambda c: {}, ["blog/launch"], lambda i: i["content_id"]
        )
        assert found is None


# --- Cache Tests ---


class TestProductCache:
    """Tests for ProductCache."""

    def test_lookup_through_candidates(self) -> None:
        cache = ProductCache()
        cache.set_product_mapping("git/toc", "prod_1")
        assert cache.get_product_id_for_content("courses/git/toc") == "prod_1"

    def test_cache_product_mappings_registers_aliases(self) -> None:
        cache = ProductCache()
        cache.cache_product_mappings("blog/launch", "prod_1", ["blog/launch.md"])
        mappings = cache.product_mappings()
        assert mappings["blog/launch"] == "prod_1"
        assert mappings["launch"] == "prod_1"
        assert mappings["blog/launch.md"] == "prod_1"
        assert cache.get_content_id_for_product("prod_1") == "blog/launch"

    def test_reverse_map_first_write_wins(self) -> None:
        cache = ProductCache()
        cache.set_product_mapping("launch", "prod_1")
        cache.set_product_mapping("old-launch", "prod_1")
        assert cache.get_content_id_for_product("prod_1") == "launch"

    def test_canonical_overrides_alias(self) -> None:
        cache = ProductCache()
        cache.set_product_mapping("launch", "prod_1")
        cache.cache_product_mappings("blog/launch", "prod_1")
        assert cache.get_content_id_for_product("prod_1") == "blog/launch"

    def test_benefits_keyed_by_type(self) -> None:
        cache = ProductCache()
        cache.set_benefit_id("blog/a", "ben_1")
        cache.set_benefit_id("blog/a", "ben_2", "downloadables")
        assert cache.get_benefit_id("blog/a") == "ben_1"
        assert cache.get_benefit_id("blog/a", "downloadables") == "ben_2"

    def test_clear(self) -> None:
        cache = ProductCache()
        cache.cache_product_mappings("blog/a", "prod_1")
        cache.set_benefit_id("blog/a", "ben_1")
        cache.clear()
        assert cache.get_product_id_for_content("blog/a") is None
        assert cache.get_benefit_id("blog/a") is None


# --- Client Tests ---


class TestProductLookup:
    """Tests for product lookups."""

    @pytest.mark.asyncio
    async def test_remote_lookup_backfills_cache(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        product_id = await _product(billing, "blog/launch")

        assert await client.find_product_by_content_id("blog/launch") == product_id
        assert client.cache.get_product_id_for_content("blog/launch") == product_id

        billing.calls.clear()
        assert await client.find_product_by_content_id("blog/launch") == product_id
        assert billing.calls == []

    @pytest.mark.asyncio
    async def test_legacy_metadata_found(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        """A product written under a bare slug is still found."""
        product_id = await _product(billing, "launch")
        assert await client.find_product_by_content_id("blog/launch") == product_id
        assert client.cache.get_content_id_for_product(product_id) == "launch"

    @pytest.mark.asyncio
    async def test_missing(self, client: EntitlementClient) -> None:
        assert await client.find_product_by_content_id("blog/none") is None

    @pytest.mark.asyncio
    async def test_find_paths_do_not_mutate(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        await _product(billing, "blog/launch")
        billing.calls.clear()
        await client.find_existing_product(["blog/launch", "launch"])
        assert {call[0] for call in billing.calls} == {"list_products"}


class TestCustomerAccess:
    """Tests for validate_customer_access."""

    @pytest.mark.asyncio
    async def test_granted(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        benefit = await billing.create_benefit(
            {"type": "custom", "metadata": {"content_id": "blog/a"}}
        )
        customer = billing.add_customer("reader@example.com")
        billing.grant(customer.id, benefit.id)

        assert await client.validate_customer_access("tok", customer.id, "blog/a") is True

    @pytest.mark.asyncio
    async def test_not_granted(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        await billing.create_benefit({"type": "custom", "metadata": {"content_id": "blog/a"}})
        customer = billing.add_customer("reader@example.com")
        assert await client.validate_customer_access("tok", customer.id, "blog/a") is False

    @pytest.mark.asyncio
    async def test_no_benefit(self, client: EntitlementClient) -> None:
        assert await client.validate_customer_access("tok", "cus_1", "blog/a") is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("token", "customer_id", "content_id"),
        [(None, "cus_1", "blog/a"), ("tok", None, "blog/a"), ("tok", "cus_1", "")],
    )
    async def test_missing_inputs(
        self,
        client: EntitlementClient,
        token: str | None,
        customer_id: str | None,
        content_id: str,
    ) -> None:
        assert await client.validate_customer_access(token, customer_id, content_id) is False

    @pytest.mark.asyncio
    async def test_remote_failure_denies(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        billing.fail_with = BillingError("boom", code="500")
        assert await client.validate_customer_access("tok", "cus_1", "blog/a") is False


class TestCustomers:
    """Tests for customer lookups and sessions."""

    @pytest.mark.asyncio
    async def test_find_by_email_case_insensitive(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        customer = billing.add_customer("Reader@Example.com")
        found = await client.find_customer_by_email("  reader@example.COM ")
        assert found is not None
        assert found.id == customer.id

    @pytest.mark.asyncio
    async def test_create_session(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        customer = billing.add_customer("reader@example.com")
        session = await client.create_customer_session("reader@example.com")
        assert session.customer_id == customer.id
        assert (await client.get_customer_from_token(session.token)).id == customer.id

    @pytest.mark.asyncio
    async def test_create_session_unknown_customer(self, client: EntitlementClient) -> None:
        with pytest.raises(CustomerNotFoundError):
            await client.create_customer_session("nobody@example.com")

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: EntitlementClient) -> None:
        assert await client.get_customer_from_token("bogus") is None


class TestDownloads:
    """Tests for downloadable files."""

    @pytest.mark.asyncio
    async def test_signed_urls(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        file_id = await billing.upload_file(name="code.zip", mime_type="application/zip", data=b"x")
        benefit = await billing.create_benefit(
            {
                "type": "downloadables",
                "metadata": {"content_id": "blog/a"},
                "properties": {"files": [file_id]},
            }
        )
        customer = billing.add_customer("reader@example.com")
        billing.grant(customer.id, benefit.id)
        session = await billing.create_customer_session(customer.id)

        files = await client.get_downloadable_files("blog/a", session.token)

        assert [f.name for f in files] == ["code.zip"]
        assert files[0].download_url.endswith(file_id)
        assert files[0].is_new is False

    @pytest.mark.asyncio
    async def test_no_token(self, client: EntitlementClient) -> None:
        assert await client.get_downloadable_files("blog/a", None) == []

    @pytest.mark.asyncio
    async def test_failure_returns_empty(
        self, billing: InMemoryBillingAdapter, client: EntitlementClient
    ) -> None:
        billing.fail_with = BillingError("boom")
        assert await client.get_downloadable_files("blog/a", "tok") == []

    def test_version_badges(self) -> None:
        def file(file_id: str, name: str, day: int) -> DownloadableFile:
            return DownloadableFile(
                id=file_id,
                benefit_id="ben",
                name=name,
                size=1,
                mime_type="application/zip",
                download_url=f"https://x/{file_id}",
                last_modified_at=datetime(2025, 1, day, tzinfo=UTC),
            )

        files = detect_versions(
            [file("1", "code.zip", 1), file("2", "code.zip", 3), file("3", "slides.pdf", 2)]
        )

        assert [f.id for f in files] == ["1", "2", "3"]
        assert files[0].is_legacy and not files[0].is_new
        assert files[1].is_new and not files[1].is_legacy
        assert not files[2].is_new and not files[2].is_legacy
