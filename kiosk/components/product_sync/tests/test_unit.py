"""
Unit tests for the product sync component.

Tests:
- Price payload and update detection helpers
- Create, update and no-op runs against the in-memory billing adapter
- Immutable interval and archived product failures
- Download file resolution from the state file
- Group collections and skipped files
"""

from pathlib import Path

import pytest

from kiosk.adapters.billing_memory import InMemoryBillingAdapter
from kiosk.components.entitlements import EntitlementClient, ProductCache
from kiosk.components.paywall import CollectionHooks, KioskHooks
from kiosk.components.product_sync import (
    DesiredProduct,
    ProductSynchronizer,
    build_price_payload,
    format_product_name,
    needs_price_update,
    should_update_product,
)
from kiosk.components.state import StateFile, StateFileEntry
from kiosk.core.entities import RemotePrice, RemoteProduct
from kiosk.core.errors import SyncError
from kiosk.rules.models import AccessCookieRules, CollectionRules, GroupRules, KioskRules

# --- Fixtures ---


def _write(root: Path, relative: str, frontmatter: str, body: str = "Body text.\n") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"---\n{frontmatter}---\n\n{body}", encoding="utf-8")
    return path


@pytest.fixture
def rules() -> KioskRules:
    return KioskRules(
        site_url="https://example.com",
        collections=[
            CollectionRules(include="src/content/blog/**/*.md", name="blog"),
            CollectionRules(
                include="src/content/courses/**/*.md",
                name="courses",
                group=GroupRules(index="toc", child_collection="lessons"),
            ),
        ],
        access_cookie=AccessCookieRules(secret="s" * 32),
    )


@pytest.fixture
def billing() -> InMemoryBillingAdapter:
    return InMemoryBillingAdapter()


@pytest.fixture
def cache() -> ProductCache:
    return ProductCache()


@pytest.fixture
def synchronizer(
    tmp_path: Path, rules: KioskRules, billing: InMemoryBillingAdapter, cache: ProductCache
) -> ProductSynchronizer:
    client = EntitlementClient(billing, billing.organization_id, cache)
    return ProductSynchronizer(client, rules, cwd=tmp_path)


def _product(price: int = 500, currency: str = "usd", **kwargs) -> RemoteProduct:
    defaults = {
        "id": "prod_1",
        "name": "Launch",
        "description": "About the launch",
        "metadata": {
            "content_id": "blog/launch",
            "collection": "blog",
            "updatedAt": 1000,
        },
        "prices": [
            RemotePrice(id="price_1", price_amount=price, price_currency=currency),
        ],
    }
    defaults.update(kwargs)
    return RemoteProduct(**defaults)


def _desired(**kwargs) -> DesiredProduct:
    defaults = {
        "content_id": "blog/launch",
        "collection": "blog",
        "title": "Launch",
        "name": "Launch",
        "description": "About the launch",
        "price": 500,
        "currency": "usd",
        "updated_at": 1000,
        "content_url": "https://example.com/blog/launch",
    }
    defaults.update(kwargs)
    return DesiredProduct(**defaults)


# --- Helper Tests ---


class TestHelpers:
    """Tests for pure sync helpers."""

    def test_format_product_name(self) -> None:
        assert format_product_name("Launch", "Premium: [title]") == "Premium: Launch"
        assert format_product_name("Launch", None) == "Launch"

    def test_matching_price_kept_by_id(self) -> None:
        product = _product()
        assert not needs_price_update(product, 500, "USD")
        assert build_price_payload(product, 500, "usd") == [{"id": "price_1"}]

    def test_changed_price_sends_new_fixed_price(self) -> None:
        product = _product()
        assert needs_price_update(product, 900, "usd")
        assert build_price_payload(product, 900, "EUR") == [
            {"amount_type": "fixed", "price_amount": 900, "price_currency": "eur"}
        ]

    def test_should_update_detects_changes(self) -> None:
        product = _product()
        assert not should_update_product(product, _desired())
        assert should_update_product(product, _desired(updated_at=2000))
        assert should_update_product(product, _desired(name="Renamed"))
        assert should_update_product(product, _desired(price=900))

    def test_missing_remote_description_equals_empty(self) -> None:
        product = _product(description=None)
        assert not should_update_product(product, _desired(description=""))


# --- Sync Tests ---


class TestSyncAll:
    """Tests for ProductSynchronizer.sync_all."""

    @pytest.mark.asyncio
    async def test_creates_product_and_benefit(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
        cache: ProductCache,
    ) -> None:
        _write(
            tmp_path,
            "src/content/blog/launch.md",
            "title: Launch\nprice: 500\ndescription: About the launch\n",
        )

        report = await synchronizer.sync_all(StateFile())

        assert report.count("created") == 1
        product = next(iter(billing.products.values()))
        assert product.name == "Launch"
        assert product.metadata["content_id"] == "blog/launch"
        assert product.metadata["pricing_model"] == "one_time"
        assert product.prices[0].price_amount == 500

        benefit = next(iter(billing.benefits.values()))
        assert benefit.type == "custom"
        assert benefit.properties["note"] == "About the launch\n\nhttps://example.com/blog/launch"
        assert [b.id for b in billing.products[product.id].benefits] == [benefit.id]

        assert cache.get_product_id_for_content("blog/launch") == product.id
        assert cache.get_benefit_id("blog/launch") == benefit.id

    @pytest.mark.asyncio
    async def test_second_run_is_unchanged(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        """A repeat run performs no product or benefit edits but still sets benefits."""
        _write(tmp_path, "src/content/blog/launch.md", "title: Launch\nprice: 500\n")
        await synchronizer.sync_all(StateFile())
        billing.calls.clear()

        report = await synchronizer.sync_all(StateFile())

        assert report.count("unchanged") == 1
        assert billing.calls_to("update_product") == []
        assert billing.calls_to("update_benefit") == []
        assert billing.calls_to("create_product") == []
        assert len(billing.calls_to("update_product_benefits")) == 1

    @pytest.mark.asyncio
    async def test_price_change_updates_product(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(tmp_path, "src/content/blog/launch.md", "title: Launch\nprice: 500\n")
        await synchronizer.sync_all(StateFile())

        _write(tmp_path, "src/content/blog/launch.md", "title: Launch\nprice: 900\n")
        report = await synchronizer.sync_all(StateFile())

        assert report.count("updated") == 1
        product = next(iter(billing.products.values()))
        assert product.prices[0].price_amount == 900

    @pytest.mark.asyncio
    async def test_subscription_created_with_interval(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(tmp_path, "src/content/blog/club.md", "title: Club\nprice: 300\ninterval: month\n")
        await synchronizer.sync_all(StateFile())

        payload = billing.calls_to("create_product")[0][1]
        assert payload["recurring_interval"] == "month"
        assert payload["metadata"]["interval"] == "month"
        assert "organization_id" not in payload

    @pytest.mark.asyncio
    async def test_interval_change_aborts(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
    ) -> None:
        _write(tmp_path, "src/content/blog/club.md", "title: Club\nprice: 300\ninterval: month\n")
        await synchronizer.sync_all(StateFile())

        _write(tmp_path, "src/content/blog/club.md", "title: Club\nprice: 300\ninterval: year\n")
        with pytest.raises(SyncError) as exc_info:
            await synchronizer.sync_all(StateFile())

        message = str(exc_info.value)
        assert "Failed to process pattern src/content/blog/**/*.md" in message
        assert 'Club recurring interval cannot be changed from "month" to "year".' in message

    @pytest.mark.asyncio
    async def test_archived_product_aborts(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(tmp_path, "src/content/blog/launch.md", "title: Launch\nprice: 500\n")
        await synchronizer.sync_all(StateFile())
        product_id = next(iter(billing.products))
        billing.products[product_id] = billing.products[product_id].model_copy(
            update={"is_archived": True}
        )

        with pytest.raises(SyncError, match="is archived"):
            await synchronizer.sync_all(StateFile())

    @pytest.mark.asyncio
    async def test_non_payable_files_skipped(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(tmp_path, "src/content/blog/free.md", "title: Free\n")
        _write(tmp_path, "src/content/blog/zero.md", "title: Zero\nprice: 0\n")

        report = await synchronizer.sync_all(StateFile())

        assert report.total_synced == 0
        assert len(report.skipped) == 2
        assert billing.products == {}

    @pytest.mark.asyncio
    async def test_group_index_carries_product(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(tmp_path, "src/content/courses/git/toc.md", "title: Git Course\nprice: 2000\n")
        _write(tmp_path, "src/content/courses/git/01-intro.md", "title: Intro\nprice: 100\n")

        report = await synchronizer.sync_all(StateFile())

        assert [s.content_id for s in report.synced] == ["courses/git/toc"]
        assert len(report.skipped) == 1
        benefit = next(iter(billing.benefits.values()))
        assert benefit.properties["note"].endswith("https://example.com/courses/git")

    @pytest.mark.asyncio
    async def test_frontmatter_slug_overrides_id(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(
            tmp_path,
            "src/content/blog/2024-09-30-launch.md",
            "title: Launch\nprice: 500\nslug: launch\n",
        )
        await synchronizer.sync_all(StateFile())
        product = next(iter(billing.products.values()))
        assert product.metadata["content_id"] == "blog/launch"

    @pytest.mark.asyncio
    async def test_skipped_collections(
        self,
        tmp_path: Path,
        rules: KioskRules,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(tmp_path, "src/content/blog/launch.md", "title: Launch\nprice: 500\n")
        client = EntitlementClient(billing, billing.organization_id)
        synchronizer = ProductSynchronizer(
            client, rules, cwd=tmp_path, skip_collections=["blog"]
        )
        report = await synchronizer.sync_all(StateFile())
        assert report.total_synced == 0
        assert billing.calls_to("list_products") == []

    @pytest.mark.asyncio
    async def test_inherit_access_hook_skips_collection(
        self,
        tmp_path: Path,
        rules: KioskRules,
        billing: InMemoryBillingAdapter,
    ) -> None:
        """Children that inherit access never get products of their own."""
        _write(tmp_path, "src/content/blog/launch.md", "title: Launch\nprice: 500\n")
        hooks = KioskHooks(
            collections={"blog": CollectionHooks(inherit_access=lambda entry, parsed: None)}
        )
        client = EntitlementClient(billing, billing.organization_id)
        synchronizer = ProductSynchronizer(client, rules, cwd=tmp_path, hooks=hooks)

        report = await synchronizer.sync_all(StateFile())

        assert report.total_synced == 0
        assert billing.products == {}

    @pytest.mark.asyncio
    async def test_fractional_price_aborts(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(tmp_path, "src/content/blog/launch.md", "title: Launch\nprice: 4.99\n")

        with pytest.raises(SyncError, match="whole number"):
            await synchronizer.sync_all(StateFile())
        assert billing.products == {}

    @pytest.mark.asyncio
    async def test_whole_float_price_accepted(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(tmp_path, "src/content/blog/launch.md", "title: Launch\nprice: 500.0\n")

        await synchronizer.sync_all(StateFile())

        product = next(iter(billing.products.values()))
        assert [p.price_amount for p in product.prices] == [500]


# --- Download Tests ---


class TestDownloads:
    """Tests for the downloadables benefit."""

    @pytest.mark.asyncio
    async def test_downloadables_benefit_from_state(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
    ) -> None:
        _write(
            tmp_path,
            "src/content/blog/launch.md",
            "title: Launch\nprice: 500\ndownloads:\n  - title: Guide\n    file: ./guide.pdf\n",
        )
        state = StateFile(
            files={
                "src/content/blog/guide.pdf": StateFileEntry(
                    remote_file_id="file_9",
                    checksum="abc",
                    local_path="src/content/blog/guide.pdf",
                )
            }
        )

        report = await synchronizer.sync_all(state)

        assert len(report.synced[0].benefit_ids) == 2
        downloadables = [b for b in billing.benefits.values() if b.type == "downloadables"]
        assert downloadables[0].properties["files"] == ["file_9"]

    @pytest.mark.asyncio
    async def test_missing_upload_warns(
        self,
        tmp_path: Path,
        synchronizer: ProductSynchronizer,
        billing: InMemoryBillingAdapter,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        _write(
            tmp_path,
            "src/content/blog/launch.md",
            "title: Launch\nprice: 500\ndownloads:\n  - title: Guide\n    file: guide.pdf\n",
        )

        report = await synchronizer.sync_all(StateFile())

        assert len(report.synced[0].benefit_ids) == 1
        assert "has no uploaded file in state" in caplog.text
        assert all(b.type == "custom" for b in billing.benefits.values())
