"""
Product and benefit synchronizer.

Walks the configured content globs and converges the billing provider onto
one product per payable file, each carrying a ``custom`` benefit (access note
with the content URL) and, when files were uploaded, a ``downloadables``
benefit.

Invariants:
- Files are processed sequentially; the first failure aborts the run
- A product's recurring interval never changes once set
- Archived products are never edited
- Each product's benefit set is replaced by exactly the ensured benefits
- Group collections only create products for their index entries
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from kiosk.components.content_id import generate_content_id_candidates, path_to_content_id
from kiosk.components.entitlements import EntitlementClient, normalise_metadata_value
from kiosk.components.paywall.ports import KioskHooks
from kiosk.components.state import StateFile, normalize_file_key, read_state_file
from kiosk.core.entities import RemoteBenefit, RemoteProduct
from kiosk.core.errors import ArchivedProductError, ImmutableFieldError, SyncError
from kiosk.domain.content_files import ContentFile, find_content_files, read_content_file
from kiosk.domain.i18n import ResolvedI18n, build_content_url, strip_group_index
from kiosk.domain.payable import is_payable, parse_payable
from kiosk.rules.models import CollectionRules, KioskRules

from .models import DesiredProduct, SyncAction, SyncedProduct, SyncReport

logger = logging.getLogger(__name__)

BENEFIT_DESCRIPTION_MAX_LENGTH = 42
TITLE_PLACEHOLDER = "[title]"


# --- Pure helpers ---


def format_product_name(title: str, template: str | None = None) -> str:
    if not template:
        return title
    return template.replace(TITLE_PLACEHOLDER, title, 1)


def truncate_benefit_description(text: str) -> str:
    return text[:BENEFIT_DESCRIPTION_MAX_LENGTH]


def normalise_timestamp(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _fixed_price(product: RemoteProduct | None):
    if product is None:
        return None
    for price in product.prices:
        if price.amount_type == "fixed" and price.price_amount is not None:
            return price
    return None


def needs_price_update(product: RemoteProduct | None, price: int, currency: str) -> bool:
    existing = _fixed_price(product)
    if existing is None:
        return True
    return (
        existing.price_amount != price
        or (existing.price_currency or "").lower() != currency.lower()
    )


def build_price_payload(
    product: RemoteProduct | None, price: int, currency: str
) -> list[dict[str, Any]]:
    """Keep a matching fixed price by ID, otherwise send a new fixed price."""
    existing = _fixed_price(product)
    if existing is not None and not needs_price_update(product, price, currency):
        return [{"id": existing.id}]
    return [{"amount_type": "fixed", "price_amount": price, "price_currency": currency.lower()}]


def should_update_product(product: RemoteProduct, desired: DesiredProduct) -> bool:
    metadata = product.metadata
    metadata_matches = (
        normalise_metadata_value(metadata.get("content_id")) == desired.content_id
        and normalise_metadata_value(metadata.get("collection")) == desired.collection
        and normalise_timestamp(metadata.get("updatedAt")) == desired.updated_at
    )
    return not (
        metadata_matches
        and product.name == desired.name
        and (product.description or "") == desired.description
        and not needs_price_update(product, desired.price, desired.currency)
    )


def check_immutable_fields(product: RemoteProduct, desired: DesiredProduct) -> None:
    """Raise for archived products or a changed recurring interval."""
    if product.is_archived:
        raise ArchivedProductError(product.name)
    if product.recurring_interval and product.recurring_interval != desired.interval:
        raise ImmutableFieldError(
            product.name, "recurring interval", product.recurring_interval, desired.interval
        )


def _benefit_differs(benefit: RemoteBenefit, payload: dict[str, Any]) -> bool:
    if benefit.description != payload["description"]:
        return True
    expected_metadata = {k: str(v) for k, v in payload["metadata"].items()}
    actual_metadata = {
        k: normalise_metadata_value(benefit.metadata.get(k)) for k in expected_metadata
    }
    if actual_metadata != expected_metadata:
        return True
    for key, value in payload["properties"].items():
        if benefit.properties.get(key) != value:
            return True
    return False


def is_group_index_file(path: Path, collection: CollectionRules) -> bool:
    return collection.group is None or path.stem == collection.group.index


# --- Synchronizer ---


class ProductSynchronizer:
    """
    Build-time sync of payable content to the billing provider.

    Args:
        client: Entitlement client (billing port + shared ProductCache)
        rules: Resolved kiosk rules
        cwd: Project root the include globs are relative to
        i18n: Resolved locale settings for content URLs
        skip_collections: Collections whose access is inherited at request time
        hooks: Paywall hooks; collections with an ``inherit_access`` hook are
            skipped as well
    """

    def __init__(
        self,
        client: EntitlementClient,
        rules: KioskRules,
        *,
        cwd: str | Path | None = None,
        i18n: ResolvedI18n | None = None,
        skip_collections: Iterable[str] = (),
        hooks: KioskHooks | None = None,
    ) -> None:
        self.client = client
        self.billing = client.billing
        self.rules = rules
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.i18n = i18n
        self.skip_collections = set(skip_collections)
        if hooks is not None:
            self.skip_collections.update(hooks.inherited_collections())

    # --- Desired state ---

    def resolve_file_ids(
        self, content: ContentFile, downloads: list[Any], state: StateFile
    ) -> tuple[str, ...]:
        file_ids: list[str] = []
        for download in downloads:
            key = normalize_file_key(content.path.parent / download.file, self.cwd)
            entry = state.files.get(key)
            if entry is None:
                logger.warning(
                    f"Download '{download.title}' ({key}) has no uploaded file in state. "
                    "Run the upload command first."
                )
                continue
            file_ids.append(entry.remote_file_id)

        if file_ids and len(file_ids) != len(downloads):
            logger.warning(
                f"Mismatch: {len(downloads)} downloads in frontmatter, "
                f"{len(file_ids)} in state for {content.path}."
            )
        return tuple(dict.fromkeys(file_ids))

    def build_desired_product(
        self, content: ContentFile, collection: CollectionRules, state: StateFile
    ) -> DesiredProduct | None:
        """Desired product for a content file, or None when it is not payable."""
        if not is_payable(content.data):
            return None

        payable = parse_payable(content.data)
        collection_name = collection.name or ""
        canonical_id = path_to_content_id(
            content.path,
            collection_name,
            cwd=self.cwd,
            frontmatter_slug=payable.slug,
            content_root=self.rules.content_root,
        )
        slug = canonical_id[len(collection_name) + 1 :]
        title = payable.title or slug
        description = payable.description or f"Premium content: {title}"
        url_id = strip_group_index(canonical_id, self.rules.collections)

        return DesiredProduct(
            content_id=canonical_id,
            collection=collection_name,
            title=title,
            name=format_product_name(title, self.rules.product_name_template),
            description=description,
            price=payable.price,
            currency=payable.currency.lower(),
            interval=payable.interval,
            updated_at=content.mtime_ms,
            content_url=build_content_url(self.rules.site_url, url_id, self.i18n),
            file_ids=self.resolve_file_ids(content, payable.downloads, state),
        )

    # --- Remote convergence ---

    async def upsert_product(self, desired: DesiredProduct) -> tuple[RemoteProduct, SyncAction]:
        existing = await self.client.find_existing_product(
            generate_content_id_candidates(desired.content_id)
        )
        product_type = "subscription" if desired.is_subscription else "one-time"

        if existing is None:
            logger.info(f"Creating {product_type} product - {desired.name} ...")
            payload: dict[str, Any] = {
                "name": desired.name,
                "description": desired.description,
                "metadata": desired.metadata(),
                "prices": build_price_payload(None, desired.price, desired.currency),
            }
            if desired.interval:
                payload["recurring_interval"] = desired.interval
            return await self.billing.create_product(payload), "created"

        check_immutable_fields(existing, desired)

        if not should_update_product(existing, desired):
            logger.info(f"No updates needed for product - {existing.name}.")
            return existing, "unchanged"

        logger.info(f"Updating {product_type} product - {existing.name} ...")
        updated = await self.billing.update_product(
            existing.id,
            {
                "name": desired.name,
                "description": desired.description,
                "metadata": desired.metadata(),
                "prices": build_price_payload(existing, desired.price, desired.currency),
            },
        )
        return updated, "updated"

    async def _ensure_benefit(
        self, desired: DesiredProduct, benefit_type: str, payload: dict[str, Any]
    ) -> RemoteBenefit:
        existing = await self.client.find_benefit_by_content_id(desired.content_id, benefit_type)
        if existing is None:
            benefit = await self.billing.create_benefit(payload)
        elif _benefit_differs(existing, payload):
            benefit = await self.billing.update_benefit(existing.id, payload)
        else:
            benefit = existing
        self.client.cache.set_benefit_id(desired.content_id, benefit.id, benefit_type)
        return benefit

    async def ensure_custom_benefit(self, desired: DesiredProduct) -> RemoteBenefit:
        return await self._ensure_benefit(
            desired,
            "custom",
            {
                "type": "custom",
                "description": truncate_benefit_description(desired.name),
                "metadata": desired.benefit_metadata(),
                "properties": {"note": f"{desired.description}\n\n{desired.content_url}"},
            },
        )

    async def ensure_downloadables_benefit(self, desired: DesiredProduct) -> RemoteBenefit | None:
        if not desired.file_ids:
            return None
        return await self._ensure_benefit(
            desired,
            "downloadables",
            {
                "type": "downloadables",
                "description": truncate_benefit_description(f"Files: {desired.title}"),
                "metadata": desired.benefit_metadata(),
                "properties": {"files": list(desired.file_ids)},
            },
        )

    async def sync_product(self, desired: DesiredProduct) -> SyncedProduct:
        product, action = await self.upsert_product(desired)

        benefits = [await self.ensure_custom_benefit(desired)]
        downloadables = await self.ensure_downloadables_benefit(desired)
        if downloadables is not None:
            benefits.append(downloadables)

        benefit_ids = [benefit.id for benefit in benefits]
        await self.billing.update_product_benefits(product.id, benefit_ids)

        self.client.cache.cache_product_mappings(desired.content_id, product.id)
        return SyncedProduct(
            content_id=desired.content_id,
            product_id=product.id,
            action=action,
            benefit_ids=tuple(benefit_ids),
        )

    # --- Drivers ---

    async def sync_file(
        self, path: Path, collection: CollectionRules, state: StateFile
    ) -> SyncedProduct | None:
        """Sync one file. Returns None when the file is skipped."""
        if not is_group_index_file(path, collection):
            return None

        content = read_content_file(path)
        desired = self.build_desired_product(content, collection, state)
        if desired is None:
            return None

        synced = await self.sync_product(desired)
        kind = "subscription" if desired.is_subscription else "one-time"
        logger.info(f"Synced ({kind}): {desired.title} -> {synced.product_id}")
        return synced

    async def sync_all(self, state: StateFile | None = None) -> SyncReport:
        """Sync every configured collection. Raises SyncError on the first failure."""
        logger.info("Syncing products to the billing provider...")
        if state is None:
            state = read_state_file(self.cwd)
        report = SyncReport()

        for collection in self.rules.collections:
            if collection.name in self.skip_collections:
                continue
            pattern = collection.include

            try:
                files = find_content_files(pattern, self.cwd)
                if not files:
                    logger.warning(f"No files found for pattern: {pattern}")
                    continue
                logger.info(f"Found {len(files)} files to process, pattern: {pattern}")

                for path in files:
                    try:
                        synced = await self.sync_file(path, collection, state)
                    except Exception as e:
                        raise SyncError(f"Failed to sync {path}: {e}") from e
                    if synced is None:
                        report.skipped.append(str(path))
                    else:
                        report.synced.append(synced)
            except (SyncError, OSError) as e:
                raise SyncError(f"Failed to process pattern {pattern}: {e}") from e

        logger.info(f"Synced {report.total_synced} products")
        return report
