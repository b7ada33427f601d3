"""
Kiosk command line.

    python -m kiosk.cli upload   Upload downloadable files and record them in state
    python -m kiosk.cli sync     Create or update products and benefits

Run ``upload`` before ``sync`` so downloadables benefits can reference the
uploaded file IDs.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from kiosk.adapters.billing_polar import PolarBillingAdapter
from kiosk.components.entitlements import EntitlementClient, ProductCache
from kiosk.components.product_sync import ProductSynchronizer
from kiosk.components.uploads import DownloadableUploader
from kiosk.core.errors import ConfigurationError, KioskError
from kiosk.domain.i18n import resolve_i18n
from kiosk.rules.loader import load_kiosk_rules
from kiosk.rules.models import KioskRules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("kiosk.cli")


def load_rules_or_exit(path: str | None) -> KioskRules:
    try:
        return load_kiosk_rules(path)
    except (FileNotFoundError, ValueError, ConfigurationError) as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)


async def run_upload(rules: KioskRules, cwd: Path) -> None:
    async with PolarBillingAdapter(rules.billing) as billing:
        uploader = DownloadableUploader(billing, rules, cwd=cwd, i18n=resolve_i18n(rules.i18n))
        await uploader.upload_all()


async def run_sync(rules: KioskRules, cwd: Path, skip_collections: list[str]) -> None:
    async with PolarBillingAdapter(rules.billing) as billing:
        client = EntitlementClient(billing, rules.billing.organization_id, ProductCache())
        synchronizer = ProductSynchronizer(
            client,
            rules,
            cwd=cwd,
            i18n=resolve_i18n(rules.i18n),
            skip_collections=skip_collections,
        )
        report = await synchronizer.sync_all()
    print(
        f"Synced {report.total_synced} products "
        f"({report.count('created')} created, {report.count('updated')} updated, "
        f"{report.count('unchanged')} unchanged)."
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Content Kiosk CLI")
    parser.add_argument("--rules", help="Path to kiosk.yaml (default: $KIOSK_RULES_PATH)")
    parser.add_argument("--cwd", default=".", help="Project root the include globs are relative to")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # upload
    subparsers.add_parser("upload", help="Upload downloadable files to the billing provider")

    # sync
    sync_parser = subparsers.add_parser("sync", help="Sync products and benefits")
    sync_parser.add_argument(
        "--skip-collection",
        action="append",
        default=[],
        help="Collection whose access is inherited at request time (repeatable)",
    )

    args = parser.parse_args(argv)
    rules = load_rules_or_exit(args.rules)
    cwd = Path(args.cwd).resolve()

    try:
        if args.command == "upload":
            asyncio.run(run_upload(rules, cwd))
        elif args.command == "sync":
            asyncio.run(run_sync(rules, cwd, args.skip_collection))
    except KioskError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
