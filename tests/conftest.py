"""
Shared fixtures for cross-component tests.

``project_dir`` is a throwaway site with a blog and a course group. The blog
has a priced post with a downloadable and a free post; ``Big_Launch.md`` is
priced and its file name is not a slug. The course has a priced index and a
free chapter.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from kiosk.adapters.billing_memory import InMemoryBillingAdapter
from kiosk.components.entitlements import EntitlementClient, ProductCache
from kiosk.components.product_sync import ProductSynchronizer
from kiosk.components.uploads import DownloadableUploader
from kiosk.rules.loader import resolve_rules
from kiosk.rules.models import AccessCookieRules, CollectionRules, GroupRules, KioskRules

LAUNCH_MD = """---
title: Launch
price: 500
description: Everything about the launch
downloads:
  - title: Guide
    file: ./guide.pdf
---
First paragraph.

Second paragraph.

Third paragraph.

Fourth paragraph.
"""

FREE_MD = """---
title: Free
---
Hello readers.
"""

TOC_MD = """---
title: Git Course
price: 2000
currency: EUR
---
Table of contents.
"""

BIG_LAUNCH_MD = """---
title: Big Launch
price: 700
---
Opening paragraph.

Second paragraph.

Third paragraph.

Closing paragraph.
"""

INTRO_MD = """---
title: Intro
---
Chapter one body.
"""


def write_file(root: Path, relative: str, content: str | bytes) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    write_file(tmp_path, "src/content/blog/launch.md", LAUNCH_MD)
    write_file(tmp_path, "src/content/blog/guide.pdf", b"%PDF-1.7 guide")
    write_file(tmp_path, "src/content/blog/free.md", FREE_MD)
    write_file(tmp_path, "src/content/blog/Big_Launch.md", BIG_LAUNCH_MD)
    write_file(tmp_path, "src/content/courses/git/toc.md", TOC_MD)
    write_file(tmp_path, "src/content/courses/git/01-intro.md", INTRO_MD)
    return tmp_path


@pytest.fixture
def kiosk_rules() -> KioskRules:
    return resolve_rules(
        KioskRules(
            site_url="https://site.test/",
            collections=[
                CollectionRules(include="src/content/blog/**/*.md"),
                CollectionRules(
                    include="src/content/courses/**/*.md",
                    group=GroupRules(index="toc", child_collection="courses"),
                ),
            ],
            access_cookie=AccessCookieRules(secret="k" * 32),
        )
    )


@pytest.fixture
def billing() -> InMemoryBillingAdapter:
    return InMemoryBillingAdapter()


async def publish(billing: InMemoryBillingAdapter, rules: KioskRules, cwd: Path) -> None:
    """Run upload then sync, the way a site build does."""
    await DownloadableUploader(billing, rules, cwd=cwd).upload_all()
    client = EntitlementClient(billing, billing.organization_id, ProductCache())
    await ProductSynchronizer(client, rules, cwd=cwd).sync_all()


@pytest.fixture
def published(
    billing: InMemoryBillingAdapter, kiosk_rules: KioskRules, project_dir: Path
) -> InMemoryBillingAdapter:
    asyncio.run(publish(billing, kiosk_rules, project_dir))
    return billing
