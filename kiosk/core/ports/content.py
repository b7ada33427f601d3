"""
Content loader port.

The site's content runtime (collections of markdown entries) is an external
collaborator. The paywall only needs to look entries up by collection and key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol


@dataclass(frozen=True)
class ContentEntry:
    """
    A loaded content entry.

    Attributes:
        collection: Loader collection name
        id: Slugified collection-relative path without extension (e.g. "git/01-intro")
        slug: Loader-provided slug (frontmatter override or derived)
        data: Parsed frontmatter
        body: Raw markdown body
        rendered_html: Rendered body if the loader renders markdown
        file_path: Source file, if file-backed
    """

    collection: str
    id: str
    slug: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    rendered_html: str | None = None
    file_path: Path | None = None


class ContentLoaderPort(Protocol):
    async def get_entry(self, collection: str, key: str) -> ContentEntry | None:
        """Get an entry by slug or id. Returns None when missing."""
        ...

    async def list_entries(self, collection: str) -> list[ContentEntry]:
        """List all entries of a collection."""
        ...
