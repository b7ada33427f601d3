"""
Filesystem content loader.

Serves markdown entries straight from ``{content_root}/{collection}/``. Entry
IDs are the slugified collection-relative path, the same slug the synchronizer
derives, so request-time content IDs match synced products. An entry is found
by its file stem, its ID, or its frontmatter ``slug``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from kiosk.components.content_id import slugify_path
from kiosk.core.ports.content import ContentEntry
from kiosk.domain.content_files import read_content_file

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = (".md", ".mdx")


class FileSystemContentLoader:
    """ContentLoaderPort over a directory tree of markdown files."""

    def __init__(self, content_root: str | Path = "src/content", cwd: str | Path | None = None):
        base = Path(cwd) if cwd is not None else Path.cwd()
        self.root = (base / content_root).resolve()

    def _collection_dir(self, collection: str) -> Path:
        return self.root / collection

    def _load(self, collection: str, path: Path) -> ContentEntry | None:
        try:
            content = read_content_file(path)
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping unreadable content file {path}: {e}")
            return None

        relative = path.relative_to(self._collection_dir(collection)).as_posix()
        entry_id = slugify_path(relative)
        slug = content.data.get("slug")
        return ContentEntry(
            collection=collection,
            id=entry_id,
            slug=slug.strip() if isinstance(slug, str) and slug.strip() else None,
            data=content.data,
            body=content.body,
            file_path=path,
        )

    async def list_entries(self, collection: str) -> list[ContentEntry]:
        directory = self._collection_dir(collection)
        if not directory.is_dir():
            return []
        entries: list[ContentEntry] = []
        for path in sorted(directory.rglob("*")):
            if path.is_file() and path.suffix.lower() in MARKDOWN_SUFFIXES:
                entry = self._load(collection, path)
                if entry is not None:
                    entries.append(entry)
        return entries

    async def get_entry(self, collection: str, key: str) -> ContentEntry | None:
        wanted = key.strip("/")
        if not wanted or ".." in wanted.split("/"):
            return None
        for suffix in MARKDOWN_SUFFIXES:
            candidate = self._collection_dir(collection) / f"{wanted}{suffix}"
            if candidate.is_file():
                return self._load(collection, candidate)

        for entry in await self.list_entries(collection):
            if wanted in (entry.slug, entry.id):
                return entry
        return None
