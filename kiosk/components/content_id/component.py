"""
Content identity resolver.

Maps content files and loader entries to canonical ``{collection}/{slug}``
identifiers, and produces the loose-match candidates used when looking up
remote entities written by older sync runs.

Invariants:
- A canonical slug re-slugified is unchanged
- Candidates are ordered canonical-first and unique
- Nothing here raises; callers check for empty results
"""

from __future__ import annotations

import os
import re
from pathlib import Path, PurePosixPath

DEFAULT_CONTENT_ROOT = "src/content"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_MARKDOWN_EXT = re.compile(r"\.(md|mdx)$", re.IGNORECASE)


def slugify_segment(value: str) -> str:
    """Lowercase, collapse runs of non-alphanumerics to "-", trim hyphens."""
    return _NON_ALNUM.sub("-", value.lower()).strip("-")


class _Slugger:
    """Slugifies segments of one path, suffixing repeats with -1, -2, ..."""

    def __init__(self) -> None:
        self._seen: dict[str, int] = {}

    def slug(self, value: str) -> str:
        base = slugify_segment(value)
        slug = base
        while slug in self._seen:
            self._seen[base] += 1
            slug = f"{base}-{self._seen[base]}"
        self._seen[slug] = 0
        return slug


def _normalise_slug(value: str) -> str:
    return value.replace("\\", "/").strip("/")


def slugify_path(path: str) -> str:
    """
    Slugify a collection-relative file path.

    "Guides/Getting Started.md" -> "guides/getting-started"
    "git/index.mdx" -> "git"
    """
    without_ext = _MARKDOWN_EXT.sub("", path.replace("\\", "/"))
    segments = [s for s in without_ext.split("/") if s]
    if not segments:
        return ""

    slugger = _Slugger()
    slug = "/".join(slugger.slug(segment) for segment in segments)
    return re.sub(r"/index$", "", slug)


def _relative_to_cwd(file_path: str | Path, cwd: str | Path | None) -> str:
    base = Path(cwd) if cwd is not None else Path.cwd()
    path = Path(file_path)
    if not path.is_absolute():
        return PurePosixPath(*path.parts).as_posix()
    return Path(os.path.relpath(path, base)).as_posix()


def _collection_relative_path(normalized: str, collection: str) -> str:
    cleaned = normalized.lstrip("/")
    segments = [s for s in cleaned.split("/") if s]
    if collection in segments:
        last = len(segments) - 1 - segments[::-1].index(collection)
        return "/".join(segments[last + 1 :])
    return cleaned


def path_to_content_id(
    file_path: str | Path,
    collection: str,
    *,
    cwd: str | Path | None = None,
    frontmatter_slug: object = None,
    content_root: str = DEFAULT_CONTENT_ROOT,
) -> str:
    """
    Convert a content file path to its canonical content ID.

    A non-empty string ``frontmatter_slug`` replaces the path-derived slug
    verbatim (trimmed only) so authors can pin stable URLs.
    """
    normalized = _relative_to_cwd(file_path, cwd).replace("\\", "/")
    root_prefix = content_root.replace("\\", "/").strip("/") + "/"
    if normalized.startswith(root_prefix):
        normalized = normalized[len(root_prefix) :]

    relative_path = _collection_relative_path(normalized, collection)

    if isinstance(frontmatter_slug, str) and frontmatter_slug.strip():
        slug = frontmatter_slug.strip()
    else:
        slug = slugify_path(relative_path)

    return f"{collection}/{_normalise_slug(slug)}"


def entry_to_content_id(
    collection: str, entry_id: str, entry_slug: str | None = None
) -> str:
    """Canonical ID for a loader entry; the loader slug wins over the raw key."""
    if isinstance(entry_slug, str) and entry_slug.strip():
        slug = entry_slug
    else:
        slug = entry_id.removeprefix("/")
    return f"{collection}/{_normalise_slug(slug)}"


def generate_content_id_candidates(content_id: str) -> list[str]:
    """
    Candidate spellings of a content ID, canonical first.

    "blog/launch.md" -> ["blog/launch.md", "blog/launch", "launch"]
    """
    normalized = content_id.replace("\\", "/")
    without_ext = _MARKDOWN_EXT.sub("", normalized)

    candidates: list[str] = []

    def add(value: str) -> None:
        if value and value not in candidates:
            candidates.append(value)

    add(normalized)
    add(without_ext)

    if "/" in without_ext:
        add(without_ext.split("/", 1)[1])

    add(without_ext.rsplit("/", 1)[-1])

    return candidates


def build_index_id_candidates(
    locale_path: str | None, slug: str, group_index: str
) -> list[str]:
    """Entry keys to try for a group index, locale-prefixed first."""
    index_slug = f"{slug}/{group_index}"
    if not locale_path:
        return [index_slug]
    return [f"{locale_path}/{index_slug}", index_slug]
