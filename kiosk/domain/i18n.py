"""
Locale-aware URL helpers.

Content URLs look like ``/{locale?}/{collection}/{slug}``. The default locale
is unprefixed unless ``prefix_default_locale`` is set.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from kiosk.rules.models import CollectionRules, I18nRules, LocalePath


@dataclass(frozen=True)
class ResolvedI18n:
    locale_paths: tuple[str, ...]
    default_locale_path: str
    prefix_default_locale: bool = False


@dataclass(frozen=True)
class ParsedPath:
    locale_path: str | None
    collection: str
    slug: str


def _default_locale_path(locales: list[str | LocalePath], default_locale: str) -> str:
    for locale in locales:
        if isinstance(locale, LocalePath):
            if default_locale in locale.codes:
                return locale.path
        elif locale == default_locale:
            return locale
    return default_locale


def resolve_i18n(rules: I18nRules | None) -> ResolvedI18n | None:
    if rules is None:
        return None
    locale_paths = tuple(
        locale.path if isinstance(locale, LocalePath) else locale for locale in rules.locales
    )
    if not locale_paths:
        return None
    return ResolvedI18n(
        locale_paths=locale_paths,
        default_locale_path=_default_locale_path(rules.locales, rules.default_locale),
        prefix_default_locale=rules.prefix_default_locale,
    )


# --- URL patterns ---


def include_pattern_to_url_pattern(include: str, content_root: str = "src/content") -> str:
    """"src/content/blog/**/*.{md,mdx}" -> "/blog/**/*"."""
    pattern = include.replace("\\", "/")
    root = content_root.replace("\\", "/").strip("/") + "/"
    if pattern.startswith(root):
        pattern = "/" + pattern[len(root) :]
    pattern = re.sub(r"\*\.\{[^}]+\}$", "*", pattern)
    return re.sub(r"\*\.(md|mdx)$", "*", pattern)


def _strip_last_wildcard_segment(pattern: str) -> str | None:
    last_slash = pattern.rfind("/")
    if last_slash <= 0:
        return None
    return pattern[:last_slash]


def build_url_patterns(
    collections: Iterable[CollectionRules],
    i18n: ResolvedI18n | None = None,
    content_root: str = "src/content",
) -> list[str]:
    """
    URL patterns the paywall should inspect.

    Group collections also match their stripped index URL ("/courses/git").
    With i18n, every pattern is emitted per locale path, plus unprefixed when
    the default locale is not prefixed.
    """
    base: list[str] = []
    for collection in collections:
        pattern = include_pattern_to_url_pattern(collection.include, content_root)
        base.append(pattern)
        if collection.group is not None:
            stripped = _strip_last_wildcard_segment(pattern)
            if stripped:
                base.append(stripped)

    if i18n is None:
        return list(dict.fromkeys(base))

    patterns: list[str] = []
    for locale_path in i18n.locale_paths:
        patterns.extend(f"/{locale_path}{pattern}" for pattern in base)
    if not i18n.prefix_default_locale:
        patterns.extend(base)
    return list(dict.fromkeys(patterns))


def url_pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """"**/" matches zero or more segments, "*" stays within one; a trailing slash is optional."""
    parts = []
    for chunk in re.split(r"(\*\*/|\*\*|\*)", pattern):
        if chunk == "**/":
            parts.append("(?:.*/)?")
        elif chunk == "**":
            parts.append(".*")
        elif chunk == "*":
            parts.append("[^/]*")
        else:
            parts.append(re.escape(chunk))
    return re.compile(f"^{''.join(parts)}/?$")


# --- Paths ---


def parse_pathname(pathname: str, i18n: ResolvedI18n | None = None) -> ParsedPath | None:
    """Split a request path into locale, collection and slug."""
    segments = [s for s in pathname.strip("/").split("/") if s]
    if len(segments) < 2:
        return None

    if i18n is None:
        return ParsedPath(None, segments[0], "/".join(segments[1:]))

    if segments[0] in i18n.locale_paths:
        if len(segments) < 3:
            return None
        return ParsedPath(segments[0], segments[1], "/".join(segments[2:]))

    if not i18n.prefix_default_locale:
        return ParsedPath(i18n.default_locale_path, segments[0], "/".join(segments[1:]))

    return None


def strip_locale_prefix(pathname: str, locale_path: str | None) -> str:
    if not locale_path:
        return pathname
    prefix = f"/{locale_path}"
    if pathname == prefix:
        return "/"
    if pathname.startswith(f"{prefix}/"):
        return pathname[len(prefix) :] or "/"
    return pathname


def strip_group_index(content_id: str, collections: Iterable[CollectionRules]) -> str:
    """"courses/git/toc" -> "courses/git" when courses is a group with index "toc"."""
    collection_name = content_id.split("/", 1)[0]
    for collection in collections:
        if collection.name == collection_name and collection.group is not None:
            suffix = f"/{collection.group.index}"
            if content_id.endswith(suffix):
                return content_id[: -len(suffix)]
    return content_id


def build_content_url(site_url: str, content_id: str, i18n: ResolvedI18n | None = None) -> str:
    """
    Public URL for a content ID.

    With i18n, IDs look like "{collection}/{locale}/{slug}" (entries live in
    per-locale folders) and map to "/{locale?}/{collection}/{slug}".
    """
    site = site_url.rstrip("/")
    if i18n is None:
        return f"{site}/{content_id}"

    segments = content_id.split("/")
    if len(segments) < 2 or not segments[0] or not segments[1]:
        return f"{site}/{content_id}"

    collection, locale_path, rest = segments[0], segments[1], segments[2:]
    if locale_path not in i18n.locale_paths:
        return f"{site}/{content_id}"

    prefix = (
        f"/{locale_path}"
        if i18n.prefix_default_locale or locale_path != i18n.default_locale_path
        else ""
    )
    return f"{site}{prefix}/{collection}/{'/'.join(rest)}"
