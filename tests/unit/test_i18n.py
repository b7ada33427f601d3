"""
Tests for locale-aware URL helpers.

Tests:
- Include pattern to URL pattern translation
- URL pattern matching
- Path parsing with and without locales
- Content URLs and group index stripping
"""

import pytest

from kiosk.domain.i18n import (
    ParsedPath,
    build_content_url,
    build_url_patterns,
    include_pattern_to_url_pattern,
    parse_pathname,
    resolve_i18n,
    strip_group_index,
    strip_locale_prefix,
    url_pattern_to_regex,
)
from kiosk.rules.models import CollectionRules, GroupRules, I18nRules, LocalePath

COURSES = CollectionRules(
    include="src/content/courses/**/*.md",
    name="courses",
    group=GroupRules(index="toc", child_collection="courses"),
)
BLOG = CollectionRules(include="src/content/blog/**/*.{md,mdx}", name="blog")

I18N = resolve_i18n(
    I18nRules(
        locales=["en", LocalePath(path="zh", codes=["zh-CN", "zh-TW"])],
        default_locale="en",
    )
)


# --- Patterns ---


class TestUrlPatterns:
    """Tests for URL pattern construction and matching."""

    @pytest.mark.parametrize(
        ("include", "expected"),
        [
            ("src/content/blog/**/*.md", "/blog/**/*"),
            ("src/content/blog/**/*.{md,mdx}", "/blog/**/*"),
            ("src/content/docs/*.mdx", "/docs/*"),
        ],
    )
    def test_include_to_url(self, include: str, expected: str) -> None:
        assert include_pattern_to_url_pattern(include) == expected

    def test_group_adds_stripped_pattern(self) -> None:
        assert build_url_patterns([COURSES]) == ["/courses/**/*", "/courses/**"]

    def test_locales_expand_patterns(self) -> None:
        patterns = build_url_patterns([BLOG], I18N)
        assert patterns == ["/en/blog/**/*", "/zh/blog/**/*", "/blog/**/*"]

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/blog/launch", True),
            ("/blog/2024/launch", True),
            ("/blog/launch/", True),
            ("/news/launch", False),
        ],
    )
    def test_double_star_matches_any_depth(self, path: str, expected: bool) -> None:
        regex = url_pattern_to_regex("/blog/**/*")
        assert bool(regex.match(path)) is expected

    def test_single_star_stays_in_segment(self) -> None:
        regex = url_pattern_to_regex("/docs/*")
        assert regex.match("/docs/intro")
        assert not regex.match("/docs/a/b")


# --- Paths ---


class TestParsePathname:
    """Tests for request path parsing."""

    def test_without_i18n(self) -> None:
        assert parse_pathname("/courses/git/01-intro") == ParsedPath(None, "courses", "git/01-intro")

    def test_too_short(self) -> None:
        assert parse_pathname("/blog") is None

    def test_locale_prefix(self) -> None:
        assert parse_pathname("/zh/blog/launch", I18N) == ParsedPath("zh", "blog", "launch")

    def test_unprefixed_default_locale(self) -> None:
        assert parse_pathname("/blog/launch", I18N) == ParsedPath("en", "blog", "launch")

    def test_strip_locale_prefix(self) -> None:
        assert strip_locale_prefix("/zh/blog/a", "zh") == "/blog/a"
        assert strip_locale_prefix("/zh", "zh") == "/"
        assert strip_locale_prefix("/zhx/a", "zh") == "/zhx/a"


# --- URLs ---


class TestContentUrls:
    """Tests for public URL construction."""

    def test_strip_group_index(self) -> None:
        assert strip_group_index("courses/git/toc", [COURSES]) == "courses/git"
        assert strip_group_index("courses/git/01-intro", [COURSES]) == "courses/git/01-intro"
        assert strip_group_index("blog/toc", [COURSES, BLOG]) == "blog/toc"

    def test_plain_url(self) -> None:
        assert build_content_url("https://site.test/", "blog/launch") == "https://site.test/blog/launch"

    def test_default_locale_unprefixed(self) -> None:
        url = build_content_url("https://site.test", "blog/en/launch", I18N)
        assert url == "https://site.test/blog/launch"

    def test_other_locale_prefixed(self) -> None:
        url = build_content_url("https://site.test", "blog/zh/launch", I18N)
        assert url == "https://site.test/zh/blog/launch"

    def test_resolve_i18n_default_path(self) -> None:
        resolved = resolve_i18n(
            I18nRules(locales=[LocalePath(path="cn", codes=["zh"])], default_locale="zh")
        )
        assert resolved is not None
        assert resolved.default_locale_path == "cn"
        assert resolve_i18n(None) is None
