"""
Tests for the filesystem content loader.
"""

from pathlib import Path

import pytest

from kiosk.adapters.content_fs import FileSystemContentLoader


@pytest.fixture
def loader(tmp_path: Path) -> FileSystemContentLoader:
    blog = tmp_path / "src" / "content" / "blog"
    (blog / "Guides").mkdir(parents=True)
    (blog / "launch.md").write_text("---\ntitle: Launch\n---\nBody\n")
    (blog / "custom.md").write_text("---\ntitle: Custom\nslug: hello-world\n---\n")
    (blog / "Guides" / "Getting Started.mdx").write_text("---\ntitle: Start\n---\n")
    (blog / "broken.md").write_text("---\ntitle: [\n---\n")
    (blog / "image.png").write_bytes(b"\x89PNG")
    return FileSystemContentLoader("src/content", cwd=tmp_path)


class TestFileSystemContentLoader:
    """Tests for entry lookup and listing."""

    @pytest.mark.asyncio
    async def test_get_by_id(self, loader: FileSystemContentLoader) -> None:
        entry = await loader.get_entry("blog", "launch")
        assert entry is not None
        assert entry.id == "launch"
        assert entry.collection == "blog"
        assert entry.data["title"] == "Launch"
        assert entry.body == "Body\n"

    @pytest.mark.asyncio
    async def test_get_by_frontmatter_slug(self, loader: FileSystemContentLoader) -> None:
        entry = await loader.get_entry("blog", "hello-world")
        assert entry is not None
        assert entry.id == "custom"

    @pytest.mark.asyncio
    async def test_get_by_slugified_id(self, loader: FileSystemContentLoader) -> None:
        entry = await loader.get_entry("blog", "guides/getting-started")
        assert entry is not None
        assert entry.id == "guides/getting-started"
        assert entry.file_path is not None
        assert entry.file_path.name == "Getting Started.mdx"

    @pytest.mark.asyncio
    async def test_stem_lookup_returns_canonical_id(
        self, loader: FileSystemContentLoader, tmp_path: Path
    ) -> None:
        (tmp_path / "src" / "content" / "blog" / "Big_Launch.md").write_text("---\ntitle: Big\n---\n")

        by_stem = await loader.get_entry("blog", "Big_Launch")
        by_slug = await loader.get_entry("blog", "big-launch")

        assert by_stem is not None and by_slug is not None
        assert by_stem.id == by_slug.id == "big-launch"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["", "../secrets", "missing", "broken"])
    async def test_missing_or_rejected(self, loader: FileSystemContentLoader, key: str) -> None:
        assert await loader.get_entry("blog", key) is None

    @pytest.mark.asyncio
    async def test_list_skips_unreadable(self, loader: FileSystemContentLoader) -> None:
        entries = await loader.list_entries("blog")
        assert sorted(e.id for e in entries) == ["custom", "guides/getting-started", "launch"]

    @pytest.mark.asyncio
    async def test_unknown_collection(self, loader: FileSystemContentLoader) -> None:
        assert await loader.list_entries("nope") == []
