"""
Content file discovery for the build-time commands.

Include patterns are globs relative to the project root, e.g.
``src/content/blog/**/*.{md,mdx}``. Brace alternatives are expanded before
globbing; results are absolute, de-duplicated and sorted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from kiosk.domain.frontmatter import parse_frontmatter

_BRACES = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> list[str]:
    """"a/*.{md,mdx}" -> ["a/*.md", "a/*.mdx"]."""
    match = _BRACES.search(pattern)
    if match is None:
        return [pattern]

    expanded: list[str] = []
    head, tail = pattern[: match.start()], pattern[match.end() :]
    for option in match.group(1).split(","):
        for rest in expand_braces(tail):
            candidate = f"{head}{option}{rest}"
            if candidate not in expanded:
                expanded.append(candidate)
    return expanded


def find_content_files(pattern: str, cwd: str | Path | None = None) -> list[Path]:
    """Files matching an include pattern, sorted."""
    base = Path(cwd) if cwd is not None else Path.cwd()
    found: set[Path] = set()

    for expanded in expand_braces(pattern.replace("\\", "/")):
        path = Path(expanded)
        if path.is_absolute():
            root = Path(path.anchor)
            relative = str(path.relative_to(root))
        else:
            root = base
            relative = expanded
        for match in root.glob(relative):
            if match.is_file():
                found.add(match.resolve())

    return sorted(found)


@dataclass(frozen=True)
class ContentFile:
    """A content file read from disk."""

    path: Path
    data: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    mtime_ms: int = 0


def read_content_file(path: Path) -> ContentFile:
    """Read a content file and parse its frontmatter. Raises ValueError on bad YAML."""
    text = path.read_text(encoding="utf-8")
    data, body = parse_frontmatter(text)
    mtime_ms = int(path.stat().st_mtime_ns // 1_000_000)
    return ContentFile(path=path, data=data, body=body, mtime_ms=mtime_ms)
