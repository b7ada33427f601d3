"""YAML frontmatter parsing for markdown content files."""

from __future__ import annotations

from typing import Any

import yaml

FRONTMATTER_DELIMITER = "---"


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """
    Split a markdown document into (frontmatter, body).

    Documents without a leading ``---`` block return an empty mapping and the
    full text. Raises ValueError if the block is not valid YAML or not a mapping.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return {}, text

    for index in range(1, len(lines)):
        if lines[index].strip() == FRONTMATTER_DELIMITER:
            raw = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            break
    else:
        return {}, text

    try:
        data = yaml.safe_load(raw) if raw.strip() else {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Frontmatter must be a mapping")

    return data, body.lstrip("\n")
