"""
Preview generation for denied requests.

The default handler is chosen by classifying the markdown body: slide decks
(reveal-style ``---`` separated sections) preview their first slides, prose
previews its first block elements.

Invariants:
- Script elements never reach a preview
- A truncated preview ends with an ellipsis paragraph
"""

from __future__ import annotations

import re

from kiosk.core.ports.content import ContentEntry

from .models import ContentKind
from .ports import PreviewHandler
from .templates import escape_html

# --- Classifier policy ---

SLIDE_SEPARATOR = "\n---\n"
SLIDE_SEPARATOR_MIN_COUNT = 3
SLIDE_SEGMENT_MAX_AVG_LENGTH = 500
DEFAULT_PREVIEW_PARAGRAPHS = 3
DEFAULT_PREVIEW_SLIDES = 3

ELLIPSIS_PARAGRAPH = "<p>…</p>"

_SCRIPT = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_BLOCK_TAGS = r"(?:p|div|h[1-6]|table|ul|ol|blockquote|pre)"
_BLOCK_ELEMENT = re.compile(
    rf"<{_BLOCK_TAGS}\b[^>]*>[\s\S]*?</{_BLOCK_TAGS}>", re.IGNORECASE
)
_BLANK_LINES = re.compile(r"\n\s*\n")


def classify_content(markdown: str) -> ContentKind:
    """Slide deck when there are enough separators and the segments are short."""
    separators = markdown.count(SLIDE_SEPARATOR)
    if separators >= SLIDE_SEPARATOR_MIN_COUNT:
        segments = markdown.split(SLIDE_SEPARATOR)
        average = sum(len(segment) for segment in segments) / len(segments)
        if average < SLIDE_SEGMENT_MAX_AVG_LENGTH:
            return "slide_deck"
    return "prose"


def truncate_html_blocks(html: str, max_blocks: int = DEFAULT_PREVIEW_PARAGRAPHS) -> str | None:
    cleaned = _SCRIPT.sub("", html).strip()
    if not cleaned:
        return None

    blocks = _BLOCK_ELEMENT.findall(cleaned)
    if not blocks:
        return cleaned

    count = max(1, int(max_blocks))
    truncated = "\n".join(blocks[:count])
    return f"{truncated}\n{ELLIPSIS_PARAGRAPH}" if len(blocks) > count else truncated


def truncate_markdown_paragraphs(
    markdown: str, max_paragraphs: int = DEFAULT_PREVIEW_PARAGRAPHS
) -> str | None:
    """Used when the loader does not render HTML: escaped paragraphs in <p> tags."""
    paragraphs = [p.strip() for p in _BLANK_LINES.split(_SCRIPT.sub("", markdown)) if p.strip()]
    if not paragraphs:
        return None

    count = max(1, int(max_paragraphs))
    html = "\n".join(f"<p>{escape_html(p)}</p>" for p in paragraphs[:count])
    return f"{html}\n{ELLIPSIS_PARAGRAPH}" if len(paragraphs) > count else html


def content_preview_handler(entry: ContentEntry) -> str | None:
    if entry.rendered_html:
        return truncate_html_blocks(entry.rendered_html)
    return truncate_markdown_paragraphs(entry.body)


def slides_preview_handler(entry: ContentEntry) -> str | None:
    segments = entry.body.split(SLIDE_SEPARATOR)
    if len(segments) <= 1:
        return entry.body
    return SLIDE_SEPARATOR.join(segments[:DEFAULT_PREVIEW_SLIDES])


def get_default_preview_handler(markdown: str) -> PreviewHandler:
    if classify_content(markdown) == "slide_deck":
        return slides_preview_handler
    return content_preview_handler
