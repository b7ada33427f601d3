"""
Content SSR route.

Renders content entries through the content loader so the paywall can be
exercised end to end. When ``request.state.paywall`` denies access the page
body is the paywall preview instead of the entry body.
"""

from __future__ import annotations

import re

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from kiosk.api.deps import KioskRuntime, get_runtime
from kiosk.components.content_id import build_index_id_candidates
from kiosk.components.paywall import PaywallState
from kiosk.components.paywall.templates import escape_html
from kiosk.core.ports.content import ContentEntry
from kiosk.domain.i18n import parse_pathname

router = APIRouter()

_BLANK_LINES = re.compile(r"\n\s*\n")


# --- HTML Rendering ---


def render_body_html(entry: ContentEntry) -> str:
    if entry.rendered_html:
        return entry.rendered_html
    paragraphs = [p.strip() for p in _BLANK_LINES.split(entry.body) if p.strip()]
    return "\n".join(f"<p>{escape_html(p)}</p>" for p in paragraphs)


def render_content_page(title: str, body_content: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{escape_html(title)}</title>
</head>
<body>
    <main>
        <article>
            <h1>{escape_html(title)}</h1>
            {body_content}
        </article>
    </main>
</body>
</html>"""


def _not_found() -> HTMLResponse:
    return HTMLResponse(content=render_content_page("Not found", ""), status_code=404)


# --- Lookups ---


async def _find_entry(runtime: KioskRuntime, pathname: str) -> ContentEntry | None:
    parsed = parse_pathname(pathname, runtime.i18n)
    if parsed is None:
        return None
    collection = runtime.rules.collection_by_name(parsed.collection)
    if collection is None:
        return None

    slug = parsed.slug.strip("/")
    keys = [f"{parsed.locale_path}/{slug}", slug] if parsed.locale_path else [slug]
    if collection.group is not None:
        keys += build_index_id_candidates(parsed.locale_path, slug, collection.group.index)

    for key in keys:
        entry = await runtime.loader.get_entry(collection.source_collection, key)
        if entry is not None:
            return entry
    return None


# --- SSR Endpoints ---


@router.get(
    "/{collection}/{slug:path}",
    response_class=HTMLResponse,
    summary="Content SSR",
)
async def ssr_content(
    request: Request,
    collection: str,
    slug: str,
    runtime: KioskRuntime = Depends(get_runtime),
) -> HTMLResponse:
    """Serve a content entry, or its paywall when access is denied."""
    entry = await _find_entry(runtime, request.url.path)
    if entry is None:
        return _not_found()

    title = str(entry.data.get("title") or entry.id)
    paywall: PaywallState | None = getattr(request.state, "paywall", None)
    if paywall is not None and not paywall.has_access:
        body = paywall.preview or ""
    else:
        body = render_body_html(entry)

    return HTMLResponse(content=render_content_page(title, body), status_code=200)
