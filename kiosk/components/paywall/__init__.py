"""
Paywall component.

Request-time entitlement resolution and paywall rendering.
"""

from .component import (
    PaywallResolver,
    clear_session_cookie_updates,
    session_cookie_updates,
    should_process_path,
)
from .models import (
    ACCESS_COOKIE,
    CUSTOMER_EMAIL_COOKIE,
    CUSTOMER_ID_COOKIE,
    CUSTOMER_SESSION_TOKEN_PARAM,
    SESSION_COOKIE,
    SESSION_COOKIES,
    CookieUpdate,
    PaywallOutcome,
    PaywallState,
    RequestContext,
    ResolvedContent,
    Session,
)
from .ports import CollectionHooks, KioskHooks
from .preview import (
    DEFAULT_PREVIEW_PARAGRAPHS,
    DEFAULT_PREVIEW_SLIDES,
    SLIDE_SEGMENT_MAX_AVG_LENGTH,
    SLIDE_SEPARATOR_MIN_COUNT,
    classify_content,
    content_preview_handler,
    get_default_preview_handler,
    slides_preview_handler,
    truncate_html_blocks,
    truncate_markdown_paragraphs,
)
from .templates import (
    CHECKOUT_ROUTE,
    DEFAULT_DOWNLOADABLE_TEMPLATE,
    DEFAULT_PAYWALL_TEMPLATE,
    build_template_context,
    escape_html,
    format_file_size,
    format_price,
    inject_html_before_body_close,
    render_downloadable_section,
    render_error_html,
    render_template,
)

__all__ = [
    # Resolver
    "PaywallResolver",
    "clear_session_cookie_updates",
    "session_cookie_updates",
    "should_process_path",
    # Models
    "ACCESS_COOKIE",
    "CUSTOMER_EMAIL_COOKIE",
    "CUSTOMER_ID_COOKIE",
    "CUSTOMER_SESSION_TOKEN_PARAM",
    "SESSION_COOKIE",
    "SESSION_COOKIES",
    "CookieUpdate",
    "PaywallOutcome",
    "PaywallState",
    "RequestContext",
    "ResolvedContent",
    "Session",
    # Hooks
    "CollectionHooks",
    "KioskHooks",
    # Preview
    "DEFAULT_PREVIEW_PARAGRAPHS",
    "DEFAULT_PREVIEW_SLIDES",
    "SLIDE_SEGMENT_MAX_AVG_LENGTH",
    "SLIDE_SEPARATOR_MIN_COUNT",
    "classify_content",
    "content_preview_handler",
    "get_default_preview_handler",
    "slides_preview_handler",
    "truncate_html_blocks",
    "truncate_markdown_paragraphs",
    # Templates
    "CHECKOUT_ROUTE",
    "DEFAULT_DOWNLOADABLE_TEMPLATE",
    "DEFAULT_PAYWALL_TEMPLATE",
    "build_template_context",
    "escape_html",
    "format_file_size",
    "format_price",
    "inject_html_before_body_close",
    "render_downloadable_section",
    "render_error_html",
    "render_template",
]
