"""
Paywall resolver.

Turns a request into a ``PaywallState``: URL filtering, content resolution
(including group and inherited access), authentication, authorization with
the signed access cookie as a fast path, and preview / download rendering.

Invariants:
- A collection with ``group`` or ``inherit_access`` never carries its own
  product; access resolves to the index or parent item
- A URL matching more than one group shape is a conflict and is not paywalled
- A missing or invalid access cookie never denies access by itself
- Failures while rendering degrade to an inline error fragment
"""

from __future__ import annotations

import inspect
import logging
import posixpath
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import ValidationError

from kiosk.components.access_cookie import (
    decode_access_cookie,
    encode_access_cookie,
    get_access_cookie_entry,
    upsert_access_cookie,
)
from kiosk.components.content_id import build_index_id_candidates, entry_to_content_id
from kiosk.components.entitlements import DownloadableFile, EntitlementClient
from kiosk.core.errors import ContentConflictError
from kiosk.core.ports.clock import ClockPort
from kiosk.core.ports.content import ContentEntry, ContentLoaderPort
from kiosk.domain.i18n import (
    ParsedPath,
    ResolvedI18n,
    build_url_patterns,
    parse_pathname,
    resolve_i18n,
    url_pattern_to_regex,
)
from kiosk.domain.payable import PayableData, is_payable, parse_payable
from kiosk.rules.models import CollectionRules, KioskRules

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
from .ports import KioskHooks
from .preview import get_default_preview_handler
from .templates import (
    DEFAULT_PAYWALL_TEMPLATE,
    build_template_context,
    render_downloadable_section,
    render_error_html,
    render_template,
)

logger = logging.getLogger(__name__)

SKIPPED_PREFIXES = ("/api/", "/_", "/assets/")


async def _call_hook(hook: Callable[..., Any], *args: Any) -> Any:
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


# --- Cookies ---


def session_cookie_updates(
    token: str, customer_id: str, email: str, expires: datetime
) -> tuple[CookieUpdate, ...]:
    """Session cookies are always set together with one shared expiry."""
    return (
        CookieUpdate(SESSION_COOKIE, token, expires),
        CookieUpdate(CUSTOMER_ID_COOKIE, customer_id, expires),
        CookieUpdate(CUSTOMER_EMAIL_COOKIE, email, expires),
    )


def clear_session_cookie_updates() -> tuple[CookieUpdate, ...]:
    return tuple(CookieUpdate(name, None) for name in SESSION_COOKIES)


def should_process_path(pathname: str, patterns: list[Any]) -> bool:
    """Skip API, system and asset paths, and anything not matching a content pattern."""
    if pathname.startswith(SKIPPED_PREFIXES) or "." in pathname:
        return False
    return any(pattern.match(pathname) for pattern in patterns)


# --- Resolver ---


class PaywallResolver:
    """
    Request-time paywall resolution.

    Args:
        rules: Resolved kiosk rules
        client: Entitlement client sharing the ProductCache with sync
        loader: Content loader port
        hooks: Authentication, access, preview and inheritance overrides
        clock: Time source for cookie timestamps
    """

    def __init__(
        self,
        rules: KioskRules,
        client: EntitlementClient,
        loader: ContentLoaderPort,
        *,
        hooks: KioskHooks | None = None,
        clock: ClockPort | None = None,
        i18n: ResolvedI18n | None = None,
    ) -> None:
        self.rules = rules
        self.client = client
        self.loader = loader
        self.hooks = hooks or KioskHooks()
        self.clock = clock
        self.i18n = i18n if i18n is not None else resolve_i18n(rules.i18n)
        self.url_patterns = [
            url_pattern_to_regex(pattern)
            for pattern in build_url_patterns(rules.collections, self.i18n, rules.content_root)
        ]
        self._group_index_cache: dict[tuple[str, str | None, str], ContentEntry] = {}

    def _now(self) -> datetime:
        if self.clock is not None:
            return self.clock.now()
        return datetime.now(UTC)

    def should_process(self, pathname: str) -> bool:
        return should_process_path(pathname, self.url_patterns)

    # --- Entry lookups ---

    async def _first_entry(self, collection: str, keys: list[str]) -> ContentEntry | None:
        for key in dict.fromkeys(keys):
            entry = await self.loader.get_entry(collection, key)
            if entry is not None:
                return entry
        return None

    @staticmethod
    def _entry_keys(locale_path: str | None, slug: str) -> list[str]:
        if locale_path:
            return [f"{locale_path}/{slug}", slug]
        return [slug]

    async def _group_index(
        self, collection: CollectionRules, locale_path: str | None, group_slug: str
    ) -> ContentEntry | None:
        assert collection.group is not None
        source = collection.source_collection
        cache_key = (source, locale_path, group_slug)
        cached = self._group_index_cache.get(cache_key)
        if cached is not None:
            return cached

        entry = await self._first_entry(
            source, build_index_id_candidates(locale_path, group_slug, collection.group.index)
        )
        if entry is not None:
            self._group_index_cache[cache_key] = entry
        return entry

    # --- Content resolution ---

    async def _resolve_group(
        self, collection: CollectionRules, parsed: ParsedPath
    ) -> tuple[ContentEntry, ContentEntry | None] | None:
        """
        Resolve the three group URL shapes.

        Returns (index entry, child entry or None). Raises ContentConflictError
        when more than one shape matches.
        """
        assert collection.group is not None
        index = collection.group.index
        slug = parsed.slug.strip("/")
        locale_path = parsed.locale_path
        matches: list[tuple[str, ContentEntry, ContentEntry | None]] = []

        # Direct index URL: /courses/git/toc
        if slug == index or slug.endswith(f"/{index}"):
            group_slug = slug[: -len(index)].rstrip("/")
            keys = (
                build_index_id_candidates(locale_path, group_slug, index)
                if group_slug
                else self._entry_keys(locale_path, index)
            )
            entry = await self._first_entry(collection.source_collection, keys)
            if entry is not None:
                matches.append(("index", entry, None))

        # Stripped index URL: /courses/git
        stripped = await self._group_index(collection, locale_path, slug)
        if stripped is not None:
            matches.append(("stripped", stripped, None))

        # Child URL: /courses/git/01-intro
        parent_slug = posixpath.dirname(slug)
        if parent_slug and posixpath.basename(slug) != index:
            child_collection = collection.group.child_collection or collection.source_collection
            child = await self._first_entry(child_collection, self._entry_keys(locale_path, slug))
            if child is not None:
                parent = await self._group_index(collection, locale_path, parent_slug)
                if parent is not None:
                    matches.append(("child", parent, child))

        if len(matches) > 1:
            shapes = ", ".join(shape for shape, _, _ in matches)
            raise ContentConflictError(
                f"Path /{collection.name}/{slug} matches more than one group shape ({shapes})"
            )
        if not matches:
            return None
        _, entry, child = matches[0]
        return entry, child

    async def _resolve_inherited(
        self, collection: CollectionRules, parsed: ParsedPath
    ) -> tuple[ContentEntry, ContentEntry, CollectionRules] | None:
        """Returns (parent entry, child entry, parent collection), or None when free."""
        hooks = self.hooks.for_collection(collection.name)
        child = await self._first_entry(
            collection.source_collection, self._entry_keys(parsed.locale_path, parsed.slug)
        )
        if child is None or hooks.inherit_access is None:
            return None

        parent_id = await _call_hook(hooks.inherit_access, child, parsed)
        if not parent_id:
            return None

        parent_collection_name, _, parent_key = str(parent_id).partition("/")
        parent_collection = self.rules.collection_by_name(parent_collection_name)
        if parent_collection is None or not parent_key:
            logger.warning(f"Inherited parent {parent_id} is not in a configured collection")
            return None

        parent = await self._first_entry(parent_collection.source_collection, [parent_key])
        if parent is None:
            logger.warning(f"Inherited parent {parent_id} not found for {child.id}")
            return None
        return parent, child, parent_collection

    async def resolve_content(self, pathname: str) -> ResolvedContent | None:
        """
        Payable content for a request path, or None to pass the request through.

        Raises ContentConflictError for ambiguous group URLs.
        """
        parsed = parse_pathname(pathname, self.i18n)
        if parsed is None or "." in parsed.slug:
            return None

        collection = self.rules.collection_by_name(parsed.collection)
        if collection is None:
            return None

        hooks = self.hooks.for_collection(collection.name)
        product_collection = collection
        requested: ContentEntry | None = None

        if collection.group is not None:
            resolved = await self._resolve_group(collection, parsed)
            if resolved is None:
                return None
            entry, requested = resolved
        elif hooks.inherit_access is not None:
            inherited = await self._resolve_inherited(collection, parsed)
            if inherited is None:
                return None
            entry, requested, product_collection = inherited
        else:
            found = await self._first_entry(
                collection.source_collection, self._entry_keys(parsed.locale_path, parsed.slug)
            )
            if found is None:
                return None
            entry = found

        if not is_payable(entry.data):
            return None
        try:
            payable = parse_payable(entry.data)
        except ValidationError as e:
            logger.warning(f"Invalid payable frontmatter in {entry.id}: {e}")
            return None

        content_id = entry_to_content_id(product_collection.name or "", entry.id, entry.slug)
        product_id = await self.client.find_product_by_content_id(content_id)
        if not product_id:
            logger.error(
                f"Product not found for content: {content_id}. "
                "Run a sync first to create products."
            )
            return None

        return ResolvedContent(
            content_id=content_id,
            product_id=product_id,
            entry=entry,
            payable=payable,
            collection=product_collection,
            parsed=parsed,
            inherited=requested is not None,
            requested=requested,
        )

    # --- Authentication / authorization ---

    async def recover_session(
        self, ctx: RequestContext
    ) -> tuple[Session, tuple[CookieUpdate, ...]]:
        """Session from cookies, or from a provider redirect's customer_session_token."""
        session = Session(
            token=ctx.cookies.get(SESSION_COOKIE),
            customer_id=ctx.cookies.get(CUSTOMER_ID_COOKIE),
            email=ctx.cookies.get(CUSTOMER_EMAIL_COOKIE),
        )
        if session.is_present:
            return session, ()

        token = ctx.query.get(CUSTOMER_SESSION_TOKEN_PARAM)
        if not token:
            return session, ()

        customer = await self.client.get_customer_from_token(token)
        if customer is None:
            return session, ()

        expires = self._now() + timedelta(seconds=self.rules.session.ttl_seconds)
        recovered = Session(token=token, customer_id=customer.id, email=customer.email)
        return recovered, session_cookie_updates(token, customer.id, customer.email, expires)

    async def is_authenticated(self, ctx: RequestContext, session: Session) -> bool:
        if self.hooks.is_authenticated is not None:
            return bool(await _call_hook(self.hooks.is_authenticated, ctx))
        return session.is_present

    async def check_access(self, ctx: RequestContext, session: Session, content_id: str) -> bool:
        if self.hooks.check_access is not None:
            return bool(await _call_hook(self.hooks.check_access, ctx, content_id))
        return await self.client.validate_customer_access(
            session.token, session.customer_id, content_id
        )

    # --- Rendering ---

    async def build_preview(
        self, content: ResolvedContent, is_authenticated: bool
    ) -> str | None:
        """Paywall HTML for a denied request; failures become an error fragment."""
        try:
            if content.inherited:
                preview = ""
            else:
                handler = self.hooks.for_collection(content.collection.name).preview_handler
                if handler is None:
                    handler = get_default_preview_handler(content.entry.body)
                preview = await _call_hook(handler, content.entry)
                if not preview:
                    return None

            context = build_template_context(
                content_id=content.content_id,
                collection=content.collection.name or "",
                payable=content.payable,
                preview=preview,
                is_authenticated=is_authenticated,
                signin_page_path=self.rules.signin_page_path,
            )
            template = content.collection.paywall_template or DEFAULT_PAYWALL_TEMPLATE
            return render_template(template, context)
        except Exception as e:
            logger.exception(f"Failed to build preview for {content.content_id}")
            return render_error_html("Preview Generation Error", error=e)

    def _page_fields(self, content: ResolvedContent) -> dict[str, Any]:
        if content.inherited:
            data = content.page_entry.data
            return {"title": data.get("title"), "description": data.get("description")}
        payable: PayableData = content.payable
        return {
            "price": payable.price,
            "currency": payable.currency,
            "interval": payable.interval,
            "title": payable.title,
            "description": payable.description,
        }

    # --- Entry point ---

    async def resolve(self, ctx: RequestContext) -> PaywallOutcome | None:
        """Paywall state and cookie updates for a request, or None to pass through."""
        if not self.should_process(ctx.path):
            return None

        try:
            content = await self.resolve_content(ctx.path)
        except ContentConflictError as e:
            logger.error(str(e))
            return None
        if content is None:
            return None

        session, cookies = await self.recover_session(ctx)
        updates = list(cookies)

        now = int(self._now().timestamp())
        secret = self.rules.access_cookie.secret
        access_payload = decode_access_cookie(ctx.cookies.get(ACCESS_COOKIE), secret, now)
        cached = get_access_cookie_entry(access_payload, content.content_id, now)

        if cached is not None and cached.granted:
            is_authenticated = True
            has_access = True
        else:
            is_authenticated = await self.is_authenticated(ctx, session)
            has_access = is_authenticated and await self.check_access(
                ctx, session, content.content_id
            )
            if has_access:
                payload = upsert_access_cookie(
                    access_payload,
                    content.content_id,
                    content.product_id,
                    now,
                    self.rules.access_cookie.ttl_seconds,
                    self.rules.access_cookie.max_entries,
                )
                updates.append(
                    CookieUpdate(
                        ACCESS_COOKIE,
                        encode_access_cookie(payload, secret),
                        datetime.fromtimestamp(payload.expires_at, UTC),
                    )
                )

        preview = None if has_access else await self.build_preview(content, is_authenticated)

        download_count = 0 if content.inherited else len(content.payable.downloads)
        files: tuple[DownloadableFile, ...] = ()
        section = None
        if has_access and download_count:
            files = tuple(await self.client.get_downloadable_files(content.content_id, session.token))
            if files:
                section = render_downloadable_section(
                    files, content.collection.downloadable_template
                )

        state = PaywallState(
            is_payable=True,
            is_authenticated=is_authenticated,
            has_access=has_access,
            product_id=content.product_id,
            content_id=content.content_id,
            preview=preview,
            has_downloads=download_count > 0,
            download_count=download_count,
            downloadable_files=files,
            downloadable_section=section,
            **self._page_fields(content),
        )
        return PaywallOutcome(state=state, cookies=tuple(updates))
