"""
Paywall extension points.

Function-valued options are plain callables injected at startup. Every hook
may be a regular function or a coroutine function.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from kiosk.core.ports.content import ContentEntry
from kiosk.domain.i18n import ParsedPath

from .models import RequestContext

IsAuthenticatedHook = Callable[[RequestContext], bool | Awaitable[bool]]
CheckAccessHook = Callable[[RequestContext, str], bool | Awaitable[bool]]
PreviewHandler = Callable[[ContentEntry], str | None | Awaitable[str | None]]
InheritAccessHook = Callable[[ContentEntry, ParsedPath], str | None | Awaitable[str | None]]


@dataclass(frozen=True)
class CollectionHooks:
    """
    Per-collection hooks.

    Attributes:
        preview_handler: Builds the preview HTML for a denied request
        inherit_access: Maps a child entry to its parent content ID;
            returning None makes the child free
    """

    preview_handler: PreviewHandler | None = None
    inherit_access: InheritAccessHook | None = None


@dataclass(frozen=True)
class KioskHooks:
    """
    Site-wide hooks.

    Attributes:
        is_authenticated: Replaces the session-cookie check
        check_access: Replaces the remote benefit-grant check
        collections: Per-collection hooks keyed by collection name
    """

    is_authenticated: IsAuthenticatedHook | None = None
    check_access: CheckAccessHook | None = None
    collections: dict[str, CollectionHooks] = field(default_factory=dict)

    def for_collection(self, name: str | None) -> CollectionHooks:
        if name is None:
            return CollectionHooks()
        return self.collections.get(name) or CollectionHooks()

    def inherited_collections(self) -> list[str]:
        """Collections whose access is resolved through inherit_access."""
        return [name for name, hooks in self.collections.items() if hooks.inherit_access]
