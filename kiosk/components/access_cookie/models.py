"""Access cookie payload models. Times are epoch seconds."""

from __future__ import annotations

from dataclasses import dataclass, field

COOKIE_VERSION = 1


@dataclass(frozen=True)
class AccessCookieEntry:
    """A cached grant for one content ID."""

    granted: bool
    timestamp: int
    product_id: str | None = None


@dataclass(frozen=True)
class AccessCookiePayload:
    version: int
    issued_at: int
    expires_at: int
    entries: dict[str, AccessCookieEntry] = field(default_factory=dict)

    def is_expired(self, now: int) -> bool:
        return self.expires_at < now
