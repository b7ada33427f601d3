"""
Access cookie codec.

A signed, TTL-bounded cache of recent entitlement grants. The cookie value is
``base64url(json) + "." + base64url(HMAC-SHA256(base64url(json), secret))``.
It provides integrity only; entitlement flags and product IDs are not secret.

Invariants:
- No field is trusted before the signature verifies
- Expired payloads are rejected wholesale
- Upsert never leaves more than max_entries entries; oldest timestamps go first
- A missing or invalid cookie never denies access, it only skips the fast path
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from typing import Any

from .models import COOKIE_VERSION, AccessCookieEntry, AccessCookiePayload


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _sign(value: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), value.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def _payload_to_json(payload: AccessCookiePayload) -> dict[str, Any]:
    entries: dict[str, Any] = {}
    for content_id, entry in payload.entries.items():
        raw: dict[str, Any] = {"access": entry.granted, "ts": entry.timestamp}
        if entry.product_id is not None:
            raw["productId"] = entry.product_id
        entries[content_id] = raw
    return {
        "v": payload.version,
        "ts": payload.issued_at,
        "exp": payload.expires_at,
        "entries": entries,
    }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _payload_from_json(raw: Any) -> AccessCookiePayload | None:
    if not isinstance(raw, dict):
        return None
    if raw.get("v") != COOKIE_VERSION:
        return None
    if not _is_int(raw.get("ts")) or not _is_int(raw.get("exp")):
        return None
    raw_entries = raw.get("entries")
    if not isinstance(raw_entries, dict):
        return None

    entries: dict[str, AccessCookieEntry] = {}
    for content_id, raw_entry in raw_entries.items():
        if not isinstance(raw_entry, dict):
            return None
        granted = raw_entry.get("access")
        timestamp = raw_entry.get("ts")
        product_id = raw_entry.get("productId")
        if granted is not True or not _is_int(timestamp):
            return None
        if product_id is not None and not isinstance(product_id, str):
            return None
        entries[content_id] = AccessCookieEntry(
            granted=True, timestamp=timestamp, product_id=product_id
        )

    return AccessCookiePayload(
        version=COOKIE_VERSION,
        issued_at=raw["ts"],
        expires_at=raw["exp"],
        entries=entries,
    )


def encode_access_cookie(payload: AccessCookiePayload, secret: str) -> str:
    """Serialize and sign a payload."""
    body = json.dumps(_payload_to_json(payload), separators=(",", ":"))
    payload_part = _b64url_encode(body.encode("utf-8"))
    return f"{payload_part}.{_sign(payload_part, secret)}"


def decode_access_cookie(
    value: str | None, secret: str, now: int
) -> AccessCookiePayload | None:
    """
    Verify and parse a cookie value.

    Returns None for anything other than a well-formed, correctly signed,
    unexpired payload.
    """
    if not value or not value.isascii():
        return None

    parts = value.split(".")
    if len(parts) != 2:
        return None
    payload_part, signature_part = parts

    expected = _sign(payload_part, secret)
    if len(signature_part) != len(expected):
        return None
    if not hmac.compare_digest(signature_part.encode("ascii"), expected.encode("ascii")):
        return None

    try:
        raw = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except ValueError:
        return None

    payload = _payload_from_json(raw)
    if payload is None or payload.is_expired(now):
        return None
    return payload


def get_access_cookie_entry(
    payload: AccessCookiePayload | None, content_id: str, now: int
) -> AccessCookieEntry | None:
    if payload is None or payload.is_expired(now):
        return None
    return payload.entries.get(content_id)


def upsert_access_cookie(
    payload: AccessCookiePayload | None,
    content_id: str,
    product_id: str | None,
    now: int,
    ttl_seconds: int,
    max_entries: int,
) -> AccessCookiePayload:
    """
    Record a fresh grant and extend the cookie's lifetime.

    Entries of a valid, unexpired payload are carried over. When the map
    overflows, entries with the oldest timestamps are evicted; ties keep
    insertion order (earlier entries go first).
    """
    entries: dict[str, AccessCookieEntry] = {}
    if payload is not None and not payload.is_expired(now):
        entries = dict(payload.entries)

    entries[content_id] = AccessCookieEntry(granted=True, timestamp=now, product_id=product_id)

    overflow = len(entries) - max_entries
    if overflow > 0:
        oldest_first = sorted(entries.items(), key=lambda item: item[1].timestamp)
        for key, _ in oldest_first[:overflow]:
            del entries[key]

    return AccessCookiePayload(
        version=COOKIE_VERSION,
        issued_at=now,
        expires_at=now + ttl_seconds,
        entries=entries,
    )
