"""
Access cookie component.

Signed client-side cache of entitlement grants.
"""

from .component import (
    decode_access_cookie,
    encode_access_cookie,
    get_access_cookie_entry,
    upsert_access_cookie,
)
from .models import COOKIE_VERSION, AccessCookieEntry, AccessCookiePayload

__all__ = [
    "decode_access_cookie",
    "encode_access_cookie",
    "get_access_cookie_entry",
    "upsert_access_cookie",
    "COOKIE_VERSION",
    "AccessCookieEntry",
    "AccessCookiePayload",
]
