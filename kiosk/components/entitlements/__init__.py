"""
Entitlements component.

Billing lookups (products, benefits, customers, downloads) and the shared
product ID cache.
"""

from .cache import ProductCache
from .component import (
    EntitlementClient,
    detect_versions,
    find_by_metadata_candidates,
    find_first_list_item,
    normalise_metadata_value,
)
from .models import DownloadableFile

__all__ = [
    "EntitlementClient",
    "ProductCache",
    "detect_versions",
    "find_by_metadata_candidates",
    "find_first_list_item",
    "normalise_metadata_value",
    "DownloadableFile",
]
