"""
Product sync component.

Build-time convergence of payable content onto billing products and benefits.
"""

from .component import (
    BENEFIT_DESCRIPTION_MAX_LENGTH,
    ProductSynchronizer,
    build_price_payload,
    check_immutable_fields,
    format_product_name,
    needs_price_update,
    should_update_product,
)
from .models import DesiredProduct, SyncedProduct, SyncReport

__all__ = [
    "BENEFIT_DESCRIPTION_MAX_LENGTH",
    "ProductSynchronizer",
    "build_price_payload",
    "check_immutable_fields",
    "format_product_name",
    "needs_price_update",
    "should_update_product",
    "DesiredProduct",
    "SyncedProduct",
    "SyncReport",
]
