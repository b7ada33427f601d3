"""
Ports for external collaborators.

- BillingPort: the billing provider (products, benefits, customers, files)
- ContentLoaderPort: the site's content collections
- ClockPort: wall-clock time
"""

from kiosk.core.ports.billing import BillingError, BillingPort, ListFn
from kiosk.core.ports.clock import ClockPort
from kiosk.core.ports.content import ContentEntry, ContentLoaderPort

__all__ = [
    "BillingError",
    "BillingPort",
    "ClockPort",
    "ContentEntry",
    "ContentLoaderPort",
    "ListFn",
]
