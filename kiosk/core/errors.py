"""
Error taxonomy.

Configuration errors are fatal and never retried. Sync and upload errors wrap
the underlying cause with file or pattern context. Request-time code catches
KioskError subclasses and degrades instead of failing the page.
"""

from __future__ import annotations


class KioskError(Exception):
    """Base class for all kiosk errors."""


class ConfigurationError(KioskError):
    """Invalid or incomplete configuration detected before work starts."""


class ImmutableFieldError(ConfigurationError):
    """A remote field that cannot change after creation would change."""

    def __init__(self, product_name: str, field: str, old: str, new: str | None) -> None:
        self.product_name = product_name
        self.field = field
        self.old = old
        self.new = new
        super().__init__(
            f'{product_name} {field} cannot be changed from "{old}" to "{new}".'
        )


class ArchivedProductError(ConfigurationError):
    """The remote product is archived and cannot be edited safely."""

    def __init__(self, product_name: str) -> None:
        self.product_name = product_name
        super().__init__(
            f"{product_name} is archived, remove its price or unarchive it "
            "in the billing provider dashboard."
        )


class SyncError(KioskError):
    """Product synchronization aborted."""


class UploadError(KioskError):
    """Downloadable upload aborted."""


class StateFileError(KioskError):
    """State file could not be written."""


class ContentConflictError(KioskError):
    """A URL resolves to more than one content shape."""


class CustomerNotFoundError(KioskError):
    """No billing customer matches the given email."""
