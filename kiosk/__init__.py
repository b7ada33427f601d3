"""Content Kiosk - paywall and billing-provider sync for file-based content."""

__version__ = "0.1.0"
