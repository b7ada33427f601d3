"""
Remote billing entities.

Products, benefits, customers and downloadables as returned by the billing
provider. Every entity carries a free-form ``metadata`` map; ``content_id`` in
that map is the join key back to local content.

Invariants:
- A product's recurring interval never changes once set
- Archived products are never edited
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

RecurringInterval = Literal["month", "year", "week", "day"]
BenefitType = Literal["custom", "downloadables"]

MetadataValue = str | int | float | bool


class RemoteModel(BaseModel):
    """Base for provider payloads; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")


# --- Products ---


class RemotePrice(RemoteModel):
    """A product price. Only fixed prices are managed by the synchronizer."""

    id: str
    amount_type: str = "fixed"
    price_amount: int | None = None
    price_currency: str | None = None


class RemoteBenefit(RemoteModel):
    """
    A benefit granted by a product.

    ``custom`` benefits hold a private note with the content URL.
    ``downloadables`` benefits hold the uploaded file IDs.
    """

    id: str
    type: str
    description: str = ""
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)
    properties: dict[str, Any] = Field(default_factory=dict)


class RemoteProduct(RemoteModel):
    """A billable product keyed by its own ID and joined via metadata.content_id."""

    id: str
    name: str
    description: str | None = None
    is_archived: bool = False
    recurring_interval: RecurringInterval | None = None
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)
    prices: list[RemotePrice] = Field(default_factory=list)
    benefits: list[RemoteBenefit] = Field(default_factory=list)


# --- Customers ---


class Customer(RemoteModel):
    id: str
    email: str


class CustomerSession(RemoteModel):
    token: str
    expires_at: datetime
    customer_id: str


class BenefitGrant(RemoteModel):
    id: str
    benefit_id: str
    customer_id: str
    is_granted: bool = True


# --- Files ---


class FileDownload(RemoteModel):
    url: str
    expires_at: datetime | None = None


class DownloadableFileInfo(RemoteModel):
    id: str
    name: str
    size: int = 0
    mime_type: str = "application/octet-stream"
    version: str | None = None
    last_modified_at: datetime | None = None
    download: FileDownload


class Downloadable(RemoteModel):
    """A customer-scoped downloadable with a signed URL."""

    id: str
    benefit_id: str
    file: DownloadableFileInfo
