"""
Payable content metadata.

A content file is payable when its frontmatter declares a positive numeric
``price`` in the smallest currency unit. ``interval`` turns the product into a
subscription.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kiosk.core.entities import RecurringInterval

DEFAULT_CURRENCY = "usd"


class DownloadSpec(BaseModel):
    """A downloadable file declared by a content item."""

    title: str
    file: str  # Relative to the content file
    description: str | None = None


class PayableData(BaseModel):
    """Frontmatter fields read by the paywall and the synchronizer."""

    model_config = ConfigDict(extra="ignore")

    price: int = Field(ge=1)
    currency: str = DEFAULT_CURRENCY
    interval: RecurringInterval | None = None
    title: str | None = None
    description: str | None = None
    slug: str | None = None
    downloads: list[DownloadSpec] = Field(default_factory=list)

    @field_validator("price", mode="before")
    @classmethod
    def validate_whole_price(cls, v: Any) -> Any:
        """Prices are whole amounts in the smallest currency unit."""
        if isinstance(v, float):
            if not v.is_integer():
                raise ValueError(f"price must be a whole number of minor units, got {v}")
            return int(v)
        return v

    @property
    def is_subscription(self) -> bool:
        return self.interval is not None

    @property
    def pricing_model(self) -> str:
        return "subscription" if self.is_subscription else "one_time"


def is_payable(data: dict[str, Any] | None) -> bool:
    """Check if frontmatter declares a positive numeric price."""
    if not data:
        return False
    price = data.get("price")
    if isinstance(price, bool) or not isinstance(price, int | float):
        return False
    return price > 0


def parse_payable(data: dict[str, Any]) -> PayableData:
    """Validate payable frontmatter. Raises pydantic.ValidationError."""
    values = dict(data)
    if values.get("currency") in (None, ""):
        values["currency"] = DEFAULT_CURRENCY
    return PayableData.model_validate(values)
