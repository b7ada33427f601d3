"""Product sync models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from kiosk.core.entities import MetadataValue, RecurringInterval

SyncAction = Literal["created", "updated", "unchanged"]


@dataclass(frozen=True)
class DesiredProduct:
    """Product and benefit state computed from one payable content file."""

    content_id: str
    collection: str
    title: str
    name: str
    description: str
    price: int
    currency: str
    updated_at: int
    content_url: str
    interval: RecurringInterval | None = None
    file_ids: tuple[str, ...] = ()

    @property
    def is_subscription(self) -> bool:
        return self.interval is not None

    @property
    def pricing_model(self) -> str:
        return "subscription" if self.is_subscription else "one_time"

    def metadata(self) -> dict[str, MetadataValue]:
        metadata: dict[str, MetadataValue] = {
            "content_id": self.content_id,
            "collection": self.collection,
            "title": self.title,
            "updatedAt": self.updated_at,
            "pricing_model": self.pricing_model,
        }
        if self.interval:
            metadata["interval"] = self.interval
        return metadata

    def benefit_metadata(self) -> dict[str, MetadataValue]:
        return {
            "content_id": self.content_id,
            "collection": self.collection,
            "title": self.title,
        }


@dataclass(frozen=True)
class SyncedProduct:
    content_id: str
    product_id: str
    action: SyncAction
    benefit_ids: tuple[str, ...] = ()


@dataclass
class SyncReport:
    """Outcome of a successful sync run."""

    synced: list[SyncedProduct] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def total_synced(self) -> int:
        return len(self.synced)

    def count(self, action: SyncAction) -> int:
        return sum(1 for item in self.synced if item.action == action)
