"""Entitlement component models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from kiosk.core.entities import Downloadable


@dataclass(frozen=True)
class DownloadableFile:
    """
    A file the signed-in customer may download.

    ``is_new`` / ``is_legacy`` are only set when several files share a name:
    the most recently modified one is new, the rest are legacy.
    """

    id: str
    benefit_id: str
    name: str
    size: int
    mime_type: str
    download_url: str
    version: str | None = None
    last_modified_at: datetime | None = None
    is_new: bool = False
    is_legacy: bool = False

    @classmethod
    def from_downloadable(cls, item: Downloadable) -> DownloadableFile:
        return cls(
            id=item.id,
            benefit_id=item.benefit_id,
            name=item.file.name,
            size=item.file.size,
            mime_type=item.file.mime_type,
            download_url=item.file.download.url,
            version=item.file.version,
            last_modified_at=item.file.last_modified_at,
        )
