"""Upload component models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

UploadAction = Literal["uploaded", "skipped", "reused"]


@dataclass(frozen=True)
class UploadedFile:
    key: str
    remote_file_id: str
    action: UploadAction


@dataclass
class UploadReport:
    files: list[UploadedFile] = field(default_factory=list)

    def _count(self, action: UploadAction) -> int:
        return sum(1 for item in self.files if item.action == action)

    @property
    def uploaded(self) -> int:
        return self._count("uploaded")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def reused(self) -> int:
        return self._count("reused")
