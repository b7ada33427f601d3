"""
State store models.

Shape of the on-disk document (``.kiosk/state.json``)::

    {
      "files": {"<normalized key>": {"remoteFileId", "checksum", "localPath"}},
      "contents": {"<content id>": {"contentUrl", "files": ["<normalized key>"]}}
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StateFileEntry:
    """An uploaded file. ``checksum`` is the SHA-256 hex of its bytes."""

    remote_file_id: str
    checksum: str
    local_path: str

    def to_json(self) -> dict[str, str]:
        return {
            "remoteFileId": self.remote_file_id,
            "checksum": self.checksum,
            "localPath": self.local_path,
        }

    @classmethod
    def from_json(cls, raw: Any) -> StateFileEntry | None:
        """Parse a stored entry; malformed entries return None."""
        if not isinstance(raw, dict):
            return None
        remote_file_id = raw.get("remoteFileId", raw.get("polarFileId"))
        checksum = raw.get("checksum")
        local_path = raw.get("localPath")
        if not all(isinstance(v, str) for v in (remote_file_id, checksum, local_path)):
            return None
        return cls(remote_file_id=remote_file_id, checksum=checksum, local_path=local_path)


@dataclass
class ContentStateEntry:
    """Files referenced by one content item."""

    content_url: str
    files: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {"contentUrl": self.content_url, "files": list(self.files)}


@dataclass
class StateFile:
    files: dict[str, StateFileEntry] = field(default_factory=dict)
    contents: dict[str, ContentStateEntry] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        return {
            "files": {key: entry.to_json() for key, entry in self.files.items()},
            "contents": {key: entry.to_json() for key, entry in self.contents.items()},
        }


@dataclass(frozen=True)
class ChecksumMatch:
    key: str
    entry: StateFileEntry
