"""
Upload state store.

Durable map from normalized file paths to uploaded remote file IDs, used to
skip unchanged uploads and to reuse byte-identical files.

Invariants:
- One entry per distinct local file key
- Two keys with the same checksum may share one remote file ID
- A missing or corrupt state file reads as empty state, never fatal
- Single writer; callers persist after every mutation
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from kiosk.core.errors import StateFileError

from .models import ChecksumMatch, ContentStateEntry, StateFile, StateFileEntry

logger = logging.getLogger(__name__)

STATE_DIR = ".kiosk"
STATE_FILE = "state.json"


def normalize_file_key(path: str | Path, base_dir: str | Path | None = None) -> str:
    """Path relative to ``base_dir`` (default cwd) when inside it, else absolute."""
    absolute = Path(path).resolve()
    base = Path(base_dir).resolve() if base_dir is not None else Path.cwd().resolve()
    relative = os.path.relpath(absolute, base)
    use_relative = relative and relative != "." and not relative.startswith("..")
    chosen = relative if use_relative else str(absolute)
    return chosen.replace("\\", "/")


def compute_checksum(path: str | Path) -> str:
    """SHA-256 hex digest of a file, read in chunks."""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(8192):
            sha256.update(chunk)
    return sha256.hexdigest()


# --- Pure state operations ---


def find_file_by_checksum(
    state: StateFile, checksum: str, exclude_key: str | None = None
) -> ChecksumMatch | None:
    """First entry with a matching checksum whose key is not ``exclude_key``."""
    for key, entry in state.files.items():
        if exclude_key and key == exclude_key:
            continue
        if entry.checksum == checksum:
            return ChecksumMatch(key=key, entry=entry)
    return None


def _ensure_content_entry(
    state: StateFile, content_id: str, content_url: str
) -> ContentStateEntry:
    entry = state.contents.get(content_id)
    if entry is None:
        entry = ContentStateEntry(content_url=content_url)
        state.contents[content_id] = entry
    else:
        entry.content_url = content_url
    return entry


def update_file_in_state(
    state: StateFile,
    key: str,
    entry: StateFileEntry,
    *,
    content_id: str | None = None,
    content_url: str = "",
) -> str:
    """Upsert the entry for ``key``; also registers the owning content item."""
    state.files[key] = StateFileEntry(
        remote_file_id=entry.remote_file_id,
        checksum=entry.checksum,
        local_path=entry.local_path,
    )
    if content_id:
        _ensure_content_entry(state, content_id, content_url)
    return key


def set_content_files_in_state(
    state: StateFile, content_id: str, content_url: str, file_keys: list[str]
) -> None:
    """Point a content item at exactly ``file_keys`` (order kept, duplicates dropped)."""
    entry = _ensure_content_entry(state, content_id, content_url)
    entry.files = list(dict.fromkeys(file_keys))


def get_cached_file_ids(state: StateFile, content_id: str) -> list[str]:
    entry = state.contents.get(content_id)
    if entry is None:
        return []
    return [state.files[k].remote_file_id for k in entry.files if k in state.files]


def remove_content_from_state(state: StateFile, content_id: str) -> None:
    state.contents.pop(content_id, None)


def get_content_ids_with_files(state: StateFile) -> list[str]:
    return [content_id for content_id, entry in state.contents.items() if entry.files]


# --- Persistence ---


def get_state_file_path(cwd: str | Path | None = None) -> Path:
    base = Path(cwd) if cwd is not None else Path.cwd()
    return (base / STATE_DIR / STATE_FILE).resolve()


def _parse_state(raw: Any) -> StateFile:
    if not isinstance(raw, dict):
        return StateFile()

    files: dict[str, StateFileEntry] = {}
    raw_files = raw.get("files")
    if isinstance(raw_files, dict):
        for key, raw_entry in raw_files.items():
            entry = StateFileEntry.from_json(raw_entry)
            if entry is not None:
                files[key] = entry

    contents: dict[str, ContentStateEntry] = {}
    raw_contents = raw.get("contents")
    if isinstance(raw_contents, dict):
        for content_id, raw_entry in raw_contents.items():
            if not isinstance(raw_entry, dict):
                continue
            content_url = raw_entry.get("contentUrl")
            file_keys = raw_entry.get("files")
            contents[content_id] = ContentStateEntry(
                content_url=content_url if isinstance(content_url, str) else "",
                files=[k for k in file_keys if isinstance(k, str)]
                if isinstance(file_keys, list)
                else [],
            )

    return StateFile(files=files, contents=contents)


def read_state_file(cwd: str | Path | None = None) -> StateFile:
    """Read the state file. Missing or corrupt files yield empty state."""
    path = get_state_file_path(cwd)
    if not path.exists():
        return StateFile()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read state file {path}: {e}")
        return StateFile()

    return _parse_state(raw)


def write_state_file(state: StateFile, cwd: str | Path | None = None) -> Path:
    """Write the state file, creating its directory. Raises StateFileError."""
    path = get_state_file_path(cwd)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(state.to_json(), indent=2), encoding="utf-8")
    except OSError as e:
        raise StateFileError(f"Failed to write state file: {path}") from e
    return path
