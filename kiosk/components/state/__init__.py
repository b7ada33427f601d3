"""
State component.

Checksum-deduplicated record of uploaded downloadable files.
"""

from .component import (
    STATE_DIR,
    STATE_FILE,
    compute_checksum,
    find_file_by_checksum,
    get_cached_file_ids,
    get_content_ids_with_files,
    get_state_file_path,
    normalize_file_key,
    read_state_file,
    remove_content_from_state,
    set_content_files_in_state,
    update_file_in_state,
    write_state_file,
)
from .models import ChecksumMatch, ContentStateEntry, StateFile, StateFileEntry

__all__ = [
    # Functions
    "compute_checksum",
    "find_file_by_checksum",
    "get_cached_file_ids",
    "get_content_ids_with_files",
    "get_state_file_path",
    "normalize_file_key",
    "read_state_file",
    "remove_content_from_state",
    "set_content_files_in_state",
    "update_file_in_state",
    "write_state_file",
    "STATE_DIR",
    "STATE_FILE",
    # Models
    "ChecksumMatch",
    "ContentStateEntry",
    "StateFile",
    "StateFileEntry",
]
