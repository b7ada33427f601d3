"""
Content identity component.

Canonical content IDs and candidate spellings for remote lookups.
"""

from .component import (
    DEFAULT_CONTENT_ROOT,
    build_index_id_candidates,
    entry_to_content_id,
    generate_content_id_candidates,
    path_to_content_id,
    slugify_path,
    slugify_segment,
)

__all__ = [
    "DEFAULT_CONTENT_ROOT",
    "build_index_id_candidates",
    "entry_to_content_id",
    "generate_content_id_candidates",
    "path_to_content_id",
    "slugify_path",
    "slugify_segment",
]
