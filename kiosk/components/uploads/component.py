"""
Downloadable uploader.

Uploads the files declared under ``downloads`` in payable content to the
billing provider, keeping ``.kiosk/state.json`` in step so unchanged files are
never re-uploaded.

Invariants:
- Same key and checksum: no upload, only ``local_path`` is refreshed
- Same bytes under another key: the existing remote file ID is reused
- State is written after every per-file decision
"""

from __future__ import annotations

import logging
from pathlib import Path

from kiosk.components.content_id import path_to_content_id
from kiosk.components.state import (
    StateFile,
    StateFileEntry,
    compute_checksum,
    find_file_by_checksum,
    normalize_file_key,
    read_state_file,
    set_content_files_in_state,
    update_file_in_state,
    write_state_file,
)
from kiosk.core.errors import UploadError
from kiosk.core.ports.billing import BillingPort
from kiosk.domain.content_files import find_content_files, read_content_file
from kiosk.domain.i18n import ResolvedI18n, build_content_url, strip_group_index
from kiosk.domain.payable import is_payable, parse_payable
from kiosk.rules.models import CollectionRules, KioskRules

from .models import UploadedFile, UploadReport

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    "pdf": "application/pdf",
    "zip": "application/zip",
    "tar": "application/x-tar",
    "gz": "application/gzip",
    "tgz": "application/gzip",
    "md": "text/markdown",
    "txt": "text/plain",
    "json": "application/json",
    "xml": "application/xml",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "mp4": "video/mp4",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


def get_mime_type(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


class DownloadableUploader:
    """
    Build-time upload of declared downloads.

    Args:
        billing: Billing provider port
        rules: Resolved kiosk rules
        cwd: Project root; state keys are relative to it
        i18n: Resolved locale settings for content URLs stored in state
    """

    def __init__(
        self,
        billing: BillingPort,
        rules: KioskRules,
        *,
        cwd: str | Path | None = None,
        i18n: ResolvedI18n | None = None,
    ) -> None:
        self.billing = billing
        self.rules = rules
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.i18n = i18n

    def _checkpoint(self, state: StateFile) -> None:
        write_state_file(state, self.cwd)

    async def upload_download(
        self, state: StateFile, absolute_path: Path, declared_path: str
    ) -> UploadedFile:
        """Upload one file unless state already has it (by key or by checksum)."""
        key = normalize_file_key(absolute_path, self.cwd)
        checksum = compute_checksum(absolute_path)

        cached = state.files.get(key)
        if cached is not None and cached.checksum == checksum:
            logger.info(f"Skipped (unchanged): {key}")
            update_file_in_state(
                state,
                key,
                StateFileEntry(cached.remote_file_id, cached.checksum, declared_path),
            )
            return UploadedFile(key, cached.remote_file_id, "skipped")

        duplicate = find_file_by_checksum(state, checksum, key)
        if duplicate is not None:
            logger.info(f"Reusing existing upload for {key} from {duplicate.key}")
            update_file_in_state(
                state,
                key,
                StateFileEntry(duplicate.entry.remote_file_id, checksum, declared_path),
            )
            return UploadedFile(key, duplicate.entry.remote_file_id, "reused")

        logger.info(f"Uploading: {key} ...")
        file_id = await self.billing.upload_file(
            name=absolute_path.name,
            mime_type=get_mime_type(absolute_path.name),
            data=absolute_path.read_bytes(),
        )
        update_file_in_state(state, key, StateFileEntry(file_id, checksum, declared_path))
        logger.info(f"Uploaded: {key} -> {file_id}")
        return UploadedFile(key, file_id, "uploaded")

    async def upload_file_downloads(
        self, path: Path, collection: CollectionRules, state: StateFile
    ) -> list[UploadedFile]:
        content = read_content_file(path)
        if not is_payable(content.data):
            return []
        payable = parse_payable(content.data)
        if not payable.downloads:
            return []

        content_id = path_to_content_id(
            path,
            collection.name or "",
            cwd=self.cwd,
            frontmatter_slug=payable.slug,
            content_root=self.rules.content_root,
        )
        content_url = build_content_url(
            self.rules.site_url,
            strip_group_index(content_id, self.rules.collections),
            self.i18n,
        )
        logger.info(f"Processing: {content_id}")

        results: list[UploadedFile] = []
        for download in payable.downloads:
            result = await self.upload_download(
                state, (path.parent / download.file).resolve(), download.file
            )
            results.append(result)
            set_content_files_in_state(
                state, content_id, content_url, [item.key for item in results]
            )
            self._checkpoint(state)
        return results

    async def upload_all(self, state: StateFile | None = None) -> UploadReport:
        """Upload every declared download. Raises UploadError on the first failure."""
        logger.info("Starting upload of downloadable files...")
        if state is None:
            state = read_state_file(self.cwd)
        report = UploadReport()

        for collection in self.rules.collections:
            pattern = collection.include
            try:
                files = find_content_files(pattern, self.cwd)
                if not files:
                    logger.warning(f"No files found for pattern: {pattern}")
                    continue
                for path in files:
                    try:
                        report.files.extend(
                            await self.upload_file_downloads(path, collection, state)
                        )
                    except Exception:
                        logger.error(f"Failed to process {path}")
                        raise
            except Exception as e:
                raise UploadError(f"Failed to process pattern {pattern}: {e}") from e

        self._checkpoint(state)
        logger.info(
            f"Upload complete: {report.uploaded} uploaded, "
            f"{report.skipped} skipped, {report.reused} reused"
        )
        return report
