"""
Uploads component.

Checksum-deduplicated upload of downloadable files declared by payable content.
"""

from .component import DEFAULT_MIME_TYPE, DownloadableUploader, get_mime_type
from .models import UploadedFile, UploadReport

__all__ = [
    "DEFAULT_MIME_TYPE",
    "DownloadableUploader",
    "get_mime_type",
    "UploadedFile",
    "UploadReport",
]
