"""
Storage implementations of the RequestStore port.
"""

from infrastructure.storage.file_request_store import (
    DEFAULT_MAX_REQUESTS,
    STORAGE_FILENAME,
    FileRequestStore,
)

__all__ = [
    "DEFAULT_MAX_REQUESTS",
    "STORAGE_FILENAME",
    "FileRequestStore",
]
