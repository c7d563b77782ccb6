"""
Infrastructure Layer for the Webhook Toolkit.

This package contains concrete implementations of the storage port:
- storage/: JSON file store with atomic writes and corruption recovery
"""

from infrastructure.storage import FileRequestStore

__all__ = [
    "FileRequestStore",
]
