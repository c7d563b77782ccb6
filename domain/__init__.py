"""
Domain layer for the Webhook Toolkit.

This package contains pure value types that are independent of
infrastructure concerns (HTTP server, file system).
"""

from domain.models import (
    RequestRecord,
    StoreFile,
    StoreMetadata,
)

__all__ = [
    "RequestRecord",
    "StoreFile",
    "StoreMetadata",
]
