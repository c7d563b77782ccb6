"""
Domain models for the Webhook Toolkit.

These models are independent of transport and storage concerns:
- RequestRecord: one captured inbound call (immutable)
- StoreMetadata: counters and schema version kept alongside the records
- StoreFile: the persisted aggregate (metadata + records, oldest first)

Usage:
    >>> from domain.models import StoreFile
    >>> store_file = StoreFile.create()
    >>> json_str = store_file.to_json()
    >>> restored = StoreFile.model_validate_json(json_str)
"""

from domain.models.request_record import (
    ACCEPTED_METHODS,
    SCHEMA_VERSION,
    AcceptedMethod,
    RequestRecord,
    StoreFile,
    StoreMetadata,
    byte_length,
    utc_now,
)

__all__ = [
    "ACCEPTED_METHODS",
    "SCHEMA_VERSION",
    "AcceptedMethod",
    "RequestRecord",
    "StoreFile",
    "StoreMetadata",
    "byte_length",
    "utc_now",
]
