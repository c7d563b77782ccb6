"""
Captured request value objects and the persisted store document.

A RequestRecord is created once by the capture listener and never mutated.
StoreFile is the aggregate written to disk: metadata plus the retained
records in insertion order (oldest first), which is also the eviction order.

JSON keys use the aliases below so that the on-disk document keeps the
``webhook-requests.json`` shape:

    {
      "metadata": {"version": "1.0.0", "lastCleanup": "...", "totalRequestsReceived": 3},
      "requests": [{"id": "...", "timestamp": "...", "ip": "127.0.0.1", ...}]
    }
"""

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# Verbs the capture listener records; everything else is answered with 404.
ACCEPTED_METHODS = ("POST", "PUT")

SCHEMA_VERSION = "1.0.0"

AcceptedMethod = Literal["POST", "PUT"]


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def byte_length(text: str) -> int:
    """Size of ``text`` in bytes once encoded as UTF-8."""
    return len(text.encode("utf-8"))


def _as_utc(value: datetime) -> datetime:
    # Naive instants are taken to be UTC so they survive an ISO-8601 round trip.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RequestRecord(BaseModel):
    """
    One captured inbound call.

    Examples:
        >>> record = RequestRecord(
        ...     id="3f1c...",
        ...     timestamp=utc_now(),
        ...     origin="127.0.0.1",
        ...     method="POST",
        ...     path="/webhook/x",
        ...     headers={"content-type": "application/json"},
        ...     body='{"a":1}',
        ...     content_type="application/json",
        ...     body_size=7,
        ... )
    """

    id: str = Field(..., min_length=1, description="Unique capture identifier")
    timestamp: datetime = Field(..., description="Capture instant (UTC)")
    origin: str = Field(..., alias="ip", description="Network address of the caller")
    method: AcceptedMethod = Field(..., description="HTTP verb of the call")
    path: str = Field(..., description="Request target, including query string")
    headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Lower-cased header names mapped to flattened values",
    )
    body: str = Field(default="", description="Payload decoded as text")
    content_type: Optional[str] = Field(
        default=None, alias="contentType", description="Value of the content-type header"
    )
    body_size: int = Field(
        ..., alias="bodySize", ge=0, description="UTF-8 byte length of the body"
    )

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @model_validator(mode="after")
    def validate_body_size(self) -> "RequestRecord":
        """The recorded size must be the encoded byte length of the body."""
        expected = byte_length(self.body)
        if self.body_size != expected:
            raise ValueError(
                f"body_size {self.body_size} does not match body byte length {expected}"
            )
        return self

    def __str__(self) -> str:
        return f"{self.method} {self.path} ({self.id})"

    model_config = {
        "frozen": True,  # Records are never mutated after capture
        "populate_by_name": True,
    }


class StoreMetadata(BaseModel):
    """Bookkeeping kept next to the retained records."""

    schema_version: str = Field(default=SCHEMA_VERSION, alias="version")
    last_cleanup_time: datetime = Field(default_factory=utc_now, alias="lastCleanup")
    total_received_count: int = Field(default=0, alias="totalRequestsReceived", ge=0)

    @field_validator("last_cleanup_time")
    @classmethod
    def normalize_cleanup_time(cls, v: datetime) -> datetime:
        return _as_utc(v)

    model_config = {
        "populate_by_name": True,
        "validate_assignment": True,
    }


class StoreFile(BaseModel):
    """The persisted aggregate: metadata plus records, oldest first."""

    metadata: StoreMetadata = Field(default_factory=StoreMetadata)
    records: List[RequestRecord] = Field(default_factory=list, alias="requests")

    @classmethod
    def create(cls) -> "StoreFile":
        """A fresh, empty document with zeroed counters."""
        return cls(metadata=StoreMetadata(), records=[])

    def find(self, record_id: str) -> Optional[RequestRecord]:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    model_config = {
        "populate_by_name": True,
    }
