"""
Unit tests for domain/models/request_record.py
"""

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from domain.models import (
    SCHEMA_VERSION,
    RequestRecord,
    StoreFile,
    StoreMetadata,
    byte_length,
)

pytestmark = pytest.mark.unit


def _record(**overrides) -> RequestRecord:
    data = {
        "id": "rec-1",
        "timestamp": datetime(2023, 6, 15, 14, 30, 0, 123000, tzinfo=timezone.utc),
        "origin": "127.0.0.1",
        "method": "POST",
        "path": "/webhook/x",
        "headers": {"content-type": "application/json"},
        "body": '{"a":1}',
        "content_type": "application/json",
        "body_size": 7,
    }
    data.update(overrides)
    return RequestRecord(**data)


class TestRequestRecord:
    """Tests for the RequestRecord value object."""

    def test_valid_record(self):
        record = _record()
        assert record.body_size == 7
        assert record.content_type == "application/json"

    def test_record_is_immutable(self):
        record = _record()
        with pytest.raises(ValidationError):
            record.body = "changed"

    def test_body_size_must_match_utf8_length(self):
        with pytest.raises(ValidationError, match="body_size"):
            _record(body="héllo", body_size=5)

    def test_body_size_counts_bytes_not_characters(self):
        record = _record(body="héllo", body_size=6)
        assert record.body_size == byte_length("héllo") == 6

    def test_rejects_unaccepted_method(self):
        with pytest.raises(ValidationError):
            _record(method="GET")

    def test_naive_timestamp_is_treated_as_utc(self):
        record = _record(timestamp=datetime(2023, 1, 1, 12, 0, 0))
        assert record.timestamp.tzinfo is not None
        assert record.timestamp == datetime(2023, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_serializes_with_original_keys(self):
        data = json.loads(_record().model_dump_json(by_alias=True))
        assert data["ip"] == "127.0.0.1"
        assert data["contentType"] == "application/json"
        assert data["bodySize"] == 7
        assert data["timestamp"].startswith("2023-06-15T14:30:00.123")

    def test_accepts_alias_keys(self):
        record = RequestRecord.model_validate(
            {
                "id": "rec-2",
                "timestamp": "2023-01-01T10:00:00Z",
                "ip": "10.0.0.1",
                "method": "PUT",
                "path": "/p",
                "headers": {},
                "body": "",
                "bodySize": 0,
            }
        )
        assert record.origin == "10.0.0.1"
        assert record.content_type is None


class TestStoreFile:
    """Tests for the persisted aggregate."""

    def test_create_has_zeroed_counters(self):
        store_file = StoreFile.create()
        assert store_file.records == []
        assert store_file.metadata.total_received_count == 0
        assert store_file.metadata.schema_version == SCHEMA_VERSION

    def test_json_round_trip_preserves_records(self):
        store_file = StoreFile.create()
        store_file.records.append(_record())
        store_file.metadata.total_received_count = 1

        restored = StoreFile.model_validate_json(store_file.to_json())

        assert restored.records == [_record()]
        assert restored.records[0].timestamp == _record().timestamp
        assert restored.metadata.total_received_count == 1

    def test_document_shape(self):
        data = json.loads(StoreFile.create().to_json())
        assert set(data) == {"metadata", "requests"}
        assert set(data["metadata"]) == {"version", "lastCleanup", "totalRequestsReceived"}

    def test_find(self):
        store_file = StoreFile(records=[_record(), _record(id="rec-2")])
        assert store_file.find("rec-2").id == "rec-2"
        assert store_file.find("missing") is None

    def test_metadata_count_cannot_go_negative(self):
        metadata = StoreMetadata()
        with pytest.raises(ValidationError):
            metadata.total_received_count = -1
