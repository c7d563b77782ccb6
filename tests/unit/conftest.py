"""Pytest fixtures for store, capture and history unit tests."""

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import pytest

from backend.settings import ListenerConfig
from domain.models import RequestRecord, byte_length
from infrastructure.storage import FileRequestStore
from tests.fakes import FakeRequestStore

BASE_TIME = datetime(2023, 1, 1, 10, 0, 0, tzinfo=timezone.utc)

RecordFactory = Callable[..., RequestRecord]


@pytest.fixture
def make_record() -> RecordFactory:
    """Factory for valid records; successive calls get later timestamps."""
    counter = {"n": 0}

    def _make(
        record_id: Optional[str] = None,
        *,
        body: str = "data",
        method: str = "POST",
        path: str = "/webhook",
        headers: Optional[dict] = None,
        timestamp: Optional[datetime] = None,
        origin: str = "192.168.1.1",
    ) -> RequestRecord:
        n = counter["n"]
        counter["n"] += 1
        headers = headers or {}
        return RequestRecord(
            id=record_id or f"test-id-{n}-{uuid.uuid4().hex[:6]}",
            timestamp=timestamp or BASE_TIME + timedelta(seconds=n),
            origin=origin,
            method=method,
            path=path,
            headers=headers,
            body=body,
            content_type=headers.get("content-type"),
            body_size=byte_length(body),
        )

    return _make


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    """Storage directory that does not exist yet."""
    return tmp_path / "storage" / "workspace"


@pytest.fixture
def file_store(storage_dir: Path) -> FileRequestStore:
    """File store with a small retention bound."""
    return FileRequestStore(storage_dir, max_requests=3)


@pytest.fixture
def fake_store() -> FakeRequestStore:
    return FakeRequestStore(max_requests=100)


@pytest.fixture
def listener_config() -> ListenerConfig:
    return ListenerConfig(
        port=3001,
        auto_find_port=True,
        response_code=201,
        response_headers={"Content-Type": "application/json"},
        response_body='{"ok": true}',
        max_requests=100,
        max_body_bytes=1024,
    )
