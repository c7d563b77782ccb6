"""Fixtures for tests that bind real loopback sockets."""

import socket
from typing import Iterator

import pytest

from backend.capture import CaptureListener
from backend.settings import ListenerConfig
from infrastructure.storage import FileRequestStore


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def free_port() -> int:
    """A port that was free a moment ago (ephemeral range, so >= 1024)."""
    return _free_port()


@pytest.fixture
def occupied_port() -> Iterator[int]:
    """A port held by another listening socket for the duration of the test."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


@pytest.fixture
def store(tmp_path) -> FileRequestStore:
    return FileRequestStore(tmp_path / "storage", max_requests=10)


@pytest.fixture
def listener(free_port, store) -> Iterator[CaptureListener]:
    """A stopped listener; always stopped again at teardown."""
    config = ListenerConfig(
        port=free_port,
        auto_find_port=True,
        response_code=201,
        response_body="captured",
    )
    capture_listener = CaptureListener(config, store, shutdown_timeout=1.0)
    try:
        yield capture_listener
    finally:
        capture_listener.stop()
