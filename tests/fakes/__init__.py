"""
Fake Store Implementations for Testing.

This package provides in-memory fake implementations of the RequestStore
interface for fast, isolated testing. No file system access required.

Usage:
    from tests.fakes import FakeRequestStore, create_request_store

    store = FakeRequestStore(max_requests=3)
    store = create_request_store(records=[record_a, record_b])
"""

from tests.fakes.request_store import (
    FailingRequestStore,
    FakeRequestStore,
    SlowRequestStore,
    create_request_store,
)

__all__ = [
    "FailingRequestStore",
    "FakeRequestStore",
    "SlowRequestStore",
    "create_request_store",
]
