"""
Storage Interfaces (Ports) for the Webhook Toolkit.

This package defines abstract interfaces that decouple capture and
presentation logic from the storage backend. Implementations are provided
in the infrastructure layer.

Architecture follows the Ports & Adapters (Hexagonal) pattern:
- Ports: Abstract interfaces defined here (what the application needs)
- Adapters: Concrete implementations in infrastructure/ (how it's provided)

Usage:
    from application.ports import RequestStore

    class RequestHistory:
        def __init__(self, store: RequestStore):
            self.store = store
"""

from application.ports.request_store import (
    ChangeListener,
    CorruptStateError,
    PersistenceError,
    RequestStore,
    StoreChange,
    StoreChangeKind,
)

__all__ = [
    "ChangeListener",
    "CorruptStateError",
    "PersistenceError",
    "RequestStore",
    "StoreChange",
    "StoreChangeKind",
]
