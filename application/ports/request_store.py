"""
Request Store Interface (Port).

This module defines the contract for durable, size-bounded storage of
captured requests. The capture listener writes through ``save_request`` and
``cleanup``; the presentation layer only reads and manages (get, delete,
clear) and listens for changes through ``subscribe``.

Implementations may use a local JSON file, memory, or other backends.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol

from domain.models import RequestRecord, StoreMetadata


class PersistenceError(Exception):
    """Reading or writing the backing storage failed."""


class CorruptStateError(PersistenceError):
    """
    The persisted document could not be parsed.

    Stores recover from this condition themselves (backup and reset); it is
    never raised to callers.
    """


class StoreChangeKind(str, Enum):
    """What happened to the store."""

    SAVED = "saved"
    DELETED = "deleted"
    CLEARED = "cleared"
    CLEANED_UP = "cleaned_up"


@dataclass(frozen=True)
class StoreChange:
    """
    Change notification delivered to subscribers.

    Attributes:
        kind: Type of mutation that completed
        record_id: Affected record for SAVED/DELETED, None otherwise
        evicted: Number of records evicted by the same operation
    """

    kind: StoreChangeKind
    record_id: Optional[str] = None
    evicted: int = 0


ChangeListener = Callable[[StoreChange], None]


class RequestStore(Protocol):
    """
    Abstract interface for captured-request persistence.

    Records are kept in insertion order (oldest first). When more than
    ``max_requests`` are held, the oldest are evicted first regardless of
    their timestamps.
    """

    @property
    def max_requests(self) -> int:
        """Retention bound."""
        ...

    def save_request(self, record: RequestRecord) -> None:
        """
        Append a record, count it, and evict the oldest beyond the bound.

        Raises:
            PersistenceError: The store could not be written
        """
        ...

    def get_requests(self) -> List[RequestRecord]:
        """
        Get all retained records in insertion order.

        Returns:
            A new list; mutating it does not affect the store
        """
        ...

    def get_request(self, record_id: str) -> Optional[RequestRecord]:
        """
        Get a single record by id.

        Returns:
            The record, or None if unknown or deleted
        """
        ...

    def get_request_count(self) -> int:
        """Number of currently retained records."""
        ...

    def get_metadata(self) -> StoreMetadata:
        """Snapshot of the store metadata."""
        ...

    def delete_request(self, record_id: str) -> bool:
        """
        Remove a record if present. Unknown ids are not an error.

        Returns:
            True if a record was removed
        """
        ...

    def clear_all(self) -> None:
        """Remove every record, keeping the received counter and schema version."""
        ...

    def cleanup(self) -> int:
        """
        Evict the oldest records beyond the retention bound.

        Returns:
            Number of records evicted (0 when already within bounds)
        """
        ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            A callable that removes the listener
        """
        ...
