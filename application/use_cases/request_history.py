"""
Request History Use Case.

Presentation-facing view of the captured requests: what a log panel lists,
how each entry is labelled, and the detail document opened for one record.
The presentation layer never writes records; it reads, deletes and clears
through this use case and refreshes when the store reports a change.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from application.ports import ChangeListener, PersistenceError, RequestStore
from domain.models import RequestRecord

logger = logging.getLogger(__name__)


@dataclass
class ListRequestsResult:
    """Result of listing captured requests."""
    success: bool
    requests: List[RequestRecord] = field(default_factory=list)
    count: int = 0
    error: Optional[str] = None


@dataclass
class DeleteRequestResult:
    """Result of deleting a captured request."""
    success: bool
    deleted: bool = False
    error: Optional[str] = None


class RequestHistory:
    """
    Use case for browsing and managing captured requests.

    Storage failures are reported in the result objects instead of raised,
    so a view can render an empty list rather than an error page.
    """

    def __init__(self, store: RequestStore):
        """
        Initialize with required dependencies.

        Args:
            store: Store holding the captured requests
        """
        self._store = store

    def list_requests(self) -> ListRequestsResult:
        """
        List retained requests, newest first.

        Returns:
            ListRequestsResult with the records or the storage error
        """
        try:
            records = self._store.get_requests()
        except PersistenceError as e:
            logger.error("Failed to load webhook requests: %s", e)
            return ListRequestsResult(success=False, error=str(e))

        # Reversed first so equal timestamps stay newest-inserted first.
        records = list(reversed(records))
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return ListRequestsResult(success=True, requests=records, count=len(records))

    def get(self, record_id: str) -> Optional[RequestRecord]:
        try:
            return self._store.get_request(record_id)
        except PersistenceError as e:
            logger.error("Failed to get request by ID %s: %s", record_id, e)
            return None

    def count(self) -> int:
        return self._store.get_request_count()

    def has_requests(self) -> bool:
        try:
            return self._store.get_request_count() > 0
        except PersistenceError as e:
            logger.error("Failed to check for requests: %s", e)
            return False

    def delete(self, record_id: str) -> DeleteRequestResult:
        """
        Delete one request. Unknown ids succeed with ``deleted=False``.

        Returns:
            DeleteRequestResult describing the outcome
        """
        try:
            deleted = self._store.delete_request(record_id)
        except PersistenceError as e:
            return DeleteRequestResult(
                success=False, error=f"Failed to delete request: {e}"
            )
        return DeleteRequestResult(success=True, deleted=deleted)

    def clear(self) -> None:
        """Remove every captured request (raises PersistenceError on failure)."""
        self._store.clear_all()

    def on_change(self, callback: ChangeListener) -> Callable[[], None]:
        """Call ``callback`` after captures, deletions, clears and evictions."""
        return self._store.subscribe(callback)

    # =========================================================================
    # Presentation helpers
    # =========================================================================

    @staticmethod
    def label(record: RequestRecord) -> str:
        """One-line entry: ``[MM/DD HH:MM:SS] [METHOD] path (origin)``."""
        return (
            f"[{_format_timestamp(record.timestamp)}] [{record.method}] "
            f"{record.path} ({record.origin})"
        )

    @staticmethod
    def tooltip(record: RequestRecord) -> str:
        lines = [
            f"Method: {record.method}",
            f"Path: {record.path}",
            f"IP: {record.origin}",
            f"Timestamp: {record.timestamp.astimezone().strftime('%Y-%m-%d %H:%M:%S')}",
            f"Body Size: {record.body_size} bytes",
        ]
        if record.content_type:
            lines.append(f"Content-Type: {record.content_type}")
        if record.headers:
            lines.append(f"Headers: {len(record.headers)} header(s)")
        return "\n".join(lines)

    @staticmethod
    def format_details(record: RequestRecord) -> str:
        """Pretty JSON document describing one request."""
        details = {
            "id": record.id,
            "timestamp": record.timestamp.isoformat(),
            "method": record.method,
            "path": record.path,
            "ip": record.origin,
            "contentType": record.content_type or "Not specified",
            "bodySize": f"{record.body_size} bytes",
            "headers": record.headers,
            "body": record.body or "(empty)",
        }
        return json.dumps(details, indent=2, ensure_ascii=False)


def _format_timestamp(timestamp: datetime) -> str:
    # Local time, as shown in the log view.
    return timestamp.astimezone().strftime("%m/%d %H:%M:%S")
