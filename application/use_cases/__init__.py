"""
Application Use Cases for the Webhook Toolkit.

Use cases orchestrate the storage port for the presentation layer:
- Dependencies are injected via constructors for testability
- Use cases return domain models and result objects, not UI structures

Usage:
    from application.use_cases import RequestHistory

    history = RequestHistory(store)
    result = history.list_requests()
"""

from application.use_cases.request_history import (
    DeleteRequestResult,
    ListRequestsResult,
    RequestHistory,
)

__all__ = [
    "DeleteRequestResult",
    "ListRequestsResult",
    "RequestHistory",
]
