"""Capture listener for inbound webhook calls.

Usage::

    from backend.capture import CaptureListener

    listener = CaptureListener(settings.listener_config(), store)
    port = listener.start()

Only POST and PUT calls are recorded; every other method gets 404.
The configured response is sent before the record is written, and
storage failures are logged without affecting the caller.
"""

from .app import create_capture_app, persist_record
from .factory import (
    CaptureClock,
    MalformedRequestError,
    PayloadTooLargeError,
    create_request_record,
    decode_body,
    flatten_headers,
)
from .listener import (
    MAX_PORT_ATTEMPTS,
    AlreadyRunningError,
    CaptureListener,
    NotRunningError,
    PortUnavailableError,
)

__all__ = [
    "MAX_PORT_ATTEMPTS",
    "AlreadyRunningError",
    "CaptureClock",
    "CaptureListener",
    "MalformedRequestError",
    "NotRunningError",
    "PayloadTooLargeError",
    "PortUnavailableError",
    "create_capture_app",
    "create_request_record",
    "decode_body",
    "flatten_headers",
    "persist_record",
]
