"""Build RequestRecords from raw request parts.

Header values arrive either as (name, value) pairs, possibly repeating a
name, or as a mapping whose values are a string or a list of strings. They
are flattened here, once, into ``dict[str, str]`` with lower-cased names so
nothing past this point deals with multi-valued headers.
"""

import threading
import uuid
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence, Tuple, Union

from domain.models import ACCEPTED_METHODS, RequestRecord, byte_length, utc_now

HEADER_VALUE_SEPARATOR = ", "

HeaderValue = Union[str, Sequence[str]]
RawHeaders = Union[Mapping[str, HeaderValue], Iterable[Tuple[str, str]]]


class MalformedRequestError(Exception):
    """The inbound call cannot be turned into a record."""


class PayloadTooLargeError(MalformedRequestError):
    """The request body exceeds the configured size bound."""

    def __init__(self, limit: int, size: Optional[int] = None):
        self.limit = limit
        self.size = size
        detail = f"{size} bytes" if size is not None else "body"
        super().__init__(f"Request {detail} exceeds the {limit} byte limit")


class CaptureClock:
    """Hands out capture timestamps that never go backwards."""

    def __init__(self):
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = utc_now()
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
            return current


def flatten_headers(headers: RawHeaders) -> dict[str, str]:
    """Lower-case header names and join repeated values with ", "."""
    if isinstance(headers, Mapping):
        pairs = []
        for name, value in headers.items():
            if isinstance(value, str):
                pairs.append((name, value))
            elif value is not None:
                pairs.extend((name, str(v)) for v in value)
    else:
        pairs = list(headers)

    collected: dict[str, list[str]] = {}
    for name, value in pairs:
        collected.setdefault(name.lower(), []).append(value)
    return {name: HEADER_VALUE_SEPARATOR.join(values) for name, values in collected.items()}


def decode_body(body: Union[bytes, str, None]) -> str:
    """Payload as text, regardless of the declared charset."""
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    return body.decode("utf-8", errors="replace")


def create_request_record(
    method: str,
    path: str,
    headers: RawHeaders,
    body: Union[bytes, str, None],
    origin: Optional[str],
    *,
    timestamp: Optional[datetime] = None,
    record_id: Optional[str] = None,
) -> RequestRecord:
    """
    Create a RequestRecord for an accepted call.

    Raises:
        MalformedRequestError: The method is not one of the accepted verbs
    """
    method = method.upper()
    if method not in ACCEPTED_METHODS:
        raise MalformedRequestError(f"Unsupported HTTP method: {method}")

    flat_headers = flatten_headers(headers)
    text = decode_body(body)

    return RequestRecord(
        id=record_id or str(uuid.uuid4()),
        timestamp=timestamp or utc_now(),
        origin=origin or "unknown",
        method=method,
        path=path or "/",
        headers=flat_headers,
        body=text,
        content_type=flat_headers.get("content-type"),
        body_size=byte_length(text),
    )
