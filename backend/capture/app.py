"""FastAPI application that captures inbound calls.

Every path and method is routed to a single endpoint. POST and PUT calls
are turned into RequestRecords and answered with the configured response;
anything else gets 404 and is not recorded.

Persistence happens in a background task that runs after the response has
been sent, so storage latency or failures never reach the caller.

Usage::

    app = create_capture_app(
        get_config=lambda: config,
        get_store=lambda: store,
    )
"""

import logging
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from application.ports import RequestStore
from backend.settings import ListenerConfig
from domain.models import ACCEPTED_METHODS, RequestRecord

from .factory import (
    CaptureClock,
    MalformedRequestError,
    PayloadTooLargeError,
    create_request_record,
)

logger = logging.getLogger(__name__)

# Computed by the server from the actual body; configured values are ignored.
_SERVER_MANAGED_HEADERS = {"content-length", "transfer-encoding"}

# Every verb is routed to the endpoint, which answers the unaccepted ones itself.
ROUTED_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "TRACE"]


class CaptureEndpoint:
    """Request handler bound to the listener's current config and store."""

    def __init__(
        self,
        get_config: Callable[[], ListenerConfig],
        get_store: Callable[[], Optional[RequestStore]],
        clock: Optional[CaptureClock] = None,
    ):
        self._get_config = get_config
        self._get_store = get_store
        self._clock = clock or CaptureClock()

    async def handle(self, request: Request) -> Response:
        # Snapshot: a config swap mid-request does not affect this call.
        config = self._get_config()

        if request.method not in ACCEPTED_METHODS:
            logger.debug("Ignoring %s %s: method not accepted", request.method, request.url.path)
            return JSONResponse({"error": "Method not allowed"}, status_code=404)

        logger.info("Request received: %s %s", request.method, request.url.path)

        try:
            body = await read_body(request, config.max_body_bytes)
        except PayloadTooLargeError as e:
            logger.warning("Rejected %s %s: %s", request.method, request.url.path, e)
            return JSONResponse({"error": "Payload too large"}, status_code=413)
        except ClientDisconnect:
            logger.warning(
                "Client disconnected while sending %s %s; nothing captured",
                request.method,
                request.url.path,
            )
            return Response(status_code=400)

        try:
            record = create_request_record(
                request.method,
                request_target(request),
                request.headers.items(),
                body,
                request.client.host if request.client else None,
                timestamp=self._clock.now(),
            )
        except (MalformedRequestError, ValueError) as e:
            logger.warning("Could not capture %s %s: %s", request.method, request.url.path, e)
            return JSONResponse({"error": "Malformed request"}, status_code=400)

        response = build_configured_response(config)

        store = self._get_store()
        if store is None:
            logger.warning("Storage not configured, request %s will not be saved", record.id)
        else:
            response.background = BackgroundTask(persist_record, store, record)
        return response


async def read_body(request: Request, max_bytes: int) -> bytes:
    """
    Read the request body, enforcing the size bound.

    Raises:
        PayloadTooLargeError: Declared or streamed size exceeds ``max_bytes``
        ClientDisconnect: The client went away mid-body
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLargeError(max_bytes, int(declared))

    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_bytes:
            raise PayloadTooLargeError(max_bytes)
        chunks.append(chunk)
    return b"".join(chunks)


def request_target(request: Request) -> str:
    """Path plus query string, as the caller sent it (not percent-decoded)."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        target = raw_path.decode("latin-1").partition("?")[0]
    else:
        target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return target


def build_configured_response(config: ListenerConfig) -> Response:
    """Response with the configured status, headers and body."""
    headers = {}
    for name, value in config.response_headers.items():
        if name.lower() in _SERVER_MANAGED_HEADERS:
            logger.warning("Ignoring configured response header %s", name)
            continue
        headers[name] = value

    body = config.response_body
    if config.response_code == 204:
        body = ""
    if body and not any(name.lower() == "content-type" for name in headers):
        headers["content-type"] = "text/plain"

    return Response(content=body, status_code=config.response_code, headers=headers)


async def persist_record(store: RequestStore, record: RequestRecord) -> None:
    """Save a captured record, then trim the store. Failures are only logged."""
    try:
        await run_in_threadpool(store.save_request, record)
    except Exception:
        logger.exception("Error capturing request %s to storage", record.id)
        return

    logger.info("Request captured: %s %s (ID: %s)", record.method, record.path, record.id)

    try:
        await run_in_threadpool(store.cleanup)
    except Exception:
        logger.exception("Error during storage cleanup")


def create_capture_app(
    get_config: Callable[[], ListenerConfig],
    get_store: Callable[[], Optional[RequestStore]],
    clock: Optional[CaptureClock] = None,
) -> FastAPI:
    """
    Create the capture application.

    Args:
        get_config: Returns the active ListenerConfig (read once per request)
        get_store: Returns the current store, or None for log-only capture
        clock: Timestamp source shared by all requests of one listener
    """
    app = FastAPI(
        title="Webhook Toolkit Capture",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    endpoint = CaptureEndpoint(get_config, get_store, clock)
    app.add_route(
        "/{path:path}",
        endpoint.handle,
        methods=ROUTED_METHODS,
        include_in_schema=False,
    )
    return app
