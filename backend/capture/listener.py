"""Capture listener lifecycle.

Binds a loopback TCP port (optionally searching upward when the preferred
port is taken), serves the capture app with uvicorn in a background thread,
and shuts it down with a bounded wait.

Usage::

    listener = CaptureListener(config, store)
    port = listener.start()
    ...
    listener.stop()
"""

import errno
import logging
import socket
import threading
import time
from typing import Optional

import uvicorn

from application.ports import RequestStore
from backend.settings import ListenerConfig

from .app import create_capture_app
from .factory import CaptureClock

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
MAX_PORT_ATTEMPTS = 100
MAX_PORT = 65535
STARTUP_TIMEOUT_SECONDS = 10.0


class PortUnavailableError(Exception):
    """No port could be bound under the given flags."""

    def __init__(self, port: int, message: str):
        self.port = port
        super().__init__(message)


class AlreadyRunningError(Exception):
    """The listener is already serving."""


class NotRunningError(Exception):
    """The operation needs a running listener."""


def bind_loopback_socket(port: int) -> socket.socket:
    """
    Bind and listen on 127.0.0.1:port.

    Raises:
        OSError: The bind or listen failed (errno tells why)
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((LOOPBACK_HOST, port))
        # EADDRINUSE can surface here rather than at bind() with SO_REUSEADDR.
        sock.listen(socket.SOMAXCONN)
    except OSError:
        sock.close()
        raise
    return sock


class CaptureListener:
    """Loopback HTTP listener that records POST/PUT calls into a store."""

    def __init__(
        self,
        config: ListenerConfig,
        store: Optional[RequestStore] = None,
        *,
        shutdown_timeout: float = 5.0,
    ):
        self._config = config
        self._store = store
        self._shutdown_timeout = shutdown_timeout
        self._lock = threading.Lock()
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None
        self._socket: Optional[socket.socket] = None
        self._port: Optional[int] = None
        self.app = create_capture_app(
            get_config=lambda: self._config,
            get_store=lambda: self._store,
            clock=CaptureClock(),
        )

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def config(self) -> ListenerConfig:
        return self._config

    def update_config(self, config: ListenerConfig) -> None:
        """Replace the response/behaviour config without a restart."""
        self._config = config

    def set_store(self, store: Optional[RequestStore]) -> None:
        """Attach, swap, or detach (None) the storage sink."""
        self._store = store

    # =========================================================================
    # Status
    # =========================================================================

    def is_running(self) -> bool:
        return self._server is not None and self._port is not None

    def get_port(self) -> Optional[int]:
        return self._port

    @property
    def url(self) -> Optional[str]:
        if self._port is None:
            return None
        return f"http://{LOOPBACK_HOST}:{self._port}"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(
        self,
        port: Optional[int] = None,
        auto_find_port: Optional[bool] = None,
    ) -> int:
        """
        Start serving on the loopback interface.

        Args:
            port: Preferred port (defaults to the config's port)
            auto_find_port: Try port+1, port+2, ... when the port is in use
                (defaults to the config's flag)

        Returns:
            The port actually bound

        Raises:
            AlreadyRunningError: The listener is already serving
            PortUnavailableError: No port could be bound
        """
        if port is None:
            port = self._config.port
        if auto_find_port is None:
            auto_find_port = self._config.auto_find_port

        with self._lock:
            if self._server is not None:
                raise AlreadyRunningError(
                    f"Webhook server is already running on port {self._port}"
                )

            sock, bound_port = self._bind(port, auto_find_port)
            server = uvicorn.Server(
                uvicorn.Config(
                    self.app,
                    host=LOOPBACK_HOST,
                    port=bound_port,
                    lifespan="off",
                    log_config=None,
                    access_log=False,
                    # Record the socket peer, not X-Forwarded-For.
                    proxy_headers=False,
                    timeout_graceful_shutdown=max(1, int(self._shutdown_timeout)),
                )
            )
            thread = threading.Thread(
                target=server.run,
                kwargs={"sockets": [sock]},
                name=f"capture-listener-{bound_port}",
                daemon=True,
            )
            thread.start()

            if not self._wait_started(server, thread):
                server.should_exit = True
                thread.join(timeout=self._shutdown_timeout)
                sock.close()
                raise PortUnavailableError(
                    bound_port, f"Webhook server failed to start on port {bound_port}"
                )

            self._server = server
            self._thread = thread
            self._socket = sock
            self._port = bound_port

        logger.info("Webhook server started on http://%s:%d", LOOPBACK_HOST, bound_port)
        return bound_port

    def stop(self) -> None:
        """
        Stop serving and release the port.

        Waits up to ``shutdown_timeout`` for in-flight connections, then
        forces them closed. Calling stop() when not running does nothing.
        """
        with self._lock:
            server, thread, sock = self._server, self._thread, self._socket
            if server is None:
                return

            server.should_exit = True
            if thread is not None:
                thread.join(timeout=self._shutdown_timeout + 1)
                if thread.is_alive():
                    logger.warning("Forcing webhook server shutdown")
                    server.force_exit = True
                    thread.join(timeout=self._shutdown_timeout)
            if sock is not None:
                sock.close()

            self._server = None
            self._thread = None
            self._socket = None
            self._port = None

        logger.info("Webhook server stopped")

    def restart(self, config: Optional[ListenerConfig] = None) -> int:
        """
        Stop and start again, optionally with a new config.

        Raises:
            NotRunningError: The listener is not running
            PortUnavailableError: The restart could not bind a port
        """
        if not self.is_running():
            raise NotRunningError("Webhook server is not running")
        if config is not None:
            self.update_config(config)
        self.stop()
        return self.start()

    def _bind(self, port: int, auto_find_port: bool) -> tuple[socket.socket, int]:
        attempts = MAX_PORT_ATTEMPTS if auto_find_port else 1
        candidate = port
        last_error: Optional[OSError] = None

        for _ in range(attempts):
            if candidate > MAX_PORT:
                break
            try:
                return bind_loopback_socket(candidate), candidate
            except OSError as e:
                last_error = e
                if not auto_find_port or e.errno != errno.EADDRINUSE:
                    raise PortUnavailableError(
                        candidate, f"Cannot bind port {candidate}: {e}"
                    ) from e
                logger.info("Port %d is busy, trying port %d", candidate, candidate + 1)
                candidate += 1

        raise PortUnavailableError(
            port,
            f"Failed to find an available port starting from {port} "
            f"after {candidate - port} attempts. Last error: {last_error}",
        )

    @staticmethod
    def _wait_started(server: uvicorn.Server, thread: threading.Thread) -> bool:
        deadline = time.monotonic() + STARTUP_TIMEOUT_SECONDS
        while time.monotonic() < deadline:
            if server.started:
                return True
            if not thread.is_alive():
                return False
            time.sleep(0.01)
        return server.started
