"""
Integration tests for backend/capture/listener.py

These start uvicorn on 127.0.0.1 and talk to it over real sockets with httpx.
Persistence runs after the response is sent, so store assertions poll.
"""

import socket
import time

import httpx
import pytest

from backend.capture import (
    AlreadyRunningError,
    CaptureListener,
    NotRunningError,
    PortUnavailableError,
)
from backend.settings import ListenerConfig
from tests.fakes import SlowRequestStore

pytestmark = pytest.mark.integration


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def _port_is_free(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind(("127.0.0.1", port))
        except OSError:
            return False
    return True


class TestLifecycle:
    """Start, stop and status reporting."""

    def test_start_binds_preferred_port(self, listener, free_port):
        port = listener.start()

        assert port == free_port
        assert listener.is_running()
        assert listener.get_port() == free_port
        assert listener.url == f"http://127.0.0.1:{free_port}"

    def test_stop_releases_port(self, listener):
        port = listener.start()
        listener.stop()

        assert not listener.is_running()
        assert listener.get_port() is None
        assert _wait_for(lambda: _port_is_free(port))

    def test_stop_is_idempotent(self, listener):
        listener.stop()
        listener.start()
        listener.stop()
        listener.stop()
        assert not listener.is_running()

    def test_start_twice_raises(self, listener):
        listener.start()
        with pytest.raises(AlreadyRunningError):
            listener.start()
        assert listener.is_running()

    def test_can_start_again_after_stop(self, listener):
        first = listener.start()
        listener.stop()
        second = listener.start()
        assert listener.is_running()
        assert second >= first

    def test_restart_requires_running_listener(self, listener):
        with pytest.raises(NotRunningError):
            listener.restart()

    def test_restart_applies_new_port(self, listener, free_port):
        listener.start()
        new_port = free_port + 1 if _port_is_free(free_port + 1) else free_port
        new_config = listener.config.model_copy(update={"port": new_port})

        port = listener.restart(new_config)

        assert listener.is_running()
        assert port >= new_port
        assert listener.config.port == new_port


class TestPortSelection:
    """Behaviour when the preferred port is taken."""

    def test_auto_find_moves_up(self, occupied_port, store):
        config = ListenerConfig(port=occupied_port, auto_find_port=True)
        listener = CaptureListener(config, store, shutdown_timeout=1.0)
        try:
            port = listener.start()
            assert port > occupied_port
            assert port <= occupied_port + 100
        finally:
            listener.stop()

    def test_without_auto_find_fails(self, occupied_port, store):
        config = ListenerConfig(port=occupied_port, auto_find_port=False)
        listener = CaptureListener(config, store, shutdown_timeout=1.0)

        with pytest.raises(PortUnavailableError) as exc_info:
            listener.start()

        assert exc_info.value.port == occupied_port
        assert not listener.is_running()

    def test_explicit_arguments_override_config(self, occupied_port, listener):
        with pytest.raises(PortUnavailableError):
            listener.start(port=occupied_port, auto_find_port=False)
        assert not listener.is_running()


class TestCaptureOverHttp:
    """End-to-end request capture."""

    def test_post_is_answered_and_stored(self, listener, store):
        listener.start()

        response = httpx.post(
            f"{listener.url}/webhook/x",
            content=b'{"a":1}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 201
        assert response.text == "captured"
        assert _wait_for(lambda: store.get_request_count() == 1)

        record = store.get_requests()[0]
        assert record.method == "POST"
        assert record.path == "/webhook/x"
        assert record.body_size == 7
        assert record.origin == "127.0.0.1"

    def test_get_is_not_stored(self, listener, store):
        listener.start()

        response = httpx.get(f"{listener.url}/webhook")

        assert response.status_code == 404
        assert response.json() == {"error": "Method not allowed"}
        time.sleep(0.2)
        assert store.get_request_count() == 0

    def test_delete_gets_404_body(self, listener):
        listener.start()

        response = httpx.delete(f"{listener.url}/webhook")

        assert response.status_code == 404
        assert response.json() == {"error": "Method not allowed"}

    def test_encoded_path_is_stored_as_sent(self, listener, store):
        listener.start()

        response = httpx.put(f"{listener.url}/webhook/a%20b%2Fc?x=1", content="")

        assert response.status_code == 201
        assert _wait_for(lambda: store.get_request_count() == 1)
        assert store.get_requests()[0].path == "/webhook/a%20b%2Fc?x=1"

    def test_config_update_without_restart(self, listener):
        listener.start()
        listener.update_config(listener.config.model_copy(update={"response_code": 200}))

        response = httpx.put(f"{listener.url}/", content="x")

        assert response.status_code == 200

    def test_records_survive_listener_restart(self, listener, store):
        listener.start()
        httpx.post(f"{listener.url}/one", content="1")
        assert _wait_for(lambda: store.get_request_count() == 1)

        listener.stop()
        listener.start()
        httpx.post(f"{listener.url}/two", content="2")

        assert _wait_for(lambda: store.get_request_count() == 2)
        assert [r.path for r in store.get_requests()] == ["/one", "/two"]

    def test_detached_store_records_nothing(self, listener, store):
        listener.set_store(None)
        listener.start()

        response = httpx.post(f"{listener.url}/", content="x")

        assert response.status_code == 201
        time.sleep(0.2)
        assert store.get_request_count() == 0


class TestSlowPeers:
    """Slow clients and slow storage do not hold the listener hostage."""

    def test_stop_is_bounded_with_hung_client(self, listener):
        port = listener.start()
        hung = socket.create_connection(("127.0.0.1", port))
        try:
            hung.sendall(
                b"POST /hook HTTP/1.1\r\n"
                b"Host: 127.0.0.1\r\n"
                b"Content-Length: 100\r\n"
                b"\r\n"
                b"abc"
            )
            time.sleep(0.2)

            started = time.monotonic()
            listener.stop()
            elapsed = time.monotonic() - started
        finally:
            hung.close()

        assert not listener.is_running()
        assert elapsed < 5.0

    def test_response_does_not_wait_for_slow_store(self, listener):
        slow_store = SlowRequestStore(delay=2.0)
        listener.set_store(slow_store)
        listener.start()

        started = time.monotonic()
        response = httpx.post(f"{listener.url}/slow", content="payload")
        elapsed = time.monotonic() - started

        assert response.status_code == 201
        assert elapsed < 1.0
        assert _wait_for(lambda: slow_store.get_request_count() == 1, timeout=5.0)
