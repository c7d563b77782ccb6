"""
Process context factory.

The store, listener and history are explicit instances owned by whoever
calls create_context(); nothing is kept in module-level globals.

Usage:
    from backend.main import create_context
    from backend.settings import Settings

    # Default context (uses get_settings())
    context = create_context()
    port = context.listener.start()

    # Test context with custom settings
    test_settings = Settings(environment="test", storage_dir=tmp_path, _env_file=None)
    context = create_context(settings=test_settings)
"""

import logging
from dataclasses import dataclass
from typing import Optional

import sentry_sdk

from application.use_cases import RequestHistory
from backend.capture import CaptureListener
from backend.settings import Settings, get_settings
from infrastructure.storage import FileRequestStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a running process needs, wired together."""

    settings: Settings
    store: FileRequestStore
    listener: CaptureListener
    history: RequestHistory

    def apply_settings(self, settings: Settings) -> bool:
        """
        Apply changed settings to the running instances.

        The response config and retention bound take effect immediately.

        Returns:
            True if the listener is running and the port settings changed,
            meaning a restart is needed for them to apply
        """
        previous = self.settings
        self.settings = settings
        self.listener.update_config(settings.listener_config())
        if settings.max_requests != self.store.max_requests:
            self.store.set_max_requests(settings.max_requests)

        logger.info("Webhook configuration changed")
        return self.listener.is_running() and (
            previous.server_port != settings.server_port
            or previous.auto_find_port != settings.auto_find_port
        )

    def shutdown(self) -> None:
        """Stop the listener if it is running."""
        if self.listener.is_running():
            try:
                self.listener.stop()
            except Exception:
                logger.exception("Error stopping webhook server during shutdown")


def create_context(settings: Optional[Settings] = None) -> AppContext:
    """
    Create and wire the store, listener and history.

    Args:
        settings: Optional Settings instance. If not provided, uses get_settings()
                  which loads from environment variables.

    Returns:
        AppContext with a stopped listener attached to the store
    """
    if settings is None:
        settings = get_settings()

    _init_sentry(settings)

    store = FileRequestStore(settings.storage_dir, max_requests=settings.max_requests)
    listener = CaptureListener(
        settings.listener_config(),
        store,
        shutdown_timeout=settings.shutdown_timeout,
    )
    history = RequestHistory(store)

    logger.debug("Request store at %s", store.storage_path)
    return AppContext(settings=settings, store=store, listener=listener, history=history)


def _init_sentry(settings: Settings) -> None:
    """Initialize Sentry SDK if DSN is configured."""
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.0,
        )
        logger.info("Sentry initialized for webhook-toolkit")
