"""
JSON File Request Store Implementation.

This module implements the RequestStore protocol on top of a single JSON
document (``webhook-requests.json``) inside a workspace-scoped directory.

Every mutation reads the full document, applies the change in memory and
writes it back with tempfile + os.replace(), so the canonical file is never
observed half-written. Mutations are serialized by an in-process lock;
reads take no lock and rely on the atomic replace.

An unparseable document is copied aside as a timestamped backup and
replaced with a fresh one instead of failing the caller.
"""
import logging
import os
import shutil
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

from application.ports.request_store import (
    ChangeListener,
    CorruptStateError,
    PersistenceError,
    StoreChange,
    StoreChangeKind,
)
from domain.models import RequestRecord, StoreFile, StoreMetadata, utc_now

logger = logging.getLogger(__name__)

STORAGE_FILENAME = "webhook-requests.json"
DEFAULT_MAX_REQUESTS = 100


class FileRequestStore:
    """
    File-backed implementation of RequestStore.

    Usage:
        store = FileRequestStore(Path(".webhook-toolkit"), max_requests=100)
        store.save_request(record)
        store.get_requests()
    """

    def __init__(
        self,
        storage_dir: Union[str, Path],
        max_requests: int = DEFAULT_MAX_REQUESTS,
        *,
        filename: str = STORAGE_FILENAME,
    ):
        if max_requests < 1:
            raise ValueError(f"max_requests must be at least 1, got {max_requests}")
        self._storage_dir = Path(storage_dir)
        self._storage_path = self._storage_dir / filename
        self._max_requests = max_requests
        # Reentrant: corruption recovery during a mutation re-acquires it.
        self._write_lock = threading.RLock()
        self._listeners: List[ChangeListener] = []
        self._listeners_lock = threading.Lock()

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def set_max_requests(self, max_requests: int) -> int:
        """
        Change the retention bound and trim immediately if it shrank.

        Returns:
            Number of records evicted by the change
        """
        if max_requests < 1:
            raise ValueError(f"max_requests must be at least 1, got {max_requests}")
        self._max_requests = max_requests
        return self.cleanup()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_requests(self) -> List[RequestRecord]:
        return list(self._load().records)

    def get_request(self, record_id: str) -> Optional[RequestRecord]:
        return self._load().find(record_id)

    def get_request_count(self) -> int:
        return len(self._load().records)

    def get_metadata(self) -> StoreMetadata:
        return self._load().metadata.model_copy()

    # =========================================================================
    # Mutations
    # =========================================================================

    def save_request(self, record: RequestRecord) -> None:
        with self._write_lock:
            store_file = self._load()
            if store_file.find(record.id) is not None:
                raise ValueError(f"Request {record.id} is already stored")
            store_file.records.append(record)
            store_file.metadata.total_received_count += 1
            evicted = self._evict_excess(store_file)
            self._write(store_file)

        logger.debug("Saved request %s (%d evicted)", record.id, evicted)
        self._notify(StoreChange(StoreChangeKind.SAVED, record.id, evicted))

    def delete_request(self, record_id: str) -> bool:
        with self._write_lock:
            store_file = self._load()
            remaining = [r for r in store_file.records if r.id != record_id]
            if len(remaining) == len(store_file.records):
                return False
            store_file.records = remaining
            self._write(store_file)

        logger.info("Deleted request %s", record_id)
        self._notify(StoreChange(StoreChangeKind.DELETED, record_id))
        return True

    def clear_all(self) -> None:
        with self._write_lock:
            store_file = self._load()
            store_file.records = []
            self._write(store_file)

        logger.info("Cleared all stored requests")
        self._notify(StoreChange(StoreChangeKind.CLEARED))

    def cleanup(self) -> int:
        with self._write_lock:
            store_file = self._load()
            evicted = self._evict_excess(store_file)
            if evicted == 0:
                return 0
            self._write(store_file)

        self._notify(StoreChange(StoreChangeKind.CLEANED_UP, evicted=evicted))
        return evicted

    def _evict_excess(self, store_file: StoreFile) -> int:
        """Drop the oldest records (by insertion order) beyond the bound."""
        excess = len(store_file.records) - self._max_requests
        if excess <= 0:
            return 0
        del store_file.records[:excess]
        store_file.metadata.last_cleanup_time = utc_now()
        logger.info(
            "Evicted %d oldest request(s) to keep %d", excess, self._max_requests
        )
        return excess

    # =========================================================================
    # Change notification
    # =========================================================================

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: StoreChange) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                logger.exception("Store change listener failed for %s", change.kind.value)

    # =========================================================================
    # Disk I/O
    # =========================================================================

    def _read_raw(self) -> Optional[bytes]:
        try:
            return self._storage_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(
                f"Failed to read storage file {self._storage_path}: {e}"
            ) from e

    def _parse(self, raw: bytes) -> StoreFile:
        try:
            return StoreFile.model_validate_json(raw)
        except ValueError as e:
            raise CorruptStateError(str(e)) from e

    def _load(self) -> StoreFile:
        raw = self._read_raw()
        if raw is None or not raw.strip():
            return StoreFile.create()
        try:
            return self._parse(raw)
        except CorruptStateError as e:
            return self._recover(e)

    def _recover(self, error: CorruptStateError) -> StoreFile:
        """Back up an unreadable document and replace it with a fresh one."""
        with self._write_lock:
            # Another thread may have recovered while we waited for the lock.
            raw = self._read_raw()
            if raw is None or not raw.strip():
                return StoreFile.create()
            try:
                return self._parse(raw)
            except CorruptStateError:
                pass

            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
            backup_path = self._storage_path.with_name(
                f"{self._storage_path.name}.corrupt-{stamp}"
            )
            try:
                shutil.copy2(self._storage_path, backup_path)
            except OSError:
                logger.exception(
                    "Could not back up corrupt storage file %s", self._storage_path
                )
                backup_path = None

            logger.warning(
                "Storage file %s is corrupt (%s); backed up to %s and starting fresh",
                self._storage_path,
                str(error).splitlines()[0] if str(error) else "unparseable",
                backup_path,
            )
            fresh = StoreFile.create()
            if backup_path is not None:
                self._write(fresh)
            return fresh

    def _write(self, store_file: StoreFile) -> None:
        """
        Persist the document atomically.

        Raises:
            PersistenceError: Directory creation, write, or replace failed
        """
        try:
            self._storage_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(
                f"Cannot create storage directory {self._storage_dir}: {e}"
            ) from e

        payload = store_file.to_json()
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=str(self._storage_dir),
                prefix=f".{self._storage_path.stem}-",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as tmp_file:
                tmp_path = tmp_file.name
                tmp_file.write(payload)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())

            os.replace(tmp_path, str(self._storage_path))
        except OSError as e:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            raise PersistenceError(
                f"Failed to write storage file {self._storage_path}: {e}"
            ) from e
