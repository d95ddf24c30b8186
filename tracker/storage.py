"""
Key-value persistence backend (SQLite).

One row per key; values are JSON documents. The tracker keeps its whole
project collection under a single key and rewrites it on every mutation.
"""
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_DB = Path.home() / ".local" / "share" / "tracker" / "tracker.db"


class StorageError(Exception):
    """Raised when the backing database cannot be read or written."""
    pass


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class KeyValueStore:
    """SQLite-backed key-value store for serialized collections."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize store and create the table if needed."""
        if db_path is None:
            db_path = str(DEFAULT_DB)
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Cannot initialise store at {self.db_path}: {e}")
            raise StorageError(str(e)) from e

    def load(self, key: str) -> Optional[Any]:
        """Return the value last saved under key, or None if absent."""
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error loading {key!r}: {e}")
            raise StorageError(str(e)) from e

        if not row:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            logger.error(f"Stored value for {key!r} is not valid JSON, ignoring: {e}")
            return None

    def save(self, key: str, value: Any) -> None:
        """Replace the value under key in a single transaction."""
        payload = json.dumps(value, ensure_ascii=False)
        now = datetime.now(timezone.utc).isoformat()
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                """, (key, payload, now))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error saving {key!r}: {e}")
            raise StorageError(str(e)) from e

    def remove(self, key: str) -> None:
        """Delete key. Later loads return None."""
        try:
            with _connect(self.db_path) as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error removing {key!r}: {e}")
            raise StorageError(str(e)) from e


class DebouncedWriter:
    """
    Batches rapid saves into one write after a quiet period.

    Each schedule() supersedes the pending value and restarts the timer, so
    only the final state is written. A process that exits before the timer
    fires loses that last batch unless flush() is called first.
    """

    def __init__(self, store: KeyValueStore, delay_secs: float = 1.0):
        self.store = store
        self.delay_secs = delay_secs
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[tuple] = None  # (key, value)

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def schedule(self, key: str, value: Any) -> None:
        """Queue value for key, replacing any write still waiting."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (key, value)
            self._timer = threading.Timer(self.delay_secs, self._on_timer)
            self._timer.daemon = True
            self._timer.start()

    def _on_timer(self) -> None:
        try:
            self.flush()
        except StorageError as e:
            logger.warning(f"Debounced write failed, kept pending for the next flush: {e}")

    def flush(self) -> bool:
        """Write the pending value now. Returns True if anything was written."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            pending, self._pending = self._pending, None
        if pending is None:
            return False
        key, value = pending
        try:
            self.store.save(key, value)
        except StorageError:
            with self._lock:
                # A newer schedule() supersedes the failed value
                if self._pending is None:
                    self._pending = pending
            raise
        logger.debug(f"Flushed debounced write for {key!r}")
        return True

    def cancel(self) -> None:
        """Drop the pending write without saving it."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None
