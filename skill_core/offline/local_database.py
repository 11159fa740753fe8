# =============================================================================
# skill_core/offline/local_database.py
# Local SQLite Cache for the Dataset Document and File Blobs
# =============================================================================
"""
LocalDatabase - SQLite-backed client cache.

Holds:
- one settings slot with the serialized dataset (offline-first reads)
- a blob table with uploaded file bytes keyed by id / storage path

Dataset reads never raise: a missing or corrupt slot is "no data".
Dataset writes never raise: the remote write is authoritative.
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Tuple
import logging

from skill_core.data.models import Dataset
from skill_core.errors import LocalCacheError

logger = logging.getLogger(__name__)


class LocalDatabase:
    """
    Local SQLite database for offline data storage.

    Usage:
        db = LocalDatabase(Path("local_data/skill_tracker.db"))
        db.initialize()
        db.write_dataset(dataset)
        cached = db.read_dataset()
    """

    DATASET_KEY = "hospitals_data"

    SCHEMA = {
        "app_settings": """
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "file_blobs": """
            CREATE TABLE IF NOT EXISTS file_blobs (
                id TEXT PRIMARY KEY,
                data BLOB NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
    }

    def __init__(self, db_path: Path):
        """
        Initialize local database.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        self._in_memory = str(db_path) == ":memory:"
        if not self._in_memory:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._shared_connection: Optional[sqlite3.Connection] = None
        self._init_lock = threading.Lock()
        self._schema_ready = False
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local connection (one shared connection for :memory:)."""
        if self._in_memory:
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:", check_same_thread=False)
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection

        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self._init_lock:
            if self._schema_ready:
                return

            with self.transaction() as conn:
                for table_name, schema in self.SCHEMA.items():
                    conn.execute(schema)
                    logger.debug(f"Created/verified table: {table_name}")

            self._schema_ready = True

    def initialize(self) -> None:
        """Open the blob store. Safe to call any number of times."""
        if self._initialized:
            return
        self._ensure_schema()
        self._initialized = True
        logger.info(f"Local cache initialized at: {self.db_path}")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise LocalCacheError("Local blob store used before initialize() was called")

    # =========================================================================
    # DATASET SLOT
    # =========================================================================

    def read_dataset(self) -> Dataset:
        """
        Return the cached dataset.

        Returns:
            The cached Dataset, or an empty one if absent or unparseable
        """
        try:
            self._ensure_schema()
            raw = self.get_setting(self.DATASET_KEY, parse=False)
            if raw is None:
                return Dataset()
            return Dataset.from_document(json.loads(raw))
        except Exception as e:
            logger.warning(f"Ignoring unreadable local dataset cache: {e}")
            return Dataset()

    def write_dataset(self, dataset: Dataset) -> bool:
        """
        Persist the dataset locally.

        Returns:
            True if written; failures are logged and reported as False
        """
        try:
            self._ensure_schema()
            payload = json.dumps(dataset.to_document(), ensure_ascii=False)
            self.set_setting(self.DATASET_KEY, payload)
            return True
        except Exception as e:
            logger.error(f"Failed to save dataset to local cache: {e}")
            return False

    # =========================================================================
    # BLOB STORE
    # =========================================================================

    def put_blob(self, blob_id: str, data: bytes) -> None:
        self._require_initialized()
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO file_blobs (id, data, created_at) VALUES (?, ?, ?)",
                [blob_id, sqlite3.Binary(data), datetime.now().isoformat()]
            )

    def get_blob(self, blob_id: str) -> Optional[bytes]:
        self._require_initialized()
        row = self._get_connection().execute(
            "SELECT data FROM file_blobs WHERE id = ?",
            [blob_id]
        ).fetchone()
        return bytes(row["data"]) if row else None

    def delete_blob(self, blob_id: str) -> bool:
        self._require_initialized()
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM file_blobs WHERE id = ?", [blob_id])
            return cursor.rowcount > 0

    def list_blobs(self) -> List[Tuple[str, bytes]]:
        self._require_initialized()
        rows = self._get_connection().execute(
            "SELECT id, data FROM file_blobs ORDER BY created_at ASC, id ASC"
        ).fetchall()
        return [(row["id"], bytes(row["data"])) for row in rows]

    def clear_blobs(self) -> int:
        self._require_initialized()
        with self.transaction() as conn:
            return conn.execute("DELETE FROM file_blobs").rowcount

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str, default: Any = None, parse: bool = True) -> Any:
        """Get an app setting (JSON-decoded unless parse=False)."""
        self._ensure_schema()
        row = self._get_connection().execute(
            "SELECT value FROM app_settings WHERE key = ?",
            [key]
        ).fetchone()
        if row is None:
            return default
        if not parse:
            return row["value"]
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return row["value"]

    def set_setting(self, key: str, value: Any) -> None:
        """Set an app setting."""
        self._ensure_schema()
        value_str = value if isinstance(value, str) else json.dumps(value)
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO app_settings (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                [key, value_str, datetime.now().isoformat()]
            )

    def close(self) -> None:
        """Close database connections."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None
        if self._shared_connection is not None:
            self._shared_connection.close()
            self._shared_connection = None
