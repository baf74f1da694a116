"""SQLite-backed record and account store.

Local-development and single-host backend. One row per principal in
``sync_data`` holding the serialized snapshot, its last-write timestamp
and a version counter used for compare-and-set writes.
"""

import contextlib
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional, Union

from vocabloop.protocols import StorageError, VersionConflictError
from vocabloop.types import StoredSnapshot, utc_now_ms

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("/tmp") / "vocabloop.db"

SCHEMA = [
    """CREATE TABLE IF NOT EXISTS users (
        username      TEXT PRIMARY KEY COLLATE NOCASE,
        password_hash TEXT NOT NULL DEFAULT '',
        created_at    INTEGER NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS sync_data (
        username   TEXT PRIMARY KEY,
        data       TEXT NOT NULL DEFAULT '{}',
        updated_at INTEGER NOT NULL,
        version    INTEGER NOT NULL DEFAULT 1,
        FOREIGN KEY (username) REFERENCES users(username)
    )""",
]


class SQLiteRecordStore:
    """Record store and account store in a single SQLite file.

    Args:
        db_path: Database file. Parent directories are created on first use.
    """

    def __init__(self, db_path: Union[str, Path] = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self._initialized = False

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Yield a connection; commit on success, roll back on error, always close."""
        self._init_db()
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Create tables once per process."""
        if self._initialized:
            return
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._get_conn()
            try:
                for statement in SCHEMA:
                    conn.execute(statement)
                conn.commit()
            finally:
                conn.close()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot initialise database at {self.db_path}: {e}") from e
        self._initialized = True

    # === Record Store ===

    async def get(self, principal: str) -> Optional[StoredSnapshot]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT data, updated_at, version FROM sync_data WHERE username = ?",
                    (principal,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read snapshot: {e}") from e
        if row is None:
            return None
        try:
            data = json.loads(row["data"])
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored snapshot for {principal} is not valid JSON") from e
        return StoredSnapshot(data=data, updated_at=row["updated_at"], version=row["version"])

    async def put(
        self,
        principal: str,
        data: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> StoredSnapshot:
        now = utc_now_ms()
        payload = json.dumps(data)
        try:
            with self._connect() as conn:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    "SELECT version FROM sync_data WHERE username = ?", (principal,)
                ).fetchone()
                current_version = row["version"] if row else 0
                if expected_version is not None and expected_version != current_version:
                    raise VersionConflictError(principal, expected_version, current_version)
                version = current_version + 1
                conn.execute(
                    "INSERT OR REPLACE INTO sync_data (username, data, updated_at, version) "
                    "VALUES (?, ?, ?, ?)",
                    (principal, payload, now, version),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write snapshot: {e}") from e
        return StoredSnapshot(data=data, updated_at=now, version=version)

    # === Account Store ===

    async def account_exists(self, username: str) -> bool:
        return await self.get_account(username) is not None

    async def get_account(self, username: str) -> Optional[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT username, password_hash, created_at FROM users WHERE username = ?",
                    (username,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read account: {e}") from e
        return dict(row) if row else None

    async def create_account(self, username: str, password_hash: str) -> Dict[str, Any]:
        now = utc_now_ms()
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO users (username, password_hash, created_at) VALUES (?, ?, ?)",
                    (username, password_hash, now),
                )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Account already exists: {username}") from e
        except sqlite3.Error as e:
            raise StorageError(f"Failed to create account: {e}") from e
        return {"username": username, "password_hash": password_hash, "created_at": now}
