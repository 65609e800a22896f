"""
SQLite-backed baseline store.

One row per session holds the analyzed baseline and the advisory produced
for it. Both columns are written in a single statement inside a transaction,
so a crash can never leave a baseline paired with another snapshot's result.
"""
from __future__ import annotations

import asyncio
import os
import sqlite3
import threading
from datetime import datetime
from typing import Any, Dict

import structlog

from mentor.domain.errors import BaselineStoreError
from mentor.domain.models.session_state import SessionState
from .base import BaselineStore

logger = structlog.get_logger(__name__)


class SqliteBaselineStore(BaselineStore):
    """Durable store keeping one row per session in a SQLite file"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        # Serializes access from the worker threads used by asyncio.to_thread
        self._db_lock = threading.Lock()

        directory = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(directory, exist_ok=True)
        self._ensure_db()

    def _conn(self) -> sqlite3.Connection:
        # Callers must hold _db_lock
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_db(self) -> None:
        with self._db_lock:
            conn = self._conn()
            try:
                with conn:
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS session_baselines (
                            session_id TEXT PRIMARY KEY,
                            baseline_text TEXT NOT NULL DEFAULT '',
                            last_result TEXT NOT NULL DEFAULT '',
                            updated_at TEXT NOT NULL
                        )
                        """
                    )
            finally:
                conn.close()

    def _read(self, session_id: str) -> SessionState:
        with self._db_lock:
            conn = self._conn()
            try:
                row = conn.execute(
                    "SELECT baseline_text, last_result, updated_at FROM session_baselines WHERE session_id = ?",
                    (session_id,)
                ).fetchone()
            finally:
                conn.close()

        if not row:
            return SessionState(session_id=session_id)

        return SessionState(
            session_id=session_id,
            baseline_text=row["baseline_text"] or "",
            last_result=row["last_result"] or "",
            updated_at=datetime.fromisoformat(row["updated_at"])
        )

    def _write(self, session_id: str, baseline_text: str, last_result: str) -> None:
        with self._db_lock:
            conn = self._conn()
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO session_baselines (session_id, baseline_text, last_result, updated_at)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(session_id) DO UPDATE SET
                            baseline_text = excluded.baseline_text,
                            last_result = excluded.last_result,
                            updated_at = excluded.updated_at
                        """,
                        (session_id, baseline_text, last_result, datetime.utcnow().isoformat())
                    )
            finally:
                conn.close()

    async def get(self, session_id: str) -> SessionState:
        try:
            return await asyncio.to_thread(self._read, session_id)
        except sqlite3.Error as e:
            logger.error("Baseline read failed", session_id=session_id, error=str(e))
            raise BaselineStoreError(f"Failed to read baseline for {session_id}: {e}") from e

    async def put(self, session_id: str, baseline_text: str, last_result: str) -> None:
        try:
            await asyncio.to_thread(self._write, session_id, baseline_text, last_result)
        except sqlite3.Error as e:
            logger.error("Baseline write failed", session_id=session_id, error=str(e))
            raise BaselineStoreError(f"Failed to write baseline for {session_id}: {e}") from e

    async def get_stats(self) -> Dict[str, Any]:
        """Get store statistics"""

        def _count() -> int:
            with self._db_lock:
                conn = self._conn()
                try:
                    return conn.execute("SELECT COUNT(*) FROM session_baselines").fetchone()[0]
                finally:
                    conn.close()

        return {
            "backend": "sqlite",
            "path": self.db_path,
            "sessions": await asyncio.to_thread(_count)
        }
