#!/usr/bin/env python3
"""
Audit Store for NodeConsole.

Persists one row per execution attempt and per node management operation.
Commands are stored only as their verb plus a length/hash summary; raw
command text never reaches the database.
"""

import logging
import sqlite3
import threading
import time
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...sanitizer import command_summary, sanitize_exception

logger = logging.getLogger("nodeconsole.audit-store")

MEMORY_DB = ":memory:"
MAX_DETAIL_LENGTH = 500


def _verb(command: Optional[str]) -> str:
    """First token only; arguments may carry secrets."""
    parts = (command or "").split(None, 1)
    if not parts:
        return ""
    verb = parts[0].lower()
    if "=" in verb or ":" in verb:
        return "[assignment]"
    return verb[:64]


def _clip(text: Optional[str]) -> Optional[str]:
    if text is None or len(text) <= MAX_DETAIL_LENGTH:
        return text
    return text[:MAX_DETAIL_LENGTH] + "..."


class AuditStore:
    """Storage and metrics for gateway audit events."""

    def __init__(self, db_path: str = MEMORY_DB):
        """
        Initialize audit store.

        Args:
            db_path: Path to SQLite database, or ":memory:"
        """
        self.db_path = db_path
        if db_path != MEMORY_DB:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None

        self._metrics_cache = {
            "commands_by_status": Counter(),
            "commands_by_level": Counter(),
            "node_operations": Counter(),
        }

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        try:
            self._conn = sqlite3.connect(
                self.db_path, check_same_thread=False, isolation_level=None  # Autocommit mode
            )
            self._conn.row_factory = sqlite3.Row
            if self.db_path != MEMORY_DB:
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
            logger.info(f"Audit database initialized ({'memory' if self.db_path == MEMORY_DB else 'file'})")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize audit database: {sanitize_exception(e)}")
            raise

    def _create_tables(self) -> None:
        """Create database tables."""
        with self._lock:
            cursor = self._conn.cursor()

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS command_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    node_id TEXT NOT NULL,
                    node_alias TEXT,
                    connector_type TEXT,
                    verb TEXT NOT NULL,
                    command_summary TEXT NOT NULL,
                    safety_level TEXT,
                    safety_policy TEXT,
                    decision TEXT,
                    confirmed BOOLEAN NOT NULL DEFAULT 0,
                    status TEXT NOT NULL,
                    detail TEXT,
                    error_type TEXT,
                    exit_code INTEGER,
                    duration_ms INTEGER,
                    truncated BOOLEAN
                )
            """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_command_timestamp
                ON command_history(timestamp DESC)
            """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_command_node
                ON command_history(node_id)
            """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS node_operations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    node_id TEXT NOT NULL,
                    node_alias TEXT,
                    operation TEXT NOT NULL,
                    success BOOLEAN NOT NULL,
                    detail TEXT
                )
            """
            )

    def record_command(
        self,
        node_id: str,
        command: Optional[str],
        status: str,
        node_alias: Optional[str] = None,
        connector_type: Optional[str] = None,
        safety_level: Optional[str] = None,
        safety_policy: Optional[str] = None,
        decision: Optional[str] = None,
        confirmed: bool = False,
        detail: Optional[str] = None,
        error_type: Optional[str] = None,
        exit_code: Optional[int] = None,
        duration_ms: Optional[int] = None,
        truncated: Optional[bool] = None,
    ) -> None:
        """
        Record an execution attempt.

        Args:
            node_id: Node identifier
            command: Raw command (only its verb and summary are stored)
            status: executed, blocked, pending_confirmation or rejected
            node_alias: Node alias
            connector_type: Connector type
            safety_level: Classified level name
            safety_policy: Effective policy
            decision: Policy decision
            confirmed: Whether the caller supplied human confirmation
            detail: Rejection reason or similar, truncated to 500 chars
            error_type: ExecResult error type
            exit_code: Exit code
            duration_ms: Wall time in milliseconds
            truncated: Whether output was truncated
        """
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO command_history
                    (timestamp, node_id, node_alias, connector_type, verb, command_summary,
                     safety_level, safety_policy, decision, confirmed, status, detail,
                     error_type, exit_code, duration_ms, truncated)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        time.time(),
                        node_id,
                        node_alias,
                        connector_type,
                        _verb(command),
                        command_summary(command),
                        safety_level,
                        safety_policy,
                        decision,
                        confirmed,
                        status,
                        _clip(detail),
                        error_type,
                        exit_code,
                        duration_ms,
                        truncated,
                    ),
                )
                self._metrics_cache["commands_by_status"][status] += 1
                if safety_level:
                    self._metrics_cache["commands_by_level"][safety_level] += 1
            except sqlite3.Error as e:
                logger.error(f"Failed to record command: {sanitize_exception(e)}")

    def record_node_operation(
        self,
        node_id: str,
        operation: str,
        success: bool,
        node_alias: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        """Record a node register/update/remove/test operation."""
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO node_operations
                    (timestamp, node_id, node_alias, operation, success, detail)
                    VALUES (?, ?, ?, ?, ?, ?)
                """,
                    (time.time(), node_id, node_alias, operation, success, _clip(detail)),
                )
                self._metrics_cache["node_operations"][operation] += 1
            except sqlite3.Error as e:
                logger.error(f"Failed to record node operation: {sanitize_exception(e)}")

    def query(
        self,
        node_id: Optional[str] = None,
        status: Optional[str] = None,
        safety_level: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Query command history, newest first.

        Returns:
            List of row dictionaries
        """
        clauses = []
        params: List[Any] = []
        if node_id:
            clauses.append("node_id = ?")
            params.append(node_id)
        if status:
            clauses.append("status = ?")
            params.append(status)
        if safety_level:
            clauses.append("safety_level = ?")
            params.append(safety_level)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([limit, offset])

        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT * FROM command_history
                {where}
                ORDER BY timestamp DESC, id DESC
                LIMIT ? OFFSET ?
            """,
                params,
            ).fetchall()
        return [dict(row) for row in rows]

    def node_operations(self, node_id: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Node operation history, newest first."""
        with self._lock:
            if node_id:
                rows = self._conn.execute(
                    "SELECT * FROM node_operations WHERE node_id = ? ORDER BY id DESC LIMIT ?",
                    (node_id, limit),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT * FROM node_operations ORDER BY id DESC LIMIT ?", (limit,)
                ).fetchall()
        return [dict(row) for row in rows]

    def get_command_stats(self, node_id: Optional[str] = None, hours: int = 24) -> Dict[str, Any]:
        """
        Get command statistics.

        Args:
            node_id: Filter by node (optional)
            hours: Time window in hours

        Returns:
            Statistics dictionary
        """
        with self._lock:
            try:
                cursor = self._conn.cursor()

                since = time.time() - (hours * 3600)
                base_where = "timestamp > ?"
                params: List[Any] = [since]
                if node_id:
                    base_where += " AND node_id = ?"
                    params.append(node_id)

                cursor.execute(f"SELECT COUNT(*) FROM command_history WHERE {base_where}", params)
                total_commands = cursor.fetchone()[0]

                cursor.execute(
                    f"""
                    SELECT status, COUNT(*) FROM command_history
                    WHERE {base_where}
                    GROUP BY status
                """,
                    params,
                )
                by_status = {row[0]: row[1] for row in cursor.fetchall()}

                cursor.execute(
                    f"""
                    SELECT safety_level, COUNT(*) FROM command_history
                    WHERE {base_where} AND safety_level IS NOT NULL
                    GROUP BY safety_level
                """,
                    params,
                )
                by_level = {row[0]: row[1] for row in cursor.fetchall()}

                cursor.execute(
                    f"""
                    SELECT verb, COUNT(*) as count FROM command_history
                    WHERE {base_where}
                    GROUP BY verb
                    ORDER BY count DESC
                    LIMIT 10
                """,
                    params,
                )
                top_verbs = [(row[0], row[1]) for row in cursor.fetchall()]

                return {
                    "time_window_hours": hours,
                    "total_commands": total_commands,
                    "by_status": by_status,
                    "by_safety_level": by_level,
                    "top_verbs": top_verbs,
                }
            except sqlite3.Error as e:
                logger.error(f"Failed to get command stats: {sanitize_exception(e)}")
                return {}

    def export_metrics(self) -> Dict[str, Any]:
        """In-process counters since startup."""
        with self._lock:
            return {name: dict(counter) for name, counter in self._metrics_cache.items()}

    def cleanup_old_data(self, days: int = 30) -> int:
        """
        Delete audit rows older than the retention window.

        Returns:
            Number of rows deleted
        """
        cutoff = time.time() - (days * 86400)
        with self._lock:
            try:
                deleted = self._conn.execute(
                    "DELETE FROM command_history WHERE timestamp < ?", (cutoff,)
                ).rowcount
                deleted += self._conn.execute(
                    "DELETE FROM node_operations WHERE timestamp < ?", (cutoff,)
                ).rowcount
                logger.info(f"Cleaned up {deleted} audit rows older than {days} days")
                return deleted
            except sqlite3.Error as e:
                logger.error(f"Failed to cleanup old data: {sanitize_exception(e)}")
                return 0

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
