"""SQLite storage adapter.

Implements the core ExampleStorePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from core.models import FeedbackSignal, FilterRequest, UserStatus


class SQLiteExampleStore:
    """Thin SQLite wrapper that satisfies the ExampleStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - seen: fingerprints of rebroadcast statuses
        - filters: every parsed filter request
        - feedback: labels users attached to the bot's statuses
        - examples: statuses collected for a topic
        """

        with self._connect() as conn:
            # first_seen drives TTL cleanup.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS seen (
                    fingerprint TEXT PRIMARY KEY,
                    first_seen TIMESTAMP NOT NULL
                )
                """
            )
            # about and from_users are space-joined, sorted token lists.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS filters (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    requested_by TEXT NOT NULL,
                    about TEXT NOT NULL,
                    from_users TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS feedback (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    status_id INTEGER NOT NULL,
                    label TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            # One row per (status, topic); repeated searches do not duplicate.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS examples (
                    status_id INTEGER NOT NULL,
                    topic TEXT NOT NULL,
                    author TEXT NOT NULL,
                    text TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (status_id, topic)
                )
                """
            )

    def is_seen(self, fingerprint: str) -> bool:
        """Check if a fingerprint has already been recorded."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM seen WHERE fingerprint = ?",
                (fingerprint,),
            ).fetchone()
        return row is not None

    def mark_seen(self, fingerprint: str) -> None:
        """Insert a fingerprint if it does not exist."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO seen (fingerprint, first_seen) VALUES (?, ?)",
                (fingerprint, now.isoformat()),
            )

    def cleanup_seen(self, ttl_days: int) -> int:
        """Delete old fingerprints and return the number removed."""

        cutoff = datetime.now(timezone.utc) - timedelta(days=ttl_days)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM seen WHERE first_seen < ?",
                (cutoff.isoformat(),),
            )
            return cur.rowcount

    def save_filter(self, request: FilterRequest) -> None:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO filters (requested_by, about, from_users, created_at) VALUES (?, ?, ?, ?)",
                (
                    request.by,
                    " ".join(sorted(request.about)),
                    " ".join(sorted(request.from_users)),
                    now.isoformat(),
                ),
            )

    def save_feedback(self, signal: FeedbackSignal) -> None:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO feedback (status_id, label, created_at) VALUES (?, ?, ?)",
                (signal.status_id, signal.label, now.isoformat()),
            )

    def save_example(self, status: UserStatus, topic: Optional[str]) -> None:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO examples (status_id, topic, author, text, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (status.status_id, topic or "", status.author, status.text, now.isoformat()),
            )

    def list_filters(self) -> List[FilterRequest]:
        with self._connect() as conn:
            rows = conn.execute("SELECT requested_by, about, from_users FROM filters ORDER BY id").fetchall()
        return [
            FilterRequest(
                about=frozenset(row["about"].split()),
                from_users=frozenset(row["from_users"].split()),
                by=row["requested_by"],
            )
            for row in rows
        ]

    def list_feedback(self, label: Optional[str] = None) -> List[FeedbackSignal]:
        query = "SELECT status_id, label FROM feedback"
        params: tuple = ()
        if label is not None:
            query += " WHERE label = ?"
            params = (label,)
        with self._connect() as conn:
            rows = conn.execute(query + " ORDER BY id", params).fetchall()
        return [FeedbackSignal(status_id=row["status_id"], label=row["label"]) for row in rows]

    def list_examples(self, topic: str) -> List[UserStatus]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT status_id, author, text FROM examples WHERE topic = ? ORDER BY status_id",
                (topic,),
            ).fetchall()
        return [UserStatus(status_id=row["status_id"], author=row["author"], text=row["text"]) for row in rows]
