"""Durable per-source checkpoints for resumable pagination.

Two interchangeable backends implement :class:`ProgressStore`:

* :class:`JsonProgressStore` — a single JSON document keyed by source URL.
* :class:`SqliteProgressStore` — one row per source URL in an embedded
  SQLite database.

Both round-trip exactly: ``load`` after ``save`` returns an equal
:class:`~rag_ingest.models.Progress`, timestamp included.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any

from rag_ingest.exceptions import ConfigError
from rag_ingest.models import Progress

logger = logging.getLogger(__name__)


class ProgressStore(ABC):
    """Key-value store of :class:`Progress` records, keyed by source URL."""

    @abstractmethod
    def load(self, source_url: str) -> Progress | None:
        """Return the saved progress of *source_url*, or ``None``."""
        ...

    @abstractmethod
    def save(self, progress: Progress) -> None:
        """Persist *progress*, replacing any previous record for its URL."""
        ...

    @abstractmethod
    def reset(self, source_url: str) -> bool:
        """Forget *source_url*. Returns ``True`` when a record was removed."""
        ...

    @abstractmethod
    def all(self) -> list[Progress]:
        ...

    def reset_all(self) -> int:
        removed = 0
        for progress in self.all():
            removed += self.reset(progress.source_url)
        return removed


# ---------------------------------------------------------------------------
# JSON file
# ---------------------------------------------------------------------------


def _to_json(progress: Progress) -> dict[str, Any]:
    return {
        "last_processed_cursor": progress.last_processed_cursor,
        "processed_item_count": progress.processed_item_count,
        "timestamp": progress.timestamp.isoformat(),
    }


def _from_json(source_url: str, entry: dict[str, Any]) -> Progress:
    return Progress(
        source_url=source_url,
        last_processed_cursor=entry.get("last_processed_cursor"),
        processed_item_count=entry.get("processed_item_count", 0),
        timestamp=datetime.fromisoformat(entry["timestamp"]),
    )


class JsonProgressStore(ProgressStore):
    """Progress kept in one JSON file.

    Every write goes to a temporary file next to *path* which then
    replaces the original, so a crash mid-write leaves the previous
    checkpoint intact.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Progress file {self.path} is corrupt: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Progress file {self.path} must hold a JSON object")
        return data

    def _write(self, data: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".progress-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self, source_url: str) -> Progress | None:
        with self._lock:
            entry = self._read().get(source_url)
        return _from_json(source_url, entry) if entry is not None else None

    def save(self, progress: Progress) -> None:
        with self._lock:
            data = self._read()
            data[progress.source_url] = _to_json(progress)
            self._write(data)
        logger.debug(
            "Checkpoint %s → cursor=%s items=%d",
            progress.source_url, progress.last_processed_cursor, progress.processed_item_count,
        )

    def reset(self, source_url: str) -> bool:
        with self._lock:
            data = self._read()
            if data.pop(source_url, None) is None:
                return False
            self._write(data)
        return True

    def all(self) -> list[Progress]:
        with self._lock:
            data = self._read()
        return [_from_json(url, entry) for url, entry in sorted(data.items())]


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


class SqliteProgressStore(ProgressStore):
    """Progress kept in an SQLite table, one row per source URL."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS ingest_progress (
                    source_url TEXT PRIMARY KEY,
                    last_processed_cursor TEXT,
                    processed_item_count INTEGER NOT NULL,
                    timestamp TEXT NOT NULL
                )
                """
            )

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def load(self, source_url: str) -> Progress | None:
        with self._connect() as connection:
            row = connection.execute(
                "SELECT last_processed_cursor, processed_item_count, timestamp "
                "FROM ingest_progress WHERE source_url = ?",
                (source_url,),
            ).fetchone()
        if row is None:
            return None
        cursor, count, timestamp = row
        return Progress(
            source_url=source_url,
            last_processed_cursor=cursor,
            processed_item_count=count,
            timestamp=datetime.fromisoformat(timestamp),
        )

    def save(self, progress: Progress) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO ingest_progress
                    (source_url, last_processed_cursor, processed_item_count, timestamp)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(source_url) DO UPDATE SET
                    last_processed_cursor = excluded.last_processed_cursor,
                    processed_item_count = excluded.processed_item_count,
                    timestamp = excluded.timestamp
                """,
                (
                    progress.source_url,
                    progress.last_processed_cursor,
                    progress.processed_item_count,
                    progress.timestamp.isoformat(),
                ),
            )

    def reset(self, source_url: str) -> bool:
        with self._connect() as connection:
            cur = connection.execute(
                "DELETE FROM ingest_progress WHERE source_url = ?", (source_url,)
            )
        return cur.rowcount > 0

    def all(self) -> list[Progress]:
        with self._connect() as connection:
            urls = [
                row[0]
                for row in connection.execute(
                    "SELECT source_url FROM ingest_progress ORDER BY source_url"
                )
            ]
        return [p for p in (self.load(url) for url in urls) if p is not None]
