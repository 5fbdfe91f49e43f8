"""SQLite-backed copy history."""

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .models import CopyHistoryEntry

DEFAULT_HISTORY_PATH = Path("~/.config/usb-ingest/history.db")

# Older entries are dropped once the table grows past this.
MAX_HISTORY_ENTRIES = 1000


@dataclass
class HistoryStats:
    """Aggregates over every recorded run."""
    total_copies: int
    total_files: int
    total_bytes: int
    total_duration: float
    successful_copies: int
    failed_copies: int

    @property
    def average_duration(self) -> float:
        return self.total_duration / self.total_copies if self.total_copies else 0.0


class HistoryDB:
    """Append-only log of finished copy runs, keyed by run id."""

    def __init__(self, db_path: Path, max_entries: int = MAX_HISTORY_ENTRIES):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_entries = max_entries
        self.conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS history (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                timestamp TEXT NOT NULL,
                status TEXT NOT NULL,
                total_files INTEGER NOT NULL,
                copied_files INTEGER NOT NULL,
                skipped_files INTEGER NOT NULL,
                total_bytes INTEGER NOT NULL,
                copied_bytes INTEGER NOT NULL,
                duration REAL NOT NULL,
                error TEXT,
                files TEXT NOT NULL
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def add_entry(self, entry: CopyHistoryEntry) -> None:
        """Record a run and trim the oldest entries beyond max_entries."""
        self.conn.execute("BEGIN")
        try:
            self.conn.execute(
                """INSERT INTO history
                   (id, timestamp, status, total_files, copied_files, skipped_files,
                    total_bytes, copied_bytes, duration, error, files)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (entry.id, entry.timestamp, entry.status, entry.total_files,
                 entry.copied_files, entry.skipped_files, entry.total_bytes,
                 entry.copied_bytes, entry.duration, entry.error,
                 json.dumps(entry.files))
            )
            self.conn.execute(
                """DELETE FROM history WHERE seq NOT IN
                   (SELECT seq FROM history ORDER BY seq DESC LIMIT ?)""",
                (self.max_entries,)
            )
            self.conn.execute("COMMIT")
        except Exception:
            self.conn.execute("ROLLBACK")
            raise

    @staticmethod
    def _row_to_entry(row: tuple) -> CopyHistoryEntry:
        return CopyHistoryEntry(
            id=row[0],
            timestamp=row[1],
            status=row[2],
            total_files=row[3],
            copied_files=row[4],
            skipped_files=row[5],
            total_bytes=row[6],
            copied_bytes=row[7],
            duration=row[8],
            error=row[9],
            files=json.loads(row[10])
        )

    _COLUMNS = """id, timestamp, status, total_files, copied_files, skipped_files,
                  total_bytes, copied_bytes, duration, error, files"""

    def get_entries(self, limit: Optional[int] = None) -> list[CopyHistoryEntry]:
        """Get recorded runs, most recent first."""
        query = f"SELECT {self._COLUMNS} FROM history ORDER BY seq DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        return [self._row_to_entry(row) for row in self.conn.execute(query, params)]

    def get_entry(self, run_id: str) -> Optional[CopyHistoryEntry]:
        """Get a single run by id."""
        cursor = self.conn.execute(
            f"SELECT {self._COLUMNS} FROM history WHERE id = ?", (run_id,)
        )
        row = cursor.fetchone()
        return self._row_to_entry(row) if row else None

    def delete_entry(self, run_id: str) -> bool:
        """Delete one run. Returns False if it was not recorded."""
        cursor = self.conn.execute("DELETE FROM history WHERE id = ?", (run_id,))
        return cursor.rowcount > 0

    def count(self) -> int:
        cursor = self.conn.execute("SELECT COUNT(*) FROM history")
        return cursor.fetchone()[0]

    def clear(self) -> None:
        """Forget every recorded run."""
        self.conn.execute("DELETE FROM history")

    def get_stats(self) -> HistoryStats:
        cursor = self.conn.execute(
            """SELECT COUNT(*),
                      COALESCE(SUM(copied_files), 0),
                      COALESCE(SUM(copied_bytes), 0),
                      COALESCE(SUM(duration), 0.0),
                      COALESCE(SUM(status = 'completed'), 0),
                      COALESCE(SUM(status = 'error'), 0)
               FROM history"""
        )
        row = cursor.fetchone()
        return HistoryStats(
            total_copies=row[0],
            total_files=row[1],
            total_bytes=row[2],
            total_duration=row[3],
            successful_copies=row[4],
            failed_copies=row[5],
        )
