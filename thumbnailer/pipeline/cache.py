"""On-disk variant cache indexed with SQLite."""

from __future__ import annotations

import logging
import os
import sqlite3
import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import BaseModel

from thumbnailer.config import Configuration
from thumbnailer.models.format import get_format_registry
from thumbnailer.models.identifier import Identifier
from thumbnailer.models.operations import OperationList
from thumbnailer.pipeline.processor import Info

logger = logging.getLogger(__name__)


class VariantEntry(BaseModel):
    """Metadata entry for a cached variant image."""

    cache_key: str
    identifier: str
    format: str
    file_path: str
    file_size: int
    created_at: datetime
    source_info: Info | None = None

    def is_older_than(self, moment: datetime) -> bool:
        """True if the variant was stored before ``moment`` (naive means local time)."""
        return self.created_at.astimezone() < moment.astimezone()


class VariantCacheStats(BaseModel):
    """Statistics for the variant cache."""

    total_count: int
    total_size_bytes: int
    identifiers: int
    formats: dict[str, int]


class VariantCache:
    """Stores encoded variants keyed by their operation list.

    Files live under ``cache_dir`` sharded by the first two characters of the
    key; the SQLite index records which identifier each file belongs to so
    that all variants of an image can be evicted together.
    """

    def __init__(self, cache_dir: Path, ttl_seconds: int = 0) -> None:
        self.cache_dir = cache_dir
        self.ttl_seconds = ttl_seconds
        self.db_path = cache_dir / "variants.db"
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._ensure_tables()

    @classmethod
    def from_config(cls, config: Configuration) -> VariantCache | None:
        """Create the cache if ``variant_cache.enabled`` is set."""
        if not config.get_bool("variant_cache.enabled", False):
            return None
        path = config.get_string("variant_cache.path", "./cache/variants") or "./cache/variants"
        return cls(Path(path), ttl_seconds=config.get_int("variant_cache.ttl_seconds", 0) or 0)

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # Requests are served from a threadpool; access is serialized by _lock
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _ensure_tables(self) -> None:
        """Create database tables if they don't exist."""
        with self._lock:
            self.conn.executescript("""
                CREATE TABLE IF NOT EXISTS variants (
                    cache_key TEXT PRIMARY KEY,
                    identifier TEXT NOT NULL,
                    format TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    file_size INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    source_width INTEGER,
                    source_height INTEGER,
                    source_format TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_variants_identifier
                    ON variants(identifier);
            """)
            self.conn.commit()

    def _variant_path(self, cache_key: str, extension: str) -> Path:
        return self.cache_dir / cache_key[:2] / f"{cache_key}.{extension}"

    def _is_expired(self, created_at: datetime) -> bool:
        if self.ttl_seconds <= 0:
            return False
        return datetime.now() - created_at > timedelta(seconds=self.ttl_seconds)

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> VariantEntry:
        source_info = None
        if row["source_width"] is not None and row["source_height"] is not None:
            source_info = Info(
                width=row["source_width"],
                height=row["source_height"],
                format=get_format_registry().get(row["source_format"] or ""),
            )
        return VariantEntry(
            cache_key=row["cache_key"],
            identifier=row["identifier"],
            format=row["format"],
            file_path=row["file_path"],
            file_size=row["file_size"],
            created_at=datetime.fromisoformat(row["created_at"]),
            source_info=source_info,
        )

    def get_entry(self, operation_list: OperationList) -> VariantEntry | None:
        """Get the index entry for a variant, if cached and still valid."""
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM variants WHERE cache_key = ?",
                (operation_list.cache_key(),),
            ).fetchone()
        if row is None:
            return None

        entry = self._row_to_entry(row)
        if self._is_expired(entry.created_at):
            self._remove(entry)
            return None
        return entry

    def get(self, operation_list: OperationList) -> bytes | None:
        """Get the bytes of a cached variant, or None on a miss."""
        entry = self.get_entry(operation_list)
        if entry is None:
            return None
        return self.read_entry(entry)

    def read_entry(self, entry: VariantEntry) -> bytes | None:
        """Read the bytes of an entry; a vanished file drops the entry."""
        try:
            return Path(entry.file_path).read_bytes()
        except FileNotFoundError:
            logger.warning(f"Variant file disappeared: {entry.file_path}")
            self._remove(entry)
            return None

    def exists(self, operation_list: OperationList) -> bool:
        return self.get_entry(operation_list) is not None

    def put(
        self,
        operation_list: OperationList,
        data: bytes,
        source_info: Info | None = None,
    ) -> Path:
        """Store a variant, replacing any previous one with the same key.

        ``source_info`` describes the source image the variant was made from;
        it lets a later hit skip reading the source.
        """
        cache_key = operation_list.cache_key()
        fmt = operation_list.output_format
        format_key = fmt.key if fmt else "bin"
        extension = (fmt.preferred_extension if fmt else None) or "bin"
        path = self._variant_path(cache_key, extension)

        path.parent.mkdir(parents=True, exist_ok=True)
        # Each writer renames its own temp file
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{cache_key}.", suffix=".tmp", delete=False
        ) as tmp:
            tmp.write(data)
        try:
            os.replace(tmp.name, path)
        except OSError:
            Path(tmp.name).unlink(missing_ok=True)
            raise

        with self._lock:
            self.conn.execute(
                """
                INSERT OR REPLACE INTO variants
                    (cache_key, identifier, format, file_path, file_size, created_at,
                     source_width, source_height, source_format)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    cache_key,
                    str(operation_list.identifier),
                    format_key,
                    str(path),
                    len(data),
                    datetime.now().isoformat(),
                    source_info.width if source_info else None,
                    source_info.height if source_info else None,
                    source_info.format.key if source_info else None,
                ),
            )
            self.conn.commit()
        return path

    def _remove(self, entry: VariantEntry) -> None:
        Path(entry.file_path).unlink(missing_ok=True)
        with self._lock:
            self.conn.execute("DELETE FROM variants WHERE cache_key = ?", (entry.cache_key,))
            self.conn.commit()

    def _remove_rows(self, rows: list[sqlite3.Row]) -> int:
        for row in rows:
            self._remove(self._row_to_entry(row))
        return len(rows)

    def evict_identifier(self, identifier: Identifier | str) -> int:
        """Remove all variants of an image. Returns count removed."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM variants WHERE identifier = ?",
                (str(identifier),),
            ).fetchall()
        count = self._remove_rows(rows)
        logger.info(f"Evicted {count} variant(s) of {identifier}")
        return count

    def purge_expired(self) -> int:
        """Remove all expired variants. Returns count removed."""
        if self.ttl_seconds <= 0:
            return 0
        cutoff = datetime.now() - timedelta(seconds=self.ttl_seconds)
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM variants WHERE created_at < ?",
                (cutoff.isoformat(),),
            ).fetchall()
        count = self._remove_rows(rows)
        logger.info(f"Purged {count} expired variant(s)")
        return count

    def clear(self) -> int:
        """Remove all variants. Returns count removed."""
        with self._lock:
            rows = self.conn.execute("SELECT * FROM variants").fetchall()
        count = self._remove_rows(rows)
        logger.info(f"Cleared {count} variant(s)")
        return count

    def count(self) -> int:
        with self._lock:
            row = self.conn.execute("SELECT COUNT(*) as cnt FROM variants").fetchone()
        return row["cnt"] if row else 0

    def get_stats(self) -> VariantCacheStats:
        """Get comprehensive statistics about the variant cache."""
        with self._lock:
            total = self.conn.execute(
                "SELECT COUNT(*) as cnt, COALESCE(SUM(file_size), 0) as size, "
                "COUNT(DISTINCT identifier) as ids FROM variants"
            ).fetchone()
            formats = self.conn.execute(
                "SELECT format, COUNT(*) as cnt FROM variants GROUP BY format"
            ).fetchall()

        return VariantCacheStats(
            total_count=total["cnt"] if total else 0,
            total_size_bytes=total["size"] if total else 0,
            identifiers=total["ids"] if total else 0,
            formats={row["format"]: row["cnt"] for row in formats},
        )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
