"""Asynchronous, transactional store for the video catalog."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

from eduportal.errors import DuplicateKey, QuotaExceeded, TransactionAborted
from eduportal.models import Video

from .database import RECORD_SCHEMA_SQL, get_connection, is_disk_full

logger = logging.getLogger(__name__)

Mutator = Callable[[Video], Optional[Video]]


def _upload_sort_key(video: Video) -> float:
    """Timestamp used for newest-first ordering; unparseable values sort last."""
    raw = (video.uploaded_at or "").strip()
    if not raw:
        return float("-inf")
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def sort_newest_first(videos: list[Video]) -> list[Video]:
    """Order by upload time, newest first. ``sorted`` is stable, so ties keep input order."""
    return sorted(videos, key=_upload_sort_key, reverse=True)


class RecordStore:
    """The ``videos`` collection, keyed by ``id``.

    Every public operation is a coroutine. SQLite work runs in a worker
    thread and an ``asyncio.Lock`` keeps the single connection on one lane,
    so a transaction always finishes before the next one starts.
    """

    def __init__(self, path: Path | str):
        self.path = path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    # --- lifecycle ---

    async def open(self) -> "RecordStore":
        """Open the store once; later calls return the same live handle."""
        async with self._lock:
            if self._conn is None:
                self._conn = await asyncio.to_thread(get_connection, self.path, RECORD_SCHEMA_SQL)
                logger.debug("Opened record store at %s", self.path)
        return self

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                await asyncio.to_thread(self._conn.close)
                self._conn = None

    # --- reads ---

    async def get_all(self) -> list[Video]:
        """Return every video, newest upload first."""
        rows = await self._run(
            lambda conn: conn.execute("SELECT data FROM videos ORDER BY id").fetchall()
        )
        videos = [v for v in (self._row_to_video(r) for r in rows) if v is not None]
        return sort_newest_first(videos)

    async def get(self, video_id: str) -> Optional[Video]:
        row = await self._run(
            lambda conn: conn.execute(
                "SELECT data FROM videos WHERE id = ?", (video_id,)
            ).fetchone()
        )
        if row is None:
            return None
        return self._row_to_video(row)

    async def count(self) -> int:
        row = await self._run(lambda conn: conn.execute("SELECT COUNT(*) FROM videos").fetchone())
        return int(row[0])

    # --- single-record writes ---

    async def add(self, video: Video) -> Video:
        """Insert a new record.

        Raises ``DuplicateKey`` if the id is taken and ``QuotaExceeded`` if
        the disk is full.
        """
        def _add(conn: sqlite3.Connection) -> None:
            try:
                conn.execute(
                    "INSERT INTO videos (id, uploaded_at, data) VALUES (?, ?, ?)",
                    self._video_params(video),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateKey(f"Video id '{video.id}' already exists", video.id) from e

        await self._run(self._capacity_checked(_add))
        return video

    async def put(self, video: Video) -> None:
        """Insert or replace a record."""
        def _put(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR REPLACE INTO videos (id, uploaded_at, data) VALUES (?, ?, ?)",
                self._video_params(video),
            )

        await self._run(self._capacity_checked(_put))

    async def delete(self, video_id: str) -> None:
        """Delete a record; deleting a missing id is a no-op."""
        await self._run(lambda conn: conn.execute("DELETE FROM videos WHERE id = ?", (video_id,)))

    # --- transactional batches ---

    async def run_batch(self, ids: Iterable[str], mutator: Mutator) -> int:
        """Apply *mutator* to each existing record in one transaction.

        Ids that are not in the store are skipped. The mutator may edit the
        video in place (returning None) or return a replacement. If anything
        fails, nothing is written and ``TransactionAborted`` is raised.
        Returns the number of records written.
        """
        id_list = list(dict.fromkeys(ids))

        def _batch(conn: sqlite3.Connection) -> int:
            written = 0
            for video_id in id_list:
                row = conn.execute(
                    "SELECT data FROM videos WHERE id = ?", (video_id,)
                ).fetchone()
                if row is None:
                    continue
                video = Video.from_dict(json.loads(row["data"]))
                result = mutator(video)
                updated = result if result is not None else video
                updated.id = video_id
                conn.execute(
                    "UPDATE videos SET uploaded_at = ?, data = ? WHERE id = ?",
                    (updated.uploaded_at or "", self._encode(updated), video_id),
                )
                written += 1
            return written

        return await self._transaction("run_batch", _batch)

    async def delete_many(self, ids: Iterable[str]) -> int:
        """Delete several records atomically. Returns how many existed."""
        id_list = list(dict.fromkeys(ids))

        def _delete(conn: sqlite3.Connection) -> int:
            deleted = 0
            for video_id in id_list:
                cursor = conn.execute("DELETE FROM videos WHERE id = ?", (video_id,))
                deleted += cursor.rowcount
            return deleted

        return await self._transaction("delete_many", _delete)

    async def put_many(self, videos: Iterable[Video], *,
                       meta: Optional[dict[str, str]] = None) -> int:
        """Upsert several records atomically.

        Entries in *meta* are written in the same transaction, so a marker
        lands if and only if the records do.
        """
        params = [self._video_params(v) for v in videos]

        def _put(conn: sqlite3.Connection) -> int:
            conn.executemany(
                "INSERT OR REPLACE INTO videos (id, uploaded_at, data) VALUES (?, ?, ?)",
                params,
            )
            if meta:
                conn.executemany(
                    "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
                    list(meta.items()),
                )
            return len(params)

        return await self._transaction("put_many", _put)

    async def replace_all(self, videos: Iterable[Video]) -> int:
        """Clear the collection and insert *videos* in the same transaction."""
        params = [self._video_params(v) for v in videos]

        def _replace(conn: sqlite3.Connection) -> int:
            conn.execute("DELETE FROM videos")
            conn.executemany(
                "INSERT INTO videos (id, uploaded_at, data) VALUES (?, ?, ?)",
                params,
            )
            return len(params)

        return await self._transaction("replace_all", _replace)

    # --- store metadata ---

    async def get_meta(self, key: str) -> Optional[str]:
        """Return a metadata value kept alongside the records, or None."""
        row = await self._run(
            lambda conn: conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        )
        return row["value"] if row is not None else None

    async def set_meta(self, key: str, value: str) -> None:
        await self._run(
            lambda conn: conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)", (key, value)
            )
        )

    # --- internals ---

    @staticmethod
    def _capacity_checked(fn):
        """Wrap *fn(conn)* so SQLite disk-full errors surface as ``QuotaExceeded``."""
        def _wrapped(conn: sqlite3.Connection):
            try:
                return fn(conn)
            except sqlite3.OperationalError as e:
                if is_disk_full(e):
                    raise QuotaExceeded(
                        "Storage quota exceeded. Please clear some space."
                    ) from e
                raise
        return _wrapped

    async def _run(self, fn):
        """Run *fn(conn)* in a worker thread, one call at a time."""
        async with self._lock:
            conn = self._require_conn()
            return await asyncio.to_thread(fn, conn)

    async def _transaction(self, name: str, fn):
        """Run *fn(conn)* inside BEGIN/COMMIT; roll back and abort on any failure."""
        def _wrapped(conn: sqlite3.Connection):
            conn.execute("BEGIN IMMEDIATE")
            try:
                result = fn(conn)
                conn.execute("COMMIT")
                return result
            except Exception:
                conn.execute("ROLLBACK")
                raise

        try:
            return await self._run(_wrapped)
        except Exception as e:
            logger.error("Record store transaction '%s' aborted: %s", name, e)
            raise TransactionAborted(f"Transaction '{name}' aborted: {e}") from e

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Record store is not open; await open() first")
        return self._conn

    @staticmethod
    def _encode(video: Video) -> str:
        return json.dumps(video.to_dict())

    @classmethod
    def _video_params(cls, video: Video) -> tuple[str, str, str]:
        return (video.id, video.uploaded_at or "", cls._encode(video))

    @staticmethod
    def _row_to_video(row: sqlite3.Row) -> Optional[Video]:
        try:
            return Video.from_dict(json.loads(row["data"]))
        except (json.JSONDecodeError, TypeError, ValueError):
            logger.warning("Skipping undecodable video record")
            return None


async def open_record_store(path: Path | str) -> RecordStore:
    """Create and open a record store, returning the owned handle."""
    store = RecordStore(path)
    return await store.open()


__all__ = ["RecordStore", "open_record_store", "sort_newest_first"]
