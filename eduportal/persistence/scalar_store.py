"""Synchronous key/value store for whole JSON values."""

import copy
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

from eduportal.config import DEFAULT_QUOTA_BYTES
from eduportal.errors import CorruptData, QuotaExceeded

from .database import SCALAR_SCHEMA_SQL, get_connection, is_disk_full

logger = logging.getLogger(__name__)

_MISSING = object()


class ScalarStore:
    """String keys mapped to JSON-serialisable values.

    Reads self-heal: a value that cannot be decoded, or that has the wrong
    shape, is replaced by the caller's default (see
    :meth:`reset_on_shape_mismatch`).
    """

    def __init__(self, path: Path | str, *, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        self.path = path
        self.quota_bytes = quota_bytes
        self.conn = get_connection(path, SCALAR_SCHEMA_SQL)

    def close(self) -> None:
        self.conn.close()

    # --- reads ---

    def get(self, key: str, default: Any = None, *,
            expected_type: Optional[type | tuple[type, ...]] = None) -> Any:
        """Return the decoded value for *key*, or a copy of *default*.

        *expected_type* defaults to ``type(default)`` when the default is a
        list or dict. A missing key returns the default without writing it.
        """
        if expected_type is None and isinstance(default, (list, dict)):
            expected_type = type(default)

        raw = self._read_raw(key)
        if raw is _MISSING:
            return copy.deepcopy(default)

        try:
            value = self._decode(key, raw, expected_type)
        except CorruptData as e:
            logger.warning("%s", e)
            return self.reset_on_shape_mismatch(key, default)
        return value

    def contains(self, key: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM kv WHERE key = ?", (key,)).fetchone()
        return row is not None

    def keys(self, prefix: str = "") -> list[str]:
        """List keys, optionally restricted to those starting with *prefix*."""
        rows = self.conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [r["key"] for r in rows if r["key"].startswith(prefix)]

    def usage_bytes(self) -> int:
        """Approximate bytes held, counted the way the quota is enforced."""
        row = self.conn.execute(
            "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) FROM kv"
        ).fetchone()
        return int(row[0])

    # --- writes ---

    def set(self, key: str, value: Any) -> None:
        """Serialise and persist *value*.

        Raises ``QuotaExceeded`` when the write would not fit; any other
        failure (e.g. ``TypeError`` for an unserialisable value) propagates.
        """
        self.set_raw(key, json.dumps(value))

    def set_raw(self, key: str, text: str) -> None:
        """Persist *text* as-is, without JSON encoding."""
        self._check_quota(key, text)
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, text)
            )
        except sqlite3.OperationalError as e:
            if is_disk_full(e):
                raise QuotaExceeded(
                    "Storage quota exceeded. Please clear some space."
                ) from e
            raise

    def remove(self, key: str) -> bool:
        """Delete *key*. Returns True if it existed."""
        cursor = self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        return cursor.rowcount > 0

    # --- recovery ---

    def reset_on_shape_mismatch(self, key: str, default: Any) -> Any:
        """Replace a corrupted entry with *default*, persist it and return a copy."""
        logger.warning("Resetting corrupted value under key '%s' to its default", key)
        self.set(key, default)
        return copy.deepcopy(default)

    # --- internals ---

    def _read_raw(self, key: str) -> Any:
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return _MISSING
        return row["value"]

    @staticmethod
    def _decode(key: str, raw: str, expected_type) -> Any:
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise CorruptData(f"Value under key '{key}' is not valid JSON") from e
        if expected_type is not None and not isinstance(value, expected_type):
            raise CorruptData(
                f"Value under key '{key}' has type {type(value).__name__}, "
                f"expected {getattr(expected_type, '__name__', expected_type)}"
            )
        return value

    def _check_quota(self, key: str, text: str) -> None:
        if not self.quota_bytes:
            return
        row = self.conn.execute(
            "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) FROM kv WHERE key != ?",
            (key,),
        ).fetchone()
        needed = int(row[0]) + len(key) + len(text)
        if needed > self.quota_bytes:
            raise QuotaExceeded(
                "Storage quota exceeded. Please clear some space."
            )


__all__ = ["ScalarStore"]
