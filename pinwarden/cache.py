"""
SQLite-backed classification cache and tag-history log.

Two separate key spaces live in one database:

  classifications  (owner, repo, version) -> verdict, expires_at
  tag_history      (owner, repo, tag, commit_sha) -> first/last seen

Classifications expire; the tag history does not, because it is what lets a
later run notice that a tag has been moved to a different commit. Both are
bounded: expired classifications are pruned on open, and the history only
grows by one row per distinct (tag, commit) pair.

All sqlite3 errors are re-raised as CacheError so callers can treat the cache
as optional.
"""

import logging
import sqlite3
import threading
import time
from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional

from pinwarden.classifier import Classification, Kind, Reason
from pinwarden.errors import CacheError

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS classifications (
    owner      TEXT NOT NULL,
    repo       TEXT NOT NULL,
    version    TEXT NOT NULL,
    kind       TEXT NOT NULL,
    reason     TEXT NOT NULL,
    expires_at REAL NOT NULL,
    PRIMARY KEY (owner, repo, version)
);
CREATE TABLE IF NOT EXISTS tag_history (
    owner      TEXT NOT NULL,
    repo       TEXT NOT NULL,
    tag        TEXT NOT NULL,
    commit_sha TEXT NOT NULL,
    first_seen REAL NOT NULL,
    last_seen  REAL NOT NULL,
    PRIMARY KEY (owner, repo, tag, commit_sha)
);
"""


class ClassificationCache:
    """Thread-safe cache of reference classifications plus tag history."""

    def __init__(self, path: str = IN_MEMORY, clock: Callable[[], float] = time.time):
        self.path = path
        self._clock = clock
        self._lock = threading.Lock()
        try:
            if path != IN_MEMORY:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
            if path != IN_MEMORY:
                self.conn.execute("PRAGMA journal_mode=WAL;")
            self.conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise CacheError(f"cannot open cache at {path}: {e}") from e
        self.prune()

    def _execute(self, sql: str, params: tuple = ()) -> list[tuple]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise CacheError(str(e)) from e

    # ------------------------------------------------------------------
    # Classifications
    # ------------------------------------------------------------------

    def get(self, owner: str, repo: str, version: str) -> Optional[Classification]:
        """Return the cached verdict, or None if absent or expired."""
        rows = self._execute(
            "SELECT kind, reason, expires_at FROM classifications "
            "WHERE owner = ? AND repo = ? AND version = ?",
            (owner, repo, version),
        )
        if not rows:
            return None
        kind, reason, expires_at = rows[0]
        if expires_at <= self._clock():
            logger.debug("Cache entry for %s/%s@%s expired", owner, repo, version)
            return None
        try:
            return Classification(Kind(kind), Reason(reason))
        except ValueError:
            logger.debug("Ignoring unreadable cache entry for %s/%s@%s", owner, repo, version)
            return None

    def put(
        self,
        owner: str,
        repo: str,
        version: str,
        classification: Classification,
        ttl: timedelta,
    ) -> None:
        """Store a verdict, replacing any previous one for the same key."""
        expires_at = self._clock() + ttl.total_seconds()
        self._execute(
            "INSERT OR REPLACE INTO classifications "
            "(owner, repo, version, kind, reason, expires_at) VALUES (?, ?, ?, ?, ?, ?)",
            (owner, repo, version, classification.kind.value,
             classification.reason.value, expires_at),
        )

    def prune(self) -> int:
        """Delete expired classifications; returns how many were removed."""
        with self._lock:
            try:
                cursor = self.conn.execute(
                    "DELETE FROM classifications WHERE expires_at <= ?", (self._clock(),)
                )
            except sqlite3.Error as e:
                raise CacheError(str(e)) from e
        if cursor.rowcount:
            logger.debug("Pruned %d expired classification(s)", cursor.rowcount)
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Tag history
    # ------------------------------------------------------------------

    def record_tag_target(self, owner: str, repo: str, tag: str, commit_sha: str) -> None:
        """Remember that `tag` pointed at `commit_sha` now."""
        now = self._clock()
        self._execute(
            "INSERT INTO tag_history (owner, repo, tag, commit_sha, first_seen, last_seen) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT (owner, repo, tag, commit_sha) DO UPDATE SET last_seen = excluded.last_seen",
            (owner, repo, tag, commit_sha, now, now),
        )

    def tag_targets(self, owner: str, repo: str, tag: str) -> list[str]:
        """Every commit the tag has been seen pointing at, oldest first."""
        rows = self._execute(
            "SELECT commit_sha FROM tag_history WHERE owner = ? AND repo = ? AND tag = ? "
            "ORDER BY first_seen",
            (owner, repo, tag),
        )
        return [row[0] for row in rows]

    def has_unstable_history(self, owner: str, repo: str, tag: str, commit_sha: str) -> bool:
        """True if the tag was previously seen pointing somewhere other than `commit_sha`."""
        moved = any(sha != commit_sha for sha in self.tag_targets(owner, repo, tag))
        if moved:
            logger.info("Tag %s/%s@%s has moved (now %s)", owner, repo, tag, commit_sha[:12])
        return moved

    def close(self) -> None:
        with self._lock:
            self.conn.close()
