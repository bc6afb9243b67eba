"""
============================================================================
Kipi Organizer Client - Cache Storage
============================================================================
Named response caches persisted in SQLite, shaped after the browser Cache
Storage API: a storage holds caches by name, a cache maps request URLs to
stored responses. Only GET requests are stored or matched.
============================================================================
"""

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS caches (
    name TEXT PRIMARY KEY,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS entries (
    cache_name TEXT NOT NULL REFERENCES caches(name) ON DELETE CASCADE,
    url TEXT NOT NULL,
    status_code INTEGER NOT NULL,
    headers TEXT NOT NULL,
    content BLOB NOT NULL,
    stored_at TEXT NOT NULL,
    PRIMARY KEY (cache_name, url)
);
"""

# Recomputed for the decoded body when a response is rebuilt
_STALE_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


def build_response(
    status_code: int,
    headers: list[tuple[str, str]],
    content: bytes,
    request: httpx.Request,
) -> httpx.Response:
    """Build a fully-read response from a decoded body."""
    kept = [(k, v) for k, v in headers if k.lower() not in _STALE_HEADERS]
    return httpx.Response(status_code, headers=kept, content=content, request=request)


def cache_key(request: httpx.Request | str) -> str:
    """URL used as cache key, without fragment."""
    url = request.url if isinstance(request, httpx.Request) else httpx.URL(request)
    return str(url).split("#", 1)[0]


@dataclass(frozen=True)
class CachedResponse:
    """Snapshot of a response body and headers, detached from any connection."""

    url: str
    status_code: int
    headers: tuple[tuple[str, str], ...]
    content: bytes
    stored_at: str = ""

    @classmethod
    def from_response(cls, response: httpx.Response) -> "CachedResponse":
        """Clone a response whose body has been read."""
        return cls(
            url=cache_key(response.request),
            status_code=response.status_code,
            headers=tuple(
                (k, v)
                for k, v in response.headers.multi_items()
                if k.lower() not in _STALE_HEADERS
            ),
            content=response.content,
        )

    def to_response(self, request: httpx.Request) -> httpx.Response:
        return build_response(self.status_code, list(self.headers), self.content, request)


class Cache:
    """One named cache inside a :class:`CacheStorage`."""

    def __init__(self, storage: "CacheStorage", name: str):
        self.storage = storage
        self.name = name

    def __repr__(self) -> str:
        return f"Cache({self.name!r})"

    def match(self, request: httpx.Request | str) -> CachedResponse | None:
        """Stored response for the exact request URL, if any."""
        if isinstance(request, httpx.Request) and request.method != "GET":
            return None
        row = self.storage.conn.execute(
            "SELECT * FROM entries WHERE cache_name = ? AND url = ?",
            (self.name, cache_key(request)),
        ).fetchone()
        return _row_to_response(row) if row else None

    def put(self, request: httpx.Request, response: CachedResponse) -> None:
        """
        Store or overwrite the entry for ``request``.

        Non-GET requests are ignored. Writing to a cache deleted from the
        storage in the meantime is a no-op.
        """
        if request.method != "GET":
            logger.debug(f"Not caching {request.method} {request.url}")
            return
        self.put_many([(cache_key(request), response)])

    def put_many(self, entries: list[tuple[str, CachedResponse]]) -> None:
        """Store several entries in one transaction (all or nothing)."""
        stored_at = datetime.now(timezone.utc).isoformat()
        with self.storage.conn:
            self.storage.conn.executemany(
                """
                INSERT OR REPLACE INTO entries
                    (cache_name, url, status_code, headers, content, stored_at)
                SELECT ?, ?, ?, ?, ?, ?
                WHERE EXISTS (SELECT 1 FROM caches WHERE name = ?)
                """,
                [
                    (
                        self.name,
                        url,
                        response.status_code,
                        json.dumps(list(response.headers)),
                        response.content,
                        stored_at,
                        self.name,
                    )
                    for url, response in entries
                ],
            )

    def delete(self, request: httpx.Request | str) -> bool:
        with self.storage.conn:
            cursor = self.storage.conn.execute(
                "DELETE FROM entries WHERE cache_name = ? AND url = ?",
                (self.name, cache_key(request)),
            )
        return cursor.rowcount > 0

    def keys(self) -> list[str]:
        rows = self.storage.conn.execute(
            "SELECT url FROM entries WHERE cache_name = ? ORDER BY url", (self.name,)
        ).fetchall()
        return [row["url"] for row in rows]


class CacheStorage:
    """
    Set of named caches backed by one SQLite database.

    Calls are synchronous and run on the caller's thread, so the controller
    blocks its event loop for the duration of each lookup or write. That is
    fine for ``:memory:`` and an app-shell sized file; a much larger cache
    file would need the calls moved to ``asyncio.to_thread`` with a
    connection opened with ``check_same_thread=False``.

    Example:
        ```python
        storage = CacheStorage("~/.kipi/cache.db")
        cache = storage.open("kipi-v1")
        cached = cache.match(request)
        ```
    """

    def __init__(self, path: str = ":memory:"):
        if path != ":memory:":
            path = str(Path(path).expanduser())
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self.conn = sqlite3.connect(path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def open(self, name: str) -> Cache:
        """Return the cache called ``name``, creating it when missing."""
        with self.conn:
            self.conn.execute(
                "INSERT OR IGNORE INTO caches (name, created_at) VALUES (?, ?)",
                (name, datetime.now(timezone.utc).isoformat()),
            )
        return Cache(self, name)

    def has(self, name: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM caches WHERE name = ?", (name,)).fetchone()
        return row is not None

    def keys(self) -> list[str]:
        """Cache names in creation order."""
        rows = self.conn.execute("SELECT name FROM caches ORDER BY created_at, rowid").fetchall()
        return [row["name"] for row in rows]

    def delete(self, name: str) -> bool:
        """Delete a cache and every entry in it."""
        with self.conn:
            cursor = self.conn.execute("DELETE FROM caches WHERE name = ?", (name,))
        if cursor.rowcount:
            logger.info(f"Deleted cache {name}")
        return cursor.rowcount > 0

    def match(self, request: httpx.Request | str) -> CachedResponse | None:
        """First stored response for the request across all caches."""
        for name in self.keys():
            cached = Cache(self, name).match(request)
            if cached is not None:
                return cached
        return None

    def close(self) -> None:
        self.conn.close()


def _row_to_response(row: sqlite3.Row) -> CachedResponse:
    return CachedResponse(
        url=row["url"],
        status_code=row["status_code"],
        headers=tuple((k, v) for k, v in json.loads(row["headers"])),
        content=bytes(row["content"]),
        stored_at=row["stored_at"],
    )
