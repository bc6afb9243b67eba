"""Shared fixtures: an in-memory remote store and a fake PostgREST backend."""

import copy
import itertools
import json
from typing import Any

import httpx
import pytest

from organizer_client.config import BackendSettings, CacheSettings, Settings
from organizer_client.exceptions import NotAuthenticatedError, RemoteStoreError
from organizer_client.models import Identity
from organizer_client.notifications import Notifier
from organizer_client.session import SessionProvider

ORIGIN = "http://app.test"
REST_PATH = "/api/rest/v1"


class FakeRemote:
    """In-memory stand-in for RemoteStoreClient with switchable failures."""

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {"subjects": [], "notes": []}
        self.calls: list[tuple] = []
        self.fail: set[str] = set()
        self._ids = itertools.count(1)

    def seed(self, table: str, owner: str, **row) -> dict[str, Any]:
        row = {"id": row.pop("id", f"{table}-{next(self._ids)}"), "user_id": owner, **row}
        self.tables[table].append(row)
        return row

    def _check(self, operation: str, owner: str) -> None:
        if not owner:
            raise NotAuthenticatedError("no owner")
        if operation in self.fail:
            raise RemoteStoreError(f"{operation} failed", status_code=503)

    async def select(self, table, owner):
        self.calls.append(("select", table, owner))
        self._check("select", owner)
        return [copy.deepcopy(r) for r in self.tables[table] if r["user_id"] == owner]

    async def insert(self, table, row, owner):
        self.calls.append(("insert", table, owner, row))
        self._check("insert", owner)
        created = {**row, "id": f"{table}-{next(self._ids)}", "user_id": owner}
        self.tables[table].append(created)
        return copy.deepcopy(created)

    async def update(self, table, record_id, owner, fields):
        self.calls.append(("update", table, owner, record_id, fields))
        self._check("update", owner)
        for row in self.tables[table]:
            if row["id"] == record_id and row["user_id"] == owner:
                row.update(fields)
                return
        raise RemoteStoreError(f"No row {record_id}", status_code=404)

    async def delete(self, table, record_id, owner):
        self.calls.append(("delete", table, owner, record_id))
        self._check("delete", owner)
        before = len(self.tables[table])
        self.tables[table] = [
            r for r in self.tables[table] if not (r["id"] == record_id and r["user_id"] == owner)
        ]
        if len(self.tables[table]) == before:
            raise RemoteStoreError(f"No row {record_id}", status_code=404)


class FakeBackend:
    """
    MockTransport handler serving a PostgREST-like API and the static app shell.

    Set ``online = False`` to make every request raise ``httpx.ConnectError``.
    """

    def __init__(self):
        self.online = True
        self.rows: dict[str, list[dict[str, Any]]] = {"subjects": [], "notes": []}
        self.assets: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.asset_version = 1
        self._ids = itertools.count(1)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.online:
            raise httpx.ConnectError("network down", request=request)

        path = request.url.path
        if path.startswith(REST_PATH + "/"):
            return self._rest(request, path[len(REST_PATH) + 1:])
        if path == "/api/grades":
            return httpx.Response(200, json={"grades": [9, 10], "version": self.asset_version})
        if path in self.assets:
            return httpx.Response(200, content=self.assets[path])
        return httpx.Response(404, text="not found")

    @staticmethod
    def _filters(request: httpx.Request) -> dict[str, str]:
        return {
            k: v[3:]
            for k, v in request.url.params.items()
            if k != "select" and v.startswith("eq.")
        }

    def _matching(self, table: str, filters: dict[str, str]) -> list[dict[str, Any]]:
        return [r for r in self.rows[table] if all(str(r.get(k)) == v for k, v in filters.items())]

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        if table not in self.rows:
            return httpx.Response(404, json={"message": "unknown table"})
        filters = self._filters(request)
        if request.method == "GET":
            return httpx.Response(200, json=self._matching(table, filters))
        if request.method == "POST":
            row = json.loads(request.content)
            row["id"] = f"{table[:-1]}-{next(self._ids)}"
            self.rows[table].append(row)
            return httpx.Response(201, json=[row])
        if request.method == "PATCH":
            matched = self._matching(table, filters)
            for row in matched:
                row.update(json.loads(request.content))
            return httpx.Response(200, json=matched)
        if request.method == "DELETE":
            matched = self._matching(table, filters)
            self.rows[table] = [r for r in self.rows[table] if r not in matched]
            return httpx.Response(200, json=matched)
        return httpx.Response(405)


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def notifier():
    return Notifier(history=20)


@pytest.fixture
def session():
    return SessionProvider()


@pytest.fixture
def alice():
    return Identity(user_id="alice", email="alice@example.com")


@pytest.fixture
def bob():
    return Identity(user_id="bob")


@pytest.fixture
def backend():
    fake = FakeBackend()
    for path in ("/", "/index.html", "/offline.html", "/manifest.json", "/favicon.ico",
                 "/index.css", "/src/main.tsx"):
        fake.assets[path] = f"asset {path}".encode()
    for size in (72, 96, 128, 144, 152, 192, 384, 512):
        fake.assets[f"/icons/icon-{size}x{size}.png"] = b"png"
    for name in ("Regular", "Medium", "Bold"):
        fake.assets[f"/fonts/Aeonik-{name}.woff2"] = b"woff2"
    fake.assets["/offline.html"] = b"<h1>offline</h1>"
    return fake


@pytest.fixture
def backend_settings():
    return BackendSettings(
        url=ORIGIN,
        rest_path=REST_PATH,
        anon_key="anon-key",
        read_retry_attempts=2,
        read_retry_backoff=0,
    )


@pytest.fixture
def cache_settings():
    return CacheSettings(origin=ORIGIN, version="v1")


@pytest.fixture
def settings(backend_settings, cache_settings):
    return Settings(backend=backend_settings, cache=cache_settings)
