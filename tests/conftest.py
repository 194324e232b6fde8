import os
import tempfile

os.environ.setdefault("DAYLINE_DATA_DIR", tempfile.mkdtemp(prefix="dayline-tests-"))

import copy
from itertools import count
from typing import Any, Callable, Dict, List, Optional

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import dayline.models  # noqa: F401
from dayline.services.auth import AuthSession
from dayline.services.connectivity import StaticConnectivity
from dayline.services.remote_store import RemoteRequestError, RemoteUnavailableError
from dayline.storage import migrations
from dayline.storage.local_store import LocalStore


USER = "user-1"


class FakeRemote:
    """In-memory stand-in for the PostgREST tables."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.offline = False
        self.offline_after: Optional[int] = None
        self.reject: Optional[Callable[[str, Dict[str, Any]], Optional[str]]] = None
        self.failing_selects: set = set()
        self._ids = count(1)

    # helpers -----------------------------------------------------------
    def seed(self, table: str, *rows: Dict[str, Any]) -> None:
        for row in rows:
            data = dict(row)
            data.setdefault("id", next(self._ids))
            self.tables.setdefault(table, []).append(data)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def _enter(self, *call) -> None:
        self.calls.append(call)
        if self.offline:
            raise RemoteUnavailableError("network down")
        if self.offline_after is not None and len(self.calls) > self.offline_after:
            raise RemoteUnavailableError("network dropped")

    @staticmethod
    def _matches(row: Dict[str, Any], filters) -> bool:
        for column, raw in filters.items():
            op, value = raw if isinstance(raw, tuple) else ("eq", raw)
            current = row.get(column)
            if op == "eq" and current != value:
                return False
            if op == "neq" and current == value:
                return False
            if op == "is" and current is not value:
                return False
            if op in ("lt", "lte", "gt", "gte"):
                if current is None:
                    return False
                if op == "lt" and not current < value:
                    return False
                if op == "lte" and not current <= value:
                    return False
                if op == "gt" and not current > value:
                    return False
                if op == "gte" and not current >= value:
                    return False
        return True

    # RemoteStore -------------------------------------------------------
    async def select(self, table, filters, columns="*", order=None, limit=None):
        self._enter("select", table, dict(filters))
        if table in self.failing_selects:
            raise RemoteRequestError("select rejected", 400)
        rows = [copy.deepcopy(r) for r in self.rows(table) if self._matches(r, filters)]
        if order:
            column, _, direction = order.partition(".")
            rows.sort(key=lambda r: r.get(column), reverse=direction == "desc")
        if limit is not None:
            rows = rows[:limit]
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return rows

    async def upsert(self, table, record, on_conflict):
        self._enter("upsert", table, dict(record))
        if self.reject is not None:
            reason = self.reject(table, record)
            if reason:
                raise RemoteRequestError(reason, 400)
        for row in self.rows(table):
            if all(row.get(c) == record.get(c) for c in on_conflict):
                row.update(copy.deepcopy(record))
                return copy.deepcopy(row)
        self.seed(table, record)
        return copy.deepcopy(self.rows(table)[-1])

    async def insert(self, table, record):
        self._enter("insert", table, dict(record))
        self.seed(table, record)
        return copy.deepcopy(self.rows(table)[-1])

    async def update(self, table, values, filters):
        self._enter("update", table, dict(filters))
        changed = []
        for row in self.rows(table):
            if self._matches(row, filters):
                row.update(values)
                changed.append(copy.deepcopy(row))
        return changed

    async def delete(self, table, filters):
        self._enter("delete", table, dict(filters))
        self.tables[table] = [r for r in self.rows(table) if not self._matches(r, filters)]


class FakeSessions:
    def __init__(self, session: Optional[AuthSession] = None):
        self.session = session

    def load(self):
        return self.session

    def save(self, session):
        self.session = session

    def clear(self):
        self.session = None


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    migrations.run_all(engine)
    return engine


@pytest.fixture()
def session_factory(engine):
    def factory():
        return Session(engine)

    return factory


@pytest.fixture()
def local(session_factory):
    return LocalStore(session_factory)


@pytest.fixture()
def remote():
    return FakeRemote()


@pytest.fixture()
def connectivity():
    return StaticConnectivity(online=True)


@pytest.fixture()
def auth():
    return FakeSessions(AuthSession(user_id=USER, access_token="token-1"))
