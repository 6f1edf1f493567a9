from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from core import db
from listing.builder import BoundedQuery
from resources import repository


class FakeTransaction:
    def __init__(self, conn: "FakeConnection") -> None:
        self.conn = conn

    async def __aenter__(self):
        self.conn.in_transaction = True
        return self

    async def __aexit__(self, *exc):
        self.conn.in_transaction = False
        return False


class FakeConnection:
    def __init__(self, rows, total) -> None:
        self.rows = rows
        self.total = total
        self.in_transaction = False
        self.transaction_options: dict = {}
        self.calls: list[tuple[str, bool, tuple]] = []

    def transaction(self, **options):
        self.transaction_options = options
        return FakeTransaction(self)

    async def fetch(self, sql, *args):
        self.calls.append(("fetch", self.in_transaction, args))
        return self.rows

    async def fetchval(self, sql, *args):
        self.calls.append(("fetchval", self.in_transaction, args))
        return self.total


class FakeAcquire:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *exc):
        return False


class FakePool:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.acquired = 0

    def acquire(self):
        self.acquired += 1
        return FakeAcquire(self.conn)


@pytest.fixture
def conn(monkeypatch) -> FakeConnection:
    connection = FakeConnection(rows=[{"id": uuid4(), "status": "scheduled"}], total=41)
    monkeypatch.setattr(db, "_pool", FakePool(connection))
    return connection


class TestFetchPage:
    def test_rows_and_count_share_one_snapshot(self, conn):
        query = BoundedQuery(filters={"status": "scheduled"}, page=3, limit=20)

        rows, total = asyncio.run(repository.fetch_page("healthcare_platform_appointments", query))

        assert db.pool().acquired == 1
        assert conn.transaction_options == {"isolation": "repeatable_read", "readonly": True}
        assert [(name, inside) for name, inside, _ in conn.calls] == [("fetch", True), ("fetchval", True)]
        assert rows == conn.rows
        assert total == 41

    def test_count_takes_only_filter_arguments(self, conn):
        query = BoundedQuery(filters={"status": "scheduled"}, page=2, limit=10)

        asyncio.run(repository.fetch_page("healthcare_platform_appointments", query))

        (_, _, page_args), (_, _, count_args) = conn.calls
        assert page_args == ("scheduled", 10, 10)
        assert count_args == ("scheduled",)
