import itertools
import re
from types import SimpleNamespace

import pytest

from finora import db


class FakeQuery:
    """Just enough of the supabase/postgrest query builder for the queries in finora.db."""

    def __init__(self, store, table):
        self.store = store
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.filters = []
        self._order = None
        self._limit = None
        self._range = None

    def select(self, columns="*"):
        self.op, self.columns = "select", columns
        return self

    def insert(self, data):
        self.op, self.payload = "insert", data
        return self

    def update(self, data):
        self.op, self.payload = "update", data
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def in_(self, column, values):
        values = set(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def execute(self):
        self.store.calls.append((self.table, self.op, self.payload))
        if self.store.fail_when and self.store.fail_when(self.table, self.op, self.payload):
            raise RuntimeError(f"{self.op} on {self.table} failed")

        rows = self.store.tables.setdefault(self.table, [])
        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            created = []
            for item in items:
                row = dict(item)
                row.setdefault("id", f"{self.table}-{next(self.store.ids)}")
                rows.append(row)
                created.append(dict(row))
            return SimpleNamespace(data=created)

        matched = [row for row in rows if all(f(row) for f in self.filters)]
        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(row) for row in matched])
        if self.op == "delete":
            self.store.tables[self.table] = [row for row in rows if row not in matched]
            return SimpleNamespace(data=[dict(row) for row in matched])

        out = [dict(row) for row in matched]
        embed = re.search(r"(\w+)!inner\(([^)]*)\)", self.columns)
        if embed:
            other, fields = embed.group(1), [f.strip() for f in embed.group(2).split(",")]
            by_id = {row["id"]: row for row in self.store.tables.get(other, [])}
            joined = []
            for row in out:
                target = by_id.get(row.get("stock_id"))
                if target is not None:
                    row[other] = {f: target.get(f) for f in fields}
                    joined.append(row)
            out = joined
        if self._order:
            column, desc = self._order
            out.sort(key=lambda row: row.get(column), reverse=desc)
        if self._limit is not None:
            out = out[:self._limit]
        if self._range is not None:
            out = out[self._range[0]:self._range[1] + 1]
        if self.store.max_rows is not None:
            out = out[:self.store.max_rows]
        return SimpleNamespace(data=out)


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.calls = []
        self.fail_when = None
        # PostgREST caps every response at db-max-rows, 1000 by default
        self.max_rows = None
        self.ids = itertools.count(1)

    def table(self, name):
        return FakeQuery(self, name)

    def rows(self, name):
        return self.tables.get(name, [])


@pytest.fixture
def fake_db():
    client = FakeSupabase()
    db.set_supabase_client(client)
    yield client
    db.set_supabase_client(None)


@pytest.fixture
def app():
    from finora.api import create_app

    app = create_app()
    app.config.update({"TESTING": True, "CRON_SECRET": None})
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
