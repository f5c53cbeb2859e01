"""Shared fixtures: an in-memory stand-in for the Supabase table API.

``FakeSupabase`` implements the slice of the PostgREST query builder the
package uses (select/insert/upsert/update/delete plus eq/in_/lt/not_.is_/
order/limit/range) against plain lists of dicts, plus the two database
functions called through ``rpc``, so queue, worker and search logic can be
exercised without a database.
"""

from __future__ import annotations

import copy
import itertools
import math
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock

import pytest

Row = dict[str, Any]

UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "embedding_queue": ("source_type", "source_id"),
    "workspace_embeddings": ("user_id", "source_type", "source_id", "chunk_index"),
}

BASE_TIME = datetime(2026, 1, 1, tzinfo=UTC)


class FakeResult:
    def __init__(self, data: list[Row], count: int | None = None) -> None:
        self.data = data
        self.count = count


def _same(value: Any, expected: Any) -> bool:
    if value is None or expected is None:
        return value is expected
    return str(value) == str(expected)


class FakeQuery:
    def __init__(self, db: FakeSupabase, table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._count: str | None = None
        self._head = False
        self._payload: Any = None
        self._on_conflict: tuple[str, ...] = ()
        self._ignore_duplicates = False
        self._filters: list[Callable[[Row], bool]] = []
        self._negate_next = False
        self._order: list[tuple[str, bool]] = []
        self._limit: int | None = None
        self._range: tuple[int, int] | None = None

    # -- operations ---------------------------------------------------------

    def select(self, columns: str = "*", count: str | None = None, head: bool = False) -> FakeQuery:
        self._op = "select"
        self._columns = columns
        self._count = count
        self._head = head
        return self

    def insert(self, rows: Row | list[Row]) -> FakeQuery:
        self._op = "insert"
        self._payload = rows if isinstance(rows, list) else [rows]
        return self

    def upsert(
        self,
        rows: Row | list[Row],
        on_conflict: str = "",
        ignore_duplicates: bool = False,
    ) -> FakeQuery:
        self._op = "upsert"
        self._payload = rows if isinstance(rows, list) else [rows]
        self._on_conflict = tuple(c.strip() for c in on_conflict.split(",") if c.strip())
        self._ignore_duplicates = ignore_duplicates
        return self

    def update(self, values: Row) -> FakeQuery:
        self._op = "update"
        self._payload = values
        return self

    def delete(self) -> FakeQuery:
        self._op = "delete"
        return self

    # -- filters ------------------------------------------------------------

    @property
    def not_(self) -> FakeQuery:
        self._negate_next = True
        return self

    def _add(self, predicate: Callable[[Row], bool]) -> FakeQuery:
        if self._negate_next:
            self._negate_next = False
            self._filters.append(lambda row: not predicate(row))
        else:
            self._filters.append(predicate)
        return self

    def eq(self, column: str, value: Any) -> FakeQuery:
        return self._add(lambda row: _same(row.get(column), value))

    def neq(self, column: str, value: Any) -> FakeQuery:
        return self._add(lambda row: not _same(row.get(column), value))

    def in_(self, column: str, values: list[Any]) -> FakeQuery:
        wanted = {str(v) for v in values}
        return self._add(lambda row: row.get(column) is not None and str(row.get(column)) in wanted)

    def lt(self, column: str, value: Any) -> FakeQuery:
        return self._add(lambda row: row.get(column) is not None and row[column] < value)

    def is_(self, column: str, value: str) -> FakeQuery:
        if value != "null":
            raise NotImplementedError(value)
        return self._add(lambda row: row.get(column) is None)

    def order(self, column: str, desc: bool = False) -> FakeQuery:
        self._order.append((column, desc))
        return self

    def limit(self, size: int) -> FakeQuery:
        self._limit = size
        return self

    def range(self, start: int, end: int) -> FakeQuery:
        self._range = (start, end)
        return self

    # -- execution ----------------------------------------------------------

    def _matching(self) -> list[Row]:
        return [r for r in self._db.rows(self._table) if all(f(r) for f in self._filters)]

    def _project(self, row: Row) -> Row:
        if self._columns.strip() == "*":
            return copy.deepcopy(row)
        columns = [c.strip() for c in self._columns.split(",")]
        return {c: copy.deepcopy(row.get(c)) for c in columns}

    def execute(self) -> FakeResult:
        self._db.calls.append((self._table, self._op))
        failure = self._db.failures.get((self._table, self._op))
        if failure is not None:
            raise failure

        if self._op == "select":
            return self._execute_select()
        if self._op in ("insert", "upsert"):
            return FakeResult(self._db.write(self._table, self._payload, self._op, self))
        if self._op == "update":
            updated = []
            for row in self._matching():
                row.update(copy.deepcopy(self._payload))
                updated.append(copy.deepcopy(row))
            return FakeResult(updated)
        removed = self._matching()
        gone = {id(r) for r in removed}
        self._db.tables[self._table] = [r for r in self._db.rows(self._table) if id(r) not in gone]
        return FakeResult(copy.deepcopy(removed))

    def _execute_select(self) -> FakeResult:
        rows = self._matching()
        for column, desc in reversed(self._order):
            rows.sort(key=lambda r, c=column: (r.get(c) is None, "" if r.get(c) is None else r[c]))
            if desc:
                rows.reverse()
        count = len(rows) if self._count else None
        if self._range is not None:
            rows = rows[self._range[0] : self._range[1] + 1]
        if self._limit is not None:
            rows = rows[: self._limit]
        data = [] if self._head else [self._project(r) for r in rows]
        return FakeResult(data, count)


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeRpc:
    def __init__(self, db: FakeSupabase, name: str, params: Row) -> None:
        self._db = db
        self._name = name
        self._params = params

    def execute(self) -> FakeResult:
        self._db.calls.append(("rpc", self._name))
        handler = getattr(self._db, f"_rpc_{self._name}", None)
        if handler is None:
            raise NotImplementedError(self._name)
        return FakeResult(handler(**copy.deepcopy(self._params)))


class FakeSupabase:
    """In-memory tables keyed by name; rows get ``id`` and ``created_at`` on insert."""

    def __init__(self) -> None:
        self.tables: dict[str, list[Row]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.auth = MagicMock()
        self._ids = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Row) -> FakeRpc:
        return FakeRpc(self, name, params)

    # -- database functions (see sql/workspace_embeddings.sql) --------------

    def _rpc_search_workspace_embeddings(
        self,
        query_embedding: list[float],
        match_user_id: str,
        match_count: int = 10,
        min_similarity: float = 0.3,
        source_types: list[str] | None = None,
    ) -> list[Row]:
        failure = self.failures.get(("rpc", "search_workspace_embeddings"))
        if failure is not None:
            raise failure
        hits = []
        for row in self.rows("workspace_embeddings"):
            if not _same(row.get("user_id"), match_user_id):
                continue
            if source_types is not None and row["source_type"] not in source_types:
                continue
            similarity = _cosine(query_embedding, row["embedding"])
            if similarity < min_similarity:
                continue
            hit = {k: copy.deepcopy(row.get(k)) for k in
                   ("id", "source_type", "source_id", "chunk_index", "content", "metadata")}
            hit["similarity"] = similarity
            hits.append(hit)
        hits.sort(key=lambda h: h["similarity"], reverse=True)
        return hits[:match_count]

    def _rpc_replace_source_chunks(self, p_source_type: str, p_source_id: str, p_rows: list[Row]) -> int:
        # Staged on a copy and swapped in at the end, like the real transaction.
        table = "workspace_embeddings"
        staged = [
            r for r in self.rows(table)
            if not (r["source_type"] == p_source_type and _same(r["source_id"], p_source_id))
        ]
        keys = UNIQUE_KEYS[table]
        for incoming in p_rows:
            if any(all(_same(r.get(k), incoming.get(k)) for k in keys) for r in staged):
                raise ValueError(f"duplicate key value violates unique constraint on {table}")
            staged.append(self._with_defaults(copy.deepcopy(incoming)))
        failure = self.failures.get(("rpc", "replace_source_chunks"))
        if failure is not None:
            raise failure
        self.tables[table] = staged
        return len(p_rows)

    def rows(self, name: str) -> list[Row]:
        return self.tables.setdefault(name, [])

    def seed(self, name: str, *rows: Row) -> None:
        for row in rows:
            self.rows(name).append(self._with_defaults(dict(row)))

    def fail(self, table: str, op: str, exc: Exception) -> None:
        self.failures[(table, op)] = exc

    def _with_defaults(self, row: Row) -> Row:
        n = next(self._ids)
        row.setdefault("id", n)
        row.setdefault("created_at", (BASE_TIME + timedelta(seconds=n)).isoformat())
        return row

    def write(self, name: str, payload: list[Row], op: str, query: FakeQuery) -> list[Row]:
        table = self.rows(name)
        keys = query._on_conflict or UNIQUE_KEYS.get(name, ())
        written: list[Row] = []
        for incoming in payload:
            existing = None
            if keys:
                existing = next(
                    (r for r in table if all(_same(r.get(k), incoming.get(k)) for k in keys)),
                    None,
                )
            if existing is not None:
                if op == "insert":
                    raise ValueError(f"duplicate key value violates unique constraint on {name}")
                if query._ignore_duplicates:
                    continue
                existing.update(copy.deepcopy(incoming))
                written.append(copy.deepcopy(existing))
                continue
            row = self._with_defaults(copy.deepcopy(incoming))
            table.append(row)
            written.append(copy.deepcopy(row))
        return written


@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase()


def fake_vector(text: str, dims: int = 8) -> list[float]:
    """Deterministic non-zero vector derived from *text*."""
    seed = sum(ord(c) for c in text) or 1
    return [((seed * (i + 3)) % 17 + 1) / 17 for i in range(dims)]


@pytest.fixture
def fake_embed() -> Callable[[list[str]], list[list[float]]]:
    def _embed(texts: list[str], model: str | None = None) -> list[list[float]]:
        return [fake_vector(t) for t in texts]

    return _embed


def transcript_row(transcript_id: int, user_id: str = "user-1", **overrides: Any) -> Row:
    row: Row = {
        "id": transcript_id,
        "user_id": user_id,
        "title": f"Discovery call {transcript_id}",
        "ai_overall_score": 72,
        "ai_summary": "Prospect is evaluating three vendors.",
        "ai_what_worked": ["Clear agenda"],
        "ai_improvement_areas": ["Ask about budget earlier"],
        "ai_deal_signal": "positive",
        "ai_deal_risk_alerts": [],
        "duration": 30,
        "participants": ["Jane Doe", "Bob Buyer"],
        "sentences": [
            {"speaker_name": "Jane Doe", "text": "Thanks for taking the time to talk today."},
            {"speaker_name": "Bob Buyer", "text": "Happy to, we are looking at a few options."},
        ],
    }
    row.update(overrides)
    return row


@pytest.fixture
def make_transcript() -> Callable[..., Row]:
    return transcript_row
