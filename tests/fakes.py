"""In-memory stand-ins for the Supabase query builder and the HTTP session."""

from __future__ import annotations

import copy
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

HOME = "team-home"
AWAY = "team-away"


class FakeResponse:
    def __init__(self, data: Optional[List[Dict[str, Any]]]):
        self.data = data
        self.count = len(data or [])


class FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._negate = False
        self._orders: List[tuple] = []
        self._limit: Optional[int] = None
        self._range: Optional[tuple] = None

    # --- operations ---
    def select(self, columns: str = "*", count: Optional[str] = None):
        self.op = "select"
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def upsert(self, rows, on_conflict: str = "id", ignore_duplicates: bool = False):
        self.op, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def update(self, values):
        self.op, self.payload = "update", values
        return self

    def delete(self):
        self.op = "delete"
        return self

    # --- filters ---
    @property
    def not_(self):
        self._negate = True
        return self

    def _add(self, predicate: Callable[[Dict[str, Any]], bool]):
        if self._negate:
            self._negate = False
            self.filters.append(lambda row: not predicate(row))
        else:
            self.filters.append(predicate)
        return self

    def eq(self, col, value):
        return self._add(lambda r: r.get(col) == value)

    def neq(self, col, value):
        return self._add(lambda r: r.get(col) != value)

    def in_(self, col, values):
        values = list(values)
        return self._add(lambda r: r.get(col) in values)

    def is_(self, col, value):
        if value in ("null", None):
            return self._add(lambda r: r.get(col) is None)
        return self._add(lambda r: r.get(col) == value)

    def like(self, col, pattern):
        regex = re.compile("^" + ".*".join(re.escape(p) for p in pattern.split("%")) + "$")
        return self._add(lambda r: r.get(col) is not None and bool(regex.match(str(r.get(col)))))

    def gte(self, col, value):
        return self._add(lambda r: r.get(col) is not None and r.get(col) >= value)

    def gt(self, col, value):
        return self._add(lambda r: r.get(col) is not None and r.get(col) > value)

    def lte(self, col, value):
        return self._add(lambda r: r.get(col) is not None and r.get(col) <= value)

    def lt(self, col, value):
        return self._add(lambda r: r.get(col) is not None and r.get(col) < value)

    # --- modifiers ---
    def order(self, col, desc: bool = False):
        self._orders.append((col, desc))
        return self

    def limit(self, n):
        self._limit = n
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        return [r for r in self.client.rows(self.table) if all(f(r) for f in self.filters)]

    def execute(self) -> FakeResponse:
        self.client.calls.append((self.table, self.op))
        if self.table in self.client.fail_tables:
            raise RuntimeError(f"simulated failure on {self.table}")
        handler = getattr(self, f"_exec_{self.op}")
        return FakeResponse(handler())

    def _exec_select(self):
        rows = self._matching()
        for col, desc in reversed(self._orders):
            rows.sort(key=lambda r, col=col: (r.get(col) is None, str(r.get(col))), reverse=desc)
        if self._range:
            rows = rows[self._range[0]:self._range[1] + 1]
        if self._limit is not None:
            rows = rows[:self._limit]
        return [copy.deepcopy(r) for r in rows]

    def _exec_insert(self):
        rows = self.payload if isinstance(self.payload, list) else [self.payload]
        return [copy.deepcopy(self.client.add(self.table, r)) for r in rows]

    def _exec_upsert(self):
        rows = self.payload if isinstance(self.payload, list) else [self.payload]
        keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
        out = []
        for row in rows:
            existing = next(
                (r for r in self.client.rows(self.table) if all(r.get(k) == row.get(k) for k in keys)),
                None,
            )
            if existing is not None:
                existing.update(copy.deepcopy(row))
                out.append(copy.deepcopy(existing))
            else:
                out.append(copy.deepcopy(self.client.add(self.table, row)))
        return out

    def _exec_update(self):
        out = []
        for row in self._matching():
            row.update(copy.deepcopy(self.payload))
            out.append(copy.deepcopy(row))
        return out

    def _exec_delete(self):
        doomed = self._matching()
        ids = {id(r) for r in doomed}
        self.client.tables[self.table] = [r for r in self.client.rows(self.table) if id(r) not in ids]
        return [copy.deepcopy(r) for r in doomed]


class FakeSupabase:
    """Enough of supabase.Client for DatabaseClient: table(...) query chains over dict rows."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_tables: set = set()
        self.fail_rpcs: set = set()
        self.rpc_calls: List[tuple] = []
        self.calls: List[tuple] = []
        self._seq = 0
        for name, rows in (tables or {}).items():
            for row in rows:
                self.add(name, row)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def add(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        self._seq += 1
        stored = copy.deepcopy(row)
        stored.setdefault("id", f"{table}-{self._seq}")
        stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self.rows(table).append(stored)
        return stored

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, fn: str, params: Optional[Dict[str, Any]] = None) -> "FakeRpc":
        return FakeRpc(self, fn, params or {})


class FakeRpc:
    def __init__(self, client: FakeSupabase, fn: str, params: Dict[str, Any]):
        self.client = client
        self.fn = fn
        self.params = params

    def execute(self) -> FakeResponse:
        self.client.rpc_calls.append((self.fn, dict(self.params)))
        if self.fn in self.client.fail_rpcs:
            raise RuntimeError(f"simulated rpc failure in {self.fn}")
        return FakeResponse(None)


# ------------------------------ HTTP ------------------------------

class FakeHttpResponse:
    def __init__(self, status_code: int = 200, text: str = "", headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        self.text = text
        self.headers = headers or {"content-type": "text/html"}


class FakeSession:
    """requests.Session stand-in: `routes(method, url, data)` returns a response or raises."""

    def __init__(self, routes: Callable[[str, str, Any], FakeHttpResponse]):
        self.routes = routes
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, headers=None, data=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": headers or {}, "data": data})
        return self.routes(method, url, data)


def queued(*responses):
    """Route that hands out responses in order (exceptions are raised)."""
    pending = list(responses)

    def _route(method, url, data):
        item = pending.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    return _route
