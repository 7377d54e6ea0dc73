"""In-memory stand-in for the async Supabase client used by the tests.

Supports the slice of the PostgREST query builder the services use:
select (with count="exact"), eq, in_, or_, ilike, contains, gte, lte, lt,
is_ (optionally behind not_), order, range, limit, insert, update, upsert
and delete. `rpc` calls the handler registered under `procedures[name]`.
Rows live in plain dicts keyed by table name; ids and timestamps are filled
in on insert.

Storage buckets record removed paths and hand out deterministic signed
upload URLs. `fail(table, error)` makes every query on a table raise.
"""
import re
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

from supabase import PostgrestAPIError

_BASE_TIME = datetime(2020, 1, 1, tzinfo=timezone.utc)


def postgrest_error(message: str = "boom", code: str = "XX000") -> PostgrestAPIError:
    return PostgrestAPIError({"message": message, "code": code, "hint": None, "details": None})


def _norm(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return None
    return str(value)


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


def _like_regex(pattern: str) -> "re.Pattern[str]":
    parts = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def _split_or(expression: str) -> List[str]:
    """Split a PostgREST or() expression on commas outside parens and quotes."""
    clauses, current, depth, quoted, i = [], [], 0, False, 0
    while i < len(expression):
        char = expression[i]
        if quoted and char == "\\" and i + 1 < len(expression):
            current.append(expression[i : i + 2])
            i += 2
            continue
        if char == '"':
            quoted = not quoted
        elif not quoted and char == "(":
            depth += 1
        elif not quoted and char == ")":
            depth -= 1
        if char == "," and depth == 0 and not quoted:
            clauses.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    if current:
        clauses.append("".join(current))
    return clauses


def _unquote(value: str) -> str:
    if len(value) < 2 or not (value.startswith('"') and value.endswith('"')):
        return value
    out, i, body = [], 0, value[1:-1]
    while i < len(body):
        if body[i] == "\\" and i + 1 < len(body):
            out.append(body[i + 1])
            i += 2
            continue
        out.append(body[i])
        i += 1
    return "".join(out)


def _eq(column, value):
    return lambda row: _norm(row.get(column)) == _norm(value)


def _in(column, values):
    wanted = {_norm(v) for v in values}
    return lambda row: _norm(row.get(column)) in wanted


def _ilike(column, pattern):
    regex = _like_regex(pattern)
    return lambda row: row.get(column) is not None and bool(regex.match(str(row[column])))


def _compare(column, value, op):
    target = _comparable(value)

    def predicate(row):
        current = row.get(column)
        if current is None:
            return False
        return op(_comparable(current), target)

    return predicate


def _or_clause(clause: str):
    parts = clause.split(".", 2)
    if len(parts) != 3:
        raise postgrest_error(f"failed to parse logic tree ({clause})", "PGRST100")
    column, op, value = parts
    value = _unquote(value)
    if op == "eq":
        return _eq(column, value)
    if op == "ilike":
        return _ilike(column, value)
    if op == "in":
        return _in(column, value.strip("()").split(","))
    raise ValueError(f"Unsupported or() operator in fake: {op}")


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.count_mode: Optional[str] = None
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: List[Any] = []
        self.orders: List[tuple] = []
        self.range_bounds: Optional[tuple] = None
        self.limit_n: Optional[int] = None
        self.parse_error: Optional[PostgrestAPIError] = None
        self.negate_next = False

    # Operations

    def select(self, columns: str = "*", count: Optional[str] = None):
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def update(self, changes):
        self.op, self.payload = "update", dict(changes)
        return self

    def delete(self):
        self.op = "delete"
        return self

    # Filters

    def eq(self, column, value):
        self.filters.append(_eq(column, value))
        return self

    def in_(self, column, values):
        self.filters.append(_in(column, list(values)))
        return self

    def ilike(self, column, pattern):
        self.filters.append(_ilike(column, pattern))
        return self

    def contains(self, column, values):
        wanted = set(values)
        self.filters.append(lambda row: wanted.issubset(set(row.get(column) or [])))
        return self

    def gte(self, column, value):
        self.filters.append(_compare(column, value, lambda a, b: a >= b))
        return self

    def lte(self, column, value):
        self.filters.append(_compare(column, value, lambda a, b: a <= b))
        return self

    def lt(self, column, value):
        self.filters.append(_compare(column, value, lambda a, b: a < b))
        return self

    @property
    def not_(self):
        self.negate_next = True
        return self

    def is_(self, column, value):
        wanted = None if value in (None, "null") else value
        negate, self.negate_next = self.negate_next, False
        self.filters.append(lambda row: (row.get(column) is wanted) != negate)
        return self

    def or_(self, expression: str):
        try:
            predicates = [_or_clause(c) for c in _split_or(expression)]
        except PostgrestAPIError as e:
            self.parse_error = e
            return self
        self.filters.append(lambda row: any(p(row) for p in predicates))
        return self

    # Modifiers

    def order(self, column, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def range(self, start: int, end: int):
        self.range_bounds = (start, end)
        return self

    def limit(self, n: int):
        self.limit_n = n
        return self

    # Execution

    def _matching(self) -> List[Dict[str, Any]]:
        return [row for row in self.db.tables.setdefault(self.table, []) if all(f(row) for f in self.filters)]

    def _project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self.columns.strip() == "*":
            return dict(row)
        return {c.strip(): row.get(c.strip()) for c in self.columns.split(",")}

    async def execute(self):
        self.db.calls.append((self.table, self.op))
        failure = self.db.failures.get(self.table)
        if failure is not None:
            raise failure
        if self.parse_error is not None:
            raise self.parse_error

        if self.op == "insert":
            return self.db._insert(self.table, self.payload)
        if self.op == "upsert":
            return self.db._upsert(self.table, self.payload, self.on_conflict)

        rows = self._matching()
        if self.op == "update":
            for row in rows:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in rows], count=None)
        if self.op == "delete":
            table = self.db.tables[self.table]
            self.db.tables[self.table] = [r for r in table if r not in rows]
            return SimpleNamespace(data=[dict(r) for r in rows], count=None)

        for column, desc in reversed(self.orders):
            rows = sorted(
                rows,
                key=lambda r: (r.get(column) is None, _comparable(r.get(column))) if not desc
                else (r.get(column) is not None, _comparable(r.get(column))),
                reverse=desc,
            )
        count = len(rows) if self.count_mode else None
        if self.range_bounds is not None:
            start, end = self.range_bounds
            rows = rows[start : end + 1]
        if self.limit_n is not None:
            rows = rows[: self.limit_n]
        return SimpleNamespace(data=[self._project(r) for r in rows], count=count)


class FakeRpc:
    """Call of a Postgres function; tests register handlers in `FakeSupabase.procedures`."""

    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]):
        self.db = db
        self.name = name
        self.params = params

    async def execute(self):
        self.db.calls.append((self.name, "rpc"))
        failure = self.db.failures.get(self.name)
        if failure is not None:
            raise failure
        handler = self.db.procedures.get(self.name)
        if handler is None:
            raise postgrest_error(f"Could not find the function public.{self.name}", "PGRST202")
        return SimpleNamespace(data=handler(self.db, self.params), count=None)


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    async def create_signed_upload_url(self, path: str):
        if self.storage.failure is not None:
            raise self.storage.failure
        return {
            "signed_url": f"http://storage.test/upload/sign/{self.name}/{path}?token=upload-token",
            "token": "upload-token",
            "path": path,
        }

    async def remove(self, paths: List[str]):
        if self.storage.failure is not None:
            raise self.storage.failure
        self.storage.removed.extend(paths)
        return [{"name": p} for p in paths]


class FakeStorage:
    def __init__(self):
        self.removed: List[str] = []
        self.failure: Optional[Exception] = None

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)


class FakeAuth:
    """Maps access tokens to users for `auth.get_user`."""

    def __init__(self):
        self.users: Dict[str, SimpleNamespace] = {}

    def add_token(self, token: str, user_id: str, email: Optional[str] = None):
        self.users[token] = SimpleNamespace(id=user_id, email=email)

    async def get_user(self, token: str):
        user = self.users.get(token)
        return SimpleNamespace(user=user) if user else None


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self.procedures: Dict[str, Callable[["FakeSupabase", Dict[str, Any]], Any]] = {}
        self.storage = FakeStorage()
        self.auth = FakeAuth()
        self._clock = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> FakeRpc:
        return FakeRpc(self, name, dict(params or {}))

    def seed(self, table: str, *rows: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._insert(table, list(rows)).data

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [dict(r) for r in self.tables.get(table, [])]

    def fail(self, table: str, error: Optional[Exception] = None):
        self.failures[table] = error or postgrest_error()

    def _tick(self) -> str:
        self._clock += 1
        return (_BASE_TIME + timedelta(seconds=self._clock)).isoformat()

    def _insert(self, table: str, payload):
        rows = payload if isinstance(payload, list) else [payload]
        stored = self.tables.setdefault(table, [])
        created = []
        for source in rows:
            row = dict(source)
            row.setdefault("id", str(uuid.uuid4()))
            if any(existing["id"] == row["id"] for existing in stored):
                raise postgrest_error(f"duplicate key value violates unique constraint \"{table}_pkey\"", "23505")
            stamp = self._tick()
            row.setdefault("created_at", stamp)
            row.setdefault("updated_at", stamp)
            stored.append(row)
            created.append(dict(row))
        return SimpleNamespace(data=created, count=None)

    def _upsert(self, table: str, payload, on_conflict: Optional[str]):
        keys = [k.strip() for k in (on_conflict or "id").split(",")]
        stored = self.tables.setdefault(table, [])
        for row in stored:
            if all(_norm(row.get(k)) == _norm(payload.get(k)) for k in keys):
                row.update(payload)
                return SimpleNamespace(data=[dict(row)], count=None)
        return self._insert(table, payload)
