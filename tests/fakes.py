from datetime import datetime, timezone


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeAPIError(Exception):
    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


def _ts() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


class FakeQuery:
    def __init__(self, table_name: str, db: "FakeSupabase"):
        self.table_name = table_name
        self.db = db
        self.operation = "select"
        self.insert_payload = None
        self.update_payload = None
        self.filters = []
        self.order_by = None
        self.limit_count = None
        self.offset = 0

    def select(self, _fields: str = "*"):
        self.operation = "select"
        return self

    def insert(self, payload: dict):
        self.operation = "insert"
        self.insert_payload = payload
        return self

    def update(self, payload: dict):
        self.operation = "update"
        self.update_payload = payload
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, key: str, value):
        self.filters.append(("eq", key, value))
        return self

    def gte(self, key: str, value):
        self.filters.append(("gte", key, value))
        return self

    def order(self, key: str, desc: bool = False):
        self.order_by = (key, desc)
        return self

    def limit(self, count: int):
        self.limit_count = count
        return self

    def range(self, start: int, end: int):
        self.offset = start
        self.limit_count = end - start + 1
        return self

    def _matches(self, row: dict) -> bool:
        for kind, key, value in self.filters:
            if kind == "eq" and row.get(key) != value:
                return False
            if kind == "gte":
                current = _as_datetime(row.get(key))
                bound = _as_datetime(value)
                if current is None or bound is None or current < bound:
                    return False
        return True

    def execute(self):
        self.db.calls.append((self.table_name, self.operation))
        failure = self.db.failures.get((self.table_name, self.operation))
        if failure is not None:
            raise failure

        table = self.db.tables.setdefault(self.table_name, [])
        if self.operation == "insert":
            row = dict(self.insert_payload or {})
            for column in self.db.unique.get(self.table_name, ()):
                if any(existing.get(column) == row.get(column) for existing in table):
                    raise FakeAPIError(
                        f'duplicate key value violates unique constraint "{self.table_name}_{column}_key"',
                        code="23505",
                    )
            row.setdefault("id", f"{self.table_name}-{len(table) + 1}")
            row.setdefault("created_at", _ts())
            table.append(row)
            return FakeResponse([dict(row)])

        if self.operation == "update":
            updated = []
            for row in table:
                if self._matches(row):
                    row.update(self.update_payload or {})
                    updated.append(dict(row))
            return FakeResponse(updated)

        if self.operation == "delete":
            deleted = [row for row in table if self._matches(row)]
            self.db.tables[self.table_name] = [row for row in table if not self._matches(row)]
            return FakeResponse([dict(row) for row in deleted])

        rows = [dict(row) for row in table if self._matches(row)]
        if self.order_by:
            key, desc = self.order_by
            rows.sort(key=lambda row: (row.get(key) is None, row.get(key)), reverse=desc)
        rows = rows[self.offset:]
        if self.limit_count is not None:
            rows = rows[: self.limit_count]
        return FakeResponse(rows)


class FakeSupabase:
    def __init__(self, tables: dict | None = None, unique: dict | None = None):
        self.tables = tables or {}
        self.unique = unique or {}
        self.failures = {}
        self.calls = []

    def table(self, table_name: str):
        return FakeQuery(table_name, self)

    def fail(self, table_name: str, operation: str, exc: Exception) -> None:
        self.failures[(table_name, operation)] = exc
