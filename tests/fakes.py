"""In-memory fakes for the storage and engine protocols.

``InMemoryStorage`` and ``FakeQueryEngine`` satisfy the storage and engine
protocols without any network access.  The engine records every statement
and cancel request and can be scripted with per-submission state sequences.
``RefinedTableEngine`` additionally keeps per-date refined row counts so
that re-running a refinement chunk can be observed end to end.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Callable
from datetime import UTC, datetime

from observation_backfill.errors import ObjectNotFoundError
from observation_backfill.models.query import QueryContext, QueryState, ResultPage
from observation_backfill.sql.dialect import Dialect
from observation_backfill.storage.base import ListPage

FIXED_NOW = datetime(2026, 2, 19, 0, 0, 0, tzinfo=UTC)


class InMemoryStorage:
    """Dict-backed object storage with S3-style paginated listing."""

    def __init__(self, page_size: int = 1000, fail_on_key: str | None = None) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[tuple[str, str], str] = {}
        self.put_order: list[str] = []
        self.list_calls: list[str | None] = []
        self.page_size = page_size
        self.fail_on_key = fail_on_key

    def add(self, bucket: str, key: str, body: bytes = b"x") -> None:
        self.objects[(bucket, key)] = body

    def list_objects(self, bucket: str, prefix: str, continuation_token: str | None = None) -> ListPage:
        self.list_calls.append(continuation_token)
        keys = sorted(key for (b, key) in self.objects if b == bucket and key.startswith(prefix))
        start = int(continuation_token) if continuation_token else 0
        page = keys[start : start + self.page_size]
        end = start + self.page_size
        return ListPage(keys=page, next_token=str(end) if end < len(keys) else None)

    def get_object(self, bucket: str, key: str) -> bytes:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise ObjectNotFoundError(bucket, key) from None

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str = "application/json") -> None:
        if self.fail_on_key is not None and key.endswith(self.fail_on_key):
            raise OSError(f"simulated write failure for {key}")
        self.objects[(bucket, key)] = body
        self.content_types[(bucket, key)] = content_type
        self.put_order.append(key)

    def text(self, bucket: str, key: str) -> str:
        return self.objects[(bucket, key)].decode("utf-8")


class FakeQueryEngine:
    """Scriptable query engine.

    Parameters
    ----------
    script:
        One state sequence per submission, consumed in order.  Each poll
        returns the next state of the sequence; the last one repeats.
        Submissions beyond the script use ``[default_state]``.
    rows:
        Maps a statement to its result rows.
    """

    def __init__(
        self,
        script: list[list[QueryState]] | None = None,
        default_state: QueryState = QueryState.SUCCEEDED,
        rows: Callable[[str], list[list[str | None]]] | None = None,
        dialect: Dialect = Dialect.ATHENA,
        fail_cancel: bool = False,
        return_no_id: bool = False,
    ) -> None:
        self.dialect = dialect
        self.statements: list[str] = []
        self.contexts: list[QueryContext] = []
        self.cancelled: list[str] = []
        self.state_calls: list[str] = []
        self._script = list(script or [])
        self._default_state = default_state
        self._rows = rows or (lambda sql: [])
        self._fail_cancel = fail_cancel
        self._return_no_id = return_no_id
        self._sql: dict[str, str] = {}
        self._states: dict[str, list[QueryState]] = {}
        self._lock = threading.Lock()

    def start_query(self, sql: str, context: QueryContext) -> str | None:
        with self._lock:
            self.statements.append(sql)
            self.contexts.append(context)
            if self._return_no_id:
                return None
            execution_id = f"exec-{len(self.statements)}"
            self._sql[execution_id] = sql
            self._states[execution_id] = list(self._script.pop(0) if self._script else [self._default_state])
            return execution_id

    def get_execution_state(self, execution_id: str) -> QueryState:
        self.state_calls.append(execution_id)
        sequence = self._states[execution_id]
        state = sequence.pop(0) if len(sequence) > 1 else sequence[0]
        if state is QueryState.SUCCEEDED:
            self.on_succeeded(self._sql[execution_id])
        return state

    def on_succeeded(self, sql: str) -> None:
        """Hook for stateful subclasses."""

    def cancel_query(self, execution_id: str) -> None:
        if self._fail_cancel:
            raise RuntimeError("cancel rejected")
        self.cancelled.append(execution_id)

    def get_result_rows(self, execution_id: str, page_token: str | None = None) -> ResultPage | None:
        sql = self._sql.get(execution_id)
        if sql is None:
            return None
        return ResultPage(rows=self._rows(sql))


_DATE_FILTER = re.compile(r"year='(\d{4})'\s+AND month='(\d{2})'\s+AND day='(\d{2})'")


def date_of(sql: str) -> str | None:
    match = _DATE_FILTER.search(sql)
    if match is None:
        return None
    return "-".join(match.groups())


class RefinedTableEngine(FakeQueryEngine):
    """Engine that tracks refined row counts per date.

    A successful ``INSERT`` sets the date's count to ``rows_per_insert``;
    a ``SELECT CAST(COUNT(1) ...`` returns the current count.
    """

    def __init__(self, existing: dict[str, int] | None = None, rows_per_insert: int = 96, **kwargs) -> None:
        self.counts: dict[str, int] = dict(existing or {})
        self.rows_per_insert = rows_per_insert
        super().__init__(rows=self._count_rows, **kwargs)

    def _count_rows(self, sql: str) -> list[list[str | None]]:
        if "SELECT CAST(COUNT(1) AS BIGINT) AS refined_rows" in sql:
            return [[str(self.counts.get(date_of(sql) or "", 0))]]
        return []

    def on_succeeded(self, sql: str) -> None:
        if "INSERT INTO" in sql:
            day = date_of(sql)
            if day is not None:
                self.counts[day] = self.rows_per_insert

    @property
    def inserts(self) -> list[str]:
        return [sql for sql in self.statements if "INSERT INTO" in sql]
