"""Databricks SQL warehouse query engine adapter.

Uses the statement execution API of the official SDK in asynchronous mode
(``wait_timeout="0s"``) so that polling and cancellation stay with
:class:`~observation_backfill.engine.client.QueryExecutionClient`, exactly as
for Athena.  Token values are **never** written to log output.
"""

from __future__ import annotations

import logging
from typing import Any

from databricks.sdk import WorkspaceClient
from databricks.sdk.errors import NotFound
from databricks.sdk.service.sql import StatementState

from observation_backfill.errors import ExecutionNotFoundError
from observation_backfill.models.query import QueryContext, QueryState, ResultPage
from observation_backfill.sql.dialect import Dialect

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------

_STATE_MAP: dict[StatementState, QueryState] = {
    StatementState.PENDING: QueryState.QUEUED,
    StatementState.RUNNING: QueryState.RUNNING,
    StatementState.SUCCEEDED: QueryState.SUCCEEDED,
    StatementState.FAILED: QueryState.FAILED,
    StatementState.CANCELED: QueryState.CANCELLED,
    # CLOSED: the statement succeeded and its result set was released.
    StatementState.CLOSED: QueryState.SUCCEEDED,
}


def _map_state(state: StatementState | None) -> QueryState:
    """Translate a Databricks statement state to :class:`QueryState`."""
    if state is None:
        return QueryState.QUEUED
    return _STATE_MAP.get(state, QueryState.RUNNING)


# ---------------------------------------------------------------------------
# Token-safe logging filter
# ---------------------------------------------------------------------------


class _TokenRedactionFilter(logging.Filter):
    """Logging filter that replaces sensitive tokens with a redacted marker."""

    def __init__(self, token: str) -> None:
        super().__init__()
        self._token = token

    def filter(self, record: logging.LogRecord) -> bool:
        if self._token and isinstance(record.msg, str):
            record.msg = record.msg.replace(self._token, "***REDACTED***")
        if record.args:
            sanitised = []
            for arg in record.args:  # type: ignore[union-attr]
                if isinstance(arg, str) and self._token:
                    sanitised.append(arg.replace(self._token, "***REDACTED***"))
                else:
                    sanitised.append(arg)  # type: ignore[arg-type]
            record.args = tuple(sanitised)
        return True


def _install_redaction_filter(token: str) -> _TokenRedactionFilter:
    """Attach a redaction filter for *token* to the module logger, once per token."""
    for existing in logger.filters:
        if isinstance(existing, _TokenRedactionFilter) and existing._token == token:
            return existing
    redaction_filter = _TokenRedactionFilter(token)
    logger.addFilter(redaction_filter)
    return redaction_filter


# ---------------------------------------------------------------------------
# DatabricksQueryEngine
# ---------------------------------------------------------------------------


class DatabricksQueryEngine:
    """Run statements on a Databricks SQL warehouse.

    Parameters
    ----------
    host:
        Databricks workspace URL, e.g. ``https://adb-123.azuredatabricks.net``.
    token:
        Personal access token or service-principal token.  The token is stored
        in memory but is **never** emitted in log output.
    warehouse_id:
        SQL warehouse that executes every statement.
    catalog:
        Optional Unity Catalog name; the context ``database`` is the schema.
    client:
        Pre-built :class:`WorkspaceClient`.  Built from *host*/*token* when
        omitted.
    """

    dialect = Dialect.DATABRICKS

    def __init__(
        self,
        host: str,
        token: str,
        warehouse_id: str,
        catalog: str | None = None,
        client: Any | None = None,
    ) -> None:
        self._client = client or WorkspaceClient(host=host, token=token)
        self._warehouse_id = warehouse_id
        self._catalog = catalog

        # Attach redaction filter to prevent token leakage.
        self._redaction_filter = _install_redaction_filter(token)

    def start_query(self, sql: str, context: QueryContext) -> str | None:
        # output_location and workgroup are Athena concepts; the warehouse
        # manages its own result storage.
        response = self._client.statement_execution.execute_statement(
            statement=sql,
            warehouse_id=self._warehouse_id,
            catalog=self._catalog,
            schema=context.database,
            wait_timeout="0s",
        )
        return response.statement_id

    def get_execution_state(self, execution_id: str) -> QueryState:
        try:
            response = self._client.statement_execution.get_statement(execution_id)
        except NotFound as exc:
            raise ExecutionNotFoundError(f"Statement not found: {execution_id}") from exc
        status = response.status
        return _map_state(status.state if status is not None else None)

    def cancel_query(self, execution_id: str) -> None:
        self._client.statement_execution.cancel_execution(execution_id)

    def get_result_rows(self, execution_id: str, page_token: str | None = None) -> ResultPage | None:
        try:
            if page_token is None:
                result = self._client.statement_execution.get_statement(execution_id).result
            else:
                result = self._client.statement_execution.get_statement_result_chunk_n(
                    execution_id,
                    int(page_token),
                )
        except NotFound:
            logger.warning("No results for statement %s", execution_id)
            return None

        if result is None:
            return ResultPage()
        rows = [list(row) for row in (result.data_array or [])]
        next_index = result.next_chunk_index
        return ResultPage(rows=rows, next_page_token=str(next_index) if next_index is not None else None)
