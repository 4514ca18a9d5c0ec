"""Abstract interface for asynchronous SQL query engines.

Every engine adapter -- Athena or a Databricks SQL warehouse -- must satisfy
the :class:`QueryEngine` protocol so that the execution client, planners and
workers remain backend-agnostic.
"""

from __future__ import annotations

from typing import Protocol

from observation_backfill.models.query import QueryContext, QueryState, ResultPage
from observation_backfill.sql.dialect import Dialect


class QueryEngine(Protocol):
    """Structural interface for query engine backends.

    Implementations are **not** required to subclass this protocol; they only
    need to expose methods with matching signatures (duck typing).
    """

    dialect: Dialect

    def start_query(self, sql: str, context: QueryContext) -> str | None:
        """Start executing *sql* and return the engine's execution id.

        Returns ``None`` when the engine accepted the request but did not
        hand back an id.
        """
        ...

    def get_execution_state(self, execution_id: str) -> QueryState:
        """Return the current state of an execution.

        Raises
        ------
        ExecutionNotFoundError
            If the engine has no record of *execution_id*.
        """
        ...

    def cancel_query(self, execution_id: str) -> None:
        """Request cancellation of a running execution.  May raise."""
        ...

    def get_result_rows(self, execution_id: str, page_token: str | None = None) -> ResultPage | None:
        """Return one page of result rows without any header row.

        Returns ``None`` if the engine has no execution for *execution_id*.
        """
        ...
