"""Query execution client: submit, poll with bounds, cancel, and read results.

The client wraps a :class:`~observation_backfill.engine.base.QueryEngine` and
owns the polling state machine::

    QUEUED / RUNNING --> SUCCEEDED | FAILED | CANCELLED   (terminal)

:meth:`QueryExecutionClient.poll_until_terminal` never loops without bound.
When the caller's ``stop_when`` predicate fires, the ``max_wait_ms`` budget
elapses, or ``max_polls`` non-terminal polls have been observed, the
execution is cancelled (best effort) and ``CANCELLED`` is returned.  A caller
bounded by a hard invocation deadline therefore gets a clean ``CANCELLED``
instead of being killed mid-poll.

Transient state-lookup failures are retried inside the same loop with the
backoff from :class:`~observation_backfill.engine.retry.RetryConfig`.  Each
backoff sleep is capped to the remaining ``max_wait_ms`` and both bounds are
re-checked before every retry.  Once retries are exhausted the execution is
cancelled and the lookup error is re-raised.

Cancellation is advisory: the engine may still finish work after the cancel
request, and a rejected cancel request is logged, never raised.

The clock and sleep function are injected so that tests can drive the loop
deterministically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from observation_backfill.engine.base import QueryEngine
from observation_backfill.engine.retry import RetryConfig, compute_delay
from observation_backfill.errors import (
    BackfillError,
    EngineExecutionFailedError,
    EngineUnavailableError,
    InvalidArgumentError,
    ResultsUnavailableError,
)
from observation_backfill.models.query import (
    PollOptions,
    QueryContext,
    QueryExecution,
    QueryState,
    ResultPage,
)

logger = logging.getLogger(__name__)

_DEFAULT_POLL_OPTIONS = PollOptions()


class QueryExecutionClient:
    """Drive statements on a query engine to a terminal state.

    Parameters
    ----------
    engine:
        The query engine adapter.
    context:
        Default execution context used when :meth:`submit` is not given one.
    poll_options:
        Default polling bounds used when :meth:`poll_until_terminal` is not
        given any.
    retry_config:
        Backoff applied to transient failures of state lookups.
    clock:
        Monotonic time source in seconds.
    sleep:
        Sleep function taking seconds.
    """

    def __init__(
        self,
        engine: QueryEngine,
        context: QueryContext | None = None,
        poll_options: PollOptions | None = None,
        retry_config: RetryConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._engine = engine
        self._context = context
        self._poll_options = poll_options or _DEFAULT_POLL_OPTIONS
        self._retry_config = retry_config or RetryConfig()
        self._clock = clock
        self._sleep = sleep

    @property
    def engine(self) -> QueryEngine:
        return self._engine

    @property
    def context(self) -> QueryContext | None:
        return self._context

    # -- Submission ----------------------------------------------------------

    def submit(self, sql: str, context: QueryContext | None = None) -> str:
        """Start *sql* on the engine and return the execution id.

        Raises
        ------
        EngineUnavailableError
            If the engine did not return an execution id.
        """
        effective_context = context or self._context
        if effective_context is None:
            raise InvalidArgumentError("A query context is required to submit a statement")

        execution_id = self._engine.start_query(sql, effective_context)
        if not execution_id:
            raise EngineUnavailableError("Failed to start query: engine returned no execution id")

        logger.debug("Submitted query %s", execution_id)
        return execution_id

    # -- Polling -------------------------------------------------------------

    def poll_until_terminal(self, execution_id: str, options: PollOptions | None = None) -> QueryState:
        """Block until *execution_id* is terminal or a bound is hit.

        Returns the terminal state reported by the engine, or ``CANCELLED``
        when ``stop_when`` fired, ``max_wait_ms`` elapsed, or ``max_polls``
        non-terminal polls were observed.  In the last three cases a cancel
        request has been issued.  Failed lookups do not count as polls.

        Raises
        ------
        BackfillError
            Immediately, when the engine reports a non-transient lookup error.
        Exception
            The last lookup error once ``max_retries`` consecutive retries
            have failed; the execution is cancelled first.
        """
        opts = options or self._poll_options
        if opts.max_polls < 1:
            raise InvalidArgumentError("max_polls must be at least 1")
        if opts.poll_interval_ms < 0:
            raise InvalidArgumentError("poll_interval_ms must not be negative")

        started = self._clock()
        poll_count = 0
        failures = 0

        while True:
            if opts.stop_when is not None and opts.stop_when():
                logger.warning("Stop condition reached for query %s; cancelling", execution_id)
                self.cancel(execution_id)
                return QueryState.CANCELLED

            if opts.max_wait_ms is not None:
                elapsed_ms = (self._clock() - started) * 1000.0
                if elapsed_ms >= opts.max_wait_ms:
                    logger.warning(
                        "Query %s exceeded max wait of %dms; cancelling",
                        execution_id,
                        opts.max_wait_ms,
                    )
                    self.cancel(execution_id)
                    return QueryState.CANCELLED

            try:
                state = self._engine.get_execution_state(execution_id)
            except BackfillError:
                raise
            except Exception as exc:
                failures += 1
                if failures > self._retry_config.max_retries:
                    logger.error(
                        "State lookup for query %s failed %d times; cancelling",
                        execution_id,
                        failures,
                    )
                    self.cancel(execution_id)
                    raise
                delay = compute_delay(failures - 1, self._retry_config)
                if opts.max_wait_ms is not None:
                    remaining = opts.max_wait_ms / 1000.0 - (self._clock() - started)
                    delay = max(0.0, min(delay, remaining))
                logger.warning(
                    "State lookup for query %s failed (attempt %d/%d), retrying in %.2fs: %s",
                    execution_id,
                    failures,
                    self._retry_config.max_retries + 1,
                    delay,
                    exc,
                )
                self._sleep(delay)
                continue

            failures = 0
            poll_count += 1

            if state.is_terminal:
                logger.info("Query %s finished with state %s", execution_id, state.value)
                return state

            if poll_count >= opts.max_polls:
                logger.warning(
                    "Query %s still %s after %d polls; cancelling",
                    execution_id,
                    state.value,
                    poll_count,
                )
                self.cancel(execution_id)
                return QueryState.CANCELLED

            self._sleep(opts.poll_interval_ms / 1000.0)

    # -- Cancellation --------------------------------------------------------

    def cancel(self, execution_id: str) -> bool:
        """Request cancellation.  Never raises.

        Returns ``True`` when the engine accepted the request and ``False``
        when it was rejected (the cancel is then unconfirmed).
        """
        try:
            self._engine.cancel_query(execution_id)
        except Exception:
            logger.error("Failed to cancel query %s", execution_id, exc_info=True)
            return False
        logger.info("Cancel requested for query %s", execution_id)
        return True

    # -- Results -------------------------------------------------------------

    def fetch_result_rows(self, execution_id: str, page_token: str | None = None) -> ResultPage:
        """Return one page of result rows for a finished execution.

        Raises
        ------
        ResultsUnavailableError
            If the engine reports no execution for *execution_id*.
        """
        page = self._engine.get_result_rows(execution_id, page_token)
        if page is None:
            raise ResultsUnavailableError(f"No results available for query {execution_id}")
        return page

    # -- Convenience ---------------------------------------------------------

    def execute(
        self,
        sql: str,
        context: QueryContext | None = None,
        options: PollOptions | None = None,
    ) -> QueryExecution:
        """Submit *sql* and wait for it to succeed.

        Raises
        ------
        EngineExecutionFailedError
            If the execution ends in any state other than ``SUCCEEDED``.
        """
        execution_id = self.submit(sql, context)
        state = self.poll_until_terminal(execution_id, options)
        if state is not QueryState.SUCCEEDED:
            raise EngineExecutionFailedError(state, execution_id)
        return QueryExecution(id=execution_id, state=state)

    def query_scalar(
        self,
        sql: str,
        context: QueryContext | None = None,
        options: PollOptions | None = None,
    ) -> int:
        """Execute *sql* and return the first cell of the first row as an int.

        A missing row, an empty cell, or a non-numeric value reads as ``0``.
        """
        execution = self.execute(sql, context, options)
        page = self.fetch_result_rows(execution.id)
        if not page.rows or not page.rows[0]:
            return 0
        return _to_int(page.rows[0][0])


def _to_int(value: str | None) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return 0
