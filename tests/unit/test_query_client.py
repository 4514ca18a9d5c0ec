"""Unit tests for observation_backfill.engine.client."""

from __future__ import annotations

import logging

import pytest

from observation_backfill.engine.client import QueryExecutionClient
from observation_backfill.engine.retry import RetryConfig
from observation_backfill.errors import (
    EngineExecutionFailedError,
    EngineUnavailableError,
    ExecutionNotFoundError,
    InvalidArgumentError,
    ResultsUnavailableError,
)
from observation_backfill.models.query import PollOptions, QueryState
from fakes import FakeQueryEngine

Q = QueryState


class FakeClock:
    """Monotonic clock advanced only by the injected sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _client(engine, query_context, clock: FakeClock | None = None, **kwargs) -> QueryExecutionClient:
    clock = clock or FakeClock()
    return QueryExecutionClient(
        engine,
        context=query_context,
        retry_config=kwargs.pop("retry_config", RetryConfig(max_retries=0)),
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# submit
# ---------------------------------------------------------------------------


class TestSubmit:
    def test_returns_execution_id(self, engine, query_context):
        client = _client(engine, query_context)
        assert client.submit("SELECT 1") == "exec-1"
        assert engine.contexts == [query_context]

    def test_missing_id_raises(self, query_context):
        client = _client(FakeQueryEngine(return_no_id=True), query_context)
        with pytest.raises(EngineUnavailableError):
            client.submit("SELECT 1")

    def test_requires_context(self, engine):
        client = QueryExecutionClient(engine)
        with pytest.raises(InvalidArgumentError):
            client.submit("SELECT 1")


# ---------------------------------------------------------------------------
# poll_until_terminal
# ---------------------------------------------------------------------------


class TestPollUntilTerminal:
    def test_returns_terminal_state_after_transitions(self, query_context):
        engine = FakeQueryEngine(script=[[Q.QUEUED, Q.RUNNING, Q.SUCCEEDED]])
        clock = FakeClock()
        client = _client(engine, query_context, clock)
        execution_id = client.submit("SELECT 1")

        state = client.poll_until_terminal(execution_id, PollOptions(poll_interval_ms=500, max_polls=10))

        assert state is Q.SUCCEEDED
        assert len(engine.state_calls) == 3
        assert clock.sleeps == [0.5, 0.5]
        assert engine.cancelled == []

    @pytest.mark.parametrize("terminal", [Q.FAILED, Q.CANCELLED])
    def test_returns_failed_states_without_cancel(self, query_context, terminal):
        engine = FakeQueryEngine(script=[[Q.RUNNING, terminal]])
        client = _client(engine, query_context)
        assert client.poll_until_terminal(client.submit("SELECT 1")) is terminal
        assert engine.cancelled == []

    def test_exhausted_poll_budget_cancels(self, query_context):
        engine = FakeQueryEngine(default_state=Q.RUNNING)
        client = _client(engine, query_context)
        execution_id = client.submit("SELECT 1")

        state = client.poll_until_terminal(execution_id, PollOptions(poll_interval_ms=10, max_polls=3))

        assert state is Q.CANCELLED
        assert len(engine.state_calls) == 3
        assert engine.cancelled == [execution_id]

    def test_stop_when_true_cancels_without_fetching_state(self, query_context):
        engine = FakeQueryEngine(default_state=Q.RUNNING)
        client = _client(engine, query_context)
        execution_id = client.submit("SELECT 1")

        state = client.poll_until_terminal(execution_id, PollOptions(stop_when=lambda: True))

        assert state is Q.CANCELLED
        assert engine.state_calls == []
        assert engine.cancelled == [execution_id]

    def test_stop_when_fires_mid_poll(self, query_context):
        engine = FakeQueryEngine(default_state=Q.RUNNING)
        client = _client(engine, query_context)
        execution_id = client.submit("SELECT 1")
        answers = iter([False, False, True])

        state = client.poll_until_terminal(execution_id, PollOptions(poll_interval_ms=1, stop_when=lambda: next(answers)))

        assert state is Q.CANCELLED
        assert len(engine.state_calls) == 2
        assert engine.cancelled == [execution_id]

    def test_max_wait_elapsed_cancels(self, query_context):
        engine = FakeQueryEngine(default_state=Q.RUNNING)
        clock = FakeClock()
        client = _client(engine, query_context, clock)
        execution_id = client.submit("SELECT 1")

        state = client.poll_until_terminal(
            execution_id, PollOptions(poll_interval_ms=1000, max_polls=100, max_wait_ms=2500)
        )

        assert state is Q.CANCELLED
        assert len(engine.state_calls) == 3
        assert engine.cancelled == [execution_id]

    def test_cancel_failure_is_not_raised(self, query_context, caplog):
        engine = FakeQueryEngine(default_state=Q.RUNNING, fail_cancel=True)
        client = _client(engine, query_context)
        execution_id = client.submit("SELECT 1")

        with caplog.at_level(logging.ERROR):
            state = client.poll_until_terminal(execution_id, PollOptions(max_polls=1))

        assert state is Q.CANCELLED
        assert "Failed to cancel query" in caplog.text

    @pytest.mark.parametrize("options", [PollOptions(max_polls=0), PollOptions(poll_interval_ms=-1)])
    def test_invalid_options_rejected(self, engine, query_context, options):
        client = _client(engine, query_context)
        with pytest.raises(InvalidArgumentError):
            client.poll_until_terminal("exec-1", options)

    def test_transient_state_errors_are_retried(self, query_context):
        class FlakyEngine(FakeQueryEngine):
            failures = 2

            def get_execution_state(self, execution_id):
                if self.failures:
                    self.failures -= 1
                    raise ConnectionError("throttled")
                return super().get_execution_state(execution_id)

        engine = FlakyEngine()
        client = _client(engine, query_context, retry_config=RetryConfig(max_retries=3, base_delay=0.01, jitter=False))
        assert client.poll_until_terminal(client.submit("SELECT 1")) is Q.SUCCEEDED

    def test_unknown_execution_is_not_retried(self, query_context):
        class MissingEngine(FakeQueryEngine):
            calls = 0

            def get_execution_state(self, execution_id):
                self.calls += 1
                raise ExecutionNotFoundError(execution_id)

        engine = MissingEngine()
        client = _client(engine, query_context, retry_config=RetryConfig(max_retries=3, base_delay=0.01))
        with pytest.raises(ExecutionNotFoundError):
            client.poll_until_terminal("exec-9")
        assert engine.calls == 1

    def test_failing_lookups_still_honour_stop_when(self, query_context):
        class UnreachableEngine(FakeQueryEngine):
            def get_execution_state(self, execution_id):
                self.state_calls.append(execution_id)
                raise ConnectionError("connection reset")

        engine = UnreachableEngine()
        clock = FakeClock()
        client = _client(
            engine,
            query_context,
            clock=clock,
            retry_config=RetryConfig(max_retries=3, base_delay=2.0, jitter=False),
        )
        execution_id = client.submit("SELECT 1")
        options = PollOptions(
            poll_interval_ms=0,
            max_polls=10,
            max_wait_ms=1000,
            stop_when=lambda: clock.now >= 1.0,
        )

        assert client.poll_until_terminal(execution_id, options) is Q.CANCELLED
        assert engine.cancelled == [execution_id]
        assert engine.state_calls == [execution_id]
        assert clock.sleeps == [1.0]

    def test_backoff_sleep_is_capped_to_max_wait(self, query_context):
        class UnreachableEngine(FakeQueryEngine):
            def get_execution_state(self, execution_id):
                raise ConnectionError("connection reset")

        engine = UnreachableEngine()
        clock = FakeClock()
        client = _client(
            engine,
            query_context,
            clock=clock,
            retry_config=RetryConfig(max_retries=5, base_delay=2.0, jitter=False),
        )
        execution_id = client.submit("SELECT 1")
        options = PollOptions(poll_interval_ms=0, max_polls=10, max_wait_ms=3000)

        assert client.poll_until_terminal(execution_id, options) is Q.CANCELLED
        assert clock.sleeps == [2.0, 1.0]
        assert engine.cancelled == [execution_id]

    def test_exhausted_retries_cancel_then_reraise(self, query_context):
        class UnreachableEngine(FakeQueryEngine):
            def get_execution_state(self, execution_id):
                self.state_calls.append(execution_id)
                raise ConnectionError("connection reset")

        engine = UnreachableEngine()
        clock = FakeClock()
        client = _client(
            engine,
            query_context,
            clock=clock,
            retry_config=RetryConfig(max_retries=2, base_delay=1.0, jitter=False),
        )
        execution_id = client.submit("SELECT 1")

        with pytest.raises(ConnectionError, match="connection reset"):
            client.poll_until_terminal(execution_id, PollOptions(poll_interval_ms=0, max_polls=10))
        assert len(engine.state_calls) == 3
        assert clock.sleeps == [1.0, 2.0]
        assert engine.cancelled == [execution_id]

    def test_failed_lookups_do_not_count_as_polls(self, query_context):
        class FlakyEngine(FakeQueryEngine):
            failures = 1

            def get_execution_state(self, execution_id):
                if self.failures:
                    self.failures -= 1
                    raise ConnectionError("throttled")
                return super().get_execution_state(execution_id)

        engine = FlakyEngine(script=[[Q.RUNNING, Q.SUCCEEDED]])
        client = _client(engine, query_context, retry_config=RetryConfig(max_retries=1, base_delay=0.5, jitter=False))
        execution_id = client.submit("SELECT 1")

        state = client.poll_until_terminal(execution_id, PollOptions(poll_interval_ms=0, max_polls=2))

        assert state is Q.SUCCEEDED
        assert engine.cancelled == []


# ---------------------------------------------------------------------------
# cancel / results / execute
# ---------------------------------------------------------------------------


class TestCancel:
    def test_accepted(self, engine, query_context):
        assert _client(engine, query_context).cancel("exec-1") is True
        assert engine.cancelled == ["exec-1"]

    def test_rejected_returns_false(self, query_context):
        assert _client(FakeQueryEngine(fail_cancel=True), query_context).cancel("exec-1") is False


class TestResults:
    def test_fetch_rows(self, query_context):
        engine = FakeQueryEngine(rows=lambda sql: [["42"]])
        client = _client(engine, query_context)
        page = client.fetch_result_rows(client.submit("SELECT 42"))
        assert page.rows == [["42"]]
        assert page.next_page_token is None

    def test_unknown_execution(self, engine, query_context):
        with pytest.raises(ResultsUnavailableError):
            _client(engine, query_context).fetch_result_rows("missing")


class TestExecute:
    def test_success(self, engine, query_context):
        execution = _client(engine, query_context).execute("SELECT 1")
        assert execution.id == "exec-1"
        assert execution.state is Q.SUCCEEDED

    def test_failure_carries_state_and_id(self, query_context):
        client = _client(FakeQueryEngine(default_state=Q.FAILED), query_context)
        with pytest.raises(EngineExecutionFailedError, match="Query exec-1 failed with state: FAILED") as info:
            client.execute("SELECT 1")
        assert info.value.state is Q.FAILED
        assert info.value.execution_id == "exec-1"

    @pytest.mark.parametrize(
        ("rows", "expected"),
        [([["96"]], 96), ([], 0), ([[None]], 0), ([["abc"]], 0), ([["12.0"]], 12), ([[]], 0)],
    )
    def test_query_scalar(self, query_context, rows, expected):
        client = _client(FakeQueryEngine(rows=lambda sql: rows), query_context)
        assert client.query_scalar("SELECT COUNT(1)") == expected
