"""
Unit tests for OperationExecutor.

Uses the in-memory StubConnectionProvider from conftest.
"""

import asyncio
import itertools

import pytest

from conftest import StubConnectionProvider, StubError
from cutoverbench.core.executor.operations import OperationExecutor
from cutoverbench.core.executor.types import ErrorClass, Operation, OperationKind
from cutoverbench.core.phase_tracker import PhaseTracker
from cutoverbench.models import Phase


def _write_op(provider: StubConnectionProvider) -> Operation:
    return Operation(
        kind=OperationKind.WRITE,
        target="test_0001",
        statement=provider.insert_statement("test_0001"),
        params=["a", 1, "worker-1", 2, "test-data"],
        worker_label="Worker-1",
    )


def _read_op(provider: StubConnectionProvider) -> Operation:
    return Operation(
        kind=OperationKind.READ,
        target="introspection",
        statement=provider.introspection_query,
        worker_label="Reader-1",
    )


class TestSuccess:
    @pytest.mark.asyncio
    async def test_write_success_reports_host(self, stub_provider: StubConnectionProvider) -> None:
        executor = OperationExecutor(stub_provider, retry_base_delay_ms=0)
        result = await executor.execute(_write_op(stub_provider))

        assert result.success
        assert result.attempts == 1
        assert result.observed_host == "blue-1"
        assert result.rows_affected == 1
        assert result.error_class is None

    @pytest.mark.asyncio
    async def test_read_success_formats_detail(self, stub_provider: StubConnectionProvider) -> None:
        executor = OperationExecutor(stub_provider, retry_base_delay_ms=0)
        result = await executor.execute(_read_op(stub_provider))

        assert result.success
        assert result.observed_host == "blue-1"
        assert result.detail.startswith("blue-1 (server_id=1234")

    @pytest.mark.asyncio
    async def test_zero_rows_affected_is_failure(self, stub_provider: StubConnectionProvider) -> None:
        stub_provider.rows_affected = 0
        executor = OperationExecutor(stub_provider, max_retries=5, retry_base_delay_ms=0)
        result = await executor.execute(_write_op(stub_provider))

        assert not result.success
        assert result.error_class is ErrorClass.TERMINAL
        assert result.attempts == 1


class TestRetryBound:
    @pytest.mark.parametrize("max_retries", [1, 3, 5])
    @pytest.mark.asyncio
    async def test_always_failing_never_exceeds_max_retries(
        self, stub_provider: StubConnectionProvider, max_retries: int
    ) -> None:
        stub_provider.failure = StubError("Communications link failure")
        executor = OperationExecutor(stub_provider, max_retries=max_retries, retry_base_delay_ms=0)

        result = await executor.execute(_write_op(stub_provider))

        assert not result.success
        assert result.attempts == max_retries
        assert stub_provider.attempts == max_retries
        assert result.error_class is ErrorClass.TOPOLOGY_SIGNAL

    @pytest.mark.asyncio
    async def test_release_exactly_once_per_acquire(self, stub_provider: StubConnectionProvider) -> None:
        stub_provider.failure = StubError("Connection reset by peer")
        executor = OperationExecutor(stub_provider, max_retries=4, retry_base_delay_ms=0)

        await executor.execute(_write_op(stub_provider))
        stub_provider.failure = None
        await executor.execute(_read_op(stub_provider))

        assert stub_provider.acquired == 5
        assert stub_provider.released == stub_provider.acquired

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, stub_provider: StubConnectionProvider) -> None:
        failures = iter([StubError("timed out"), StubError("timed out")])
        stub_provider.failure = lambda: next(failures, None)
        executor = OperationExecutor(stub_provider, max_retries=5, retry_base_delay_ms=0)

        result = await executor.execute(_write_op(stub_provider))

        assert result.success
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_terminal_not_retried(self, stub_provider: StubConnectionProvider) -> None:
        stub_provider.failure = StubError("Duplicate entry '1' for key 'PRIMARY'", errno=1062)
        executor = OperationExecutor(stub_provider, max_retries=5, retry_base_delay_ms=0)

        result = await executor.execute(_write_op(stub_provider))

        assert not result.success
        assert result.attempts == 1
        assert result.error_class is ErrorClass.TERMINAL
        assert result.error_category == "MYSQL_1062"
        assert "Duplicate entry" in result.error


class TestBackoff:
    def test_write_backoff_linear(self, stub_provider: StubConnectionProvider) -> None:
        executor = OperationExecutor(stub_provider, retry_base_delay_ms=500)
        delays = [executor.backoff_seconds(OperationKind.WRITE, a) for a in range(1, 5)]
        assert delays == pytest.approx([0.5, 1.0, 1.5, 2.0])

    def test_read_backoff_exponential(self, stub_provider: StubConnectionProvider) -> None:
        executor = OperationExecutor(stub_provider, retry_base_delay_ms=500)
        delays = [executor.backoff_seconds(OperationKind.READ, a) for a in range(1, 5)]
        assert delays == pytest.approx([0.5, 1.0, 2.0, 4.0])

    @pytest.mark.asyncio
    async def test_stop_event_interrupts_backoff(self, stub_provider: StubConnectionProvider) -> None:
        stub_provider.failure = StubError("Communications link failure")
        stop = asyncio.Event()
        executor = OperationExecutor(
            stub_provider, max_retries=5, retry_base_delay_ms=10_000, stop_event=stop
        )

        task = asyncio.create_task(executor.execute(_write_op(stub_provider)))
        await asyncio.sleep(0.05)
        stop.set()
        result = await asyncio.wait_for(task, timeout=2.0)

        assert not result.success
        assert result.attempts == 1

    def test_rejects_zero_retries(self, stub_provider: StubConnectionProvider) -> None:
        with pytest.raises(ValueError):
            OperationExecutor(stub_provider, max_retries=0)


class TestPhaseFeedback:
    @pytest.mark.asyncio
    async def test_every_failed_attempt_feeds_tracker(self, stub_provider: StubConnectionProvider) -> None:
        tracker = PhaseTracker()
        stub_provider.failure = StubError("Communications link failure")
        executor = OperationExecutor(
            stub_provider, phase_tracker=tracker, max_retries=3, retry_base_delay_ms=0
        )

        await executor.execute(_write_op(stub_provider))

        assert tracker.phase is Phase.IN_PROGRESS
        assert len(tracker.transitions()) == 1

    @pytest.mark.asyncio
    async def test_terminal_does_not_move_phase(self, stub_provider: StubConnectionProvider) -> None:
        tracker = PhaseTracker()
        stub_provider.failure = StubError("Duplicate entry", errno=1062)
        executor = OperationExecutor(stub_provider, phase_tracker=tracker, retry_base_delay_ms=0)

        await executor.execute(_write_op(stub_provider))

        assert tracker.phase is Phase.NOT_CREATED

    @pytest.mark.asyncio
    async def test_host_lookup_failure_keeps_write_success(
        self, stub_provider: StubConnectionProvider
    ) -> None:
        calls = itertools.count()

        def _fail_host_lookup():
            # Statement order per attempt: INSERT, then host query.
            return StubError("Communications link failure") if next(calls) % 2 == 1 else None

        stub_provider.failure = _fail_host_lookup
        tracker = PhaseTracker()
        executor = OperationExecutor(stub_provider, phase_tracker=tracker, retry_base_delay_ms=0)

        result = await executor.execute(_write_op(stub_provider))

        assert result.success
        assert result.observed_host is None
        assert tracker.phase is Phase.IN_PROGRESS
