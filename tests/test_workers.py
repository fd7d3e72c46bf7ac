"""
Unit tests for WorkloadWorker.

Covers operation building, per-worker rate limiting, host-switch tracking
and survival of unexpected errors.
"""

import asyncio
import logging
import random
from unittest.mock import AsyncMock

import pytest

from conftest import StubConnectionProvider, StubError
from cutoverbench.core.executor.operations import OperationExecutor
from cutoverbench.core.executor.types import ErrorClass, OperationKind
from cutoverbench.core.executor.workers import WorkloadWorker
from cutoverbench.core.host_tracker import HostTracker
from cutoverbench.core.metrics_collector import StatisticsAggregator

pytestmark = pytest.mark.asyncio


def _worker(
    provider: StubConnectionProvider,
    kind: OperationKind = OperationKind.WRITE,
    rate: int = 10,
    **kwargs,
) -> WorkloadWorker:
    executor = OperationExecutor(provider, max_retries=3, retry_base_delay_ms=0)
    return WorkloadWorker(
        1,
        kind,
        rate,
        executor,
        StatisticsAggregator(),
        rng=random.Random(7),
        **kwargs,
    )


class TestBuildOperation:
    async def test_write_targets_table_universe(self, stub_provider: StubConnectionProvider) -> None:
        worker = _worker(stub_provider, table_count=5)
        targets = {worker.build_operation().target for _ in range(200)}

        assert targets <= {f"test_{i:04d}" for i in range(1, 6)}
        assert len(targets) > 1

    async def test_write_statement_and_params(self, stub_provider: StubConnectionProvider) -> None:
        op = _worker(stub_provider).build_operation()

        assert op.kind is OperationKind.WRITE
        assert op.statement.startswith(f"INSERT INTO {op.target} (col1, col2, col3, col4, col5)")
        assert len(op.params) == 5
        assert op.params[2] == "worker-1"
        assert op.worker_label == "Worker-1"

    async def test_read_uses_introspection_query(self, stub_provider: StubConnectionProvider) -> None:
        op = _worker(stub_provider, kind=OperationKind.READ).build_operation()

        assert op.kind is OperationKind.READ
        assert op.statement == stub_provider.introspection_query
        assert op.worker_label == "Reader-1"


class TestRateLimiting:
    async def test_rate_10_for_one_second(self, stub_provider: StubConnectionProvider) -> None:
        worker = _worker(stub_provider, rate=10)
        stop = asyncio.Event()

        task = asyncio.create_task(worker.run(stop))
        await asyncio.sleep(1.0)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert 9 <= worker.state.operations <= 11

    async def test_unthrottled_runs_many(self, stub_provider: StubConnectionProvider) -> None:
        worker = _worker(stub_provider, rate=0)
        stop = asyncio.Event()

        task = asyncio.create_task(worker.run(stop))
        await asyncio.sleep(0.1)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert worker.state.operations > 20

    async def test_stops_promptly_during_sleep(self, stub_provider: StubConnectionProvider) -> None:
        worker = _worker(stub_provider, rate=1)
        stop = asyncio.Event()

        task = asyncio.create_task(worker.run(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=0.5)

        assert worker.state.operations == 1

    async def test_stopped_before_start_runs_nothing(self, stub_provider: StubConnectionProvider) -> None:
        worker = _worker(stub_provider)
        stop = asyncio.Event()
        stop.set()
        await worker.run(stop)
        assert worker.state.operations == 0


class TestReporting:
    async def test_results_recorded(self, stub_provider: StubConnectionProvider) -> None:
        worker = _worker(stub_provider)
        await worker.run_once()
        stub_provider.failure = StubError("Duplicate entry", errno=1062)
        await worker.run_once()

        snap = worker.aggregator.snapshot()
        assert snap.writes.count == 2
        assert snap.writes.success_count == 1
        assert snap.writes.error_count == 1
        assert snap.writes.host_counts == {"blue-1": 1}

    async def test_host_switch_logged_and_counted(
        self, stub_provider: StubConnectionProvider, caplog: pytest.LogCaptureFixture
    ) -> None:
        tracker = HostTracker(stub_provider)
        worker = _worker(stub_provider, host_tracker=tracker)

        with caplog.at_level(logging.INFO, logger="cutoverbench.core.executor.workers"):
            await worker.run_once()
            stub_provider.host = "green-1"
            await worker.run_once()

        assert worker.state.host_switches == 1
        assert worker.state.last_host == "green-1"
        assert tracker.current_host == "green-1"
        assert any(
            "Worker-1 | Switched to new host: green-1 (from: blue-1)" in r.getMessage()
            for r in caplog.records
        )

    async def test_reads_do_not_drive_global_host(self, stub_provider: StubConnectionProvider) -> None:
        tracker = HostTracker(stub_provider)
        worker = _worker(stub_provider, kind=OperationKind.READ, host_tracker=tracker)

        await worker.run_once()

        assert tracker.current_host is None
        assert worker.aggregator.snapshot().reads.host_counts == {"blue-1": 1}

    async def test_unexpected_exception_recorded_as_terminal(
        self, stub_provider: StubConnectionProvider
    ) -> None:
        worker = _worker(stub_provider)
        worker.executor.execute = AsyncMock(side_effect=RuntimeError("bug"))

        result = await worker.run_once()

        assert not result.success
        assert result.error_class is ErrorClass.TERMINAL
        assert worker.aggregator.snapshot().writes.error_categories == {"RuntimeError": 1}

    async def test_operation_log_line(
        self, stub_provider: StubConnectionProvider, caplog: pytest.LogCaptureFixture
    ) -> None:
        worker = _worker(stub_provider)
        with caplog.at_level(logging.INFO, logger="cutoverbench.operations"):
            result = await worker.run_once()

        lines = [r for r in caplog.records if r.name == "cutoverbench.operations"]
        assert len(lines) == 1
        assert lines[0].levelno == logging.INFO
        assert "Worker-1" in lines[0].getMessage()
        assert "host=blue-1" in lines[0].getMessage()
        assert result.success
