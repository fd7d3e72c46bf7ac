"""
Tests for the pydantic models and process settings.
"""

import pytest
from pydantic import ValidationError

from cutoverbench.config import Settings
from cutoverbench.models import (
    PHASE_DISPLAY,
    ConsoleFormat,
    Phase,
    PhaseTransition,
    StatsSnapshot,
    WorkloadConfig,
    phase_display_name,
)
from cutoverbench.models.metrics import OperationStats


class TestWorkloadConfig:
    def test_defaults(self) -> None:
        cfg = WorkloadConfig()
        assert cfg.write_workers == 10
        assert cfg.write_rate == 100
        assert cfg.read_workers == 0
        assert cfg.max_retries == 5
        assert cfg.console_format is ConsoleFormat.DASHBOARD
        assert cfg.preparation_grace_seconds == 30.0
        assert cfg.total_workers == 10

    def test_zero_write_workers_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WorkloadConfig(write_workers=0)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("write_rate", -1),
            ("read_workers", -1),
            ("read_rate", -5),
            ("connection_pool_size", 0),
            ("log_interval_seconds", 0),
            ("max_retries", 0),
            ("table_count", 0),
            ("table_prefix", "test-;drop"),
        ],
    )
    def test_invalid_values_rejected(self, field: str, value) -> None:
        with pytest.raises(ValidationError):
            WorkloadConfig(**{field: value})

    def test_zero_rate_means_unthrottled(self) -> None:
        assert WorkloadConfig(write_rate=0).write_rate == 0

    def test_console_format_from_string(self) -> None:
        assert WorkloadConfig(console_format="event_driven").console_format is ConsoleFormat.EVENT_DRIVEN

    def test_blank_deployment_id_is_none(self) -> None:
        assert WorkloadConfig(deployment_id="   ").deployment_id is None
        assert WorkloadConfig(deployment_id=" bgd-1 ").deployment_id == "bgd-1"

    def test_table_name(self) -> None:
        cfg = WorkloadConfig()
        assert cfg.table_name(7) == "test_0007"
        assert cfg.table_name(12000) == "test_12000"


class TestPhase:
    def test_order(self) -> None:
        ordered = list(Phase)
        assert [p.order for p in ordered] == list(range(len(ordered)))
        assert Phase.IN_PROGRESS.order < Phase.POST.order

    def test_every_phase_has_display(self) -> None:
        assert set(PHASE_DISPLAY) == set(Phase)
        assert phase_display_name(Phase.IN_PROGRESS) == "🔴 IN_PROGRESS"

    def test_from_name(self) -> None:
        assert Phase.from_name("post") is Phase.POST
        assert Phase.from_name("bogus") is Phase.NOT_CREATED

    def test_transition_describe(self) -> None:
        t = PhaseTransition(Phase.IN_PROGRESS, Phase.POST, "host switched", "a → b")
        assert t.describe() == "host switched: a → b"
        assert t.timestamp.tzinfo is not None


class TestStatsSnapshot:
    def test_rates_and_merges(self) -> None:
        snap = StatsSnapshot(
            writes=OperationStats(
                count=4, success_count=3, error_count=1, error_classes={"terminal": 1}
            ),
            reads=OperationStats(
                count=6, success_count=5, error_count=1, error_classes={"terminal": 1}
            ),
        )
        assert snap.total_operations == 10
        assert snap.success_rate == pytest.approx(0.8)
        assert snap.error_rate == pytest.approx(0.2)
        assert snap.error_classes() == {"terminal": 2}

    def test_empty_snapshot_rates(self) -> None:
        snap = StatsSnapshot()
        assert snap.success_rate == 0.0
        assert snap.writes.avg_latency_ms == 0.0


class TestSettings:
    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_ENGINE", "postgres")
        monkeypatch.setenv("DB_HOST", "cluster.example.com")
        monkeypatch.delenv("DB_PORT", raising=False)

        s = Settings(_env_file=None)

        assert s.DB_HOST == "cluster.example.com"
        assert s.default_port() == 5432
        assert s.default_port("mysql") == 3306

    def test_explicit_port_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PORT", "13306")
        assert Settings(_env_file=None).default_port("mysql") == 13306
