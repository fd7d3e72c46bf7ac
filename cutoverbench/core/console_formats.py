"""
Console Formats

Presentation strategies for the periodic report. Every formatter receives
the same immutable ReportContext each tick and only decides how to render
it; none of them touch counters or phase state.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from cutoverbench.models import (
    ConsoleFormat,
    Phase,
    PhaseTransition,
    StatsSnapshot,
    WorkloadConfig,
    phase_display_name,
)
from cutoverbench.models.metrics import OperationStats


@dataclass(frozen=True)
class ReportContext:
    """Everything a formatter may render for one tick."""

    snapshot: StatsSnapshot
    phase: Phase
    current_host: Optional[str] = None
    deployment_id: Optional[str] = None
    pool_stats: Optional[dict[str, Any]] = None
    final: bool = False
    now: datetime = field(default_factory=datetime.now)


_ERROR_CLASS_LABELS = {
    "transient_connection": "Connection issues",
    "topology_signal": "Topology changes",
    "terminal": "Terminal",
}


def _pct(part: int, whole: int) -> float:
    return (part * 100.0 / whole) if whole > 0 else 0.0


def _runtime(seconds: float) -> str:
    total = int(max(0.0, seconds))
    return f"{total // 3600:02d}:{(total % 3600) // 60:02d}:{total % 60:02d}"


def _clock(ts: datetime) -> str:
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.strftime("%H:%M:%S")


def _avg_latency(snapshot: StatsSnapshot) -> float:
    ok = snapshot.successful_operations
    if ok == 0:
        return 0.0
    return (snapshot.writes.total_latency_ms + snapshot.reads.total_latency_ms) / ok


class ConsoleFormatter(ABC):
    """Base class for console presentation strategies."""

    format: ConsoleFormat
    # Emit through the logging system rather than printing to the console stream.
    uses_logger: bool = False

    def __init__(self, config: WorkloadConfig):
        self.config = config

    @abstractmethod
    def render_report(self, ctx: ReportContext) -> list[str]:
        """Lines for one periodic (or final) report."""

    def render_phase_change(self, transition: PhaseTransition) -> list[str]:
        """Lines emitted immediately when the phase changes."""
        return []

    def render_host_change(self, previous: Optional[str], current: str) -> list[str]:
        """Lines emitted immediately when the writer host changes."""
        return []

    def _bg_phase_line(self, transition: PhaseTransition) -> str:
        return (
            f"[{_clock(transition.timestamp)}] 🔄 BG-PHASE | "
            f"{phase_display_name(transition.previous)} → "
            f"{phase_display_name(transition.current)} | {transition.describe()}"
        )


class VerboseFormatter(ConsoleFormatter):
    """Raw counters, logged as blocks of lines."""

    format = ConsoleFormat.VERBOSE
    uses_logger = True

    def render_report(self, ctx: ReportContext) -> list[str]:
        snap = ctx.snapshot
        w, r = snap.writes, snap.reads
        lines = ["========================================"]
        if ctx.final:
            lines.append(f"FINAL STATISTICS after {_runtime(snap.elapsed_seconds)}")

        lines.append(
            "WRITE STATS: Total: %d | Success: %d | Failed: %d | Success Rate: %.2f%% | "
            "Avg Latency: %.1fms | P95: %.1fms | P99: %.1fms"
            % (
                w.count,
                w.success_count,
                w.error_count,
                w.success_rate * 100.0,
                w.avg_latency_ms,
                w.latency.p95,
                w.latency.p99,
            )
        )

        if self.config.read_workers > 0:
            lines.append(
                "READ STATS: Total: %d | Success: %d | Failed: %d | Success Rate: %.2f%% | "
                "Avg Latency: %.1fms"
                % (r.count, r.success_count, r.error_count, r.success_rate * 100.0, r.avg_latency_ms)
            )
            if r.host_counts:
                lines.append("READ HOST DISTRIBUTION:")
                for host, count in sorted(r.host_counts.items()):
                    lines.append(
                        "  %s : %d queries (%.2f%%)" % (host, count, _pct(count, r.count))
                    )

        if snap.failed_operations > 0:
            classes = ", ".join(f"{k}={v}" for k, v in sorted(snap.error_classes().items()))
            categories = ", ".join(
                f"{k}={v}" for k, v in sorted(snap.error_categories().items())
            )
            lines.append(f"ERRORS: {classes} | categories: {categories}")

        lines.append(
            f"PHASE: {phase_display_name(ctx.phase)} | Writer: {ctx.current_host or 'unknown'}"
        )
        lines.append("========================================")
        return lines

    def render_phase_change(self, transition: PhaseTransition) -> list[str]:
        return [self._bg_phase_line(transition)]


class EventDrivenFormatter(ConsoleFormatter):
    """Only state changes plus a one-line periodic summary."""

    format = ConsoleFormat.EVENT_DRIVEN

    def render_report(self, ctx: ReportContext) -> list[str]:
        snap = ctx.snapshot
        total = snap.total_operations
        ok = snap.successful_operations
        if ctx.final:
            line = (
                "[%s] 🏁 FINAL    | %s | Total: %d | Success: %d (%.1f%%) | Failed: %d | Avg: %.0fms"
                % (
                    _clock(ctx.now),
                    _runtime(snap.elapsed_seconds),
                    total,
                    ok,
                    _pct(ok, total),
                    snap.failed_operations,
                    _avg_latency(snap),
                )
            )
            lines = [line]
            if snap.failed_operations > 0:
                breakdown = ", ".join(
                    f"{_ERROR_CLASS_LABELS.get(k, k)} ({v})"
                    for k, v in sorted(snap.error_classes().items())
                )
                lines.append(f"[{_clock(ctx.now)}] ❌ ERRORS   | {breakdown}")
            return lines

        return [
            "[%s] 📈 SUMMARY  | %ds | Total: %d | Success: %d (%.1f%%) | Failed: %d | Avg: %.0fms"
            % (
                _clock(ctx.now),
                int(self.config.log_interval_seconds),
                total,
                ok,
                _pct(ok, total),
                snap.failed_operations,
                _avg_latency(snap),
            )
        ]

    def render_phase_change(self, transition: PhaseTransition) -> list[str]:
        lines = []
        if transition.current is Phase.CREATED and transition.previous is Phase.NOT_CREATED:
            lines.append(
                f"[{_clock(transition.timestamp)}] 🔄 DETECTED | Blue-Green deployment: "
                f"{transition.detail or self.config.deployment_id or 'unknown'} | "
                f"Phase: {phase_display_name(transition.current)}"
            )
        lines.append(self._bg_phase_line(transition))
        return lines

    def render_host_change(self, previous: Optional[str], current: str) -> list[str]:
        now = _clock(datetime.now())
        if previous is None:
            return [
                f"[{now}] 🚀 STARTED  | Writers: {self.config.write_workers} | "
                f"Rate: {self.config.write_rate}/sec | Pool: {self.config.connection_pool_size} | "
                f"Target: {current}"
            ]
        return [f"[{now}] ✅ RECOVERY| New writer: {current} | Reconnection successful"]


class DashboardFormatter(ConsoleFormatter):
    """Fixed-width tabular view."""

    format = ConsoleFormat.DASHBOARD

    INNER_WIDTH = 77

    _STATUS_BY_PHASE = {
        Phase.IN_PROGRESS: "⚠️  BLUE-GREEN SWITCHOVER IN PROGRESS",
        Phase.PREPARATION: "🟡 PREPARING: Green cluster syncing data",
        Phase.POST: "🟠 FINALIZING: Switchover completed, stabilizing",
        Phase.CREATED: "🟡 CREATED: Green cluster ready, awaiting switchover",
        Phase.COMPLETED: "✅ COMPLETED: Blue-Green deployment finished",
    }

    def _row(self, text: str) -> str:
        return f"│ {text:<{self.INNER_WIDTH - 2}} │"

    def _rule(self, left: str, right: str) -> str:
        return f"{left}{'─' * self.INNER_WIDTH}{right}"

    def _kind_row(self, name: str, stats: OperationStats) -> str:
        return self._row(
            f"├─ {name + ':':<8}{stats.count:<12} │ Success: {stats.success_count} "
            f"({stats.success_rate * 100.0:.1f}%) │ Failed: {stats.error_count} │ "
            f"Avg: {stats.avg_latency_ms:.0f}ms"
        )

    def render_report(self, ctx: ReportContext) -> list[str]:
        snap = ctx.snapshot
        cfg = self.config
        total = snap.total_operations
        ok = snap.successful_operations
        failed = snap.failed_operations

        pool = ctx.pool_stats or {}
        in_use = int(pool.get("in_use", 0) or 0)
        size = int(pool.get("size", 0) or 0)
        workers = cfg.total_workers
        title = "FINAL REPORT" if ctx.final else "Blue-Green Monitor"

        lines = [
            self._rule("┌", "┐"),
            self._row(
                f"{title} │ {ctx.now.strftime('%Y-%m-%d %H:%M:%S')} │ "
                f"Runtime: {_runtime(snap.elapsed_seconds)}"
            ),
            self._rule("├", "┤"),
            self._row(
                f"Current Writer: {ctx.current_host or 'unknown':<25} │ "
                f"Phase: {phase_display_name(ctx.phase)}"
            ),
            self._row(
                f"Workers: {workers}/{workers} Active │ Pool: {in_use}/{size} │ "
                f"Deployment: {ctx.deployment_id or 'none'}"
            ),
            self._rule("├", "┤"),
            self._row("TOTALS SINCE START"),
            self._row(
                f"├─ Operations: {total:<8} │ Success: {ok} ({_pct(ok, total):.1f}%) │ "
                f"Failed: {failed} ({_pct(failed, total):.1f}%)"
            ),
        ]

        if cfg.write_workers > 0 and cfg.read_workers > 0:
            lines.append(self._kind_row("Writes", snap.writes))
            lines.append(self._kind_row("Reads", snap.reads))
        else:
            primary = snap.reads if cfg.write_workers == 0 else snap.writes
            lines.append(
                self._row(
                    f"├─ Avg Latency: {primary.avg_latency_ms:.0f}ms │ "
                    f"P95: {primary.latency.p95:.0f}ms │ P99: {primary.latency.p99:.0f}ms"
                )
            )

        if failed > 0:
            parts = [
                f"{_ERROR_CLASS_LABELS.get(k, k)} ({v})"
                for k, v in sorted(snap.error_classes().items())
            ]
            read_only = snap.error_categories().get("READ_ONLY", 0)
            if read_only:
                parts.append(f"Read-only ({read_only})")
            lines.append(self._row(f"└─ Errors: {', '.join(parts)}"))
        else:
            lines.append(self._row("└─ No errors"))

        lines.append(self._rule("├", "┤"))
        lines.append(self._row(f"{ctx.now.strftime('%H:%M:%S')} {self._status(ctx.phase, failed)}"))
        lines.append(self._rule("└", "┘"))
        lines.append("")
        return lines

    def _status(self, phase: Phase, failed: int) -> str:
        status = self._STATUS_BY_PHASE.get(phase)
        if status is not None:
            return status
        if failed > 5:
            return f"💔 HIGH ERROR RATE: {failed} failures detected"
        return "✅ STABLE: All systems operational"


_FORMATTERS: dict[ConsoleFormat, type[ConsoleFormatter]] = {
    ConsoleFormat.VERBOSE: VerboseFormatter,
    ConsoleFormat.EVENT_DRIVEN: EventDrivenFormatter,
    ConsoleFormat.DASHBOARD: DashboardFormatter,
}


def create_formatter(config: WorkloadConfig) -> ConsoleFormatter:
    """Select the formatter for the configured console format."""
    return _FORMATTERS[ConsoleFormat(config.console_format)](config)
