"""
Cutover Phase Models

Defines the ordered phases of a blue/green cutover, their display metadata,
and the transition record produced by the phase tracker.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Optional


class Phase(str, Enum):
    """Inferred cutover phases, in progression order."""

    NOT_CREATED = "NOT_CREATED"
    CREATED = "CREATED"
    PREPARATION = "PREPARATION"
    IN_PROGRESS = "IN_PROGRESS"
    POST = "POST"
    COMPLETED = "COMPLETED"

    @property
    def order(self) -> int:
        return _PHASE_ORDER[self]

    @classmethod
    def from_name(cls, name: Optional[str]) -> "Phase":
        """Look up a phase by name, falling back to NOT_CREATED."""
        key = str(name or "").strip().upper()
        for phase in cls:
            if phase.value == key:
                return phase
        return cls.NOT_CREATED


_PHASE_ORDER: dict[Phase, int] = {phase: idx for idx, phase in enumerate(Phase)}


@dataclass(frozen=True)
class PhaseDisplay:
    emoji: str
    description: str


PHASE_DISPLAY: dict[Phase, PhaseDisplay] = {
    Phase.NOT_CREATED: PhaseDisplay("🔵", "No deployment"),
    Phase.CREATED: PhaseDisplay("🟡", "Green cluster created"),
    Phase.PREPARATION: PhaseDisplay("🟡", "Syncing data"),
    Phase.IN_PROGRESS: PhaseDisplay("🔴", "SWITCHING OVER"),
    Phase.POST: PhaseDisplay("🟠", "Finalizing"),
    Phase.COMPLETED: PhaseDisplay("🟢", "Complete"),
}


def phase_display_name(phase: Phase) -> str:
    """Console label for a phase, e.g. '🔴 IN_PROGRESS'."""
    return f"{PHASE_DISPLAY[phase].emoji} {phase.value}"


@dataclass(frozen=True)
class PhaseTransition:
    """One executed phase change."""

    previous: Phase
    current: Phase
    reason: str
    detail: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    monotonic: float = 0.0

    def describe(self) -> str:
        if self.detail:
            return f"{self.reason}: {self.detail}"
        return self.reason
