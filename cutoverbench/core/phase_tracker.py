"""
Phase Tracker

Infers the phase of a blue/green cutover from side-channel signals: the
error classes workers observe and changes in the serving host identity.
There is no authoritative event feed, so every transition is a best-effort
inference and may be wrong.

All transitions funnel through one lock-guarded entry point. Setting the
current phase again is a no-op and emits nothing.
"""

import logging
import threading
import time
from typing import Callable, Optional

from cutoverbench.core.executor.helpers import truncate_str_for_log
from cutoverbench.core.executor.types import ErrorClass
from cutoverbench.models.phase import Phase, PhaseTransition

logger = logging.getLogger(__name__)

PhaseListener = Callable[[PhaseTransition], None]


class PhaseTracker:
    """
    Single-owner cutover phase state machine.

    Safe to call from any task or thread. Listeners run after the lock is
    released, in the caller's context, and must not raise.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        preparation_grace_seconds: Optional[float] = 30.0,
        allow_regression: bool = False,
    ):
        """
        Args:
            clock: Monotonic clock used for the time-in-phase fallback
            preparation_grace_seconds: Seconds in CREATED before the approximate
                move to PREPARATION; None disables the fallback
            allow_regression: Permit transitions to an earlier phase
        """
        self._clock = clock
        self._preparation_grace = preparation_grace_seconds
        self._allow_regression = allow_regression

        self._lock = threading.Lock()
        self._phase = Phase.NOT_CREATED
        self._phase_entered_at = clock()
        self._switchover_in_progress = False
        self._last_known_host: Optional[str] = None
        self._deployment_id: Optional[str] = None
        self._transitions: list[PhaseTransition] = []
        self._listeners: list[PhaseListener] = []

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def switchover_in_progress(self) -> bool:
        return self._switchover_in_progress

    @property
    def last_known_host(self) -> Optional[str]:
        return self._last_known_host

    @property
    def deployment_id(self) -> Optional[str]:
        return self._deployment_id

    def transitions(self) -> list[PhaseTransition]:
        """Executed transitions, oldest first."""
        with self._lock:
            return list(self._transitions)

    def add_listener(self, listener: PhaseListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def observe_error(self, error_class: ErrorClass, message: str = "") -> Optional[PhaseTransition]:
        """
        Feed one classified failure.

        Only TOPOLOGY_SIGNAL failures move the phase; TERMINAL and
        TRANSIENT_CONNECTION failures are ignored here.
        """
        if error_class is not ErrorClass.TOPOLOGY_SIGNAL:
            return None

        with self._lock:
            if self._phase is Phase.IN_PROGRESS:
                return None
            transition = self._apply_locked(
                Phase.IN_PROGRESS,
                "error-detected",
                truncate_str_for_log(message, max_chars=200) or None,
            )
            if transition is not None:
                self._switchover_in_progress = True
        self._notify(transition)
        return transition

    def observe_host(self, host: Optional[str]) -> Optional[PhaseTransition]:
        """
        Feed the globally observed serving host.

        The first observation only establishes the baseline.
        """
        if not host:
            return None

        transition: Optional[PhaseTransition] = None
        with self._lock:
            previous = self._last_known_host
            self._last_known_host = host
            if previous is None or previous == host:
                return None

            detail = f"{previous} → {host}"
            if self._switchover_in_progress or self._phase is Phase.IN_PROGRESS:
                transition = self._apply_locked(Phase.POST, "host switched", detail)
                self._switchover_in_progress = False
            elif self._phase in (Phase.CREATED, Phase.PREPARATION):
                transition = self._apply_locked(Phase.POST, "unexpected host change", detail)
        self._notify(transition)
        return transition

    def register_deployment(self, deployment_id: Optional[str]) -> Optional[PhaseTransition]:
        """Record an externally supplied deployment id; NOT_CREATED moves to CREATED."""
        if not deployment_id:
            return None

        transition: Optional[PhaseTransition] = None
        with self._lock:
            self._deployment_id = deployment_id
            if self._phase is Phase.NOT_CREATED:
                transition = self._apply_locked(
                    Phase.CREATED, "deployment id specified", deployment_id
                )
        self._notify(transition)
        return transition

    def evaluate(self, now: Optional[float] = None) -> Optional[PhaseTransition]:
        """
        Apply the time-in-phase fallback.

        CREATED moves to PREPARATION once it has lasted longer than the
        grace period with no other signal. This is an approximation with no
        real event behind it.
        """
        if self._preparation_grace is None:
            return None

        transition: Optional[PhaseTransition] = None
        with self._lock:
            if self._phase is not Phase.CREATED:
                return None
            current = self._clock() if now is None else now
            waited = current - self._phase_entered_at
            if waited > self._preparation_grace:
                transition = self._apply_locked(
                    Phase.PREPARATION,
                    "time in CREATED exceeded grace period",
                    f"{waited:.0f}s",
                )
        self._notify(transition)
        return transition

    def transition_to(
        self, phase: Phase, reason: str, detail: Optional[str] = None
    ) -> Optional[PhaseTransition]:
        """
        Request a transition explicitly.

        Returns the executed transition, or None when it was a no-op or was
        refused (regression while regressions are disallowed, or leaving
        COMPLETED).
        """
        with self._lock:
            transition = self._apply_locked(phase, reason, detail)
            if transition is not None and phase is not Phase.IN_PROGRESS:
                self._switchover_in_progress = False
        self._notify(transition)
        return transition

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_locked(
        self, target: Phase, reason: str, detail: Optional[str]
    ) -> Optional[PhaseTransition]:
        """Must be called while holding _lock."""
        current = self._phase
        if target is current:
            return None
        if current is Phase.COMPLETED:
            logger.debug("Ignoring transition to %s: cutover already completed", target.value)
            return None
        if target.order < current.order and not self._allow_regression:
            logger.debug(
                "Ignoring backward transition %s → %s (%s)", current.value, target.value, reason
            )
            return None

        now = self._clock()
        transition = PhaseTransition(
            previous=current,
            current=target,
            reason=reason,
            detail=detail,
            monotonic=now,
        )
        self._phase = target
        self._phase_entered_at = now
        self._transitions.append(transition)

        logger.info(
            "Phase transition: %s → %s (%s)", current.value, target.value, transition.describe()
        )
        return transition

    def _notify(self, transition: Optional[PhaseTransition]) -> None:
        if transition is None:
            return
        for listener in list(self._listeners):
            try:
                listener(transition)
            except Exception as e:
                logger.warning("Phase listener failed: %s", e)
