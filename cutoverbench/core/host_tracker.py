"""
Host Tracker

Tracks the globally observed serving host (the writer behind the cluster
endpoint) and forwards changes to the phase tracker.
"""

import logging
from typing import Callable, Optional

from cutoverbench.connectors.base import ConnectionProvider
from cutoverbench.core.executor.helpers import classify_error
from cutoverbench.core.executor.types import ErrorClass
from cutoverbench.core.phase_tracker import PhaseTracker

logger = logging.getLogger(__name__)

HostListener = Callable[[Optional[str], str], None]


class HostTracker:
    """Global current-host state shared by all write workers and the reporter."""

    def __init__(
        self,
        provider: ConnectionProvider,
        phase_tracker: Optional[PhaseTracker] = None,
        classifier: Callable[[BaseException], ErrorClass] = classify_error,
    ):
        self._provider = provider
        self._phase_tracker = phase_tracker
        self._classifier = classifier
        self._current_host: Optional[str] = None
        self._listeners: list[HostListener] = []

    @property
    def current_host(self) -> Optional[str]:
        return self._current_host

    def add_listener(self, listener: HostListener) -> None:
        """Register a callback invoked as listener(previous, new) on each change."""
        self._listeners.append(listener)

    def observe(self, host: Optional[str]) -> bool:
        """
        Record a host returned by a successful operation.

        Returns True when the host differs from the previously known one. The
        first observation counts as a change with previous=None.
        """
        if not host:
            return False

        previous = self._current_host
        if previous == host:
            return False

        self._current_host = host
        if self._phase_tracker is not None:
            self._phase_tracker.observe_host(host)

        if previous is not None:
            logger.info("Writer host changed: %s → %s", previous, host)

        for listener in list(self._listeners):
            try:
                listener(previous, host)
            except Exception as e:
                logger.warning("Host listener failed: %s", e)
        return True

    async def refresh(self) -> Optional[str]:
        """
        Query the backend for its current host identity.

        Failures are classified and fed to the phase tracker; they never
        propagate.
        """
        try:
            async with self._provider.acquire() as conn:
                rows = await conn.fetch(self._provider.host_query)
        except Exception as e:
            error_class = self._classifier(e)
            logger.debug("Host refresh failed (%s): %s", error_class.value, e)
            if self._phase_tracker is not None:
                self._phase_tracker.observe_error(error_class, str(e))
            return None

        if not rows or rows[0][0] is None:
            return None
        host = str(rows[0][0])
        self.observe(host)
        return host
