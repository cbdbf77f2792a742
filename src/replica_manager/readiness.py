"""Readiness gate module.

This module decides whether the service may receive traffic.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Default timeout of the connectivity probe, in seconds
DEFAULT_PROBE_TIMEOUT = 2.0


@dataclass(frozen=True)
class ReadinessResult:
    """Outcome of a readiness check."""
    ready: bool
    reason: str = ""


class ReadinessGate:
    """One-way NotReady to Ready gate.

    The gate waits for the cache to sync once. After that the sync flag is
    never consulted again, but every check still runs the connectivity probe
    with a fresh timeout, so a cluster outage makes the service not ready.
    """

    def __init__(
        self,
        synced: Callable[[], bool],
        probe: Callable[[float], None],
        timeout: float = DEFAULT_PROBE_TIMEOUT,
    ):
        """Initialize the gate.

        Args:
            synced: Returns whether the cache has synced at least once.
            probe: Connectivity check, called with a timeout in seconds. Raises on failure.
            timeout: Timeout passed to the probe on every check.
        """
        self._synced = synced
        self._probe = probe
        self.timeout = timeout
        self._seen_sync = threading.Event()

    def check(self) -> ReadinessResult:
        """Run a readiness check.

        Returns:
            The readiness result, with a reason when not ready.
        """
        if not self._seen_sync.is_set():
            if not self._synced():
                return ReadinessResult(ready=False, reason="cache not synced")
            self._seen_sync.set()

        try:
            self._probe(self.timeout)
        except Exception as e:
            logger.warning(f"Readiness probe failed: {e}")
            return ReadinessResult(ready=False, reason=str(e) or type(e).__name__)

        return ReadinessResult(ready=True)
