"""Event reconciler module.

This module applies Deployment watch events to the replica cache and owns
the transition to the synced state.
"""

import logging
import queue
import threading
import time
from typing import Any

from replica_manager.kubernetes.cache import ReplicaCache
from replica_manager.kubernetes.events import (
    Delete,
    DeletedFinalStateUnknown,
    DeploymentEvent,
    SyncComplete,
    Upsert,
    deployment_name,
    desired_replicas,
    name_from_key,
)

logger = logging.getLogger(__name__)

# Sentinel pushed onto the queue to stop the consumer loop
_STOP = object()
# Seconds between shutdown checks while waiting for the initial sync
SYNC_POLL_INTERVAL = 0.1


class EventReconciler:
    """Single consumer of the Deployment event queue.

    The watch layer pushes :class:`Upsert`, :class:`Delete` and :class:`SyncComplete`
    events onto a queue. This class pulls them one at a time, in delivery order,
    and applies them to the cache. Malformed events are logged and dropped.

    ``has_synced_once`` becomes True when the :class:`SyncComplete` marker is
    consumed, which happens only after every event queued before it has been
    applied. It never reverts to False, even if the watch later reconnects.
    """

    def __init__(self, cache: ReplicaCache, events: "queue.Queue[Any] | None" = None):
        """Initialize the reconciler.

        Args:
            cache: The cache to apply events to.
            events: The queue the watch layer pushes events onto. A new queue
                is created if None.
        """
        self.cache = cache
        self.events: queue.Queue[Any] = events if events is not None else queue.Queue()
        self._synced = threading.Event()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def has_synced_once(self) -> bool:
        """Whether the initial list has been fully applied."""
        return self._synced.is_set()

    def wait_for_sync(self, timeout: float | None = None) -> bool:
        """Wait until the cache has synced or the reconciler is stopped.

        Args:
            timeout: Maximum number of seconds to wait. None waits forever.

        Returns:
            True if the cache has synced, False on timeout or shutdown.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._synced.is_set() and not self._stopped.is_set():
            remaining = SYNC_POLL_INTERVAL
            if deadline is not None:
                remaining = min(remaining, deadline - time.monotonic())
                if remaining <= 0:
                    break
            self._synced.wait(remaining)
        return self._synced.is_set()

    def push(self, event: DeploymentEvent) -> None:
        """Queue an event for the consumer loop."""
        self.events.put(event)

    def handle(self, event: DeploymentEvent) -> None:
        """Apply a single event to the cache.

        Never raises for malformed events; they are logged and dropped.

        Args:
            event: The event to apply.
        """
        if isinstance(event, Upsert):
            self._on_upsert(event.obj)
        elif isinstance(event, Delete):
            self._on_delete(event.obj)
        elif isinstance(event, SyncComplete):
            self._on_sync_complete()
        else:
            logger.warning(f"Ignoring unknown event type {type(event).__name__}")

    def _on_upsert(self, obj: Any) -> None:
        name = deployment_name(obj)
        if name is None:
            logger.warning("Dropping add/update event without a deployment name")
            return
        try:
            replicas = desired_replicas(obj)
        except ValueError as e:
            logger.warning(f"Dropping add/update event for deployment {name}: {e}")
            return
        self.cache.apply_upsert(name, replicas)

    def _on_delete(self, obj: Any) -> None:
        name = None
        if isinstance(obj, DeletedFinalStateUnknown):
            # The watch missed the delete itself, fall back to the tombstone key
            name = deployment_name(obj.obj) or name_from_key(obj.key)
        else:
            name = deployment_name(obj)
        if name is None:
            logger.warning("Dropping delete event: unable to recover a deployment name")
            return
        self.cache.apply_delete(name)

    def _on_sync_complete(self) -> None:
        if self._synced.is_set():
            logger.debug("Ignoring repeated sync marker")
            return
        self._synced.set()
        logger.info(f"Deployment cache synced with {len(self.cache)} deployments")

    def run(self) -> None:
        """Consume events until :meth:`stop` is called.

        This is the body of the background thread started by :meth:`start`.
        """
        logger.info("Starting event reconciler")
        while True:
            event = self.events.get()
            try:
                if event is _STOP:
                    break
                self.handle(event)
            except Exception as e:
                # One bad event must never stop the loop
                logger.exception(f"Error applying {type(event).__name__} event: {e}")
            finally:
                self.events.task_done()
        logger.info("Event reconciler stopped")

    def start(self) -> None:
        """Start the consumer loop on a daemon thread."""
        if self._thread is not None:
            return
        self._stopped.clear()
        self._thread = threading.Thread(target=self.run, name="event-reconciler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the consumer loop after the events already queued.

        Args:
            timeout: Maximum number of seconds to wait for the thread to exit.
        """
        self._stopped.set()
        if self._thread is None:
            return
        self.events.put(_STOP)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Event reconciler did not stop within the timeout")
        self._thread = None
