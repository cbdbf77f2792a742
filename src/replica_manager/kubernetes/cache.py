"""In-memory replica cache.

This module holds the last observed desired replica count of every Deployment
known to the event reconciler. It is the only source of truth for reads.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class ReplicaCache:
    """Concurrency-safe mapping from Deployment name to desired replicas.

    Readers never write. The event reconciler is the only writer. Every
    method holds the lock for a short, bounded critical section and never
    performs I/O while holding it.
    """

    def __init__(self):
        """Initialize an empty cache."""
        self._lock = threading.Lock()
        self._replicas: dict[str, int] = {}

    def list_names(self) -> set[str]:
        """Return a snapshot of the cached Deployment names.

        Returns:
            A copy of the current keys, safe to use after the lock is released.
        """
        with self._lock:
            return set(self._replicas)

    def get(self, name: str) -> tuple[int, bool]:
        """Look up the desired replicas of a Deployment.

        Args:
            name: Name of the Deployment.

        Returns:
            A ``(replicas, found)`` tuple. ``found`` is False when the name is
            unknown to the cache, which callers must treat as not found rather
            than as zero replicas.
        """
        with self._lock:
            if name in self._replicas:
                return self._replicas[name], True
        return 0, False

    def apply_upsert(self, name: str, replicas: int) -> None:
        """Record the desired replicas of a Deployment, last write wins.

        Args:
            name: Name of the Deployment.
            replicas: Desired replica count observed from the cluster.
        """
        with self._lock:
            self._replicas[name] = replicas
        logger.debug(f"Cached deployment {name} with {replicas} replicas")

    def apply_delete(self, name: str) -> None:
        """Forget a Deployment. Removing an unknown name is a no-op.

        Args:
            name: Name of the Deployment.
        """
        with self._lock:
            removed = self._replicas.pop(name, None) is not None
        if removed:
            logger.debug(f"Removed deployment {name} from cache")

    def __len__(self) -> int:
        with self._lock:
            return len(self._replicas)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._replicas
