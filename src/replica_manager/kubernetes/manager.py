"""Replica manager module.

This module wires the watch, the reconciler, the cache and the mutation
gateway into a single :class:`~replica_manager.kubernetes.store.DeploymentStore`.
"""

import logging
import queue
from typing import Any

from replica_manager.exceptions import ClusterUnavailableError
from replica_manager.kubernetes.cache import ReplicaCache
from replica_manager.kubernetes.connection import KubernetesConnection
from replica_manager.kubernetes.gateway import MutationGateway
from replica_manager.kubernetes.reconciler import EventReconciler
from replica_manager.kubernetes.watcher import DeploymentWatcher

logger = logging.getLogger(__name__)


class ReplicaManager:
    """Watch-driven Deployment store for a single namespace.

    Reads are served from the in-memory cache and never reach the cluster.
    Writes go through the mutation gateway and are observed later through the
    watch, so a read right after a successful write may still return the old value.
    """

    def __init__(
        self,
        namespace: str = "default",
        connection: KubernetesConnection | None = None,
        cache: ReplicaCache | None = None,
    ):
        """Initialize the manager without starting any thread.

        Args:
            namespace: Namespace whose Deployments are managed.
            connection: The Kubernetes connection to use. A new one is created if None.
            cache: The cache to populate. A new empty cache is created if None.
        """
        self.namespace = namespace or "default"
        self.connection = connection or KubernetesConnection()
        self.cache = cache or ReplicaCache()
        self.events: queue.Queue[Any] = queue.Queue()
        self.reconciler = EventReconciler(self.cache, self.events)
        self.watcher = DeploymentWatcher(self.connection, self.namespace, self.events)
        self.gateway = MutationGateway(self.connection, self.namespace)

    def start(self) -> None:
        """Start the reconciler and the watch in the background."""
        self.reconciler.start()
        self.watcher.start()
        logger.info(f"Replica manager started for namespace {self.namespace}")

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop the watch, then the reconciler.

        Args:
            timeout: Maximum number of seconds to wait for each thread.
        """
        self.watcher.stop(timeout)
        self.reconciler.stop(timeout)
        logger.info("Replica manager stopped")

    def ready(self) -> bool:
        """Return True once the cache has synced at least once."""
        return self.reconciler.has_synced_once

    def list_deployments(self) -> list[str]:
        """Return the cached Deployment names, without contacting the cluster."""
        return list(self.cache.list_names())

    def get_replicas(self, name: str) -> tuple[int, bool]:
        """Return the cached desired replicas of a Deployment.

        Args:
            name: Name of the Deployment.

        Returns:
            A ``(replicas, found)`` tuple.
        """
        return self.cache.get(name)

    def set_replicas(self, name: str, replicas: int) -> None:
        """Patch the desired replicas of a Deployment in the cluster.

        Args:
            name: Name of the Deployment.
            replicas: The desired replica count.
        """
        self.gateway.set_replicas(name, replicas)

    def ping(self, timeout: float) -> None:
        """Verify Kubernetes API connectivity with a lightweight list call.

        Args:
            timeout: Timeout in seconds of the request.

        Raises:
            ClusterUnavailableError: If the API cannot be reached in time.
        """
        try:
            self.connection.apps_v1_api.list_namespaced_deployment(
                self.namespace, limit=1, _request_timeout=timeout
            )
        except Exception as e:
            raise ClusterUnavailableError(f"kubernetes connectivity check failed: {e}") from e
