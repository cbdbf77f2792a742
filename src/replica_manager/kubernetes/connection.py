"""Kubernetes connection management.

This module handles the connection to the Kubernetes API.
"""
import logging
import threading

from kubernetes import client, config

from replica_manager.exceptions import KubernetesConfigError

logger = logging.getLogger(__name__)


class KubernetesConnection:
    """Connection manager for the Kubernetes API.

    The connection is shared by the watcher, the mutation gateway and the readiness probe.
    Configuration is loaded on first use so that a missing kubeconfig at startup only
    surfaces through readiness and failed mutations instead of stopping the process.
    """

    def __init__(self):
        """Initialize the Kubernetes connection without contacting the cluster."""
        self._lock = threading.Lock()
        self._apps_v1_api: client.AppsV1Api | None = None

    @property
    def apps_v1_api(self) -> client.AppsV1Api:
        """The AppsV1 API client, created on first access.

        Raises:
            KubernetesConfigError: If no usable configuration can be found.
        """
        if self._apps_v1_api is None:
            with self._lock:
                if self._apps_v1_api is None:
                    self._setup_connection()
        return self._apps_v1_api

    def _setup_connection(self) -> None:
        """Set up the connection to the Kubernetes API."""
        try:
            # Try to load in-cluster config first (for when running in a pod)
            config.load_incluster_config()
            logger.info("Using in-cluster configuration")
        except config.ConfigException:
            try:
                # Fall back to kubeconfig for local development
                config.load_kube_config()
                logger.info("Using kubeconfig configuration")
            except (config.ConfigException, OSError) as e:
                logger.error(
                    "Failed to load Kubernetes configuration. Ensure that the kubeconfig file is available and valid."
                )
                raise KubernetesConfigError(
                    "Kubernetes configuration error: kubeconfig file is missing or invalid.") from e

        self._apps_v1_api = client.AppsV1Api()
