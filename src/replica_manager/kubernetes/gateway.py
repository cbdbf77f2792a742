"""Mutation gateway module.

This module forwards replica changes to the Kubernetes API. It never touches
the replica cache: the cache converges later through the watch.
"""

import logging

from kubernetes.client.exceptions import ApiException

from replica_manager.exceptions import DeploymentNotFoundError, ReplicaUpdateError
from replica_manager.kubernetes.connection import KubernetesConnection

logger = logging.getLogger(__name__)


class MutationGateway:
    """Write path for Deployment replica counts."""

    def __init__(self, connection: KubernetesConnection, namespace: str, timeout: float = 10.0):
        """Initialize the gateway.

        Args:
            connection: The Kubernetes connection to use.
            namespace: Namespace of the Deployments to patch.
            timeout: Timeout in seconds of each patch request.
        """
        self.connection = connection
        self.namespace = namespace
        self.timeout = timeout

    def set_replicas(self, name: str, replicas: int) -> None:
        """Patch ``spec.replicas`` of a Deployment.

        A successful return only means the cluster accepted the change.
        Callers validate that ``replicas`` is not negative.

        Args:
            name: Name of the Deployment.
            replicas: The desired replica count.

        Raises:
            DeploymentNotFoundError: If the Deployment does not exist.
            ReplicaUpdateError: For any other failure.
        """
        try:
            api = self.connection.apps_v1_api
            # Only spec.replicas is sent so concurrent edits to other fields are kept
            api.patch_namespaced_deployment(
                name=name,
                namespace=self.namespace,
                body={"spec": {"replicas": replicas}},
                _request_timeout=self.timeout,
            )
        except ApiException as e:
            if e.status == 404:
                logger.info(f"Deployment {self.namespace}/{name} not found while setting replicas")
                raise DeploymentNotFoundError(name, self.namespace) from e
            logger.error(f"Error setting replicas for Deployment {self.namespace}/{name}: {e.status} {e.reason}")
            raise ReplicaUpdateError(f"patch deployment replicas: {e.status} {e.reason}") from e
        except Exception as e:
            logger.error(f"Error setting replicas for Deployment {self.namespace}/{name}: {e}")
            raise ReplicaUpdateError(f"patch deployment replicas: {e}") from e

        logger.info(f"Requested {replicas} replicas for Deployment {self.namespace}/{name}")
