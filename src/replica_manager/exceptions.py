"""Exceptions raised by the replica manager.

Cluster errors are raised by the mutation gateway and the connectivity probe
and translated into HTTP status codes by the API layer.
"""


class ReplicaManagerError(Exception):
    """Base class for all replica manager errors."""


class ConfigurationError(ReplicaManagerError):
    """Raised when the service cannot start because of invalid configuration."""


class TLSConfigurationError(ConfigurationError):
    """Raised when the TLS material cannot be loaded."""


class KubernetesConfigError(ReplicaManagerError):
    """Raised when neither in-cluster config nor a kubeconfig can be loaded."""


class ClusterError(ReplicaManagerError):
    """Base class for errors reported by the Kubernetes API."""


class DeploymentNotFoundError(ClusterError):
    """Raised when the target Deployment does not exist in the cluster."""

    def __init__(self, name: str, namespace: str):
        self.name = name
        self.namespace = namespace
        super().__init__(f"deployment {namespace}/{name} not found")


class ReplicaUpdateError(ClusterError):
    """Raised when a replica patch fails for any reason other than not-found."""


class ClusterUnavailableError(ClusterError):
    """Raised when the Kubernetes API cannot be reached."""
