"""Deployment store interface.

The API layer depends on this structural interface rather than on a concrete
cache, so tests can substitute an in-memory fake.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class DeploymentStore(Protocol):
    """Cached reads and cluster writes of Deployment replica counts."""

    def ready(self) -> bool:
        """Report whether the cache has synced at least once."""
        ...

    def list_deployments(self) -> list[str]:
        """Return the cached Deployment names."""
        ...

    def get_replicas(self, name: str) -> tuple[int, bool]:
        """Return the cached desired replicas and whether the name is known."""
        ...

    def set_replicas(self, name: str, replicas: int) -> None:
        """Request new desired replicas in the cluster; the cache updates asynchronously."""
        ...

    def ping(self, timeout: float) -> None:
        """Check connectivity to the cluster, raising on failure."""
        ...
