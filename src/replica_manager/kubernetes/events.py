"""Deployment watch events.

This module defines the typed events pushed by the watch layer onto the
reconciler queue, and helpers to read Deployment-like objects.
"""

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Watch event types as reported by the Kubernetes API
WATCH_EVENT_ADDED = "ADDED"
WATCH_EVENT_MODIFIED = "MODIFIED"
WATCH_EVENT_DELETED = "DELETED"
WATCH_EVENT_BOOKMARK = "BOOKMARK"


@dataclass(frozen=True)
class DeletedFinalStateUnknown:
    """Marker for a Deployment whose deletion was missed by the watch.

    The watcher emits it after a re-list when a previously seen Deployment
    is gone. ``obj`` is the last known state, which may be stale or None.

    Attributes:
        key: The ``namespace/name`` key of the deleted Deployment.
        obj: The last known Deployment object.
    """
    key: str
    obj: Any = None


@dataclass(frozen=True)
class Upsert:
    """A Deployment was added or updated."""
    obj: Any


@dataclass(frozen=True)
class Delete:
    """A Deployment was deleted. ``obj`` may be a :class:`DeletedFinalStateUnknown`."""
    obj: Any


@dataclass(frozen=True)
class SyncComplete:
    """The initial list has been fully pushed onto the queue."""


DeploymentEvent = Upsert | Delete | SyncComplete


def _get_metadata(resource: Any) -> Any:
    if isinstance(resource, dict):
        return resource.get("metadata")
    return getattr(resource, "metadata", None)


def _get_field(obj: Any, field: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(field)
    return getattr(obj, field, None)


def deployment_name(resource: Any) -> str | None:
    """Get the name of a Deployment-like object.

    Works with both kubernetes client models and plain dicts.

    Args:
        resource: The Deployment object.

    Returns:
        The name, or None if it cannot be found.
    """
    name = _get_field(_get_metadata(resource), "name")
    if isinstance(name, str) and name:
        return name
    return None


def deployment_namespace(resource: Any) -> str | None:
    """Get the namespace of a Deployment-like object, or None."""
    namespace = _get_field(_get_metadata(resource), "namespace")
    return namespace if isinstance(namespace, str) and namespace else None


def desired_replicas(resource: Any) -> int:
    """Get the desired replica count of a Deployment-like object.

    A missing spec or replica field is treated as zero.

    Args:
        resource: The Deployment object.

    Returns:
        The desired replica count.

    Raises:
        ValueError: If the replica field is present but is not a non-negative integer.
    """
    spec = _get_field(resource, "spec")
    replicas = _get_field(spec, "replicas")
    if replicas is None:
        return 0
    # bool is an int subclass but never a valid replica count
    if isinstance(replicas, bool) or not isinstance(replicas, int):
        raise ValueError(f"replicas must be an integer, got {replicas!r}")
    if replicas < 0:
        raise ValueError(f"replicas must be >= 0, got {replicas}")
    return replicas


def tombstone_key(resource: Any) -> str | None:
    """Build the ``namespace/name`` key used in :class:`DeletedFinalStateUnknown`."""
    name = deployment_name(resource)
    if name is None:
        return None
    namespace = deployment_namespace(resource)
    return f"{namespace}/{name}" if namespace else name


def name_from_key(key: str) -> str | None:
    """Recover a Deployment name from a ``namespace/name`` key."""
    if not isinstance(key, str):
        return None
    name = key.rsplit("/", 1)[-1]
    return name or None
