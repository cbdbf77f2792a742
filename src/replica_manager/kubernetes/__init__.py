"""Kubernetes module for the replica manager.

This module handles all interactions with the Kubernetes API.
"""

from replica_manager.kubernetes.cache import ReplicaCache
from replica_manager.kubernetes.connection import KubernetesConnection
from replica_manager.kubernetes.gateway import MutationGateway
from replica_manager.kubernetes.manager import ReplicaManager
from replica_manager.kubernetes.reconciler import EventReconciler
from replica_manager.kubernetes.store import DeploymentStore
from replica_manager.kubernetes.watcher import DeploymentWatcher

# Export ReplicaManager as the main interface
__all__ = [
    "ReplicaManager",
    "DeploymentStore",
    "ReplicaCache",
    "EventReconciler",
    "DeploymentWatcher",
    "MutationGateway",
    "KubernetesConnection",
]
