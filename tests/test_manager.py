"""Tests for the replica manager."""

import unittest
from unittest import mock

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from replica_manager.exceptions import ClusterUnavailableError, DeploymentNotFoundError
from replica_manager.kubernetes.connection import KubernetesConnection
from replica_manager.kubernetes.events import SyncComplete, Upsert
from replica_manager.kubernetes.manager import ReplicaManager
from replica_manager.kubernetes.store import DeploymentStore


class TestReplicaManager(unittest.TestCase):
    """Test cases for the ReplicaManager class."""

    def setUp(self):
        """Set up test fixtures."""
        self.api = mock.Mock(spec=client.AppsV1Api)
        self.connection = mock.Mock(spec=KubernetesConnection)
        self.connection.apps_v1_api = self.api
        self.manager = ReplicaManager(namespace="apps", connection=self.connection)

    def test_is_a_deployment_store(self):
        """Test that the manager satisfies the store interface."""
        self.assertIsInstance(self.manager, DeploymentStore)

    def test_empty_namespace_uses_default(self):
        """Test that an empty namespace falls back to default."""
        manager = ReplicaManager(namespace="", connection=self.connection)

        self.assertEqual(manager.namespace, "default")
        self.assertEqual(manager.watcher.namespace, "default")
        self.assertEqual(manager.gateway.namespace, "default")

    def test_reads_come_from_cache(self):
        """Test that reads never contact the cluster."""
        self.manager.reconciler.handle(Upsert({"metadata": {"name": "frontend"}, "spec": {"replicas": 3}}))

        self.assertEqual(self.manager.list_deployments(), ["frontend"])
        self.assertEqual(self.manager.get_replicas("frontend"), (3, True))
        self.assertEqual(self.manager.get_replicas("ghost"), (0, False))
        self.assertEqual(self.api.mock_calls, [])

    def test_ready_follows_sync(self):
        """Test that ready reports the reconciler sync state."""
        self.assertFalse(self.manager.ready())

        self.manager.reconciler.handle(SyncComplete())

        self.assertTrue(self.manager.ready())

    def test_set_replicas_does_not_touch_cache(self):
        """Test that writes only go to the cluster."""
        self.manager.reconciler.handle(Upsert({"metadata": {"name": "frontend"}, "spec": {"replicas": 3}}))

        self.manager.set_replicas("frontend", 5)

        self.api.patch_namespaced_deployment.assert_called_once()
        self.assertEqual(self.manager.get_replicas("frontend"), (3, True))

    def test_set_replicas_not_found(self):
        """Test that gateway errors propagate."""
        self.api.patch_namespaced_deployment.side_effect = ApiException(status=404)

        with self.assertRaises(DeploymentNotFoundError):
            self.manager.set_replicas("ghost", 1)

    def test_ping(self):
        """Test that ping issues a single bounded list call."""
        self.manager.ping(2.0)

        self.api.list_namespaced_deployment.assert_called_once_with("apps", limit=1, _request_timeout=2.0)

    def test_ping_failure(self):
        """Test that connectivity failures raise ClusterUnavailableError."""
        self.api.list_namespaced_deployment.side_effect = ConnectionError("connection refused")

        with self.assertRaises(ClusterUnavailableError) as ctx:
            self.manager.ping(2.0)

        self.assertIn("connection refused", str(ctx.exception))

    def test_start_and_shutdown_order(self):
        """Test that the reconciler starts first and the watch stops first."""
        parent = mock.Mock()
        self.manager.reconciler = parent.reconciler
        self.manager.watcher = parent.watcher

        self.manager.start()
        self.manager.shutdown(timeout=1.0)

        self.assertEqual(
            parent.mock_calls,
            [
                mock.call.reconciler.start(),
                mock.call.watcher.start(),
                mock.call.watcher.stop(1.0),
                mock.call.reconciler.stop(1.0),
            ],
        )


if __name__ == "__main__":
    unittest.main()
