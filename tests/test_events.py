"""Tests for the deployment event helpers."""

import unittest
from unittest import mock

from kubernetes.client.models.v1_deployment import V1Deployment
from kubernetes.client.models.v1_deployment_spec import V1DeploymentSpec
from kubernetes.client.models.v1_label_selector import V1LabelSelector
from kubernetes.client.models.v1_object_meta import V1ObjectMeta
from kubernetes.client.models.v1_pod_template_spec import V1PodTemplateSpec

from replica_manager.kubernetes.events import (
    deployment_name,
    deployment_namespace,
    desired_replicas,
    name_from_key,
    tombstone_key,
)


def _deployment(name, replicas, namespace="default"):
    return V1Deployment(
        metadata=V1ObjectMeta(name=name, namespace=namespace),
        spec=V1DeploymentSpec(
            replicas=replicas,
            selector=V1LabelSelector(match_labels={"app": name}),
            template=V1PodTemplateSpec(),
        ),
    )


class TestDeploymentHelpers(unittest.TestCase):
    """Test cases for reading Deployment-like objects."""

    def test_model_object(self):
        """Test reading a kubernetes client model."""
        deployment = _deployment("frontend", 3, namespace="apps")

        self.assertEqual(deployment_name(deployment), "frontend")
        self.assertEqual(deployment_namespace(deployment), "apps")
        self.assertEqual(desired_replicas(deployment), 3)
        self.assertEqual(tombstone_key(deployment), "apps/frontend")

    def test_dict_object(self):
        """Test reading a raw dict as returned by untyped watches."""
        deployment = {"metadata": {"name": "backend", "namespace": "apps"}, "spec": {"replicas": 2}}

        self.assertEqual(deployment_name(deployment), "backend")
        self.assertEqual(deployment_namespace(deployment), "apps")
        self.assertEqual(desired_replicas(deployment), 2)

    def test_missing_replicas_is_zero(self):
        """Test that an unset replica count is treated as zero."""
        self.assertEqual(desired_replicas(_deployment("frontend", None)), 0)
        self.assertEqual(desired_replicas({"metadata": {"name": "frontend"}}), 0)
        self.assertEqual(desired_replicas({"metadata": {"name": "frontend"}, "spec": {}}), 0)

    def test_invalid_replicas(self):
        """Test that malformed replica counts are rejected."""
        for replicas in (-1, "3", 2.5, True):
            with self.assertRaises(ValueError):
                desired_replicas({"spec": {"replicas": replicas}})

    def test_missing_name(self):
        """Test that objects without a usable name report None."""
        self.assertIsNone(deployment_name(None))
        self.assertIsNone(deployment_name({}))
        self.assertIsNone(deployment_name({"metadata": {"name": ""}}))
        self.assertIsNone(deployment_name(mock.Mock(spec=V1Deployment, metadata=V1ObjectMeta())))
        self.assertIsNone(tombstone_key({"metadata": {}}))

    def test_tombstone_key_without_namespace(self):
        """Test that the key falls back to the bare name."""
        self.assertEqual(tombstone_key({"metadata": {"name": "frontend"}}), "frontend")

    def test_name_from_key(self):
        """Test recovering a name from a tombstone key."""
        self.assertEqual(name_from_key("apps/frontend"), "frontend")
        self.assertEqual(name_from_key("frontend"), "frontend")
        self.assertIsNone(name_from_key("apps/"))
        self.assertIsNone(name_from_key(None))


if __name__ == "__main__":
    unittest.main()
