"""Tests for the command-line interface."""

import os
import unittest
from unittest import mock

from replica_manager import cli
from replica_manager.config import ReplicaManagerConfig


class TestParseArgs(unittest.TestCase):
    """Test cases for argument parsing."""

    def test_defaults(self):
        """Test that unset flags do not override the environment."""
        parsed = cli.parse_args([])

        self.assertFalse(parsed.verbose)
        self.assertIsNone(parsed.listen_addr)
        self.assertIsNone(parsed.tls_enabled)

    def test_tls_enabled_flag(self):
        """Test the boolean spellings of --tls-enabled."""
        self.assertTrue(cli.parse_args(["--tls-enabled"]).tls_enabled)
        self.assertTrue(cli.parse_args(["--tls-enabled", "T"]).tls_enabled)
        self.assertFalse(cli.parse_args(["--tls-enabled", "0"]).tls_enabled)

        with self.assertRaises(SystemExit):
            with mock.patch("sys.stderr"):
                cli.parse_args(["--tls-enabled", "yes"])


class TestLoadConfig(unittest.TestCase):
    """Test cases for merging flags over the environment."""

    def test_environment_only(self):
        """Test that the environment is used when no flag is given."""
        with mock.patch.dict(os.environ, {"NAMESPACE": "apps", "LISTEN_ADDR": ":9000"}, clear=True):
            config = cli.load_config(cli.parse_args([]))

        self.assertEqual(config.namespace, "apps")
        self.assertEqual(config.listen_addr, ":9000")

    def test_flags_override_environment(self):
        """Test that flags take precedence over the environment."""
        with mock.patch.dict(os.environ, {"NAMESPACE": "apps"}, clear=True):
            config = cli.load_config(cli.parse_args(["--namespace", "staging", "--readiness-timeout", "0.5"]))

        self.assertEqual(config.namespace, "staging")
        self.assertEqual(config.readiness_timeout, 0.5)

    def test_tls_flag_requires_files(self):
        """Test that enabling TLS by flag still requires the TLS paths."""
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                cli.load_config(cli.parse_args(["--tls-enabled"]))

    def test_tls_files_from_environment(self):
        """Test mixing the TLS flag with paths from the environment."""
        env = {"TLS_CERT_FILE": "/c", "TLS_KEY_FILE": "/k", "TLS_CLIENT_CA_FILE": "/ca"}
        with mock.patch.dict(os.environ, env, clear=True):
            config = cli.load_config(cli.parse_args(["--tls-enabled"]))

        self.assertTrue(config.tls_enabled)
        self.assertEqual(config.tls_client_ca_file, "/ca")


@mock.patch("replica_manager.cli.setup_logging")
class TestMain(unittest.TestCase):
    """Test cases for the main entry point."""

    def test_invalid_boolean_environment(self, mock_setup_logging):
        """Test that a malformed TLS_ENABLED exits with an error."""
        with mock.patch.dict(os.environ, {"TLS_ENABLED": "maybe"}, clear=True):
            self.assertEqual(cli.main([]), 1)

    def test_tls_without_paths(self, mock_setup_logging):
        """Test that TLS without certificate paths exits before serving."""
        with mock.patch.dict(os.environ, {"TLS_ENABLED": "true"}, clear=True):
            with mock.patch("replica_manager.cli.APIServer") as mock_server:
                self.assertEqual(cli.main([]), 1)

        mock_server.assert_not_called()

    @mock.patch("replica_manager.cli.wait_for_shutdown", return_value=0)
    @mock.patch("replica_manager.cli.APIServer")
    @mock.patch("replica_manager.cli.ReplicaManager")
    def test_startup_and_shutdown_order(
        self, mock_manager_cls, mock_server_cls, mock_wait, mock_setup_logging
    ):
        """Test that listeners bind before the watch starts and stop before it."""
        parent = mock.Mock()
        parent.attach_mock(mock_server_cls.return_value, "server")
        parent.attach_mock(mock_manager_cls.return_value, "manager")

        with mock.patch.dict(os.environ, {"NAMESPACE": "apps", "SHUTDOWN_GRACE_PERIOD": "2"}, clear=True):
            exit_code = cli.main([])

        self.assertEqual(exit_code, 0)
        mock_manager_cls.assert_called_once_with(namespace="apps")
        config = mock_server_cls.call_args[0][0]
        self.assertIsInstance(config, ReplicaManagerConfig)
        self.assertEqual(
            [c for c in parent.mock_calls if c[0] in ("server.start", "manager.start", "server.shutdown",
                                                      "manager.shutdown")],
            [
                mock.call.server.start(),
                mock.call.manager.start(),
                mock.call.server.shutdown(2.0 + cli.SHUTDOWN_JOIN_MARGIN),
                mock.call.manager.shutdown(cli.SHUTDOWN_JOIN_MARGIN),
            ],
        )

    @mock.patch("replica_manager.cli.APIServer")
    @mock.patch("replica_manager.cli.ReplicaManager")
    def test_bind_failure(self, mock_manager_cls, mock_server_cls, mock_setup_logging):
        """Test that a listener bind error exits without starting the watch."""
        mock_server_cls.return_value.start.side_effect = OSError("address already in use")

        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(cli.main([]), 1)

        mock_manager_cls.return_value.start.assert_not_called()
        mock_server_cls.return_value.shutdown.assert_called_once()

    @mock.patch("replica_manager.cli.wait_for_shutdown", return_value=1)
    @mock.patch("replica_manager.cli.APIServer")
    @mock.patch("replica_manager.cli.ReplicaManager")
    def test_listener_died(self, mock_manager_cls, mock_server_cls, mock_wait, mock_setup_logging):
        """Test that an unexpected listener exit is reported in the exit code."""
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(cli.main([]), 1)

        mock_manager_cls.return_value.shutdown.assert_called_once()


class TestWaitForShutdown(unittest.TestCase):
    """Test cases for the supervision loop."""

    @mock.patch("replica_manager.cli.signal.signal")
    def test_listener_stops(self, mock_signal):
        """Test that supervision ends when a listener dies."""
        server = mock.Mock()
        server.is_alive.side_effect = [True, False]

        with mock.patch.object(cli, "SUPERVISION_INTERVAL", 0.01):
            self.assertEqual(cli.wait_for_shutdown(server), 1)

        self.assertEqual(mock_signal.call_count, 2)

    @mock.patch("replica_manager.cli.signal.signal")
    def test_signal_stops(self, mock_signal):
        """Test that a termination signal ends supervision cleanly."""
        server = mock.Mock()

        def fire_signal():
            handler = mock_signal.call_args_list[-1][0][1]
            handler(15, None)
            return True

        server.is_alive.side_effect = fire_signal

        with mock.patch.object(cli, "SUPERVISION_INTERVAL", 0.01):
            self.assertEqual(cli.wait_for_shutdown(server), 0)


if __name__ == "__main__":
    unittest.main()
