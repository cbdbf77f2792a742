"""Command-line interface for the replica manager.

This module serves as the entrypoint for the replica manager service.
"""

import argparse
import logging
import signal
import sys
import threading

from replica_manager import __description__, __version__
from replica_manager.api.server import APIServer
from replica_manager.config import ReplicaManagerConfig, parse_bool
from replica_manager.exceptions import ConfigurationError
from replica_manager.kubernetes.manager import ReplicaManager
from replica_manager.readiness import ReadinessGate

# Seconds between checks that both listeners are still running
SUPERVISION_INTERVAL = 0.5
# Extra seconds granted to threads on top of the shutdown grace period
SHUTDOWN_JOIN_MARGIN = 5.0


def setup_logging(verbose: bool = False) -> None:
    """Set up logging configuration.

    Args:
        verbose: Whether to enable verbose logging.
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(level=log_level, format=log_format, stream=sys.stdout)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: Command-line arguments to parse. If None, sys.argv will be used.

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(prog="replica-manager", description=__description__)

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument("--listen-addr", help="Address to listen on (overrides LISTEN_ADDR)")

    parser.add_argument("--probe-listen-addr", help="Address for health probes (overrides PROBE_LISTEN_ADDR)")

    parser.add_argument("--namespace", help="Kubernetes namespace to target (overrides NAMESPACE)")

    parser.add_argument(
        "--tls-enabled",
        type=parse_bool,
        nargs="?",
        const=True,
        help="Enable mutual TLS on the API listener (overrides TLS_ENABLED)",
    )

    parser.add_argument("--tls-cert-file", help="Path to server TLS cert (overrides TLS_CERT_FILE)")

    parser.add_argument("--tls-key-file", help="Path to server TLS key (overrides TLS_KEY_FILE)")

    parser.add_argument("--tls-client-ca-file", help="Path to client CA bundle (overrides TLS_CLIENT_CA_FILE)")

    parser.add_argument(
        "--readiness-timeout", type=float, help="Readiness probe timeout in seconds (overrides READINESS_TIMEOUT)"
    )

    parser.add_argument(
        "--shutdown-grace-period",
        type=float,
        help="Seconds allowed for in-flight requests on shutdown (overrides SHUTDOWN_GRACE_PERIOD)",
    )

    return parser.parse_args(args)


def load_config(parsed_args: argparse.Namespace) -> ReplicaManagerConfig:
    """Build the configuration from the environment and command-line overrides.

    Args:
        parsed_args: Parsed command-line arguments.

    Returns:
        The validated configuration.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    # Create config from environment variables
    config = ReplicaManagerConfig.from_env()

    # Override with command-line arguments
    overrides = {
        field: getattr(parsed_args, field)
        for field in ReplicaManagerConfig.model_fields
        if getattr(parsed_args, field, None) is not None
    }
    if not overrides:
        return config

    # Validate again so that TLS requirements also apply to flags
    return ReplicaManagerConfig.model_validate({**config.model_dump(), **overrides})


def wait_for_shutdown(server: APIServer) -> int:
    """Block until SIGINT/SIGTERM or until a listener stops unexpectedly.

    Args:
        server: The running listeners.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    stop = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signal.Signals(signum).name}, shutting down")
        stop.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    while not stop.wait(SUPERVISION_INTERVAL):
        if not server.is_alive():
            logger.error("A listener stopped unexpectedly")
            return 1
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the replica manager.

    Args:
        args: Command-line arguments. If None, sys.argv will be used.

    Returns:
        Exit code.
    """
    server = None
    manager = None
    exit_code = 0
    try:
        parsed_args = parse_args(args)
        setup_logging(parsed_args.verbose)
        logger = logging.getLogger(__name__)
        logger.info(f"Starting replica manager {__version__}")

        config = load_config(parsed_args)

        logger.info(
            f"Configuration: listen={config.listen_addr}, probe_listen={config.probe_listen_addr}, "
            f"namespace={config.namespace}, tls={config.tls_enabled}"
        )

        manager = ReplicaManager(namespace=config.namespace)
        gate = ReadinessGate(manager.ready, manager.ping, timeout=config.readiness_timeout)

        # Binds both listeners first so that address errors stop the process before any work
        server = APIServer(config, manager, gate)
        server.start()
        manager.start()

        exit_code = wait_for_shutdown(server)

    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Interrupted by user")
    except (ValueError, ConfigurationError) as e:
        logging.getLogger(__name__).error(f"Configuration error: {e}")
        return 1
    except OSError as e:
        logging.getLogger(__name__).error(f"Failed to start listeners: {e}")
        exit_code = 1
    except Exception as e:
        logging.getLogger(__name__).error(f"An unexpected error occurred: {e}")
        exit_code = 1
    finally:
        # Stop serving first, then the watch, so in-flight requests still see the cache
        if server is not None or manager is not None:
            grace_period = config.shutdown_grace_period
            if server is not None:
                server.shutdown(grace_period + SHUTDOWN_JOIN_MARGIN)
            if manager is not None:
                manager.shutdown(SHUTDOWN_JOIN_MARGIN)

    logging.getLogger(__name__).info("Replica manager exiting")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
