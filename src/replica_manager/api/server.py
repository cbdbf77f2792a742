"""HTTP listeners of the replica manager.

Two uvicorn servers run side by side, each on its own thread: the API
listener (HTTPS with mutual TLS when enabled) and the probe listener, which
is always plain HTTP so that orchestration probes do not depend on client
certificates.
"""

import logging
import socket
import ssl
import threading
import time

import uvicorn
from fastapi import FastAPI

from replica_manager.api.app import create_api_app, create_probe_app
from replica_manager.api.tls import build_server_ssl_context
from replica_manager.config import ReplicaManagerConfig, split_address
from replica_manager.kubernetes.store import DeploymentStore
from replica_manager.readiness import ReadinessGate

logger = logging.getLogger(__name__)


class ServerThread:
    """A uvicorn server running on a dedicated thread.

    The listening socket is bound by :meth:`bind` in the calling thread so
    that address errors are raised at startup rather than inside the thread.
    """

    def __init__(
        self,
        name: str,
        app: FastAPI,
        address: str,
        ssl_context: ssl.SSLContext | None = None,
        grace_period: float = 10.0,
    ):
        """Initialize the server.

        Args:
            name: Name used in logs and for the thread.
            app: The ASGI application to serve.
            address: Listen address in ``host:port`` form.
            ssl_context: SSL context of the listener, or None for plain HTTP.
            grace_period: Seconds allowed for in-flight requests on shutdown.
        """
        self.name = name
        self.address = address
        self.host, self.bind_port = split_address(address)
        self.config = uvicorn.Config(
            app,
            host=self.host,
            port=self.bind_port,
            log_config=None,
            lifespan="off",
            timeout_graceful_shutdown=grace_period,
        )
        self.config.load()
        if ssl_context is not None:
            # Replace the context uvicorn would build so client certificates are enforced
            self.config.ssl = ssl_context
        self.tls_enabled = ssl_context is not None
        self.server = uvicorn.Server(self.config)
        self.socket: socket.socket | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int | None:
        """The bound port, useful when listening on port 0."""
        if self.socket is None:
            return None
        return self.socket.getsockname()[1]

    def bind(self) -> None:
        """Bind the listening socket.

        Raises:
            OSError: If the address cannot be bound.
        """
        if self.socket is not None:
            return
        # uvicorn's own bind_socket exits the process on failure
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.bind_port))
        except OSError:
            sock.close()
            raise
        sock.set_inheritable(True)
        self.socket = sock

    def start(self) -> None:
        """Bind if needed and start serving on a daemon thread."""
        self.bind()
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"sockets": [self.socket]},
            name=f"{self.name}-server",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"{self.name} listening on {self.address} (tls={self.tls_enabled})")

    def wait_started(self, timeout: float = 5.0) -> bool:
        """Wait until the server accepts connections.

        Args:
            timeout: Maximum number of seconds to wait.

        Returns:
            True if the server started in time.
        """
        deadline = time.monotonic() + timeout
        while not self.server.started:
            if not self.is_alive() or time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def stop(self, timeout: float | None = None) -> None:
        """Stop accepting connections and wait for in-flight requests.

        Args:
            timeout: Maximum number of seconds to wait for the thread.
        """
        self.server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning(f"{self.name} server did not stop within the timeout")
            self._thread = None
        elif self.socket is not None:
            self.socket.close()
        logger.info(f"{self.name} server stopped")


class APIServer:
    """The API and probe listeners of the replica manager."""

    def __init__(self, config: ReplicaManagerConfig, store: DeploymentStore, gate: ReadinessGate | None = None):
        """Initialize both listeners.

        Args:
            config: The service configuration.
            store: The Deployment store backing the API.
            gate: The readiness gate of the probe listener.

        Raises:
            TLSConfigurationError: If TLS is enabled and the TLS material is invalid.
        """
        self.config = config
        ssl_context = None
        if config.tls_enabled:
            ssl_context = build_server_ssl_context(
                config.tls_cert_file, config.tls_key_file, config.tls_client_ca_file
            )

        grace_period = config.shutdown_grace_period
        self.api = ServerThread(
            "api", create_api_app(store), config.listen_addr, ssl_context=ssl_context, grace_period=grace_period
        )
        self.probe = ServerThread(
            "probe", create_probe_app(store, gate), config.probe_listen_addr, grace_period=grace_period
        )

    def start(self) -> None:
        """Bind both listeners, then start serving.

        Raises:
            OSError: If either address cannot be bound.
        """
        self.probe.bind()
        try:
            self.api.bind()
        except OSError:
            self.probe.socket.close()
            raise
        self.probe.start()
        self.api.start()

    def is_alive(self) -> bool:
        """Return True while both listeners are running."""
        return self.api.is_alive() and self.probe.is_alive()

    def shutdown(self, timeout: float | None = None) -> None:
        """Gracefully stop the API listener, then the probe listener.

        Args:
            timeout: Maximum number of seconds to wait for each listener.
        """
        self.api.stop(timeout)
        self.probe.stop(timeout)
