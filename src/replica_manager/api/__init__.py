"""HTTP API of the replica manager.

This package contains the FastAPI applications, the mutual TLS setup and the
uvicorn listeners.
"""

from replica_manager.api.app import create_api_app, create_probe_app
from replica_manager.api.server import APIServer, ServerThread
from replica_manager.api.tls import build_server_ssl_context

__all__ = [
    "create_api_app",
    "create_probe_app",
    "APIServer",
    "ServerThread",
    "build_server_ssl_context",
]
