"""Configuration module for the replica manager.

This module handles the configuration of the replica manager through environment variables.
Command-line flags parsed in :mod:`replica_manager.cli` override the values loaded here.
"""
import os

from pydantic import BaseModel, Field, field_validator, model_validator

# Spellings accepted for boolean settings
TRUE_VALUES = ("1", "t", "T", "TRUE", "true", "True")
FALSE_VALUES = ("0", "f", "F", "FALSE", "false", "False")


def parse_bool(value: str | bool) -> bool:
    """Parse a boolean setting.

    Args:
        value: The raw value, usually taken from the environment.

    Returns:
        The parsed boolean.

    Raises:
        ValueError: If the value is not a recognised boolean spelling.
    """
    if isinstance(value, bool):
        return value
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value: {value!r}")


def split_address(address: str) -> tuple[str, int]:
    """Split a listen address of the form ``host:port``.

    An empty host (``:8080``) means all interfaces.

    Args:
        address: The listen address.

    Returns:
        A ``(host, port)`` tuple.
    """
    host, sep, port_str = address.rpartition(":")
    if not sep:
        raise ValueError(f"Listen address must be in format host:port, got {address!r}")
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in listen address {address!r}")
    if not 0 <= port <= 65535:
        raise ValueError(f"Port out of range in listen address {address!r}")
    host = host.strip("[]")
    return host or "0.0.0.0", port


class ReplicaManagerConfig(BaseModel):
    """Configuration class for the replica manager.

    Attributes:
        listen_addr: Address of the API listener (HTTPS with mutual TLS when enabled).
        probe_listen_addr: Address of the unauthenticated health probe listener.
        namespace: Kubernetes namespace whose Deployments are cached.
        tls_enabled: Whether the API listener requires mutual TLS.
        tls_cert_file: Path to the server certificate (PEM).
        tls_key_file: Path to the server private key (PEM).
        tls_client_ca_file: Path to the CA bundle trusted for client certificates.
        readiness_timeout: Timeout in seconds for the readiness connectivity probe.
        shutdown_grace_period: Seconds allowed for in-flight requests during shutdown.
    """
    listen_addr: str = Field(default=":8080")
    probe_listen_addr: str = Field(default=":8081")
    namespace: str = Field(default="default")
    tls_enabled: bool = Field(default=False)
    tls_cert_file: str | None = Field(default=None)
    tls_key_file: str | None = Field(default=None)
    tls_client_ca_file: str | None = Field(default=None)
    readiness_timeout: float = Field(default=2.0, gt=0)
    shutdown_grace_period: float = Field(default=10.0, ge=0)

    @field_validator("listen_addr", "probe_listen_addr")
    def validate_address(cls, v):
        """Validate address format as host:port"""
        split_address(v)
        return v

    @field_validator("namespace")
    def validate_namespace(cls, v):
        """Fall back to the default namespace when empty"""
        return v or "default"

    @field_validator("tls_enabled", mode="before")
    def validate_tls_enabled(cls, v):
        """Accept the same boolean spellings as the environment"""
        return parse_bool(v)

    @model_validator(mode="after")
    def validate_tls_files(self):
        """Require all TLS material when TLS is enabled"""
        if self.tls_enabled and not (self.tls_cert_file and self.tls_key_file and self.tls_client_ca_file):
            raise ValueError(
                "tls enabled but TLS_CERT_FILE, TLS_KEY_FILE, or TLS_CLIENT_CA_FILE is missing"
            )
        return self

    @classmethod
    def from_env(cls):
        """Create a config instance from environment variables."""
        values = {
            "listen_addr": os.getenv("LISTEN_ADDR") or ":8080",
            "probe_listen_addr": os.getenv("PROBE_LISTEN_ADDR") or ":8081",
            "namespace": os.getenv("NAMESPACE") or "default",
            "tls_cert_file": os.getenv("TLS_CERT_FILE") or None,
            "tls_key_file": os.getenv("TLS_KEY_FILE") or None,
            "tls_client_ca_file": os.getenv("TLS_CLIENT_CA_FILE") or None,
        }

        # Invalid booleans are fatal rather than silently defaulted
        tls_enabled = os.getenv("TLS_ENABLED")
        if tls_enabled:
            values["tls_enabled"] = parse_bool(tls_enabled)

        readiness_timeout = os.getenv("READINESS_TIMEOUT")
        if readiness_timeout:
            values["readiness_timeout"] = float(readiness_timeout)
        shutdown_grace_period = os.getenv("SHUTDOWN_GRACE_PERIOD")
        if shutdown_grace_period:
            values["shutdown_grace_period"] = float(shutdown_grace_period)

        return cls(**values)
