"""Mutual TLS for the API listener.

The server context requires TLS 1.2 or newer and a client certificate that
chains to the configured CA bundle. Connections failing the handshake are
dropped by the transport before any HTTP request is parsed.
"""

import logging
import ssl

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from replica_manager.exceptions import TLSConfigurationError

logger = logging.getLogger(__name__)


def load_client_ca_bundle(path: str) -> list[x509.Certificate]:
    """Load the CA certificates trusted for client authentication.

    Args:
        path: Path to a PEM bundle.

    Returns:
        The certificates found in the bundle.

    Raises:
        TLSConfigurationError: If the file cannot be read or holds no certificate.
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise TLSConfigurationError(f"read client CA: {e}") from e

    try:
        certificates = x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise TLSConfigurationError(f"parse client CA: {e}") from e
    if not certificates:
        raise TLSConfigurationError("parse client CA: no certs found")
    return certificates


def build_server_ssl_context(cert_file: str, key_file: str, client_ca_file: str) -> ssl.SSLContext:
    """Build the server SSL context enforcing mutual TLS.

    Args:
        cert_file: Path to the server certificate chain (PEM).
        key_file: Path to the server private key (PEM).
        client_ca_file: Path to the CA bundle trusted for client certificates.

    Returns:
        The SSL context, loaded once and never reloaded.

    Raises:
        TLSConfigurationError: If any of the TLS material is missing or invalid.
    """
    ssl_ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ssl_ctx.minimum_version = ssl.TLSVersion.TLSv1_2

    try:
        ssl_ctx.load_cert_chain(cert_file, keyfile=key_file)
    except OSError as e:
        raise TLSConfigurationError(f"load server cert/key: {e}") from e

    certificates = load_client_ca_bundle(client_ca_file)
    cadata = "".join(cert.public_bytes(serialization.Encoding.PEM).decode("ascii") for cert in certificates)
    try:
        ssl_ctx.load_verify_locations(cadata=cadata)
    except ssl.SSLError as e:
        raise TLSConfigurationError(f"load client CA: {e}") from e

    # Handshakes without a trusted client certificate fail closed
    ssl_ctx.verify_mode = ssl.CERT_REQUIRED

    logger.info(f"Loaded {len(certificates)} client CA certificate(s) from {client_ca_file}")
    return ssl_ctx
