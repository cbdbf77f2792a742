__version__ = "0.1.0"
__description__ = (
    "Cached read/write view of Kubernetes Deployment replica counts, "
    "served over a mutual TLS HTTP API"
)
