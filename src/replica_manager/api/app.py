"""HTTP routes of the replica manager.

The API application only exposes the ``/api/v1`` routes and is served behind
mutual TLS when enabled. The probe application exposes ``/healthz`` and
``/readyz`` and is always served without authentication.
"""

import logging

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from replica_manager import __version__
from replica_manager.api.models import (
    GetReplicasResponse,
    ListDeploymentsResponse,
    SetReplicasRequest,
    StatusResponse,
)
from replica_manager.exceptions import ClusterError, DeploymentNotFoundError
from replica_manager.kubernetes.store import DeploymentStore
from replica_manager.readiness import ReadinessGate

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def get_store(request: Request) -> DeploymentStore:
    """Dependency returning the store attached to the application."""
    return request.app.state.store


def get_gate(request: Request) -> ReadinessGate:
    """Dependency returning the readiness gate attached to the application."""
    return request.app.state.gate


async def _plain_http_exception(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def _plain_validation_error(request: Request, exc: RequestValidationError) -> PlainTextResponse:
    return PlainTextResponse("invalid request", status_code=400)


def _new_app(title: str) -> FastAPI:
    app = FastAPI(title=title, version=__version__, docs_url=None, redoc_url=None, openapi_url=None)
    # Errors are reported as plain text like the rest of the service
    app.add_exception_handler(StarletteHTTPException, _plain_http_exception)
    app.add_exception_handler(RequestValidationError, _plain_validation_error)
    return app


api_router = APIRouter()


def list_deployments(store: DeploymentStore = Depends(get_store)) -> ListDeploymentsResponse:
    """List the cached Deployment names, sorted ascending."""
    return ListDeploymentsResponse(deployments=sorted(store.list_deployments()))


api_router.add_api_route("/deployments", list_deployments, methods=["GET"])
api_router.add_api_route("/deployments/", list_deployments, methods=["GET"], include_in_schema=False)


@api_router.get("/deployments/{name}/replicas", response_model=None)
def get_replicas(name: str, store: DeploymentStore = Depends(get_store)) -> GetReplicasResponse | PlainTextResponse:
    """Return the cached desired replicas of a Deployment."""
    replicas, found = store.get_replicas(name)
    if not found:
        return PlainTextResponse("deployment not found", status_code=404)
    return GetReplicasResponse(name=name, replicas=replicas)


@api_router.post("/deployments/{name}/replicas", response_model=None)
async def set_replicas(
    name: str, request: Request, store: DeploymentStore = Depends(get_store)
) -> StatusResponse | PlainTextResponse:
    """Request new desired replicas for a Deployment.

    The response only means the cluster accepted the change; the cached
    value is updated later by the watch.
    """
    body = await request.body()
    try:
        # Rejects malformed JSON, trailing data and unknown fields
        payload = SetReplicasRequest.model_validate_json(body)
    except ValidationError:
        return PlainTextResponse("invalid json body", status_code=400)

    if payload.replicas < 0:
        return PlainTextResponse("replicas must be >= 0", status_code=400)

    try:
        # The patch blocks on the network, keep it off the event loop
        await run_in_threadpool(store.set_replicas, name, payload.replicas)
    except DeploymentNotFoundError:
        return PlainTextResponse("deployment not found", status_code=404)
    except ClusterError as e:
        return PlainTextResponse(str(e), status_code=500)

    return StatusResponse(status="updated")


def create_api_app(store: DeploymentStore) -> FastAPI:
    """Create the application serving the ``/api/v1`` routes.

    Args:
        store: The Deployment store backing the routes.

    Returns:
        The FastAPI application.
    """
    app = _new_app("replica-manager")
    app.state.store = store
    app.include_router(api_router, prefix=API_PREFIX)
    return app


probe_router = APIRouter()


@probe_router.get("/healthz")
def healthz() -> StatusResponse:
    """Liveness probe, always OK once the process is serving."""
    return StatusResponse(status="ok")


@probe_router.get("/readyz", response_model=None)
def readyz(gate: ReadinessGate = Depends(get_gate)) -> StatusResponse | PlainTextResponse:
    """Readiness probe backed by the readiness gate."""
    result = gate.check()
    if not result.ready:
        return PlainTextResponse(result.reason, status_code=503)
    return StatusResponse(status="ready")


def create_probe_app(store: DeploymentStore, gate: ReadinessGate | None = None) -> FastAPI:
    """Create the unauthenticated health probe application.

    Args:
        store: The Deployment store whose readiness is reported.
        gate: The readiness gate to use. One is built from ``store`` if None.

    Returns:
        The FastAPI application.
    """
    app = _new_app("replica-manager-probes")
    app.state.store = store
    app.state.gate = gate or ReadinessGate(store.ready, store.ping)
    app.include_router(probe_router)
    return app
