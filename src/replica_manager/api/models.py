"""Request and response bodies of the HTTP API."""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator

# Kubernetes stores spec.replicas as an int32
MIN_REPLICAS_VALUE = -(2**31)
MAX_REPLICAS = 2**31 - 1

REPLICAS_FIELD = "replicas"


class SetReplicasRequest(BaseModel):
    """Body of ``POST /api/v1/deployments/{name}/replicas``.

    Unknown fields and non-integer values are rejected. Field names match
    case-insensitively, and a missing or null ``replicas`` means zero. The
    sign is checked by the handler so that it can report a dedicated message.
    """
    model_config = ConfigDict(extra="forbid")

    replicas: Annotated[StrictInt, Field(ge=MIN_REPLICAS_VALUE, le=MAX_REPLICAS)] | None = 0

    @model_validator(mode="before")
    @classmethod
    def fold_field_names(cls, data: Any) -> Any:
        """Map any casing of ``replicas`` to the field name; a null body is empty"""
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        # Later keys win, as in the order they appear in the body
        return {
            (REPLICAS_FIELD if isinstance(key, str) and key.casefold() == REPLICAS_FIELD else key): value
            for key, value in data.items()
        }

    @field_validator("replicas")
    @classmethod
    def null_means_zero(cls, v):
        return 0 if v is None else v


class ListDeploymentsResponse(BaseModel):
    deployments: list[str]


class GetReplicasResponse(BaseModel):
    name: str
    replicas: int


class StatusResponse(BaseModel):
    status: str
