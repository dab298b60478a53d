"""Shared schema pieces."""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from viewing_backend.services.timestamps import isoformat

# Stored naive-UTC datetimes go out with an explicit offset
UTCDateTime = Annotated[datetime, PlainSerializer(isoformat, return_type=str)]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class RejectionResponse(BaseModel):
    """
    Error body for rejected requests.

    HTTP 400: malformed request, nothing persisted
    HTTP 404: unknown or foreign entity
    HTTP 409: state conflict, original state preserved
    """

    status: str = Field("rejected", description="Always 'rejected'")
    code: str = Field(..., description="Machine-readable rejection code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(None, description="Additional context")
