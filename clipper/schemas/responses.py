"""
Response schemas for the export API.

Field names follow the frontend's camelCase conventions on the wire.
"""

from pydantic import BaseModel, ConfigDict, Field


class ExportClipResponse(BaseModel):
    """Successful export: where to fetch the rendered clip."""

    model_config = ConfigDict(populate_by_name=True)

    output_name: str = Field(..., alias="outputName", description="Generated artifact file name")
    access_url: str = Field(
        ..., alias="accessURL", description="Byte-range-servable URL of the rendered clip"
    )


class ErrorResponse(BaseModel):
    """Structured failure returned for every export error."""

    model_config = ConfigDict(populate_by_name=True)

    error_kind: str = Field(..., alias="errorKind", description="One of the typed error kinds")
    detail: str = Field(..., description="Human-readable detail (engine diagnostics included)")


class CancelResponse(BaseModel):
    """Response for a cancellation request."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    cancelled: bool


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = Field(..., description="Service is running")
    ffmpeg: bool = Field(..., description="Whether the ffmpeg binary was found")
    active_renders: int = Field(..., alias="activeRenders", description="Renders in flight")
    storage: str = Field(default="Local filesystem", description="Artifact storage backend")
