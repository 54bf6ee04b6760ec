"""
Pydantic schemas for the edit model and request/response bodies.
"""

from clipper.schemas.edit_spec import (
    EditSpec,
    Moment,
    TextOverlay,
    parse_edit_spec,
    parse_moment,
)
from clipper.schemas.requests import ExportClipRequest
from clipper.schemas.responses import (
    CancelResponse,
    ErrorResponse,
    ExportClipResponse,
    HealthResponse,
)

__all__ = [
    "EditSpec",
    "Moment",
    "TextOverlay",
    "parse_edit_spec",
    "parse_moment",
    "ExportClipRequest",
    "ExportClipResponse",
    "ErrorResponse",
    "CancelResponse",
    "HealthResponse",
]
