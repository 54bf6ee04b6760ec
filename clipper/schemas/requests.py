"""
Request schemas for the export API.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from clipper.schemas.edit_spec import EditSpec, Moment


class ExportClipRequest(BaseModel):
    """Request body for POST /api/export-clip."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "sourceRef": "dQw4w9WgXcQ.mp4",
                "moment": {"startTime": 45, "endTime": 90},
                "editSpec": {
                    "aspectRatio": "9:16",
                    "speed": 1.5,
                    "textOverlays": [
                        {"id": "t1", "text": "Hi: there", "startSec": 1, "endSec": 3}
                    ],
                },
            }
        },
    )

    source_ref: str = Field(
        ..., min_length=1, description="File name of the source video in the input directory"
    )
    moment: Moment = Field(..., description="Absolute time range to render")
    edit_spec: EditSpec = Field(default_factory=EditSpec, description="Edits to apply")
    job_id: Optional[str] = Field(
        default=None,
        pattern=r"^[A-Za-z0-9_-]{1,64}$",
        description="Optional caller-chosen id, used to cancel the render while it runs",
    )
