"""
Export API Router - render clips and serve the rendered artifacts.
"""

import logging
import re
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse

from clipper.auth import require_render_key
from clipper.config import get_settings
from clipper.schemas.requests import ExportClipRequest
from clipper.schemas.responses import CancelResponse, ErrorResponse, ExportClipResponse
from clipper.services.render_invoker import RenderInvoker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Export"])

# Generated names only; hidden .part files never match
_OUTPUT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*\.mp4$")

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "InvalidEditSpec"},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "SourceNotFound"},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse, "description": "RenderCancelled"},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "model": ErrorResponse,
        "description": "InternalInvocationError",
    },
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse, "description": "EngineFailure"},
    status.HTTP_504_GATEWAY_TIMEOUT: {"model": ErrorResponse, "description": "EngineTimeout"},
}


# ============================================================================
# Dependencies
# ============================================================================


async def get_render_invoker(request: Request) -> RenderInvoker:
    """Get the render invoker from app state (initialized at startup)."""
    invoker = getattr(request.app.state, "render_invoker", None)
    if invoker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Render invoker not initialized",
        )
    return invoker


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/api/export-clip",
    response_model=ExportClipResponse,
    responses=_ERROR_RESPONSES,
)
async def export_clip(
    body: ExportClipRequest,
    invoker: RenderInvoker = Depends(get_render_invoker),
    _: None = Depends(require_render_key),
) -> ExportClipResponse:
    """
    Render one moment of a downloaded source video with the given edits.

    Blocks until FFmpeg finishes or the render time budget runs out.
    Failures are returned as ``{errorKind, detail}``.
    """
    result = await invoker.export_clip(
        source_ref=body.source_ref,
        moment=body.moment,
        edit_spec=body.edit_spec,
        job_id=body.job_id,
    )
    return ExportClipResponse(output_name=result.output_name, access_url=result.access_url)


@router.delete("/api/export-clip/{job_id}", response_model=CancelResponse)
async def cancel_export(
    job_id: str,
    invoker: RenderInvoker = Depends(get_render_invoker),
    _: None = Depends(require_render_key),
) -> CancelResponse:
    """Cancel an in-flight render started with the given jobId."""
    cancelled = await invoker.cancel(job_id)
    if not cancelled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No running render with jobId {job_id}",
        )
    return CancelResponse(job_id=job_id, cancelled=True)


@router.get("/exports/{output_name}")
async def get_export(output_name: str) -> FileResponse:
    """
    Serve a rendered clip.

    FileResponse honours Range headers so <video> elements can seek.
    """
    if not _OUTPUT_NAME_PATTERN.match(output_name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export not found")

    path = Path(get_settings().output_directory) / output_name
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export not found")

    return FileResponse(path, media_type="video/mp4")
