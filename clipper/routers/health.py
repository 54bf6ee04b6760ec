"""
Health check endpoints.
"""

import shutil

from fastapi import APIRouter, Request

from clipper.config import get_settings
from clipper.schemas.responses import HealthResponse

router = APIRouter()


@router.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the service is running, with FFmpeg availability and the
    number of renders in flight.
    """
    invoker = getattr(request.app.state, "render_invoker", None)
    return HealthResponse(
        ok=True,
        ffmpeg=shutil.which(get_settings().ffmpeg_path) is not None,
        active_renders=invoker.active_renders if invoker else 0,
    )
