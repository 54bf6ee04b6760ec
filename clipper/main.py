"""
FastAPI application entry point for the clip export service.

Turns edit specs from the clip editor into FFmpeg renders:
1. Validates the edit spec and moment
2. Compiles crop, color, speed and text overlays into filter chains
3. Runs one bounded FFmpeg process per export and serves the result
"""

import asyncio
import logging
import os
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clipper.config import get_settings
from clipper.errors import ClipperError, InvalidEditSpecError
from clipper.routers import export, health
from clipper.schemas.edit_spec import format_validation_error
from clipper.schemas.responses import ErrorResponse
from clipper.services.cleanup_service import CleanupService
from clipper.services.render_invoker import RenderInvoker

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Creates the media directories, the render invoker and the cleanup task.
    """
    settings = get_settings()
    logger.info(f"Starting {settings.app_name}...")

    for directory in (settings.input_directory, settings.output_directory):
        os.makedirs(directory, exist_ok=True)
    logger.info(f"Videos served from: {settings.input_directory}")
    logger.info(f"Exports served from: {settings.output_directory}")

    app.state.render_invoker = RenderInvoker(settings)
    logger.info(f"Max concurrent renders: {settings.max_render_workers}")

    _verify_external_tools(settings.ffmpeg_path)

    cleanup_task = asyncio.create_task(CleanupService(settings).run_forever())

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    app.state.render_invoker = None
    logger.info("Shutdown complete")


def _verify_external_tools(ffmpeg_path: str) -> None:
    """Warn if FFmpeg is missing; renders will fail with InternalInvocationError."""
    if shutil.which(ffmpeg_path):
        logger.info("✓ FFmpeg for video rendering available")
    else:
        logger.warning("✗ FFmpeg for video rendering NOT FOUND - exports will fail")


def _error_response(status_code: int, error_kind: str, detail: str) -> JSONResponse:
    body = ErrorResponse(error_kind=error_kind, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


# Create FastAPI application
app = FastAPI(
    title="Clipper Export",
    description="""
Clip export service for the AI clipper editor.

## Features
- Aspect-ratio center crop (9:16, 16:9, 1:1, 4:3)
- Brightness / contrast / saturation
- Playback speed with matching audio tempo
- Timed text overlays
- Trim offsets

## Usage

1. Export: `POST /api/export-clip`
2. Download: `GET /exports/{outputName}` (byte-range capable)
3. Cancel: `DELETE /api/export-clip/{jobId}`
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClipperError)
async def clipper_error_handler(request: Request, exc: ClipperError) -> JSONResponse:
    """Report typed export failures as {errorKind, detail}."""
    return _error_response(exc.status_code, exc.error_kind, exc.detail)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are edit spec errors."""
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        InvalidEditSpecError.error_kind,
        format_validation_error(exc) or "Invalid request",
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(export.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    settings = get_settings()
    return {
        "service": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "storage": "Local disk -> browser IndexedDB",
        "docs": "/docs",
    }
