"""
Typed errors for the clip export core.

Every failure a render request can hit maps to exactly one subclass, so the
request layer can report ``{errorKind, detail}`` without inspecting messages.
"""

from typing import Optional


class ClipperError(Exception):
    """Base class for all export errors."""

    error_kind = "ClipperError"
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidEditSpecError(ClipperError):
    """Edit spec or moment failed validation. Raised before any process is spawned."""

    error_kind = "InvalidEditSpec"
    status_code = 400


class SourceNotFoundError(ClipperError):
    """Sanitized source reference does not resolve to an existing file."""

    error_kind = "SourceNotFound"
    status_code = 404


class EngineTimeoutError(ClipperError):
    """FFmpeg exceeded its time budget and was killed."""

    error_kind = "EngineTimeout"
    status_code = 504


class EngineFailureError(ClipperError):
    """FFmpeg exited with a non-zero status."""

    error_kind = "EngineFailure"
    status_code = 502

    def __init__(self, detail: str, returncode: Optional[int] = None):
        super().__init__(detail)
        self.returncode = returncode


class InternalInvocationError(ClipperError):
    """FFmpeg could not be started at all (missing binary, permissions)."""

    error_kind = "InternalInvocationError"
    status_code = 500


class RenderCancelledError(ClipperError):
    """Render was cancelled by the caller while FFmpeg was running."""

    error_kind = "RenderCancelled"
    status_code = 409
