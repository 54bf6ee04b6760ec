"""
Shared-key guard for the render endpoints.

Starting and cancelling renders spawns and kills FFmpeg processes, so when
CLIPPER_API_KEY is set those routes require the key in the X-Clipper-API-Key
header. Downloads under /exports are not guarded: <video> elements cannot send
custom headers, and output names carry a random token.
"""

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from clipper.config import get_settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Clipper-API-Key"


def api_key_matches(provided: Optional[str], expected: str) -> bool:
    """Constant-time key comparison. A missing key never matches."""
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_render_key(
    api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
) -> None:
    """Reject render and cancel requests without the configured key (no-op when unset)."""
    expected = get_settings().clipper_api_key
    if not expected or api_key_matches(api_key, expected):
        return

    reason = "missing" if not api_key else "invalid"
    logger.warning(f"Rejected render request: {reason} {API_KEY_HEADER}")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=f"{reason.capitalize()} API key",
        headers={"WWW-Authenticate": API_KEY_HEADER},
    )
