"""
Source resolution - maps a caller-supplied reference to a file in the input directory.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

from clipper.config import Settings, get_settings
from clipper.errors import SourceNotFoundError

logger = logging.getLogger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")

MAX_ID_LENGTH = 40


def sanitize_id(value: str) -> str:
    """Replace anything outside [A-Za-z0-9_-] and cap the length."""
    return _UNSAFE_ID_CHARS.sub("_", value)[:MAX_ID_LENGTH]


class SourceResolver:
    """
    Resolves source references against the input directory.

    Only the final path component of a reference is used, so "../x.mp4",
    "/etc/x.mp4" and "a/b/x.mp4" all resolve to "<input>/x.mp4".
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def input_directory(self) -> Path:
        return Path(self.settings.input_directory).resolve()

    def resolve(self, source_ref: str) -> Path:
        """
        Resolve a reference to an existing, readable media file.

        Raises:
            SourceNotFoundError: If the reference is empty, escapes the input
                directory, or names a file that does not exist
        """
        # Accept both separators regardless of platform
        name = os.path.basename((source_ref or "").replace("\\", "/"))
        if not name or name in (".", ".."):
            raise SourceNotFoundError(f"Invalid source reference: {source_ref!r}")

        # A bare video id maps to the file the download service writes
        if "." not in name:
            name = f"{sanitize_id(name)}.mp4"

        input_dir = self.input_directory
        candidate = (input_dir / name).resolve()

        # Symlinks must not lead outside the input directory
        if input_dir not in candidate.parents:
            logger.warning(f"Source reference escapes input directory: {source_ref!r}")
            raise SourceNotFoundError(f"Invalid source reference: {source_ref!r}")

        if not candidate.is_file() or not os.access(candidate, os.R_OK):
            raise SourceNotFoundError(
                "Source video not found on server. Please re-download the video."
            )

        return candidate
