"""
Cleanup Service - periodically removes stale source videos and exports.

Downloaded sources and rendered clips are only kept long enough for the
browser to fetch them; the client persists its own copy.
"""

import asyncio
import logging
import os
import time
from typing import Optional

from clipper.config import Settings, get_settings

logger = logging.getLogger(__name__)


class CleanupService:
    """Deletes files older than ``file_max_age_seconds`` from the input and output directories."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def directories(self) -> list[str]:
        return [self.settings.input_directory, self.settings.output_directory]

    def sweep(self, now: Optional[float] = None) -> list[str]:
        """
        Remove stale files once.

        Returns:
            Paths of removed files
        """
        now = now if now is not None else time.time()
        max_age = self.settings.file_max_age_seconds
        removed = []

        for directory in self.directories:
            if not os.path.isdir(directory):
                continue
            try:
                entries = list(os.scandir(directory))
            except OSError as e:
                logger.warning(f"Cleanup error listing {directory}: {e}")
                continue

            for entry in entries:
                try:
                    if not entry.is_file(follow_symlinks=False):
                        continue
                    if now - entry.stat().st_mtime > max_age:
                        os.remove(entry.path)
                        removed.append(entry.path)
                        logger.info(f"Deleted stale file {entry.name}")
                except OSError as e:
                    logger.warning(f"Cleanup error for {entry.path}: {e}")

        return removed

    async def run_forever(self) -> None:
        """Sweep every ``cleanup_interval_seconds`` until cancelled."""
        interval = self.settings.cleanup_interval_seconds
        logger.info(
            f"File cleanup every {interval}s (max age {self.settings.file_max_age_seconds}s)"
        )
        while True:
            await asyncio.sleep(interval)
            logger.info("Running local file cleanup...")
            loop = asyncio.get_running_loop()
            removed = await loop.run_in_executor(None, self.sweep)
            if removed:
                logger.info(f"Cleanup removed {len(removed)} file(s)")
