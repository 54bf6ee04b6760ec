"""
Render Invoker - runs one bounded FFmpeg process per export request.

Features:
- Argument-vector command (never a shell string)
- Hard timeout with process-group termination
- Cancellation by job id or task cancellation
- Output written to a hidden .part file, renamed only on success
- Fixed-size worker pool (semaphore) bounding concurrent FFmpeg processes
"""

import asyncio
import logging
import os
import signal
import sys
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from clipper.config import Settings, get_settings
from clipper.errors import (
    ClipperError,
    EngineFailureError,
    EngineTimeoutError,
    InternalInvocationError,
    InvalidEditSpecError,
    RenderCancelledError,
)
from clipper.schemas.edit_spec import EditSpec, Moment
from clipper.services.filter_graph import FilterGraphCompiler
from clipper.services.source_resolver import SourceResolver
from clipper.services.time_range import translate_time_range

logger = logging.getLogger(__name__)


class RenderStatus(str, Enum):
    """Lifecycle of a single render."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RenderJob:
    """One render invocation. Lives only as long as the request."""

    job_id: str
    source_path: str
    moment: Moment
    edit_spec: EditSpec
    output_name: str
    status: RenderStatus = RenderStatus.PENDING
    error_kind: Optional[str] = None
    detail: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    def fail(self, error_kind: str, detail: str) -> None:
        self.status = RenderStatus.FAILED
        self.error_kind = error_kind
        self.detail = detail
        self.finished_at = time.time()


@dataclass
class ExportResult:
    """Result of a successful export."""

    job_id: str
    output_name: str
    output_path: str
    access_url: str
    file_size_bytes: int
    duration_seconds: float


def generate_output_name() -> str:
    """Time-based name with a random suffix so concurrent renders never collide."""
    return f"clip_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.mp4"


def partial_output_path(output_path: Path) -> Path:
    """Hidden sibling FFmpeg writes to until the render succeeds."""
    return output_path.with_name(f".{output_path.name}.part")


class RenderInvoker:
    """
    Builds and runs FFmpeg export commands.

    One instance is shared by the app; each render is independent apart from
    the worker-pool semaphore and the active-process table used for
    cancellation.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        compiler: Optional[FilterGraphCompiler] = None,
        resolver: Optional[SourceResolver] = None,
    ):
        self.settings = settings or get_settings()
        self.compiler = compiler or FilterGraphCompiler(self.settings)
        self.resolver = resolver or SourceResolver(self.settings)

        self._semaphore = asyncio.Semaphore(self.settings.max_render_workers)
        self._active: dict[str, asyncio.subprocess.Process] = {}
        self._jobs: set[str] = set()
        self._cancelled: set[str] = set()

    @property
    def active_renders(self) -> int:
        return len(self._active)

    def create_job(
        self,
        source_ref: str,
        moment: Moment,
        edit_spec: EditSpec,
        job_id: Optional[str] = None,
    ) -> RenderJob:
        """
        Resolve the source and create a pending job.

        Raises:
            SourceNotFoundError: If the source does not resolve
            InvalidEditSpecError: If job_id is already in use
        """
        source_path = self.resolver.resolve(source_ref)
        job_id = job_id or uuid.uuid4().hex
        if job_id in self._jobs:
            raise InvalidEditSpecError(f"jobId {job_id!r} is already rendering")

        return RenderJob(
            job_id=job_id,
            source_path=str(source_path),
            moment=moment,
            edit_spec=edit_spec,
            output_name=generate_output_name(),
        )

    def build_command(self, job: RenderJob, output_path: str) -> list[str]:
        """
        Build the FFmpeg argument vector for a job.

        Raises:
            InvalidEditSpecError: If trim or edits cannot be compiled
        """
        time_range = translate_time_range(job.moment, job.edit_spec)
        graph = self.compiler.compile(job.edit_spec)

        cmd = [
            self.settings.ffmpeg_path,
            "-y",
            "-hide_banner",
            "-nostdin",
            "-nostats",
            "-ss", time_range.seek,
            "-i", job.source_path,
            "-t", time_range.duration,
        ]

        video_filter = graph.video_filter()
        if video_filter:
            cmd.extend(["-vf", video_filter])

        audio_filter = graph.audio_filter()
        if audio_filter:
            cmd.extend(["-af", audio_filter])

        cmd.extend([
            "-c:v", "libx264",
            "-preset", self.settings.ffmpeg_preset,
            "-crf", str(self.settings.ffmpeg_crf),
            "-pix_fmt", "yuv420p",
            "-c:a", self.settings.audio_codec,
            "-b:a", self.settings.audio_bitrate,
            "-movflags", "+faststart",  # moov atom first for progressive playback
            "-f", "mp4",  # .part suffix hides the container from extension detection
            output_path,
        ])
        return cmd

    async def export_clip(
        self,
        source_ref: str,
        moment: Moment,
        edit_spec: EditSpec,
        job_id: Optional[str] = None,
    ) -> ExportResult:
        """Resolve, compile and render one clip."""
        job = self.create_job(source_ref, moment, edit_spec, job_id=job_id)
        return await self.render(job)

    async def render(self, job: RenderJob) -> ExportResult:
        """
        Render a job to the output directory.

        Returns:
            ExportResult with the artifact name and access URL

        Raises:
            ClipperError: Typed failure; no partial output is left behind
        """
        output_dir = Path(self.settings.output_directory)
        os.makedirs(output_dir, exist_ok=True)
        output_path = output_dir / job.output_name
        part_path = partial_output_path(output_path)

        self._jobs.add(job.job_id)
        try:
            # Compile before spawning so invalid specs never reach FFmpeg
            cmd = self.build_command(job, str(part_path))

            async with self._semaphore:
                # Cancelled while queued for a worker slot
                if job.job_id in self._cancelled:
                    raise RenderCancelledError("Render cancelled before it started")

                job.status = RenderStatus.RUNNING
                logger.info(
                    f"[{job.job_id}] Rendering {os.path.basename(job.source_path)} "
                    f"{job.moment.start_time}-{job.moment.end_time}s -> {job.output_name}"
                )
                started = time.monotonic()
                await self._run_engine(job, cmd)

                if not part_path.is_file():
                    raise EngineFailureError("Render failed: output file not created")
                os.replace(part_path, output_path)
                elapsed = time.monotonic() - started
        except ClipperError as e:
            job.fail(e.error_kind, e.detail)
            logger.error(f"[{job.job_id}] Render failed ({e.error_kind}): {e.detail[:200]}")
            raise
        except asyncio.CancelledError:
            job.fail(RenderCancelledError.error_kind, "Render task cancelled")
            logger.warning(f"[{job.job_id}] Render task cancelled")
            raise
        finally:
            self._discard_partial(part_path)
            self._jobs.discard(job.job_id)
            self._cancelled.discard(job.job_id)

        file_size = output_path.stat().st_size
        job.status = RenderStatus.SUCCEEDED
        job.finished_at = time.time()
        logger.info(
            f"[{job.job_id}] Clip rendered: {job.output_name} "
            f"({file_size / 1024 / 1024:.1f} MB in {elapsed:.1f}s)"
        )

        return ExportResult(
            job_id=job.job_id,
            output_name=job.output_name,
            output_path=str(output_path),
            access_url=self.access_url(job.output_name),
            file_size_bytes=file_size,
            duration_seconds=elapsed,
        )

    def access_url(self, output_name: str) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/exports/{output_name}"

    async def cancel(self, job_id: str) -> bool:
        """
        Cancel an in-flight render.

        Returns:
            True if the job was queued or running and is now cancelled
        """
        if job_id not in self._jobs:
            return False

        self._cancelled.add(job_id)
        proc = self._active.get(job_id)
        if proc is None or proc.returncode is not None:
            # Not spawned yet; render() checks the flag once it gets a worker slot
            logger.info(f"[{job_id}] Cancelling queued render")
            return True

        logger.info(f"[{job_id}] Cancelling render, terminating pid {proc.pid}")
        await self._terminate(proc)
        return True

    async def _run_engine(self, job: RenderJob, cmd: list[str]) -> None:
        """Run FFmpeg under the render timeout. The process never outlives this call."""
        logger.debug(f"[{job.job_id}] Running: {' '.join(cmd[:12])}...")

        kwargs = {}
        if sys.platform != "win32":
            # Own process group so timeouts also reach FFmpeg's children
            kwargs["start_new_session"] = True

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                **kwargs,
            )
        except OSError as e:
            raise InternalInvocationError(f"Could not start {cmd[0]}: {e}") from e

        self._active[job.job_id] = proc
        timeout = self.settings.render_timeout_seconds
        try:
            # Cancelled while the process was being spawned
            if job.job_id in self._cancelled:
                await self._terminate(proc)
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[{job.job_id}] FFmpeg exceeded {timeout:.0f}s, killing pid {proc.pid}")
            await self._terminate(proc)
            raise EngineTimeoutError(f"Render exceeded the {timeout:.0f}s time budget")
        except asyncio.CancelledError:
            await asyncio.shield(self._terminate(proc))
            raise
        finally:
            self._active.pop(job.job_id, None)

        if job.job_id in self._cancelled:
            raise RenderCancelledError("Render cancelled by caller")

        if proc.returncode != 0:
            tail = self.settings.stderr_tail_chars
            error_msg = stderr.decode(errors="replace")[-tail:] if stderr else "Unknown error"
            raise EngineFailureError(f"FFmpeg failed: {error_msg}", returncode=proc.returncode)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM the process group, SIGKILL whatever is left after the grace period."""
        if proc.returncode is None:
            self._signal(proc, signal.SIGTERM)
            try:
                await asyncio.wait_for(proc.wait(), timeout=self.settings.kill_grace_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Process {proc.pid} did not terminate, sending SIGKILL")
                self._signal(proc, signal.SIGKILL if sys.platform != "win32" else signal.SIGTERM)
                await proc.wait()

        # Children may outlive the group leader
        if sys.platform != "win32":
            self._signal(proc, signal.SIGKILL)

    def _signal(self, proc: asyncio.subprocess.Process, sig: int) -> None:
        try:
            if sys.platform == "win32":
                proc.kill()
            else:
                os.killpg(proc.pid, sig)
        except (ProcessLookupError, PermissionError):
            # Already reaped
            pass

    def _discard_partial(self, part_path: Path) -> None:
        if part_path.exists():
            try:
                part_path.unlink()
                logger.debug(f"Removed partial output {part_path.name}")
            except OSError as e:
                logger.warning(f"Failed to remove partial output {part_path}: {e}")
