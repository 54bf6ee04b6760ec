"""
Unit tests for the render invoker.

FFmpeg is replaced with small Python snippets so process handling
(timeouts, cancellation, failures, partial output) can be exercised
without media tooling installed.
"""

import asyncio
import os
import sys

import pytest

from clipper.errors import (
    EngineFailureError,
    EngineTimeoutError,
    InternalInvocationError,
    InvalidEditSpecError,
    RenderCancelledError,
    SourceNotFoundError,
)
from clipper.schemas.edit_spec import EditSpec, Moment, TextOverlay
from clipper.services.render_invoker import (
    RenderInvoker,
    RenderStatus,
    generate_output_name,
    partial_output_path,
)
from conftest import python_engine


def _write_output(output_path: str, extra: str = "") -> list[str]:
    return python_engine(f"{extra}\nopen({output_path!r}, 'wb').write(b'fake mp4 data')")


def _leftovers(output_dir) -> list[str]:
    return sorted(os.listdir(output_dir))


class TestBuildCommand:
    """Tests for the FFmpeg argument vector."""

    def test_full_edit(self, settings, source_video):
        """Test the 9:16, 1.5x, one overlay scenario."""
        invoker = RenderInvoker(settings)
        job = invoker.create_job(
            "abc123.mp4",
            Moment(start_time=45, end_time=90),
            EditSpec(
                aspect_ratio="9:16",
                speed=1.5,
                text_overlays=[TextOverlay(id="t1", text="Hi: there", x=0.5, y=0.1)],
            ),
        )
        cmd = invoker.build_command(job, "/out/clip.mp4")

        assert cmd[0] == settings.ffmpeg_path
        assert cmd[cmd.index("-ss") + 1] == "00:00:45.000"
        assert cmd[cmd.index("-i") + 1] == str(source_video.resolve())
        assert cmd[cmd.index("-t") + 1] == "00:00:45.000"
        assert cmd.index("-ss") < cmd.index("-i") < cmd.index("-t")

        video_filter = cmd[cmd.index("-vf") + 1]
        assert video_filter.startswith("crop=")
        assert "setpts=0.666667*PTS" in video_filter
        assert "drawtext=" in video_filter
        assert video_filter.index("crop=") < video_filter.index("setpts=") < video_filter.index("drawtext=")
        assert cmd[cmd.index("-af") + 1] == "atempo=1.5"

        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-preset") + 1] == "fast"
        assert cmd[cmd.index("-crf") + 1] == "22"
        assert cmd[cmd.index("-c:a") + 1] == "aac"
        assert cmd[cmd.index("-b:a") + 1] == "128k"
        assert cmd[cmd.index("-movflags") + 1] == "+faststart"
        assert cmd[-1] == "/out/clip.mp4"

    def test_no_edits_has_no_filters(self, settings, source_video):
        """Test an untouched spec produces no -vf or -af."""
        invoker = RenderInvoker(settings)
        job = invoker.create_job("abc123", Moment(start_time=0, end_time=5), EditSpec())
        cmd = invoker.build_command(job, "/out/clip.mp4")
        assert "-vf" not in cmd
        assert "-af" not in cmd

    def test_overlay_text_is_single_argument(self, settings, source_video):
        """Test hostile text cannot split the argument vector."""
        invoker = RenderInvoker(settings)
        job = invoker.create_job(
            "abc123.mp4",
            Moment(start_time=0, end_time=5),
            EditSpec(text_overlays=[TextOverlay(id="t", text="a' -f null /dev/null; rm -rf /")]),
        )
        cmd = invoker.build_command(job, "/out/clip.mp4")
        assert "null" not in cmd
        assert cmd.count("-f") == 1
        assert len(cmd) == len(invoker.build_command(
            invoker.create_job("abc123.mp4", Moment(start_time=0, end_time=5),
                               EditSpec(text_overlays=[TextOverlay(id="t", text="plain")])),
            "/out/clip.mp4",
        ))


class TestOutputNames:
    """Tests for output naming."""

    def test_unique(self):
        names = {generate_output_name() for _ in range(200)}
        assert len(names) == 200

    def test_shape(self):
        name = generate_output_name()
        assert name.startswith("clip_")
        assert name.endswith(".mp4")

    def test_partial_is_hidden(self, tmp_path):
        part = partial_output_path(tmp_path / "clip_1.mp4")
        assert part.name == ".clip_1.mp4.part"
        assert part.parent == tmp_path


class TestRender:
    """Tests for RenderInvoker.render and export_clip."""

    def test_success(self, settings, source_video, media_dirs):
        """Test a successful render produces exactly one artifact."""
        _, output_dir = media_dirs
        invoker = RenderInvoker(settings)
        invoker.build_command = lambda job, output_path: _write_output(output_path)

        result = asyncio.run(
            invoker.export_clip("abc123.mp4", Moment(start_time=0, end_time=5), EditSpec())
        )

        assert result.output_name.startswith("clip_")
        assert result.access_url == f"http://testserver/exports/{result.output_name}"
        assert result.file_size_bytes == len(b"fake mp4 data")
        assert _leftovers(output_dir) == [result.output_name]
        assert invoker.active_renders == 0

    def test_engine_failure_reports_stderr(self, settings, source_video, media_dirs):
        """Test a non-zero exit maps to EngineFailure and leaves no partial file."""
        _, output_dir = media_dirs
        invoker = RenderInvoker(settings)
        invoker.build_command = lambda job, output_path: python_engine(
            f"import sys\nopen({output_path!r}, 'wb').write(b'half')\n"
            "sys.stderr.write('Invalid data found when processing input')\nsys.exit(1)"
        )

        with pytest.raises(EngineFailureError) as exc_info:
            asyncio.run(
                invoker.export_clip("abc123.mp4", Moment(start_time=0, end_time=5), EditSpec())
            )

        assert exc_info.value.error_kind == "EngineFailure"
        assert exc_info.value.returncode == 1
        assert "Invalid data found" in exc_info.value.detail
        assert _leftovers(output_dir) == []

    def test_missing_output_is_failure(self, settings, source_video, media_dirs):
        """Test a zero exit without output is still a failure."""
        invoker = RenderInvoker(settings)
        invoker.build_command = lambda job, output_path: python_engine("pass")

        with pytest.raises(EngineFailureError):
            asyncio.run(
                invoker.export_clip("abc123.mp4", Moment(start_time=0, end_time=5), EditSpec())
            )

    def test_timeout_kills_process(self, settings, source_video, media_dirs):
        """Test the time budget terminates the engine and removes partial output."""
        _, output_dir = media_dirs
        settings.render_timeout_seconds = 2.0
        pid_file = output_dir.parent / "engine.pid"
        invoker = RenderInvoker(settings)
        invoker.build_command = lambda job, output_path: python_engine(
            f"import os, time\nopen({str(pid_file)!r}, 'w').write(str(os.getpid()))\n"
            f"open({output_path!r}, 'wb').write(b'half')\ntime.sleep(30)"
        )

        with pytest.raises(EngineTimeoutError) as exc_info:
            asyncio.run(
                invoker.export_clip("abc123.mp4", Moment(start_time=0, end_time=5), EditSpec())
            )

        assert exc_info.value.error_kind == "EngineTimeout"
        assert _leftovers(output_dir) == []
        assert invoker.active_renders == 0
        if sys.platform != "win32":
            pid = int(pid_file.read_text())
            with pytest.raises(ProcessLookupError):
                os.kill(pid, 0)

    def test_missing_executable(self, settings, source_video):
        """Test an unstartable engine maps to InternalInvocationError."""
        settings.ffmpeg_path = "/nonexistent/ffmpeg-binary"
        invoker = RenderInvoker(settings)

        with pytest.raises(InternalInvocationError) as exc_info:
            asyncio.run(
                invoker.export_clip("abc123.mp4", Moment(start_time=0, end_time=5), EditSpec())
            )
        assert exc_info.value.error_kind == "InternalInvocationError"

    def test_invalid_trim_never_spawns(self, settings, source_video, mocker):
        """Test compile errors are raised before any process starts."""
        spawn = mocker.patch("asyncio.create_subprocess_exec")
        invoker = RenderInvoker(settings)

        with pytest.raises(InvalidEditSpecError):
            asyncio.run(
                invoker.export_clip(
                    "abc123.mp4",
                    Moment(start_time=10, end_time=12),
                    EditSpec(trim_start=1.5, trim_end=-1),
                )
            )
        spawn.assert_not_called()

    def test_source_not_found(self, settings, mocker):
        spawn = mocker.patch("asyncio.create_subprocess_exec")
        invoker = RenderInvoker(settings)

        with pytest.raises(SourceNotFoundError):
            asyncio.run(
                invoker.export_clip("missing.mp4", Moment(start_time=0, end_time=5), EditSpec())
            )
        spawn.assert_not_called()

    def test_duplicate_job_id(self, settings, source_video):
        invoker = RenderInvoker(settings)
        invoker._jobs.add("job-1")
        with pytest.raises(InvalidEditSpecError):
            invoker.create_job(
                "abc123.mp4", Moment(start_time=0, end_time=5), EditSpec(), job_id="job-1"
            )

    def test_failed_job_status(self, settings, source_video):
        invoker = RenderInvoker(settings)
        invoker.build_command = lambda job, output_path: python_engine("import sys; sys.exit(3)")
        job = invoker.create_job("abc123.mp4", Moment(start_time=0, end_time=5), EditSpec())

        with pytest.raises(EngineFailureError):
            asyncio.run(invoker.render(job))
        assert job.status == RenderStatus.FAILED
        assert job.error_kind == "EngineFailure"
        assert job.finished_at is not None


class TestCancellation:
    """Tests for cancelling in-flight renders."""

    async def _wait_until_active(self, invoker, count=1):
        for _ in range(200):
            if invoker.active_renders >= count:
                return
            await asyncio.sleep(0.05)
        raise AssertionError("render never started")

    def test_cancel_by_job_id(self, settings, source_video, media_dirs):
        """Test cancel() stops the engine and the render reports RenderCancelled."""
        _, output_dir = media_dirs
        invoker = RenderInvoker(settings)
        invoker.build_command = lambda job, output_path: _write_output(
            output_path, extra="import time\ntime.sleep(30)"
        )

        async def scenario():
            task = asyncio.create_task(
                invoker.export_clip(
                    "abc123.mp4", Moment(start_time=0, end_time=5), EditSpec(), job_id="job-1"
                )
            )
            await self._wait_until_active(invoker)
            assert await invoker.cancel("job-1") is True
            with pytest.raises(RenderCancelledError):
                await task

        asyncio.run(scenario())
        assert _leftovers(output_dir) == []
        assert invoker.active_renders == 0

    def test_cancel_unknown_job(self, settings):
        invoker = RenderInvoker(settings)
        assert asyncio.run(invoker.cancel("nope")) is False

    def test_cancel_queued_job(self, settings, source_video, media_dirs):
        """Test a job waiting for a worker slot is cancelled and never spawned."""
        _, output_dir = media_dirs
        settings.max_render_workers = 1
        invoker = RenderInvoker(settings)
        invoker.build_command = lambda job, output_path: _write_output(
            output_path, extra="import time\ntime.sleep(1)"
        )

        async def scenario():
            running = asyncio.create_task(
                invoker.export_clip(
                    "abc123.mp4", Moment(start_time=0, end_time=5), EditSpec(), job_id="a"
                )
            )
            queued = asyncio.create_task(
                invoker.export_clip(
                    "abc123.mp4", Moment(start_time=5, end_time=9), EditSpec(), job_id="b"
                )
            )
            await self._wait_until_active(invoker)
            assert "b" not in invoker._active
            assert await invoker.cancel("b") is True
            with pytest.raises(RenderCancelledError):
                await queued
            return await running

        result = asyncio.run(scenario())
        assert _leftovers(output_dir) == [result.output_name]
        assert invoker.active_renders == 0
        assert asyncio.run(invoker.cancel("b")) is False

    def test_task_cancellation_terminates_engine(self, settings, source_video, media_dirs):
        """Test cancelling the awaiting task also stops the process."""
        _, output_dir = media_dirs
        invoker = RenderInvoker(settings)
        invoker.build_command = lambda job, output_path: python_engine(
            f"import time\nopen({output_path!r}, 'wb').write(b'half')\ntime.sleep(30)"
        )

        async def scenario():
            task = asyncio.create_task(
                invoker.export_clip("abc123.mp4", Moment(start_time=0, end_time=5), EditSpec())
            )
            await self._wait_until_active(invoker)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert _leftovers(output_dir) == []
        assert invoker.active_renders == 0


class TestWorkerPool:
    """Tests for the bounded worker pool."""

    def test_renders_queue_beyond_pool_size(self, settings, source_video, media_dirs):
        """Test a pool of one runs renders strictly one after another."""
        _, output_dir = media_dirs
        settings.max_render_workers = 1
        log_file = output_dir.parent / "engine.log"
        invoker = RenderInvoker(settings)
        invoker.build_command = lambda job, output_path: _write_output(
            output_path,
            extra=(
                "import time\n"
                f"open({str(log_file)!r}, 'a').write('start\\n')\n"
                "time.sleep(0.3)\n"
                f"open({str(log_file)!r}, 'a').write('end\\n')"
            ),
        )

        async def scenario():
            return await asyncio.gather(
                invoker.export_clip("abc123.mp4", Moment(start_time=0, end_time=5), EditSpec()),
                invoker.export_clip("abc123.mp4", Moment(start_time=5, end_time=9), EditSpec()),
            )

        results = asyncio.run(scenario())

        assert log_file.read_text().split() == ["start", "end", "start", "end"]
        assert results[0].output_name != results[1].output_name
        assert _leftovers(output_dir) == sorted(r.output_name for r in results)
