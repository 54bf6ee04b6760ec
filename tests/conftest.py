"""
Pytest configuration and fixtures.
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from clipper.config import Settings, get_settings


def python_engine(code: str) -> list[str]:
    """Command that stands in for FFmpeg: runs a Python snippet."""
    return [sys.executable, "-c", code]


@pytest.fixture
def media_dirs(tmp_path):
    """Input and output directories for one test."""
    input_dir = tmp_path / "temp-videos"
    output_dir = tmp_path / "exports"
    input_dir.mkdir()
    output_dir.mkdir()
    return input_dir, output_dir


@pytest.fixture
def settings(media_dirs):
    """Settings pointing at the temporary media directories."""
    input_dir, output_dir = media_dirs
    return Settings(
        input_directory=str(input_dir),
        output_directory=str(output_dir),
        public_base_url="http://testserver",
        render_timeout_seconds=10,
        max_render_workers=2,
        drawtext_font_file=None,
    )


@pytest.fixture
def source_video(media_dirs):
    """A placeholder source file in the input directory."""
    input_dir, _ = media_dirs
    path = input_dir / "abc123.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return path


@pytest.fixture
def env_settings(media_dirs, monkeypatch):
    """Route get_settings() to the temporary media directories."""
    input_dir, output_dir = media_dirs
    monkeypatch.setenv("INPUT_DIRECTORY", str(input_dir))
    monkeypatch.setenv("OUTPUT_DIRECTORY", str(output_dir))
    monkeypatch.setenv("PUBLIC_BASE_URL", "http://testserver")
    monkeypatch.delenv("CLIPPER_API_KEY", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()
