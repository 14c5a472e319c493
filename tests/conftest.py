"""Test configuration and fixtures for cl_pixel_tools.

This module provides:
- Pytest configuration (markers, dependency checks)
- Function-scoped fixtures (temp dirs, synthetic media, fake FFmpeg executables)
"""

import os
import shutil
import stat
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: requires FFmpeg (and ffprobe) to be installed",
    )
    config.addinivalue_line(
        "markers",
        "requires_posix_shell: runs fake tools written as /bin/sh scripts",
    )


def pytest_runtest_setup(item):
    """Skip tests whose external tools are not available."""
    if item.get_closest_marker("requires_ffmpeg") and not (
        shutil.which("ffmpeg") and shutil.which("ffprobe")
    ):
        pytest.skip(
            "FFmpeg not installed. "
            "Install: brew install ffmpeg (macOS) or apt-get install ffmpeg (Linux)"
        )

    if item.get_closest_marker("requires_posix_shell") and (
        sys.platform == "win32" or not os.path.exists("/bin/sh")
    ):
        pytest.skip("POSIX shell not available")


# ============================================================================
# Function-Scoped Fixtures (Run Per Test)
# ============================================================================


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Provide clean temporary directory for test outputs."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir


@pytest.fixture
def synthetic_image(tmp_path: Path) -> Path:
    """Generate a synthetic RGBA test image using PIL."""
    from PIL import Image, ImageDraw

    output_path = tmp_path / "synthetic.png"

    # 96x64 with a transparent border so the alpha threshold has work to do
    img = Image.new("RGBA", (96, 64), color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.rectangle([8, 8, 87, 55], fill=(73, 109, 137, 255))
    draw.ellipse([30, 14, 66, 50], fill=(200, 100, 100, 255))

    img.save(output_path, "PNG")

    return output_path


@pytest.fixture
def sample_svg(tmp_path: Path) -> Path:
    """Write a tiny SVG document."""
    output_path = tmp_path / "icon.svg"
    _ = output_path.write_text(
        '<svg xmlns="http://www.w3.org/2000/svg" width="16" height="16">'
        + '<rect width="16" height="16" fill="#3a6"/></svg>\n',
        encoding="utf-8",
    )
    return output_path


@pytest.fixture
def synthetic_video(tmp_path: Path) -> Path:
    """Render a short test clip with FFmpeg's lavfi source (requires FFmpeg)."""
    output_path = tmp_path / "clip.mp4"
    result = subprocess.run(
        [
            "ffmpeg",
            "-hide_banner",
            "-nostdin",
            "-y",
            "-f",
            "lavfi",
            "-i",
            "testsrc=size=128x96:rate=12:duration=1",
            "-pix_fmt",
            "yuv420p",
            str(output_path),
        ],
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        pytest.fail(f"Test video generation failed: {result.stderr}")
    return output_path


@pytest.fixture
def fake_tool(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory writing an executable /bin/sh script that stands in for FFmpeg.

    Usage:
        ffmpeg_bin = fake_tool("ffmpeg", 'echo "out_time_ms=500000" >&2\\nexit 0')
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def make(name: str, body: str) -> Path:
        script = bin_dir / name
        _ = script.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return make
