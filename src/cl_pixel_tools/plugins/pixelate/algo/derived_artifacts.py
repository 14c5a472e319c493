"""Video post-processing: spritesheet (+ metadata sidecar) and alpha mask."""

import json
from datetime import datetime
from pathlib import Path

from loguru import logger

from ....common.cancellation import CancellationToken
from ....utils.media_types import AssetKind
from ....utils.timestamp import toTimeStamp, utc_now_iso
from ..schema import OutputFormat
from .ffmpeg_runner import DEFAULT_KILL_GRACE_SECONDS, run_ffmpeg
from .filter_graph import encoder_args

SPRITESHEET_TILES: tuple[int, int] = (4, 4)


async def export_spritesheet(
    *,
    video_path: str | Path,
    output_path: str | Path,
    metadata_path: str | Path,
    fps: int,
    token: CancellationToken | None = None,
    ffmpeg_bin: str = "ffmpeg",
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
) -> str:
    """
    Tile the first frames of a converted video into one PNG grid.

    Writes a JSON sidecar describing the layout next to the image.

    Args:
        video_path: Already pixelated video
        output_path: Spritesheet PNG path
        metadata_path: JSON sidecar path
        fps: Frame rate the video was produced with

    Returns:
        Spritesheet path as string
    """
    columns, rows = SPRITESHEET_TILES
    args = [
        "-hide_banner",
        "-nostdin",
        "-nostats",
        "-y",
        "-i",
        str(video_path),
        "-frames:v",
        "1",
        "-vf",
        f"tile={columns}x{rows}",
        "-update",
        "1",
        str(output_path),
    ]
    await run_ffmpeg(
        args, token=token, ffmpeg_bin=ffmpeg_bin, kill_grace_seconds=kill_grace_seconds
    )

    generated_at = utc_now_iso()
    metadata = {
        "generated_at": generated_at,
        "generated_at_ms": toTimeStamp(datetime.fromisoformat(generated_at)),
        "source": Path(video_path).name,
        "image": Path(output_path).name,
        "columns": columns,
        "rows": rows,
        "tile_count": columns * rows,
        "fps": fps,
    }
    with open(metadata_path, "w", encoding="utf-8") as f:
        json.dump(metadata, f, indent=2)

    logger.debug(f"Spritesheet written: {output_path}")
    return str(output_path)


async def export_alpha_mask(
    *,
    video_path: str | Path,
    output_path: str | Path,
    output_format: OutputFormat,
    token: CancellationToken | None = None,
    ffmpeg_bin: str = "ffmpeg",
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
) -> str:
    """Extract the alpha channel of a converted video as a grayscale video."""
    args = [
        "-hide_banner",
        "-nostdin",
        "-nostats",
        "-y",
        "-i",
        str(video_path),
        "-vf",
        "format=rgba,alphaextract",
        *encoder_args(output_format, AssetKind.VIDEO),
        str(output_path),
    ]
    await run_ffmpeg(
        args, token=token, ffmpeg_bin=ffmpeg_bin, kill_grace_seconds=kill_grace_seconds
    )
    logger.debug(f"Alpha mask written: {output_path}")
    return str(output_path)
