"""Pure filter-graph construction for pixelation.

The builder returns an ordered, structured list of stages; it is rendered to
FFmpeg's ``-vf`` syntax only when the command line is assembled.
"""

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from ....utils.media_types import AssetKind
from ..schema import DitherMode, OutputFormat, PixelConfig

GRID_RANGE = (1, 512)
SCALE_RANGE = (1, 16)
ALPHA_RANGE = (0, 255)
PALETTE_RANGE = (2, 256)
FPS_RANGE = (1, 120)

# palettegen refuses fewer colors than this
PALETTEGEN_MIN_COLORS = 4

DITHER_ALGORITHMS: dict[DitherMode, str] = {
    DitherMode.NONE: "none",
    DitherMode.BAYER: "bayer",
    DitherMode.FLOYD: "floyd_steinberg",
}


class StageKind(StrEnum):
    DOWNSCALE = "downscale"
    UPSCALE = "upscale"
    ALPHA_THRESHOLD = "alpha_threshold"
    EVEN_CROP = "even_crop"
    FRAME_RATE = "frame_rate"
    EVEN_PAD = "even_pad"
    PALETTE = "palette"


@dataclass(frozen=True)
class FilterStage:
    kind: StageKind
    filters: tuple[str, ...]

    def render(self) -> str:
        return ",".join(self.filters)


@dataclass(frozen=True)
class FilterGraph:
    stages: tuple[FilterStage, ...]

    def kinds(self) -> list[StageKind]:
        return [stage.kind for stage in self.stages]

    def stage(self, kind: StageKind) -> FilterStage | None:
        for stage in self.stages:
            if stage.kind == kind:
                return stage
        return None

    def render(self) -> str:
        """Serialize to a single-input, single-output FFmpeg filtergraph."""
        return ",".join(stage.render() for stage in self.stages)


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, int(value)))


def build_filter_graph(kind: AssetKind, config: PixelConfig) -> FilterGraph:
    """Map an asset kind and configuration to the ordered pixelation stages.

    Never raises: every numeric knob is clamped first.
    """
    grid = _clamp(config.grid, GRID_RANGE)
    scale = _clamp(config.scale, SCALE_RANGE)
    alpha_threshold = _clamp(config.alpha_threshold, ALPHA_RANGE)
    palette = _clamp(config.palette, PALETTE_RANGE)
    fps = _clamp(config.fps, FPS_RANGE)
    is_video = kind == AssetKind.VIDEO

    stages: list[FilterStage] = [
        FilterStage(
            StageKind.DOWNSCALE,
            (f"scale='max(1,trunc(iw/{grid}))':'max(1,trunc(ih/{grid}))':flags=neighbor",),
        )
    ]

    if scale > 1:
        stages.append(
            FilterStage(StageKind.UPSCALE, (f"scale=iw*{scale}:ih*{scale}:flags=neighbor",))
        )

    if alpha_threshold > 0:
        stages.append(
            FilterStage(
                StageKind.ALPHA_THRESHOLD,
                (
                    "format=rgba",
                    "geq=r='r(X,Y)':g='g(X,Y)':b='b(X,Y)'"
                    + f":a='if(lt(alpha(X,Y),{alpha_threshold}),0,255)'",
                ),
            )
        )

    if config.trim or is_video:
        stages.append(FilterStage(StageKind.EVEN_CROP, ("crop=trunc(iw/2)*2:trunc(ih/2)*2",)))

    if is_video:
        stages.append(FilterStage(StageKind.FRAME_RATE, (f"fps={fps}",)))
        stages.append(FilterStage(StageKind.EVEN_PAD, ("pad=ceil(iw/2)*2:ceil(ih/2)*2",)))

    if palette < PALETTE_RANGE[1]:
        max_colors = max(PALETTEGEN_MIN_COLORS, palette)
        dither = DITHER_ALGORITHMS[config.dither]
        stages.append(
            FilterStage(
                StageKind.PALETTE,
                (
                    "split[pix_a][pix_b];"
                    + f"[pix_a]palettegen=max_colors={max_colors}:reserve_transparent=1[pal];"
                    + f"[pix_b][pal]paletteuse=dither={dither}",
                ),
            )
        )

    return FilterGraph(tuple(stages))


# ─────────────────────────────────────────────
# Command line
# ─────────────────────────────────────────────


def encoder_args(output_format: OutputFormat, kind: AssetKind) -> list[str]:
    if output_format == OutputFormat.MP4:
        return ["-c:v", "libx264", "-pix_fmt", "yuv420p", "-movflags", "+faststart", "-an"]
    if output_format == OutputFormat.WEBM:
        return ["-c:v", "libvpx-vp9", "-pix_fmt", "yuva420p", "-an"]
    if output_format == OutputFormat.GIF:
        return ["-loop", "0"] if kind == AssetKind.VIDEO else ["-frames:v", "1"]
    return ["-frames:v", "1", "-update", "1"]


def build_ffmpeg_args(
    *,
    input_path: str | Path,
    output_path: str | Path,
    kind: AssetKind,
    config: PixelConfig,
    output_format: OutputFormat,
) -> list[str]:
    """Full FFmpeg argument vector (without the executable) for one conversion."""
    graph = build_filter_graph(kind, config)
    return [
        "-hide_banner",
        "-nostdin",
        "-y",
        "-progress",
        "pipe:2",
        "-nostats",
        "-i",
        str(input_path),
        "-vf",
        graph.render(),
        *encoder_args(output_format, kind),
        str(output_path),
    ]
