"""Pixelate task implementation - the per-asset conversion pipeline."""

import shutil
from collections.abc import Callable
from pathlib import Path
from typing import override

from loguru import logger

from ...common.cancellation import CancellationToken
from ...common.compute_module import ComputeModule
from ...common.errors import InputNotFound
from ...config import Settings
from ...utils.media_types import AssetKind
from .algo.derived_artifacts import export_alpha_mask, export_spritesheet
from .algo.ffmpeg_runner import DEFAULT_KILL_GRACE_SECONDS, run_ffmpeg
from .algo.ffprobe import probe_duration_seconds
from .algo.filter_graph import build_ffmpeg_args
from .schema import VECTOR_FORMATS, ConversionResult, OutputFormat, PixelateParams

PRIMARY_SUFFIX = "_pixel"
# Mid-run progress never reaches 1.0; that value means the invocation exited
PROGRESS_CEILING = 0.99


class ProgressTracker:
    """Forwards a non-decreasing progress signal, clamped below 1.0 until finish()."""

    def __init__(self, sink: Callable[[float], None] | None) -> None:
        self._sink: Callable[[float], None] | None = sink
        self._last: float = -1.0

    @property
    def last(self) -> float:
        return self._last

    def report(self, value: float) -> None:
        value = min(PROGRESS_CEILING, max(0.0, value))
        if value <= self._last:
            return
        self._last = value
        if self._sink is not None:
            self._sink(value)

    def report_out_time(self, out_time_us: int, duration_seconds: float) -> None:
        # FFmpeg's out_time_ms carries microseconds
        self.report(out_time_us / (duration_seconds * 1_000_000))

    def out_time_sink(self, duration_seconds: float) -> Callable[[int], None]:
        def sink(out_time_us: int) -> None:
            self.report_out_time(out_time_us, duration_seconds)

        return sink

    def finish(self) -> None:
        if self._last >= 1.0:
            return
        self._last = 1.0
        if self._sink is not None:
            self._sink(1.0)


def output_paths(params: PixelateParams) -> tuple[Path, OutputFormat]:
    output_format = params.config.resolve_format(params.asset_kind)
    stem = Path(params.input_path).stem
    return Path(params.output_dir) / f"{stem}{PRIMARY_SUFFIX}.{output_format}", output_format


async def convert_asset(
    params: PixelateParams,
    *,
    token: CancellationToken | None = None,
    on_progress: Callable[[float], None] | None = None,
    ffmpeg_bin: str = "ffmpeg",
    ffprobe_bin: str = "ffprobe",
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
) -> ConversionResult:
    """
    Pixelate one asset.

    Vector assets with a vector target are copied verbatim. Everything else is
    run through FFmpeg once for the primary output; videos may then produce a
    spritesheet and an alpha mask from that output.

    Raises:
        InputNotFound: If the input asset does not exist
        ToolSpawnFailed: If FFmpeg cannot be started
        ToolExitedNonZero: If any FFmpeg step fails
        OperationCanceled: If ``token`` is canceled
    """
    input_path = Path(params.input_path)
    if not input_path.is_file():
        raise InputNotFound(str(input_path))

    output_dir = Path(params.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    primary_path, output_format = output_paths(params)
    kind = params.asset_kind
    config = params.config
    progress = ProgressTracker(on_progress)

    if token is not None:
        token.raise_if_canceled()

    if kind == AssetKind.VECTOR and output_format in VECTOR_FORMATS:
        _ = shutil.copyfile(input_path, primary_path)
        progress.finish()
        logger.info(f"Copied vector asset {input_path.name} -> {primary_path}")
        return ConversionResult(
            primary_path=str(primary_path),
            preview_url=primary_path.resolve().as_uri(),
        )

    progress.report(0.0)

    on_out_time: Callable[[int], None] | None = None
    if kind == AssetKind.VIDEO:
        duration = await probe_duration_seconds(
            input_path, token=token, ffprobe_bin=ffprobe_bin
        )
        if duration is not None:
            on_out_time = progress.out_time_sink(duration)

    args = build_ffmpeg_args(
        input_path=input_path,
        output_path=primary_path,
        kind=kind,
        config=config,
        output_format=output_format,
    )
    await run_ffmpeg(
        args,
        token=token,
        on_out_time=on_out_time,
        ffmpeg_bin=ffmpeg_bin,
        kill_grace_seconds=kill_grace_seconds,
    )
    progress.finish()

    extras: list[str] = []
    if kind == AssetKind.VIDEO and config.spritesheet:
        stem = primary_path.stem
        extras.append(
            await export_spritesheet(
                video_path=primary_path,
                output_path=output_dir / f"{stem}_spritesheet.png",
                metadata_path=output_dir / f"{stem}_spritesheet.json",
                fps=config.fps,
                token=token,
                ffmpeg_bin=ffmpeg_bin,
                kill_grace_seconds=kill_grace_seconds,
            )
        )

    if kind == AssetKind.VIDEO and config.alpha_mask:
        extras.append(
            await export_alpha_mask(
                video_path=primary_path,
                output_path=output_dir / f"{primary_path.stem}_alpha.{output_format}",
                output_format=output_format,
                token=token,
                ffmpeg_bin=ffmpeg_bin,
                kill_grace_seconds=kill_grace_seconds,
            )
        )

    logger.info(f"Converted {input_path.name} -> {primary_path}")
    return ConversionResult(
        primary_path=str(primary_path),
        extras=tuple(extras),
        preview_url=primary_path.resolve().as_uri(),
    )


class PixelateTask(ComputeModule[PixelateParams, ConversionResult]):
    """Compute module converting one asset into its pixelated variant."""

    schema: type[PixelateParams] = PixelateParams

    def __init__(
        self,
        *,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
    ) -> None:
        self.ffmpeg_bin: str = ffmpeg_bin
        self.ffprobe_bin: str = ffprobe_bin
        self.kill_grace_seconds: float = kill_grace_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "PixelateTask":
        return cls(
            ffmpeg_bin=settings.ffmpeg_bin,
            ffprobe_bin=settings.ffprobe_bin,
            kill_grace_seconds=settings.kill_grace_seconds,
        )

    @property
    @override
    def task_type(self) -> str:
        return "pixelate"

    @override
    async def run(
        self,
        params: PixelateParams,
        token: CancellationToken,
        progress_callback: Callable[[float], None] | None = None,
    ) -> ConversionResult:
        return await convert_asset(
            params,
            token=token,
            on_progress=progress_callback,
            ffmpeg_bin=self.ffmpeg_bin,
            ffprobe_bin=self.ffprobe_bin,
            kill_grace_seconds=self.kill_grace_seconds,
        )
