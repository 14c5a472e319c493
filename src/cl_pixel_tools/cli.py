"""
Batch command line driver.

Discovers convertible files, queues one pixelate job per file and prints
lifecycle lines until the queue is idle.
"""

import asyncio
import signal
from dataclasses import dataclass, field
from pathlib import Path
from uuid import uuid4

import typer
from loguru import logger

from .common.schema_event import (
    JobCanceled,
    JobCompleted,
    JobFailed,
    JobProgress,
    JobStarted,
    QueueEvent,
)
from .common.schema_job import QueueItem
from .config import Settings, get_settings
from .logging_setup import configure_logging
from .plugins.pixelate.schema import (
    ConversionResult,
    DitherMode,
    OutputFormat,
    PixelateParams,
    PixelConfig,
)
from .plugins.pixelate.task import PixelateTask
from .queue import JobQueue
from .utils.media_types import detect_asset_kind
from .utils.mqtt import QueueEventPublisher, get_broadcaster, shutdown_broadcaster
from .utils.path_scanner import expand_input_paths

PROGRESS_STEP_PERCENT = 25

app = typer.Typer(
    name="cl-pixel",
    help="Convert images, SVGs and videos into pixel-art variants with FFmpeg.",
    add_completion=False,
)


@dataclass
class BatchSummary:
    done: int = 0
    errors: int = 0
    canceled: int = 0
    total: int = 0
    results: dict[str, ConversionResult] = field(default_factory=dict)


class BatchReporter:
    """Queue listener printing one line per lifecycle transition."""

    def __init__(self, inputs: dict[str, Path], summary: BatchSummary) -> None:
        self.inputs: dict[str, Path] = inputs
        self.summary: BatchSummary = summary
        self._last_percent: dict[str, int] = {}

    def __call__(self, event: QueueEvent) -> None:
        if isinstance(event, JobStarted):
            typer.echo(f"[start] {self.inputs[event.job_id]}")

        elif isinstance(event, JobProgress):
            percent = round(event.progress * 100)
            last = self._last_percent.get(event.job_id, 0)
            if percent >= last + PROGRESS_STEP_PERCENT or (percent == 100 and last != 100):
                self._last_percent[event.job_id] = percent
                typer.echo(f"[progress] {percent}% {self.inputs[event.job_id].name}")

        elif isinstance(event, JobCompleted):
            self.summary.done += 1
            result = ConversionResult.model_validate(event.result)
            self.summary.results[event.job_id] = result
            typer.echo(f"[done] {result.primary_path}")
            for extra in result.extras:
                typer.echo(f"[extra] {extra}")

        elif isinstance(event, JobFailed):
            self.summary.errors += 1
            typer.echo(f"[error] {self.inputs[event.job_id]}: {event.message}", err=True)

        elif isinstance(event, JobCanceled):
            self.summary.canceled += 1
            typer.echo(f"[canceled] {self.inputs[event.job_id]}")


async def run_batch(
    files: list[Path],
    *,
    config: PixelConfig,
    output_dir: Path,
    concurrency: int,
    settings: Settings,
    mqtt_url: str | None = None,
) -> BatchSummary:
    """Convert ``files`` through a JobQueue and return the tallies."""
    task = PixelateTask.from_settings(settings)
    queue: JobQueue[PixelateParams, ConversionResult] = JobQueue(task.execute, concurrency)

    items: list[QueueItem[PixelateParams]] = []
    inputs: dict[str, Path] = {}
    for path in files:
        job_id = str(uuid4())
        inputs[job_id] = path
        items.append(
            QueueItem(
                id=job_id,
                payload=PixelateParams(
                    input_path=str(path),
                    asset_kind=detect_asset_kind(path),
                    config=config,
                    output_dir=str(output_dir),
                ),
            )
        )

    summary = BatchSummary(total=len(items))
    _ = queue.on_event(BatchReporter(inputs, summary))

    if mqtt_url:
        prefix = settings.mqtt_topic_prefix
        try:
            broadcaster = get_broadcaster(mqtt_url, status_topic=f"{prefix}/status")
        except (ValueError, RuntimeError) as exc:
            typer.echo(f"MQTT unavailable: {exc}", err=True)
            raise typer.Exit(code=2) from exc
        _ = queue.on_event(QueueEventPublisher(broadcaster, prefix))

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, queue.cancel_all)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable; Ctrl+C will not cancel jobs")

    try:
        queue.enqueue(items)
        await queue.wait_until_idle()
    finally:
        try:
            _ = loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        if mqtt_url:
            shutdown_broadcaster()

    return summary


@app.command()
def convert(
    inputs: list[Path] = typer.Argument(..., help="Files and/or directories to convert"),
    output_dir: Path | None = typer.Option(
        None, "--out", "-o", help="Output directory (default: PIXEL_OUTPUT_DIR or ./outputs)"
    ),
    concurrency: int | None = typer.Option(None, "--concurrency", min=1, help="Parallel jobs"),
    grid: int | None = typer.Option(None, "--grid", help="Pixel grid size"),
    palette: int | None = typer.Option(None, "--palette", help="Palette size (2-256)"),
    dither: DitherMode | None = typer.Option(None, "--dither", help="Dither mode"),
    trim: bool = typer.Option(False, "--trim", help="Crop to even dimensions"),
    outline: bool = typer.Option(False, "--outline", help="Enable outline"),
    scale: int | None = typer.Option(None, "--scale", help="Upscale factor"),
    fps: int | None = typer.Option(None, "--fps", help="Frame rate for video output"),
    output_format: OutputFormat | None = typer.Option(None, "--format", help="Output format"),
    spritesheet: bool = typer.Option(
        False, "--spritesheet", help="Export video spritesheet + metadata"
    ),
    alpha_mask: bool = typer.Option(False, "--alpha-mask", help="Export video alpha mask"),
    mqtt_url: str | None = typer.Option(
        None, "--mqtt-url", help="Publish queue events to this mqtt:// broker"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Loguru log level"),
):
    """
    Pixelate every supported asset found under INPUTS.

    Examples:
        cl-pixel ./assets/hero.png --out ./outputs
        cl-pixel ./assets ./clips/intro.mp4 --concurrency 2 --grid 16 --scale 4 --format png
    """
    settings = get_settings()
    configure_logging(log_level or settings.log_level)

    try:
        config = PixelConfig().with_overrides(
            grid=grid,
            palette=palette,
            dither=dither,
            trim=trim or None,
            outline=outline or None,
            scale=scale,
            fps=fps,
            output_format=output_format,
            spritesheet=spritesheet or None,
            alpha_mask=alpha_mask or None,
        )
    except ValueError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    files = expand_input_paths(inputs)
    if not files:
        typer.echo("No supported files found from inputs.", err=True)
        raise typer.Exit(code=1)

    destination = (output_dir or Path(settings.output_dir)).resolve()
    typer.echo(f"Discovered {len(files)} file(s). Output: {destination}")

    summary = asyncio.run(
        run_batch(
            files,
            config=config,
            output_dir=destination,
            concurrency=concurrency or settings.concurrency,
            settings=settings,
            mqtt_url=mqtt_url or settings.mqtt_url,
        )
    )

    typer.echo(
        f"Summary: done={summary.done}, errors={summary.errors}, "
        + f"canceled={summary.canceled}, total={summary.total}"
    )
    if summary.errors > 0:
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
