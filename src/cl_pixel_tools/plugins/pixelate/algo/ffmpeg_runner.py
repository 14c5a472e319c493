"""Run FFmpeg as a cancellable subprocess and follow its progress output."""

import asyncio
import re
import subprocess
from collections import deque
from collections.abc import Callable

from loguru import logger

from ....common.cancellation import CancellationToken
from ....common.errors import OperationCanceled, ToolExitedNonZero, ToolSpawnFailed

PROGRESS_MARKER = re.compile(r"^out_time_ms=(\d+)\s*$")
# -progress emits "key=value" lines; they are not diagnostics
PROGRESS_LINE = re.compile(r"^[a-z_0-9]+=\S*\s*$")

DIAGNOSTIC_TAIL_LINES = 10
STDERR_CHUNK_BYTES = 4096
MAX_LINE_BYTES = 64 * 1024
LINE_BREAK = re.compile(rb"\r\n|\r|\n")
DEFAULT_KILL_GRACE_SECONDS = 1.5


def parse_out_time(line: str) -> int | None:
    """Value of an ``out_time_ms=<int>`` progress line, else None."""
    match = PROGRESS_MARKER.match(line.strip())
    if match is None:
        return None
    return int(match.group(1))


async def _terminate(process: asyncio.subprocess.Process, grace_seconds: float) -> None:
    """Ask the process to stop, escalating to kill after ``grace_seconds``."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        _ = await asyncio.wait_for(process.wait(), timeout=grace_seconds)
    except asyncio.TimeoutError:
        logger.warning(f"FFmpeg (pid {process.pid}) ignored terminate, killing")
        try:
            process.kill()
        except ProcessLookupError:
            return
        _ = await process.wait()


async def run_ffmpeg(
    args: list[str],
    *,
    token: CancellationToken | None = None,
    on_out_time: Callable[[int], None] | None = None,
    ffmpeg_bin: str = "ffmpeg",
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
) -> None:
    """
    Run ``ffmpeg_bin`` with ``args`` until it exits.

    Args:
        args: Argument vector without the executable
        token: Cancellation token checked before spawning and while running
        on_out_time: Called with every ``out_time_ms`` value read from stderr
        ffmpeg_bin: Executable name or path
        kill_grace_seconds: Delay between terminate and kill on cancellation

    Raises:
        ToolSpawnFailed: If the process could not be started
        ToolExitedNonZero: If the process exits with a non-zero code
        OperationCanceled: If the token was canceled before or during the run
    """
    if token is not None:
        token.raise_if_canceled()

    command = [ffmpeg_bin, *args]
    logger.debug(" ".join(command))

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except (OSError, ValueError, subprocess.SubprocessError) as exc:
        raise ToolSpawnFailed(ffmpeg_bin, str(exc)) from exc

    diagnostics: deque[str] = deque(maxlen=DIAGNOSTIC_TAIL_LINES)

    def handle_line(raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").strip()
        out_time = parse_out_time(line)
        if out_time is not None:
            if on_out_time is not None:
                on_out_time(out_time)
            return
        if line and not PROGRESS_LINE.match(line):
            diagnostics.append(line)

    async def read_stderr() -> None:
        # stats lines end in "\r" and may never see a "\n" before exit
        stream = process.stderr
        if stream is None:
            return
        pending = b""
        while True:
            chunk = await stream.read(STDERR_CHUNK_BYTES)
            if not chunk:
                break
            *lines, pending = LINE_BREAK.split(pending + chunk)
            for raw in lines:
                handle_line(raw)
            if len(pending) > MAX_LINE_BYTES:
                pending = pending[-MAX_LINE_BYTES:]
        handle_line(pending)

    reader = asyncio.ensure_future(read_stderr())
    canceled = asyncio.ensure_future(token.wait()) if token is not None else None

    try:
        waiters: set[asyncio.Future[None]] = {reader}
        if canceled is not None:
            waiters.add(canceled)
        _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

        if token is not None and token.canceled:
            logger.info(f"Canceling FFmpeg (pid {process.pid})")
            await _terminate(process, kill_grace_seconds)
            raise OperationCanceled()

        await reader
        returncode = await process.wait()
    finally:
        if canceled is not None and not canceled.done():
            _ = canceled.cancel()
        if not reader.done():
            _ = reader.cancel()
        if process.returncode is None:
            await _terminate(process, kill_grace_seconds)

    if returncode != 0:
        raise ToolExitedNonZero(returncode, list(diagnostics))
