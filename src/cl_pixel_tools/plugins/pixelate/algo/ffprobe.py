import asyncio
import json
import subprocess
from pathlib import Path
from typing import cast

from loguru import logger

from ....common.cancellation import CancellationToken
from ....common.errors import OperationCanceled


async def probe_duration_seconds(
    input_path: str | Path,
    *,
    token: CancellationToken | None = None,
    ffprobe_bin: str = "ffprobe",
) -> float | None:
    """Container duration of a media file in seconds, or None if unknown.

    Progress estimation degrades gracefully without a duration, so probe
    failures are logged and reported as None instead of raised. Cancellation
    is the exception: the probe is killed and OperationCanceled propagates.
    """
    if token is not None:
        token.raise_if_canceled()

    command: list[str] = [
        ffprobe_bin,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "json",
        str(input_path),
    ]

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except (OSError, ValueError, subprocess.SubprocessError) as exc:
        logger.warning(f"Failed to start {ffprobe_bin}: {exc}")
        return None

    output = asyncio.ensure_future(process.communicate())
    canceled = asyncio.ensure_future(token.wait()) if token is not None else None
    try:
        waiters: set[asyncio.Future[object]] = {output}
        if canceled is not None:
            waiters.add(canceled)
        _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

        if token is not None and token.canceled:
            raise OperationCanceled()

        stdout, stderr = await output
    finally:
        if canceled is not None and not canceled.done():
            _ = canceled.cancel()
        if not output.done():
            _ = output.cancel()
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            _ = await process.wait()

    if process.returncode != 0:
        logger.warning(
            f"{ffprobe_bin} failed on {input_path}: {stderr.decode('utf-8', errors='replace').strip()}"
        )
        return None

    try:
        info = cast(dict[str, dict[str, str]], json.loads(stdout))
        duration = float(info["format"]["duration"])
    except (KeyError, TypeError, ValueError) as exc:
        logger.debug(f"No duration reported for {input_path}: {exc}")
        return None

    return duration if duration > 0 else None
