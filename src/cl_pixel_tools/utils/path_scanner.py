"""Expand user supplied paths into the list of convertible files."""

import os
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from .media_types import is_supported_asset_path


def expand_input_paths(input_paths: Iterable[str | os.PathLike[str]]) -> list[Path]:
    """Recursively expand files and directories into supported asset files.

    Directory entries are visited in name-sorted order. Paths that were already
    visited (after resolving) are skipped, as are missing or unreadable ones.

    Args:
        input_paths: Files and/or directories, in caller order

    Returns:
        Resolved paths of supported assets, in discovery order
    """
    seen: set[Path] = set()
    files: list[Path] = []

    def walk(target: Path) -> None:
        resolved = target.resolve()
        if resolved in seen:
            return
        seen.add(resolved)

        try:
            is_dir = resolved.is_dir()
            is_file = resolved.is_file()
        except OSError as e:
            logger.debug(f"Skipping {resolved}: {e}")
            return

        if is_dir:
            try:
                entries = sorted(os.listdir(resolved))
            except OSError as e:
                logger.warning(f"Cannot read directory {resolved}: {e}")
                return
            for name in entries:
                walk(resolved / name)
            return

        if is_file and is_supported_asset_path(resolved):
            files.append(resolved)

    for input_path in input_paths:
        walk(Path(input_path).expanduser())

    return files
