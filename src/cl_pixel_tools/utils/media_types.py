from enum import StrEnum
from pathlib import Path

IMAGE_EXTENSIONS: frozenset[str] = frozenset({".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp"})
VIDEO_EXTENSIONS: frozenset[str] = frozenset({".mp4", ".mov", ".webm", ".mkv", ".avi", ".m4v"})
VECTOR_EXTENSIONS: frozenset[str] = frozenset({".svg"})

SUPPORTED_ASSET_EXTENSIONS: frozenset[str] = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS | VECTOR_EXTENSIONS


class AssetKind(StrEnum):
    IMAGE = "image"
    VECTOR = "vector"
    VIDEO = "video"

    @classmethod
    def from_extension(cls, extension: str) -> "AssetKind":
        ext = extension.lower()
        if not ext.startswith("."):
            ext = "." + ext
        if ext in VECTOR_EXTENSIONS:
            return AssetKind.VECTOR
        elif ext in VIDEO_EXTENSIONS:
            return AssetKind.VIDEO
        else:
            return AssetKind.IMAGE


def is_supported_asset_path(path: str | Path) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_ASSET_EXTENSIONS


def detect_asset_kind(path: str | Path) -> AssetKind:
    """Asset kind from the file extension. Unknown extensions count as images."""
    return AssetKind.from_extension(Path(path).suffix)
