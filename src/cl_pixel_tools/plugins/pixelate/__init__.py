"""Pixelate plugin."""

from .schema import ConversionResult, DitherMode, OutputFormat, PixelateParams, PixelConfig
from .task import PixelateTask, convert_asset

__all__ = [
    "ConversionResult",
    "DitherMode",
    "OutputFormat",
    "PixelConfig",
    "PixelateParams",
    "PixelateTask",
    "convert_asset",
]
