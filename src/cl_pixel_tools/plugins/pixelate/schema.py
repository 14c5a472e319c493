"""Schema definitions for the pixelate plugin."""

from enum import StrEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ...common.errors import ConfigurationInvalid
from ...utils.media_types import AssetKind


class DitherMode(StrEnum):
    NONE = "none"
    BAYER = "bayer"  # ordered
    FLOYD = "floyd"  # error diffusion


class OutputFormat(StrEnum):
    PNG = "png"
    GIF = "gif"
    SVG = "svg"
    MP4 = "mp4"
    WEBM = "webm"


COMPATIBLE_FORMATS: dict[AssetKind, frozenset[OutputFormat]] = {
    AssetKind.IMAGE: frozenset({OutputFormat.PNG, OutputFormat.GIF}),
    AssetKind.VECTOR: frozenset({OutputFormat.SVG, OutputFormat.PNG}),
    AssetKind.VIDEO: frozenset({OutputFormat.MP4, OutputFormat.WEBM, OutputFormat.GIF}),
}

DEFAULT_FORMATS: dict[AssetKind, OutputFormat] = {
    AssetKind.IMAGE: OutputFormat.PNG,
    AssetKind.VECTOR: OutputFormat.SVG,
    AssetKind.VIDEO: OutputFormat.MP4,
}

VECTOR_FORMATS: frozenset[OutputFormat] = frozenset({OutputFormat.SVG})


class PixelConfig(BaseModel):
    """Immutable description of how one asset is pixelated."""

    grid: int = Field(default=32, ge=1, description="pixel block size")
    palette: int = Field(default=64, ge=2, le=256, description="palette size, 256 = no reduction")
    dither: DitherMode = Field(default=DitherMode.BAYER)
    trim: bool = Field(default=False, description="crop to even dimensions")
    alpha_threshold: int = Field(default=8, ge=0, le=255)
    outline: bool = Field(default=False)
    scale: int = Field(default=2, ge=1, description="nearest-neighbor upscale factor")
    fps: int = Field(default=24, ge=1, description="output frame rate for video")
    output_format: OutputFormat | None = Field(default=OutputFormat.PNG)
    spritesheet: bool = Field(default=False, description="video only: export a spritesheet")
    alpha_mask: bool = Field(default=False, description="video only: export an alpha mask")

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_values(cls, values: dict[str, Any]) -> "PixelConfig":
        """Validate ``values``, raising ConfigurationInvalid on out-of-range fields."""
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigurationInvalid(str(exc)) from exc

    def with_overrides(self, **changes: Any) -> "PixelConfig":
        """Return a validated copy with ``changes`` applied; None values are ignored.

        Self is never modified.
        """
        updates = {key: value for key, value in changes.items() if value is not None}
        return self.from_values({**self.model_dump(), **updates})

    def resolve_format(self, kind: AssetKind) -> OutputFormat:
        """Configured format when it suits ``kind``, else the kind's default."""
        if self.output_format is not None and self.output_format in COMPATIBLE_FORMATS[kind]:
            return self.output_format
        return DEFAULT_FORMATS[kind]


class PixelateParams(BaseModel):
    """Input of one conversion."""

    input_path: str = Field(description="path to the input asset")
    asset_kind: AssetKind = Field(description="image, vector or video")
    config: PixelConfig = Field(default_factory=PixelConfig)
    output_dir: str = Field(description="directory receiving all produced files")

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


class ConversionResult(BaseModel):
    """Files produced by one conversion."""

    primary_path: str = Field(description="main converted artifact")
    extras: tuple[str, ...] = Field(
        default=(), description="spritesheet and alpha mask paths, when requested"
    )
    preview_url: str | None = Field(default=None, description="file:// URI of the primary output")

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)
