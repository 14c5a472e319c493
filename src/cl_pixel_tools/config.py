"""
Centralized settings.

Single source for environment variables and their defaults. A ``.env`` file in
the working directory is loaded first; real environment variables win.
"""

import os
from functools import lru_cache
from typing import ClassVar

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    """Runtime settings for the conversion queue and pipeline."""

    ffmpeg_bin: str = Field(default="ffmpeg", alias="PIXEL_FFMPEG_BIN")
    ffprobe_bin: str = Field(default="ffprobe", alias="PIXEL_FFPROBE_BIN")
    output_dir: str = Field(default="outputs", alias="PIXEL_OUTPUT_DIR")
    concurrency: int = Field(default=2, ge=1, alias="PIXEL_CONCURRENCY")
    kill_grace_seconds: float = Field(default=1.5, gt=0, alias="PIXEL_KILL_GRACE_SECONDS")
    log_level: str = Field(default="INFO", alias="PIXEL_LOG_LEVEL")

    # MQTT event broadcasting (disabled when unset)
    mqtt_url: str | None = Field(default=None, alias="PIXEL_MQTT_URL")
    mqtt_topic_prefix: str = Field(default="cl_pixel_tools/jobs", alias="PIXEL_MQTT_TOPIC_PREFIX")

    model_config: ClassVar[ConfigDict] = ConfigDict(populate_by_name=True, extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Cached settings built from ``.env`` and the process environment."""
    _ = load_dotenv(find_dotenv(usecwd=True), override=False)
    return Settings.model_validate(dict(os.environ))


def reload_settings() -> Settings:
    """Re-read the environment."""
    get_settings.cache_clear()
    return get_settings()
