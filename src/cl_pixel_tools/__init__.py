"""cl_pixel_tools - Queue-driven pixel-art conversion of images, SVGs and videos."""

from .common.cancellation import CancellationToken
from .common.compute_module import ComputeModule
from .common.errors import (
    ConfigurationInvalid,
    InputNotFound,
    OperationCanceled,
    PixelToolsError,
    ToolExitedNonZero,
    ToolSpawnFailed,
)
from .common.schema_event import (
    JobCanceled,
    JobCompleted,
    JobFailed,
    JobProgress,
    JobQueued,
    JobStarted,
    QueueEvent,
    QueueIdle,
)
from .common.schema_job import JobPhase, QueueItem, QueueWorkerContext
from .config import Settings, get_settings
from .plugins.pixelate import (
    ConversionResult,
    DitherMode,
    OutputFormat,
    PixelateParams,
    PixelateTask,
    PixelConfig,
    convert_asset,
)
from .queue import JobQueue
from .utils.media_types import AssetKind, detect_asset_kind
from .utils.path_scanner import expand_input_paths

__version__ = "0.1.0"

__all__ = [
    "AssetKind",
    "CancellationToken",
    "ComputeModule",
    "ConfigurationInvalid",
    "ConversionResult",
    "DitherMode",
    "InputNotFound",
    "JobCanceled",
    "JobCompleted",
    "JobFailed",
    "JobPhase",
    "JobProgress",
    "JobQueue",
    "JobQueued",
    "JobStarted",
    "OperationCanceled",
    "OutputFormat",
    "PixelConfig",
    "PixelToolsError",
    "PixelateParams",
    "PixelateTask",
    "QueueEvent",
    "QueueIdle",
    "QueueItem",
    "QueueWorkerContext",
    "Settings",
    "ToolExitedNonZero",
    "ToolSpawnFailed",
    "__version__",
    "convert_asset",
    "detect_asset_kind",
    "expand_input_paths",
    "get_settings",
]
