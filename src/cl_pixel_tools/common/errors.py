"""Error taxonomy shared by the queue and the conversion pipeline."""


class PixelToolsError(Exception):
    """Base class for all cl_pixel_tools errors."""


class InputNotFound(PixelToolsError, FileNotFoundError):
    """Raised when the asset to convert does not exist."""

    def __init__(self, path: str):
        self.path: str = path
        super().__init__(f"Input file not found: {path}")


class ToolSpawnFailed(PixelToolsError):
    """Raised when the external tool could not be started."""

    def __init__(self, tool: str, reason: str):
        self.tool: str = tool
        self.reason: str = reason
        super().__init__(f"Failed to start {tool}: {reason}")


class ToolExitedNonZero(PixelToolsError):
    """Raised when the external tool exits with a non-zero code."""

    def __init__(self, code: int, diagnostics: list[str] | None = None):
        self.code: int = code
        self.diagnostics: list[str] = list(diagnostics or [])
        message = f"FFmpeg exited with code {code}"
        if self.diagnostics:
            message = "\n".join([message, *self.diagnostics])
        super().__init__(message)


class OperationCanceled(PixelToolsError):
    """Raised by a worker that observed its cancellation token and unwound.

    The queue reports this as ``canceled``, never as ``failed``.
    """

    def __init__(self, message: str = "Conversion canceled"):
        super().__init__(message)


class ConfigurationInvalid(PixelToolsError, ValueError):
    """Raised when a conversion configuration is outside its supported range."""
