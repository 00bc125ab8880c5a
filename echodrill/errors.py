"""Exception types shared by the drill engine, audio subsystem and proxies."""


class EchoDrillError(Exception):
    """Base class for every error raised by Echo Drill."""


class InvalidTransitionError(EchoDrillError):
    """An operation was called in a session state that does not allow it."""


class PackNotFoundError(EchoDrillError, KeyError):
    """No pack is registered under the requested code."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code

    def __str__(self) -> str:
        return f"Unknown pack: {self.code!r}"


class InvalidPackError(EchoDrillError, ValueError):
    """Pack content failed validation at load time."""


class CaptureError(EchoDrillError):
    """Recoverable microphone capture failure."""


class MicrophonePermissionError(CaptureError):
    """The host refused to open the microphone."""


class CaptureDeviceError(CaptureError):
    """No usable input device is available."""


class UpstreamError(EchoDrillError):
    """The speech service behind a proxy endpoint failed."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
