"""Exception types raised by usb_ingest."""


class UsbIngestError(Exception):
    """Base class for usb_ingest errors."""


class GlobCompileError(UsbIngestError, ValueError):
    """A glob pattern could not be compiled."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid glob pattern {pattern!r}: {reason}")


class ConfigError(UsbIngestError, ValueError):
    """The rules configuration is invalid."""


class CopyRequestError(UsbIngestError, ValueError):
    """A copy request payload is malformed."""


class UnsupportedPlatformError(UsbIngestError, OSError):
    """The requested action is not available on this platform."""
