class CaptureError(Exception):
    """Base class for audio capture failures."""


class PermissionDeniedError(CaptureError):
    """The device refused to open (denied, busy or unplugged)."""


class DeviceNotFoundError(CaptureError):
    """No suitable input device exists."""


class DisplayCaptureNotSupportedError(CaptureError):
    """The host cannot capture desktop audio."""


class RecorderError(CaptureError):
    """The recorder could not start or finalize."""


class RecordingStateError(CaptureError):
    """The requested action conflicts with the current recording state."""
