import logging
import sys
from dataclasses import asdict, dataclass
from enum import Enum

from recorder.backend import AudioBackend
from recorder.errors import CaptureError

logger = logging.getLogger(__name__)

CHROMIUM_BROWSERS = ("chrome", "edge")
DESKTOP_AUDIO_PLATFORMS = ("win32", "linux")


class RecordingMode(str, Enum):
    FULL = "full"
    MIC_ONLY = "mic-only"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class RecordingCapabilities:
    supports_basic_recording: bool
    supports_desktop_audio: bool
    supports_web_audio: bool
    microphone_granted: bool
    browser_name: str
    recommended_mode: RecordingMode

    def to_dict(self) -> dict:
        data = asdict(self)
        data["recommended_mode"] = self.recommended_mode.value
        return data


def recommend_mode(basic: bool, desktop_audio: bool, microphone: bool,
                   web_audio: bool) -> RecordingMode:
    if basic and desktop_audio and microphone and web_audio:
        return RecordingMode.FULL
    if basic and microphone:
        return RecordingMode.MIC_ONLY
    return RecordingMode.UNSUPPORTED


def detect_browser(user_agent: str | None) -> str:
    ua = (user_agent or "").lower()
    # Edge and most Chromium forks also advertise "chrome"
    if "edg/" in ua or "edge" in ua:
        return "edge"
    if "chrome" in ua or "chromium" in ua:
        return "chrome"
    if "firefox" in ua:
        return "firefox"
    if "safari" in ua:
        return "safari"
    return "unknown"


class CapabilityDetector:
    def __init__(self, backend: AudioBackend, platform: str | None = None):
        self.backend = backend
        self.platform = platform or sys.platform

    def _probe_microphone(self) -> bool:
        try:
            stream = self.backend.get_user_media({"audio": True})
        except (CaptureError, OSError, ImportError) as e:
            logger.warning("Microphone access denied or unavailable: %s", e)
            return False
        stream.stop()
        return True

    def _display_capture(self) -> bool:
        try:
            return self.backend.supports_display_capture()
        except (CaptureError, OSError, ImportError) as e:
            logger.warning("Display capture check failed: %s", e)
            return False

    def _basic_support(self) -> bool:
        try:
            return self.backend.available and self.backend.input_device_count() > 0
        except (CaptureError, OSError, ImportError) as e:
            logger.warning("Audio backend unusable: %s", e)
            return False

    def detect(self, user_agent: str | None = None) -> RecordingCapabilities:
        browser = detect_browser(user_agent)
        basic = self._basic_support()
        web_audio = bool(self.backend.supports_mixing)
        microphone = self._probe_microphone() if basic else False

        desktop_audio = False
        if basic and self._display_capture():
            # A missing user agent means a local caller (tray, scripts) rather than a browser
            chromium = user_agent is None or browser in CHROMIUM_BROWSERS
            desktop_audio = chromium and self.platform.startswith(DESKTOP_AUDIO_PLATFORMS)
            logger.info("Desktop audio support: browser=%s platform=%s supported=%s",
                        browser, self.platform, desktop_audio)

        return RecordingCapabilities(
            supports_basic_recording=basic,
            supports_desktop_audio=desktop_audio,
            supports_web_audio=web_audio,
            microphone_granted=microphone,
            browser_name=browser,
            recommended_mode=recommend_mode(basic, desktop_audio, microphone, web_audio),
        )
