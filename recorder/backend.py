import importlib.util
import logging
import math
import threading

import numpy as np

import config
from recorder.errors import (
    DeviceNotFoundError,
    DisplayCaptureNotSupportedError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

AUDIO_LIBRARY = "pyaudiowpatch"

MIC_CONSTRAINTS = {
    "echoCancellation": True,
    "noiseSuppression": True,
    "autoGainControl": True,
}

# Video is requested only because display capture exposes system audio through it
DISPLAY_CONSTRAINTS = {
    "video": True,
    "audio": {"suppressLocalAudioPlayback": False},
}


class Track:
    """One capture source. `read` returns mono int16 samples at the target rate."""

    kind = "audio"

    def __init__(self, label: str, constraints: dict | None = None):
        self.label = label
        self.constraints = dict(constraints or {})
        self._live = True

    @property
    def live(self) -> bool:
        return self._live

    def read(self, frames: int) -> np.ndarray:
        raise NotImplementedError

    def stop(self):
        self._live = False


class MediaStream:
    def __init__(self, tracks: list[Track] | None = None):
        self.tracks = list(tracks or [])

    def audio_tracks(self) -> list[Track]:
        return [t for t in self.tracks if t.kind == "audio"]

    def video_tracks(self) -> list[Track]:
        return [t for t in self.tracks if t.kind == "video"]

    def read(self, frames: int) -> np.ndarray:
        for track in self.audio_tracks():
            if track.live:
                return track.read(frames)
        return np.zeros(0, dtype=np.int16)

    def stop(self):
        for track in self.tracks:
            track.stop()


class AudioBackend:
    """Host audio capabilities, modelled on the browser media APIs."""

    supports_mixing = True

    @property
    def available(self) -> bool:
        raise NotImplementedError

    def input_device_count(self) -> int:
        raise NotImplementedError

    def supports_display_capture(self) -> bool:
        raise NotImplementedError

    def get_user_media(self, constraints: dict | None = None) -> MediaStream:
        raise NotImplementedError

    def get_display_media(self, constraints: dict | None = None) -> MediaStream:
        raise NotImplementedError

    def terminate(self):
        pass


class PyAudioTrack(Track):
    def __init__(self, pa, pyaudio_module, device_info: dict, is_loopback: bool,
                 constraints: dict | None = None, target_rate: int = config.SAMPLE_RATE):
        super().__init__(device_info["name"], constraints)
        self.device_rate = int(device_info["defaultSampleRate"])
        self.target_rate = target_rate
        self.is_loopback = is_loopback
        self._lock = threading.Lock()

        # Loopback devices report their channels as input channels, fall back to output ones
        if is_loopback:
            channels = int(device_info.get("maxInputChannels") or device_info.get("maxOutputChannels") or 2)
        else:
            channels = int(device_info["maxInputChannels"])
        self.channels = max(1, channels)

        chunk_size = max(1, int(self.device_rate * config.BLOCK_DURATION_MS / 1000))
        self._stream = pa.open(
            format=pyaudio_module.paInt16,
            channels=self.channels,
            rate=self.device_rate,
            input=True,
            input_device_index=device_info["index"],
            frames_per_buffer=chunk_size,
        )

    def read(self, frames: int) -> np.ndarray:
        with self._lock:
            if not self._live:
                return np.zeros(0, dtype=np.int16)
            device_frames = max(1, math.ceil(frames * self.device_rate / self.target_rate))
            data = self._stream.read(device_frames, exception_on_overflow=False)

        samples = np.frombuffer(data, dtype=np.int16)
        if self.channels > 1:
            samples = samples[: len(samples) - len(samples) % self.channels]
            samples = samples.reshape(-1, self.channels).mean(axis=1)

        if self.device_rate != self.target_rate and len(samples):
            new_len = int(len(samples) * self.target_rate / self.device_rate)
            idx = np.minimum((np.arange(new_len) * self.device_rate / self.target_rate).astype(int),
                             len(samples) - 1)
            samples = samples[idx]

        return samples.astype(np.int16)

    def stop(self):
        with self._lock:
            if not self._live:
                return
            self._live = False
            try:
                self._stream.stop_stream()
                self._stream.close()
            except OSError as e:
                logger.warning("Error closing stream for %s: %s", self.label, e)


class PyAudioBackend(AudioBackend):
    """Capture through PyAudio with WASAPI loopback for the desktop output."""

    def __init__(self, target_rate: int = config.SAMPLE_RATE):
        self.target_rate = target_rate
        self._pa = None
        self._pyaudio = None

    @property
    def available(self) -> bool:
        return importlib.util.find_spec(AUDIO_LIBRARY) is not None

    def _get_pa(self):
        if self._pa is None:
            import pyaudiowpatch as pyaudio

            self._pyaudio = pyaudio
            self._pa = pyaudio.PyAudio()
        return self._pa

    def input_device_count(self) -> int:
        pa = self._get_pa()
        count = 0
        for i in range(pa.get_device_count()):
            info = pa.get_device_info_by_index(i)
            if info["maxInputChannels"] > 0 and not info.get("isLoopbackDevice", False):
                count += 1
        return count

    def _find_loopback_device(self) -> dict | None:
        pa = self._get_pa()
        try:
            wasapi_info = pa.get_host_api_info_by_type(self._pyaudio.paWASAPI)
        except OSError:
            logger.warning("WASAPI not available")
            return None

        default_output = pa.get_device_info_by_index(wasapi_info["defaultOutputDevice"])

        for i in range(pa.get_device_count()):
            info = pa.get_device_info_by_index(i)
            if (
                info.get("isLoopbackDevice", False)
                and info["name"].startswith(default_output["name"].split(" (")[0])
            ):
                return info

        # Fallback: any loopback device
        for i in range(pa.get_device_count()):
            info = pa.get_device_info_by_index(i)
            if info.get("isLoopbackDevice", False):
                return info

        return None

    def _find_mic_device(self) -> dict | None:
        pa = self._get_pa()
        try:
            wasapi_info = pa.get_host_api_info_by_type(self._pyaudio.paWASAPI)
            default_input_idx = wasapi_info["defaultInputDevice"]
            if default_input_idx >= 0:
                return pa.get_device_info_by_index(default_input_idx)
        except OSError:
            pass

        try:
            return pa.get_default_input_device_info()
        except OSError:
            return None

    def supports_display_capture(self) -> bool:
        if not self.available:
            return False
        try:
            return self._find_loopback_device() is not None
        except OSError as e:
            logger.warning("Loopback lookup failed: %s", e)
            return False

    def get_user_media(self, constraints: dict | None = None) -> MediaStream:
        mic_info = self._find_mic_device()
        if mic_info is None:
            raise DeviceNotFoundError("No microphone found")
        try:
            track = PyAudioTrack(self._pa, self._pyaudio, mic_info, False, constraints, self.target_rate)
        except OSError as e:
            raise PermissionDeniedError(f"Could not open microphone {mic_info['name']}: {e}") from e
        logger.info("Microphone: %s", mic_info["name"])
        return MediaStream([track])

    def get_display_media(self, constraints: dict | None = None) -> MediaStream:
        loopback_info = self._find_loopback_device()
        if loopback_info is None:
            raise DisplayCaptureNotSupportedError("No loopback device for desktop audio")
        try:
            track = PyAudioTrack(self._pa, self._pyaudio, loopback_info, True,
                                 (constraints or {}).get("audio"), self.target_rate)
        except OSError as e:
            raise PermissionDeniedError(f"Could not open loopback {loopback_info['name']}: {e}") from e
        logger.info("Loopback: %s", loopback_info["name"])
        return MediaStream([track])

    def terminate(self):
        if self._pa:
            self._pa.terminate()
            self._pa = None
