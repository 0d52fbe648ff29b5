import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from recorder.backend import DISPLAY_CONSTRAINTS, MIC_CONSTRAINTS, AudioBackend, MediaStream
from recorder.capabilities import RecordingMode
from recorder.errors import CaptureError, DisplayCaptureNotSupportedError, PermissionDeniedError
from recorder.mixer import AudioGraph, mix_streams

logger = logging.getLogger(__name__)

WARN_NO_DESKTOP_AUDIO = "Desktop audio was not shared. Recording microphone only."
WARN_DESKTOP_UNSUPPORTED = "Desktop audio recording is not supported on this platform. Using microphone only."
WARN_DESKTOP_DENIED = "Desktop recording permission denied. Using microphone only."


@dataclass
class AcquiredStream:
    stream: MediaStream
    mode: RecordingMode
    sources: list[MediaStream] = field(default_factory=list)
    graph: AudioGraph | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def desktop_audio_included(self) -> bool:
        return self.graph is not None

    def release(self):
        for source in self.sources:
            source.stop()


class StreamAcquirer:
    def __init__(self, backend: AudioBackend):
        self.backend = backend

    def _microphone(self) -> MediaStream:
        try:
            return self.backend.get_user_media({"audio": dict(MIC_CONSTRAINTS)})
        except CaptureError:
            raise
        except OSError as e:
            raise PermissionDeniedError(f"Microphone unavailable: {e}") from e

    def acquire(self, mode: RecordingMode | str) -> AcquiredStream:
        mode = RecordingMode(mode)
        if mode == RecordingMode.UNSUPPORTED:
            raise CaptureError("Audio recording is not supported on this host")

        if mode == RecordingMode.MIC_ONLY:
            mic_stream = self._microphone()
            logger.info("Recording microphone only")
            return AcquiredStream(mic_stream, RecordingMode.MIC_ONLY, sources=[mic_stream])

        return self._acquire_full()

    def _acquire_full(self) -> AcquiredStream:
        with ThreadPoolExecutor(max_workers=2) as pool:
            mic_future = pool.submit(self._microphone)
            display_future = pool.submit(self.backend.get_display_media, dict(DISPLAY_CONSTRAINTS))

            try:
                desktop_stream = display_future.result()
                display_error = None
            except Exception as e:
                desktop_stream = None
                display_error = e

            try:
                mic_stream = mic_future.result()
            except Exception:
                if desktop_stream is not None:
                    desktop_stream.stop()
                raise

        if display_error is not None:
            logger.warning("Desktop audio failed, falling back to microphone only: %s", display_error)
            if isinstance(display_error, DisplayCaptureNotSupportedError):
                warning = WARN_DESKTOP_UNSUPPORTED
            elif isinstance(display_error, PermissionDeniedError):
                warning = WARN_DESKTOP_DENIED
            else:
                warning = f"Desktop audio unavailable ({display_error}). Using microphone only."
            return AcquiredStream(mic_stream, RecordingMode.MIC_ONLY,
                                  sources=[mic_stream], warnings=[warning])

        for track in desktop_stream.video_tracks():
            track.stop()

        desktop_audio = desktop_stream.audio_tracks()
        logger.info("Desktop stream audio tracks: %d", len(desktop_audio))
        if not desktop_audio:
            logger.warning("No desktop audio tracks available, recording microphone only")
            desktop_stream.stop()
            return AcquiredStream(mic_stream, RecordingMode.MIC_ONLY,
                                  sources=[mic_stream], warnings=[WARN_NO_DESKTOP_AUDIO])

        graph, mixed = mix_streams(mic_stream, desktop_stream)
        logger.info("Recording desktop audio + microphone with mixed audio")
        return AcquiredStream(mixed, RecordingMode.FULL,
                              sources=[mic_stream, desktop_stream], graph=graph)
