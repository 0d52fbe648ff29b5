import logging
import threading

from recorder.acquirer import AcquiredStream, StreamAcquirer
from recorder.backend import AudioBackend
from recorder.capabilities import CapabilityDetector, RecordingCapabilities, RecordingMode
from recorder.errors import RecordingStateError
from recorder.recorder import LocalRecording, Recorder, RecorderHandle

logger = logging.getLogger(__name__)


class RecordingSession:
    """At most one active recording, plus the finished recordings awaiting a save or discard."""

    def __init__(self, backend: AudioBackend, recorder: Recorder | None = None,
                 detector: CapabilityDetector | None = None):
        self.backend = backend
        self.detector = detector or CapabilityDetector(backend)
        self.acquirer = StreamAcquirer(backend)
        self.recorder = recorder or Recorder()
        self._lock = threading.Lock()
        self._capabilities: dict[str | None, RecordingCapabilities] = {}
        self._handle: RecorderHandle | None = None
        self._acquired: AcquiredStream | None = None
        self._local: dict[str, LocalRecording] = {}
        self.last_warnings: list[str] = []

    def capabilities(self, user_agent: str | None = None, refresh: bool = False) -> RecordingCapabilities:
        if refresh or user_agent not in self._capabilities:
            self._capabilities[user_agent] = self.detector.detect(user_agent)
        return self._capabilities[user_agent]

    def is_recording(self) -> bool:
        return self._handle is not None

    @property
    def current_recording_id(self) -> str | None:
        return self._handle.id if self._handle else None

    def elapsed(self) -> float:
        handle = self._handle
        return handle.elapsed() if handle else 0.0

    def level(self) -> float:
        handle = self._handle
        return handle.level if handle else 0.0

    def start(self, mode: RecordingMode | str | None = None,
              user_agent: str | None = None) -> RecorderHandle:
        with self._lock:
            if self._handle is not None:
                raise RecordingStateError("A recording is already in progress")

            caps = self.capabilities(user_agent)
            if caps.recommended_mode == RecordingMode.UNSUPPORTED:
                raise RecordingStateError("Audio recording is not supported on this host")

            requested = RecordingMode(mode) if mode else caps.recommended_mode
            if requested == RecordingMode.FULL and not caps.supports_desktop_audio:
                requested = RecordingMode.MIC_ONLY

            acquired = self.acquirer.acquire(requested)
            try:
                handle = self.recorder.start(acquired.stream, acquired.mode.value)
            except Exception:
                acquired.release()
                raise

            self._acquired = acquired
            self._handle = handle
            self.last_warnings = list(acquired.warnings)
            return handle

    def stop(self) -> LocalRecording:
        with self._lock:
            if self._handle is None:
                raise RecordingStateError("No recording in progress")
            handle, acquired = self._handle, self._acquired
            self._handle = None
            self._acquired = None

        try:
            recording = self.recorder.stop(handle)
        finally:
            acquired.release()

        self._local[recording.id] = recording
        return recording

    def local_recordings(self) -> list[LocalRecording]:
        return sorted(self._local.values(), key=lambda r: r.created_at, reverse=True)

    def get_local(self, recording_id: str) -> LocalRecording | None:
        return self._local.get(recording_id)

    def discard(self, recording_id: str) -> bool:
        recording = self._local.pop(recording_id, None)
        if recording is None:
            return False
        logger.info("Preview recording %s discarded", recording_id)
        return True

    def terminate(self):
        if self._handle is not None:
            try:
                self.stop()
            except Exception as e:
                logger.warning("Error stopping recording on shutdown: %s", e)
        self.backend.terminate()
