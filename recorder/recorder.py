import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np

import config
from recorder.backend import MediaStream
from recorder.encoding import ENCODING_PREFERENCES, Encoding, encode_pcm, is_type_supported, select_encoding
from recorder.errors import RecorderError
from recorder.mixer import Analyser

logger = logging.getLogger(__name__)

JOIN_TIMEOUT_SECS = 5


@dataclass
class LocalRecording:
    id: str
    audio_bytes: bytes
    source_url: str
    duration_seconds: float
    created_at: datetime
    display_name: str
    mime_type: str
    recording_mode: str = "mic-only"

    @property
    def size(self) -> int:
        return len(self.audio_bytes)

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.display_name,
            "url": self.source_url,
            "duration": round(self.duration_seconds, 2),
            "mime_type": self.mime_type,
            "size": self.size,
            "recording_mode": self.recording_mode,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class RecorderHandle:
    id: str
    stream: MediaStream
    encoding: Encoding
    started_at: float
    created_at: datetime
    recording_mode: str
    clock: object = time.monotonic
    chunks: list[bytes] = field(default_factory=list)
    level: float = 0.0
    analyser: Analyser = field(default_factory=Analyser)
    stop_event: threading.Event = field(default_factory=threading.Event)
    threads: list[threading.Thread] = field(default_factory=list)
    error: str | None = None
    _pending: list[np.ndarray] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def available_bytes(self) -> int:
        with self._lock:
            return sum(len(c) for c in self.chunks)

    def flush_pending(self):
        with self._lock:
            if self._pending:
                self.chunks.append(np.concatenate(self._pending).tobytes())
                self._pending = []


class Recorder:
    """Records a stream into 1-second PCM slices and encodes them on stop."""

    def __init__(self, sample_rate: int = config.SAMPLE_RATE, clock=time.monotonic,
                 candidates=ENCODING_PREFERENCES, supported=is_type_supported):
        self.sample_rate = sample_rate
        self.clock = clock
        self.candidates = candidates
        self.supported = supported

    def _capture_loop(self, handle: RecorderHandle):
        block_frames = max(1, int(self.sample_rate * config.BLOCK_DURATION_MS / 1000))
        slice_frames = self.sample_rate * config.TIMESLICE_SECS
        pending_frames = 0

        try:
            while not handle.stop_event.is_set():
                data = handle.stream.read(block_frames)
                if len(data) == 0:
                    handle.stop_event.wait(config.BLOCK_DURATION_MS / 1000)
                    continue

                handle.analyser.feed(data)
                with handle._lock:
                    handle._pending.append(data)
                pending_frames += len(data)
                if pending_frames >= slice_frames:
                    handle.flush_pending()
                    pending_frames = 0
        except Exception as e:
            logger.error("Capture stopped abruptly for %s: %s", handle.id, e)
            handle.error = str(e)
        finally:
            handle.flush_pending()

    def _level_loop(self, handle: RecorderHandle):
        while not handle.stop_event.wait(config.LEVEL_POLL_SECS):
            handle.level = handle.analyser.level()

    def start(self, stream: MediaStream, recording_mode: str = "mic-only") -> RecorderHandle:
        encoding = select_encoding(self.candidates, self.supported)

        handle = RecorderHandle(
            id=f"local-recording-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}",
            stream=stream,
            encoding=encoding,
            started_at=self.clock(),
            created_at=datetime.now(timezone.utc),
            recording_mode=recording_mode,
            clock=self.clock,
        )

        capture = threading.Thread(target=self._capture_loop, args=(handle,), daemon=True)
        meter = threading.Thread(target=self._level_loop, args=(handle,), daemon=True)
        try:
            capture.start()
            meter.start()
        except RuntimeError as e:
            handle.stop_event.set()
            raise RecorderError(f"Could not start recorder: {e}") from e

        handle.threads = [capture, meter]
        logger.info("Recording %s started (%s, %s)", handle.id, encoding.mime_type, recording_mode)
        return handle

    def stop(self, handle: RecorderHandle, display_name: str | None = None) -> LocalRecording:
        handle.stop_event.set()
        duration = handle.elapsed()

        for t in handle.threads:
            t.join(timeout=JOIN_TIMEOUT_SECS)
        handle.threads = []
        handle.flush_pending()
        handle.level = 0.0

        pcm = b"".join(handle.chunks)
        audio_bytes, encoding = encode_pcm(pcm, handle.encoding, self.sample_rate)

        if display_name is None:
            prefix = "Desktop+Mic" if handle.recording_mode == "full" else "Microphone"
            display_name = f"{prefix} {handle.created_at.astimezone().strftime('%H:%M:%S')}"

        logger.info("Recording %s finished: %.1fs, %d bytes", handle.id, duration, len(audio_bytes))
        return LocalRecording(
            id=handle.id,
            audio_bytes=audio_bytes,
            source_url=f"/api/recordings/local/{handle.id}/audio",
            duration_seconds=duration,
            created_at=handle.created_at,
            display_name=display_name,
            mime_type=encoding.mime_type,
            recording_mode=handle.recording_mode,
        )
