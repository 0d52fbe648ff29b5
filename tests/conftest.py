"""
Pytest fixtures for Prompt Studio tests: fake audio devices, a scripted LLM
client and temporary database/storage.
"""

import threading
import time

import numpy as np
import pytest

from db.database import Database
from db.recordings import RecordingRepository
from db.storage import BlobStorage
from processing.errors import LlmError
from recorder.backend import AudioBackend, MediaStream, Track
from recorder.errors import DeviceNotFoundError, PermissionDeniedError


class FakeTrack(Track):
    """Audio track producing a constant tone."""

    def __init__(self, label="fake", amplitude=1000, constraints=None, delay=0.002):
        super().__init__(label, constraints)
        self.amplitude = amplitude
        self.delay = delay
        self.reads = 0

    def read(self, frames):
        if not self.live:
            return np.zeros(0, dtype=np.int16)
        self.reads += 1
        if self.delay:
            time.sleep(self.delay)
        return np.full(frames, self.amplitude, dtype=np.int16)


class FakeVideoTrack(Track):
    kind = "video"

    def read(self, frames):
        return np.zeros(0, dtype=np.int16)


class FakeBackend(AudioBackend):
    """Scriptable stand-in for the PyAudio backend."""

    def __init__(self, available=True, input_devices=1, display=True, mic_error=None,
                 display_error=None, display_audio_tracks=1, with_video=True,
                 mic_amplitude=1000, desktop_amplitude=1000):
        self._available = available
        self.input_devices = input_devices
        self.display = display
        self.mic_error = mic_error
        self.display_error = display_error
        self.display_audio_tracks = display_audio_tracks
        self.with_video = with_video
        self.mic_amplitude = mic_amplitude
        self.desktop_amplitude = desktop_amplitude
        self.mic_constraints = []
        self.opened: list[MediaStream] = []
        self.terminated = False

    @property
    def available(self):
        return self._available

    def input_device_count(self):
        return self.input_devices

    def supports_display_capture(self):
        return self.display

    def get_user_media(self, constraints=None):
        if self.mic_error is not None:
            raise self.mic_error
        self.mic_constraints.append(constraints)
        stream = MediaStream([FakeTrack("mic", self.mic_amplitude, constraints)])
        self.opened.append(stream)
        return stream

    def get_display_media(self, constraints=None):
        if self.display_error is not None:
            raise self.display_error
        tracks = [FakeTrack(f"desktop-{i}", self.desktop_amplitude) for i in range(self.display_audio_tracks)]
        if self.with_video:
            tracks.append(FakeVideoTrack("screen"))
        stream = MediaStream(tracks)
        self.opened.append(stream)
        return stream

    def terminate(self):
        self.terminated = True


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            return self.now

    def advance(self, seconds):
        with self._lock:
            self.now += seconds


class FakeLlmClient:
    """Returns scripted responses in order; an exception instance is raised instead."""

    model_name = "fake-model"
    provider = "gemini"

    def __init__(self, responses=None, configured=True, supports_audio=True):
        self.responses = list(responses or [])
        self.configured = configured
        self.supports_audio = supports_audio
        self.calls = []

    def is_configured(self):
        return self.configured

    def generate(self, prompt, audio=None, mime_type=None):
        self.calls.append({"prompt": prompt, "audio": audio, "mime_type": mime_type})
        if not self.responses:
            raise LlmError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def denied_backend():
    return FakeBackend(mic_error=PermissionDeniedError("denied"))


@pytest.fixture
def missing_mic_backend():
    return FakeBackend(mic_error=DeviceNotFoundError("no microphone"))


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def recordings(db):
    return RecordingRepository(db)


@pytest.fixture
def storage(tmp_path):
    return BlobStorage(tmp_path / "storage", "audio-recordings", "http://testserver", "test-secret")


@pytest.fixture
def transcript_response():
    return """Here is the transcription:
{
  "rawTranscript": "Alice: Let's build the login page. Bob: I'll handle the API.",
  "speakerCount": 2,
  "speakerSegments": [
    {"speaker": "Alice", "text": "Let's build the login page.", "timestamp": "00:00"},
    {"speaker": "Bob", "text": "I'll handle the API.", "timestamp": "00:04"}
  ]
}"""


@pytest.fixture
def summary_response():
    return '{"aiSummary": "**Overview:**\\n- Login page and API work"}'


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def make_llm():
    return FakeLlmClient
