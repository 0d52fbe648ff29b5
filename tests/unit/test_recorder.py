"""
Tests for the recorder, encoding selection and the recording session.
"""

import io
import time
import wave

import numpy as np
import pytest

from recorder import encoding as encoding_module
from recorder.acquirer import WARN_NO_DESKTOP_AUDIO
from recorder.backend import MediaStream
from recorder.capabilities import CapabilityDetector, RecordingMode
from recorder.encoding import (
    DEFAULT,
    ENCODING_PREFERENCES,
    MP4,
    WEBM,
    WEBM_OPUS,
    encode_pcm,
    extension_for,
    select_encoding,
)
from recorder.errors import RecorderError, RecordingStateError
from recorder.recorder import Recorder
from recorder.session import RecordingSession


def wav_recorder(clock=time.monotonic):
    return Recorder(clock=clock, candidates=(DEFAULT,), supported=lambda e: True)


def wait_for_audio(handle, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if handle.available_bytes() or handle._pending:
            return
        time.sleep(0.01)


class TestEncodingSelection:
    def test_preference_order(self):
        assert ENCODING_PREFERENCES == (WEBM_OPUS, WEBM, MP4, DEFAULT)

    def test_first_supported_wins(self):
        chosen = select_encoding(supported=lambda e: e in (MP4, DEFAULT))
        assert chosen == MP4

    def test_falls_back_to_default(self):
        assert select_encoding(supported=lambda e: e.container == "wav") == DEFAULT

    def test_nothing_supported_is_fatal(self):
        with pytest.raises(RecorderError):
            select_encoding(supported=lambda e: False)

    @pytest.mark.parametrize("mime,ext", [
        ("audio/webm;codecs=opus", "webm"),
        ("audio/mp4", "mp4"),
        ("audio/wav", "wav"),
        ("audio/ogg", "webm"),
    ])
    def test_extension_for(self, mime, ext):
        assert extension_for(mime) == ext

    def test_wav_encoding_is_readable(self):
        pcm = np.full(1600, 500, dtype=np.int16).tobytes()
        data, used = encode_pcm(pcm, DEFAULT, 16000)

        assert used == DEFAULT
        with wave.open(io.BytesIO(data)) as wf:
            assert wf.getframerate() == 16000
            assert wf.getnframes() == 1600

    def test_failed_export_falls_back_to_wav(self, monkeypatch):
        def broken_export(self, *args, **kwargs):
            raise OSError("ffmpeg not found")

        monkeypatch.setattr(encoding_module.AudioSegment, "export", broken_export)
        data, used = encode_pcm(np.zeros(160, dtype=np.int16).tobytes(), WEBM_OPUS, 16000)
        assert used == DEFAULT
        assert data[:4] == b"RIFF"


class TestRecorder:
    def test_ten_second_recording(self, fake_backend, fake_clock):
        """A 10-second recording reports ~10s duration and non-empty audio."""
        recorder = wav_recorder(clock=fake_clock)
        handle = recorder.start(fake_backend.get_user_media(), "full")
        wait_for_audio(handle)
        fake_clock.advance(10)

        recording = recorder.stop(handle)

        assert abs(recording.duration_seconds - 10) <= 1
        assert recording.size > 0
        assert recording.mime_type == "audio/wav"
        assert recording.recording_mode == "full"
        assert recording.display_name.startswith("Desktop+Mic ")

    def test_ids_and_urls(self, fake_backend):
        recorder = wav_recorder()
        handle = recorder.start(fake_backend.get_user_media())
        recording = recorder.stop(handle)

        assert recording.id.startswith("local-recording-")
        assert recording.source_url == f"/api/recordings/local/{recording.id}/audio"
        assert recording.display_name.startswith("Microphone ")

    def test_chunks_arrive_progressively(self, fake_backend):
        recorder = wav_recorder()
        handle = recorder.start(fake_backend.get_user_media())
        deadline = time.monotonic() + 5
        while not handle.chunks and time.monotonic() < deadline:
            time.sleep(0.02)
        try:
            assert handle.chunks, "expected at least one 1-second slice while recording"
        finally:
            recorder.stop(handle)

    def test_abrupt_stream_failure_keeps_partial_audio(self, fake_backend):
        stream = fake_backend.get_user_media()
        track = stream.tracks[0]
        original_read = track.read
        calls = {"n": 0}

        def flaky_read(frames):
            calls["n"] += 1
            if calls["n"] > 3:
                raise OSError("device unplugged")
            return original_read(frames)

        track.read = flaky_read
        recorder = wav_recorder()
        handle = recorder.start(stream)
        deadline = time.monotonic() + 2
        while handle.error is None and time.monotonic() < deadline:
            time.sleep(0.01)

        recording = recorder.stop(handle)
        assert handle.error == "device unplugged"
        assert recording.size > 44

    def test_empty_stream_still_finalizes(self):
        recorder = wav_recorder()
        handle = recorder.start(MediaStream([]))
        recording = recorder.stop(handle)
        assert recording.audio_bytes[:4] == b"RIFF"

    def test_no_encoding_means_start_fails(self, fake_backend):
        recorder = Recorder(supported=lambda e: False)
        with pytest.raises(RecorderError):
            recorder.start(fake_backend.get_user_media())

    def test_level_meter_updates(self, fake_backend):
        recorder = wav_recorder()
        handle = recorder.start(fake_backend.get_user_media())
        deadline = time.monotonic() + 2
        while handle.level == 0.0 and time.monotonic() < deadline:
            time.sleep(0.02)
        try:
            assert handle.level > 0.0
        finally:
            recorder.stop(handle)
        assert handle.level == 0.0


class TestRecordingSession:
    def make_session(self, backend, platform="win32"):
        return RecordingSession(backend, recorder=wav_recorder(),
                                detector=CapabilityDetector(backend, platform=platform))

    def test_start_and_stop(self, fake_backend):
        session = self.make_session(fake_backend)
        handle = session.start()
        assert session.is_recording()
        assert session.current_recording_id == handle.id

        recording = session.stop()
        assert not session.is_recording()
        assert session.get_local(recording.id) is recording
        assert recording.recording_mode == "full"

    def test_only_one_recording_at_a_time(self, fake_backend):
        session = self.make_session(fake_backend)
        session.start()
        try:
            with pytest.raises(RecordingStateError):
                session.start()
        finally:
            session.stop()

    def test_stop_without_recording(self, fake_backend):
        with pytest.raises(RecordingStateError):
            self.make_session(fake_backend).stop()

    def test_full_request_downgraded_without_desktop_audio(self, fake_backend):
        session = self.make_session(fake_backend, platform="darwin")
        handle = session.start(RecordingMode.FULL)
        session.stop()
        assert handle.recording_mode == "mic-only"

    def test_declined_desktop_audio_is_a_warning(self, make_backend):
        session = self.make_session(make_backend(display_audio_tracks=0))
        handle = session.start("full")
        session.stop()
        assert handle.recording_mode == "mic-only"
        assert session.last_warnings == [WARN_NO_DESKTOP_AUDIO]

    def test_unsupported_host_cannot_start(self, make_backend):
        session = self.make_session(make_backend(input_devices=0))
        with pytest.raises(RecordingStateError):
            session.start()

    def test_stop_releases_devices(self, fake_backend):
        session = self.make_session(fake_backend)
        session.start()
        session.stop()
        assert all(not t.live for s in fake_backend.opened for t in s.tracks)

    def test_discard(self, fake_backend):
        session = self.make_session(fake_backend)
        session.start()
        recording = session.stop()

        assert session.discard(recording.id)
        assert session.get_local(recording.id) is None
        assert not session.discard(recording.id)

    def test_capabilities_are_cached(self, fake_backend):
        session = self.make_session(fake_backend)
        first = session.capabilities("agent")
        assert session.capabilities("agent") is first
        assert session.capabilities("agent", refresh=True) is not first

    def test_terminate_stops_active_recording(self, fake_backend):
        session = self.make_session(fake_backend)
        session.start()
        session.terminate()
        assert not session.is_recording()
        assert fake_backend.terminated
