"""
Tests for stream acquisition and the mic/desktop audio mix.
"""

import numpy as np
import pytest

import config
from recorder.acquirer import (
    WARN_DESKTOP_DENIED,
    WARN_DESKTOP_UNSUPPORTED,
    WARN_NO_DESKTOP_AUDIO,
    StreamAcquirer,
)
from recorder.backend import MIC_CONSTRAINTS, MediaStream
from recorder.capabilities import RecordingMode
from recorder.errors import CaptureError, DisplayCaptureNotSupportedError, PermissionDeniedError
from recorder.mixer import INT16_MAX, Analyser, mix_streams


class TestMixStreams:
    def test_gains_are_fixed(self, fake_backend):
        mic = fake_backend.get_user_media()
        desktop = fake_backend.get_display_media()

        graph, _ = mix_streams(mic, desktop)
        assert sorted(graph.gains()) == [0.8, 1.0]
        assert config.MIC_GAIN == 1.0
        assert config.DESKTOP_GAIN == 0.8

    def test_gains_independent_of_argument_order(self, fake_backend):
        a = fake_backend.get_user_media()
        b = fake_backend.get_display_media()
        graph_ab, _ = mix_streams(a, b)
        graph_ba, _ = mix_streams(b, a)
        assert graph_ab.gains() == graph_ba.gains() == [config.MIC_GAIN, config.DESKTOP_GAIN]

    def test_mixed_output_is_weighted_sum(self, make_backend):
        backend = make_backend(mic_amplitude=1000, desktop_amplitude=1000)
        _, mixed = mix_streams(backend.get_user_media(), backend.get_display_media())

        block = mixed.read(160)
        assert block.dtype == np.int16
        assert len(block) == 160
        assert int(block[0]) == 1800

    def test_mixed_output_is_clipped(self, make_backend):
        backend = make_backend(mic_amplitude=30000, desktop_amplitude=30000)
        _, mixed = mix_streams(backend.get_user_media(), backend.get_display_media())
        assert int(mixed.read(10).max()) == INT16_MAX

    def test_stopping_mix_stops_sources(self, fake_backend):
        mic = fake_backend.get_user_media()
        desktop = fake_backend.get_display_media()
        _, mixed = mix_streams(mic, desktop)

        mixed.stop()
        assert not mic.tracks[0].live
        assert not desktop.audio_tracks()[0].live


class TestStreamAcquirer:
    def test_mic_only_uses_voice_constraints(self, fake_backend):
        acquired = StreamAcquirer(fake_backend).acquire("mic-only")

        assert acquired.mode == RecordingMode.MIC_ONLY
        assert fake_backend.mic_constraints == [{"audio": MIC_CONSTRAINTS}]
        assert not acquired.desktop_audio_included
        assert acquired.warnings == []

    def test_full_mode_mixes_both_sources(self, fake_backend):
        acquired = StreamAcquirer(fake_backend).acquire(RecordingMode.FULL)

        assert acquired.mode == RecordingMode.FULL
        assert acquired.desktop_audio_included
        assert acquired.graph.gains() == [1.0, 0.8]
        assert len(acquired.stream.read(100)) == 100

    def test_video_tracks_are_stopped(self, fake_backend):
        StreamAcquirer(fake_backend).acquire(RecordingMode.FULL)

        video = [t for s in fake_backend.opened for t in s.video_tracks()]
        assert video
        assert all(not t.live for t in video)

    def test_zero_desktop_audio_tracks_falls_back_to_mic(self, make_backend):
        """Declining to share audio still yields a playable microphone stream."""
        backend = make_backend(display_audio_tracks=0)
        acquired = StreamAcquirer(backend).acquire(RecordingMode.FULL)

        assert acquired.mode == RecordingMode.MIC_ONLY
        assert acquired.warnings == [WARN_NO_DESKTOP_AUDIO]
        assert len(acquired.stream.read(50)) == 50

    @pytest.mark.parametrize("error,warning", [
        (DisplayCaptureNotSupportedError("no loopback"), WARN_DESKTOP_UNSUPPORTED),
        (PermissionDeniedError("denied"), WARN_DESKTOP_DENIED),
    ])
    def test_display_failure_falls_back_to_mic(self, make_backend, error, warning):
        backend = make_backend(display_error=error)
        acquired = StreamAcquirer(backend).acquire(RecordingMode.FULL)

        assert acquired.mode == RecordingMode.MIC_ONLY
        assert acquired.warnings == [warning]

    def test_unexpected_display_failure_falls_back_to_mic(self, make_backend):
        backend = make_backend(display_error=RuntimeError("driver crashed"))
        acquired = StreamAcquirer(backend).acquire(RecordingMode.FULL)

        assert acquired.mode == RecordingMode.MIC_ONLY
        assert "driver crashed" in acquired.warnings[0]

    def test_microphone_failure_is_fatal(self, make_backend):
        backend = make_backend(mic_error=PermissionDeniedError("denied"))
        with pytest.raises(PermissionDeniedError):
            StreamAcquirer(backend).acquire(RecordingMode.FULL)

    def test_microphone_failure_releases_desktop(self, make_backend):
        backend = make_backend(mic_error=PermissionDeniedError("denied"))
        with pytest.raises(PermissionDeniedError):
            StreamAcquirer(backend).acquire(RecordingMode.FULL)
        assert all(not t.live for s in backend.opened for t in s.tracks)

    def test_unsupported_mode_raises(self, fake_backend):
        with pytest.raises(CaptureError):
            StreamAcquirer(fake_backend).acquire(RecordingMode.UNSUPPORTED)

    def test_release_stops_all_sources(self, fake_backend):
        acquired = StreamAcquirer(fake_backend).acquire(RecordingMode.FULL)
        acquired.release()
        assert all(not t.live for s in acquired.sources for t in s.tracks)


class TestAnalyser:
    def test_silence_has_zero_level(self):
        analyser = Analyser()
        analyser.feed(np.zeros(512, dtype=np.int16))
        assert analyser.level() == 0.0

    def test_loud_signal_raises_level(self):
        analyser = Analyser()
        t = np.arange(512)
        analyser.feed((np.sin(2 * np.pi * t / 16) * 20000).astype(np.int16))
        assert 0.0 < analyser.level() <= 1.0

    def test_empty_feed_is_ignored(self):
        analyser = Analyser()
        analyser.feed(np.zeros(0, dtype=np.int16))
        assert analyser.level() == 0.0

    def test_empty_stream_reads_nothing(self):
        assert len(MediaStream([]).read(10)) == 0
