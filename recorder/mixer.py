import numpy as np

import config
from recorder.backend import MediaStream

INT16_MIN = -32768
INT16_MAX = 32767
FFT_SIZE = 256


class SourceNode:
    def __init__(self, stream: MediaStream):
        self.stream = stream
        self.outputs: list = []

    def connect(self, node):
        self.outputs.append(node)
        node.inputs.append(self)
        return node

    def pull(self, frames: int) -> np.ndarray:
        return self.stream.read(frames).astype(np.float32)


class GainNode:
    def __init__(self, gain: float = 1.0):
        self.gain = gain
        self.inputs: list = []
        self.outputs: list = []

    def connect(self, node):
        self.outputs.append(node)
        node.inputs.append(self)
        return node

    def pull(self, frames: int) -> np.ndarray:
        mixed = np.zeros(0, dtype=np.float32)
        for node in self.inputs:
            block = node.pull(frames)
            if len(block) > len(mixed):
                block = block.copy()
                block[: len(mixed)] += mixed
                mixed = block
            else:
                mixed[: len(block)] += block
        return mixed * self.gain


class MixedStream(MediaStream):
    """Output of a destination node: the sum of its inputs, clipped to int16."""

    def __init__(self, destination: "DestinationNode"):
        super().__init__([])
        self.destination = destination

    def read(self, frames: int) -> np.ndarray:
        blocks = [node.pull(frames) for node in self.destination.inputs]
        length = max((len(b) for b in blocks), default=0)
        if length == 0:
            return np.zeros(0, dtype=np.int16)

        mixed = np.zeros(length, dtype=np.float32)
        for block in blocks:
            mixed[: len(block)] += block
        return np.clip(mixed, INT16_MIN, INT16_MAX).astype(np.int16)

    def stop(self):
        for source in self.destination.sources():
            source.stream.stop()


class DestinationNode:
    def __init__(self):
        self.inputs: list = []
        self.stream = MixedStream(self)

    def sources(self) -> list[SourceNode]:
        found = []
        pending = list(self.inputs)
        while pending:
            node = pending.pop()
            if isinstance(node, SourceNode):
                found.append(node)
            else:
                pending.extend(node.inputs)
        return found


class AudioGraph:
    def __init__(self):
        self.nodes: list = []

    def _add(self, node):
        self.nodes.append(node)
        return node

    def create_media_stream_source(self, stream: MediaStream) -> SourceNode:
        return self._add(SourceNode(stream))

    def create_gain(self, gain: float = 1.0) -> GainNode:
        return self._add(GainNode(gain))

    def create_media_stream_destination(self) -> DestinationNode:
        return self._add(DestinationNode())

    def gains(self) -> list[float]:
        return [node.gain for node in self.nodes if isinstance(node, GainNode)]


def mix_streams(mic_stream: MediaStream, desktop_stream: MediaStream) -> tuple[AudioGraph, MediaStream]:
    """Mix microphone and desktop audio into one stream.

    Each source goes through its own gain node into a shared destination. The
    desktop is attenuated so the speaker's voice stays dominant.
    """
    graph = AudioGraph()
    mic_source = graph.create_media_stream_source(mic_stream)
    desktop_source = graph.create_media_stream_source(MediaStream(desktop_stream.audio_tracks()))
    destination = graph.create_media_stream_destination()

    mic_gain = graph.create_gain(config.MIC_GAIN)
    desktop_gain = graph.create_gain(config.DESKTOP_GAIN)

    mic_source.connect(mic_gain)
    desktop_source.connect(desktop_gain)
    mic_gain.connect(destination)
    desktop_gain.connect(destination)

    return graph, destination.stream


class Analyser:
    """Keeps the latest FFT_SIZE samples and reports their spectral energy in [0, 1]."""

    def __init__(self, fft_size: int = FFT_SIZE):
        self.fft_size = fft_size
        self._buffer = np.zeros(fft_size, dtype=np.float32)

    def feed(self, samples: np.ndarray):
        if len(samples) == 0:
            return
        tail = samples[-self.fft_size:].astype(np.float32) / INT16_MAX
        self._buffer = np.concatenate([self._buffer, tail])[-self.fft_size:]

    def frequency_data(self) -> np.ndarray:
        window = np.hanning(self.fft_size)
        return np.abs(np.fft.rfft(self._buffer * window)) / (self.fft_size / 4)

    def level(self) -> float:
        return float(np.clip(self.frequency_data().mean(), 0.0, 1.0))
