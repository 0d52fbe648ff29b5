import io
import logging
import wave
from dataclasses import dataclass

from pydub import AudioSegment
from pydub.utils import get_encoder_name, which

import config
from recorder.errors import RecorderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Encoding:
    mime_type: str
    container: str
    codec: str | None = None

    @property
    def extension(self) -> str:
        return self.container


WEBM_OPUS = Encoding("audio/webm;codecs=opus", "webm", "libopus")
WEBM = Encoding("audio/webm", "webm")
MP4 = Encoding("audio/mp4", "mp4", "aac")
DEFAULT = Encoding("audio/wav", "wav")

ENCODING_PREFERENCES = (WEBM_OPUS, WEBM, MP4, DEFAULT)


def is_type_supported(encoding: Encoding) -> bool:
    if encoding.container == "wav":
        return True
    return bool(which(get_encoder_name()))


def select_encoding(candidates=ENCODING_PREFERENCES, supported=is_type_supported) -> Encoding:
    for encoding in candidates:
        if supported(encoding):
            return encoding
    raise RecorderError("No supported audio encoding available")


def extension_for(mime_type: str) -> str:
    if "webm" in mime_type:
        return "webm"
    if "mp4" in mime_type:
        return "mp4"
    if "wav" in mime_type:
        return "wav"
    return "webm"


def pcm_to_wav(pcm: bytes, sample_rate: int = config.SAMPLE_RATE,
               channels: int = config.CHANNELS) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


def encode_pcm(pcm: bytes, encoding: Encoding, sample_rate: int = config.SAMPLE_RATE,
               channels: int = config.CHANNELS) -> tuple[bytes, Encoding]:
    """Encode int16 PCM. Falls back to WAV when ffmpeg cannot produce the container."""
    if encoding.container == "wav":
        return pcm_to_wav(pcm, sample_rate, channels), encoding

    segment = AudioSegment(data=pcm, sample_width=2, frame_rate=sample_rate, channels=channels)
    out = io.BytesIO()
    try:
        segment.export(out, format=encoding.container, codec=encoding.codec, bitrate="128k")
    except Exception as e:
        logger.error("Encoding to %s failed, keeping WAV: %s", encoding.mime_type, e)
        return pcm_to_wav(pcm, sample_rate, channels), DEFAULT
    return out.getvalue(), encoding
