import logging
from dataclasses import dataclass, field

from processing.errors import (
    ConfigurationError,
    LlmError,
    LlmUnavailableError,
    ThrottlingError,
    TranscriptionError,
)
from processing.llm_client import LlmClient, extract_json_object
from processing.prompts import TRANSCRIPT_PROMPT
from processing.summarizer import Summarizer

logger = logging.getLogger(__name__)

DEFAULT_SPEAKER = "Speaker 1"


@dataclass(frozen=True)
class SpeakerSegment:
    speaker: str
    text: str
    timestamp: str | None = None

    def to_dict(self) -> dict:
        data = {"speaker": self.speaker, "text": self.text}
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data


@dataclass(frozen=True)
class TranscriptionResult:
    raw_transcript: str
    speaker_count: int
    speaker_segments: tuple[SpeakerSegment, ...]
    ai_summary: str = ""

    def transcript_json(self) -> dict:
        return {
            "rawTranscript": self.raw_transcript,
            "speakerCount": self.speaker_count,
            "speakerSegments": [s.to_dict() for s in self.speaker_segments],
        }

    def to_dict(self) -> dict:
        data = self.transcript_json()
        data["aiSummary"] = self.ai_summary
        return data


@dataclass(frozen=True)
class RawTranscript:
    raw_transcript: str
    speaker_count: int
    speaker_segments: tuple[SpeakerSegment, ...] = field(default_factory=tuple)


def fallback_transcript(text: str) -> RawTranscript:
    return RawTranscript(
        raw_transcript=text,
        speaker_count=1,
        speaker_segments=(SpeakerSegment(DEFAULT_SPEAKER, text, "00:00"),),
    )


def parse_transcript_response(text: str) -> RawTranscript:
    data = extract_json_object(text)
    raw = data.get("rawTranscript") if data else None
    if not isinstance(raw, str) or not raw:
        logger.error("Failed to parse transcript JSON response, using raw text")
        return fallback_transcript(text)

    segments = []
    for item in data.get("speakerSegments") or []:
        if not isinstance(item, dict) or not isinstance(item.get("text"), str):
            continue
        timestamp = item.get("timestamp")
        segments.append(SpeakerSegment(
            speaker=str(item.get("speaker") or DEFAULT_SPEAKER),
            text=item["text"],
            timestamp=str(timestamp) if timestamp is not None else None,
        ))
    if not segments:
        segments = [SpeakerSegment(DEFAULT_SPEAKER, raw, "00:00")]

    try:
        speaker_count = int(data.get("speakerCount") or 0)
    except (TypeError, ValueError):
        speaker_count = 0
    if speaker_count < 1:
        speaker_count = max(1, len({s.speaker for s in segments}))

    return RawTranscript(raw, speaker_count, tuple(segments))


def format_transcript_for_display(segments) -> str:
    lines = []
    for segment in segments:
        timestamp = f"[{segment.timestamp}] " if segment.timestamp else ""
        lines.append(f"{timestamp}{segment.speaker}: {segment.text}")
    return "\n\n".join(lines)


class Transcriber:
    """Two sequential calls: verbatim transcript with speakers, then a bullet summary."""

    def __init__(self, client: LlmClient, summarizer: Summarizer | None = None):
        self.client = client
        self.summarizer = summarizer or Summarizer(client)

    @property
    def is_configured(self) -> bool:
        return self.client.is_configured()

    def transcribe(self, audio_bytes: bytes, mime_type: str) -> TranscriptionResult:
        try:
            logger.info("Transcribing %d bytes of %s (step 1: raw transcript)...", len(audio_bytes), mime_type)
            transcript = self._raw_transcript(audio_bytes, mime_type)

            logger.info("Step 2: AI summary from raw transcript...")
            summary = self.summarizer.summarize_transcript(transcript.raw_transcript)
        except (ConfigurationError, ThrottlingError):
            raise
        except LlmUnavailableError as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e

        logger.info("Transcription completed: %d speakers, %d segments",
                    transcript.speaker_count, len(transcript.speaker_segments))
        return TranscriptionResult(
            raw_transcript=transcript.raw_transcript,
            speaker_count=transcript.speaker_count,
            speaker_segments=transcript.speaker_segments,
            ai_summary=summary,
        )

    def _raw_transcript(self, audio_bytes: bytes, mime_type: str) -> RawTranscript:
        try:
            response = self.client.generate(TRANSCRIPT_PROMPT, audio=audio_bytes, mime_type=mime_type)
        except (ConfigurationError, ThrottlingError, LlmUnavailableError):
            raise
        except LlmError as e:
            logger.error("Transcript generation failed: %s", e)
            response = ""
        return parse_transcript_response(response)
