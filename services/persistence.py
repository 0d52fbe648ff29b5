import logging
import sqlite3
import threading
import time
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

import config
from db.recordings import RecordingRepository
from db.storage import BlobStorage, StorageError
from processing.errors import LlmError, TranscriptionError
from processing.transcriber import Transcriber, TranscriptionResult
from recorder.encoding import extension_for

logger = logging.getLogger(__name__)

NO_TRANSCRIPT = "No transcript available."
UNTITLED = "Untitled Recording"


class PersistenceError(Exception):
    pass


class RecordingNotFoundError(PersistenceError):
    pass


class _RecordingMetadataBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    duration: float = Field(ge=0)
    mime_type: str
    file_size: int = Field(ge=0)
    upload_timestamp: int
    storage_path: str | None = None
    recording_name: str | None = None
    browser_info: str | None = None


class FullRecordingMetadata(_RecordingMetadataBase):
    recording_mode: Literal["full"]
    desktop_audio_included: bool = True
    mic_gain: float = config.MIC_GAIN
    desktop_gain: float = config.DESKTOP_GAIN


class MicOnlyRecordingMetadata(_RecordingMetadataBase):
    recording_mode: Literal["mic-only"]


class UploadMetadata(_RecordingMetadataBase):
    recording_mode: Literal["upload"]
    original_filename: str | None = None


RecordingMetadata = Annotated[
    Union[FullRecordingMetadata, MicOnlyRecordingMetadata, UploadMetadata],
    Field(discriminator="recording_mode"),
]
_metadata_adapter = TypeAdapter(RecordingMetadata)


def build_metadata(metadata: dict | None, duration: float, mime_type: str,
                   file_size: int, upload_timestamp: int):
    """Validate caller metadata and add the fields the gateway owns.

    Raises pydantic.ValidationError (a ValueError) on unknown keys or a bad mode.
    """
    data = {"recording_mode": "upload", **(metadata or {})}
    data.update(
        duration=duration,
        mime_type=mime_type,
        file_size=file_size,
        upload_timestamp=upload_timestamp,
    )
    return _metadata_adapter.validate_python(data)


def storage_path_for(owner_email: str, timestamp_ms: int, mime_type: str) -> tuple[str, str]:
    """Object path inside the recordings bucket: <owner>/<millis>_recording_<millis>.<ext>."""
    if owner_email.strip(".") == "" or any(sep in owner_email for sep in ("/", "\\", "\0")):
        raise ValueError(f"Invalid owner email for a storage path: {owner_email!r}")
    filename = f"recording_{timestamp_ms}.{extension_for(mime_type)}"
    return filename, f"{owner_email}/{timestamp_ms}_{filename}"


def transcript_text(row: dict) -> str | None:
    raw = row.get("raw_transcript")
    return raw.get("rawTranscript") if isinstance(raw, dict) else None


def summary_text(row: dict) -> str | None:
    summary = row.get("ai_summary")
    return summary.get("aiSummary") if isinstance(summary, dict) else None


class PersistenceGateway:
    """Stores recordings as a blob plus an audio_transcript row, keeping the two consistent."""

    def __init__(self, recordings: RecordingRepository, storage: BlobStorage,
                 transcriber: Transcriber | None = None, clock=time.time):
        self.recordings = recordings
        self.storage = storage
        self.transcriber = transcriber
        self._clock = clock

    def _transcribe(self, audio_bytes: bytes, mime_type: str) -> TranscriptionResult | None:
        if self.transcriber is None or not self.transcriber.is_configured:
            logger.warning("Transcription not configured, saving recording without transcript")
            return None
        try:
            return self.transcriber.transcribe(audio_bytes, mime_type)
        except (LlmError, TranscriptionError) as e:
            logger.error("Transcription failed, saving recording without transcript: %s", e)
            return None

    def persist(self, audio_bytes: bytes, owner_email: str, duration: float, mime_type: str,
                title: str | None = None, description: str | None = None,
                metadata: dict | None = None) -> dict:
        timestamp = int(self._clock() * 1000)
        meta = build_metadata(metadata, duration, mime_type, len(audio_bytes), timestamp)
        filename, path = storage_path_for(owner_email, timestamp, mime_type)

        result = self._transcribe(audio_bytes, mime_type)
        row = self.recordings.insert_recording(
            owner_email=owner_email,
            audio_filename=filename,
            title=title,
            description=description,
            metadata=meta.model_dump(),
            raw_transcript=result.transcript_json() if result else None,
            ai_summary={"aiSummary": result.ai_summary} if result else None,
            transcription_status="completed" if result else None,
        )
        logger.info("Recording row %s created for %s", row["id"], owner_email)

        try:
            self.storage.upload(path, audio_bytes, content_type=mime_type)
        except Exception as e:
            logger.error("Upload failed for %s, removing row %s: %s", path, row["id"], e)
            self.recordings.delete_recording(row["id"])
            raise PersistenceError(f"Failed to upload audio file: {e}") from e

        public_url = self.storage.get_public_url(path)
        stored_meta = dict(row["metadata"], storage_path=path)
        try:
            row = self.recordings.update_recording(
                row["id"], complete_file_link=public_url, metadata=stored_meta
            )
        except sqlite3.Error as e:
            # Blob and row both exist; the link can be recovered from the path.
            logger.error("Failed to record storage URL for %s: %s", row["id"], e)
        return row

    def delete(self, recording_id: str):
        row = self.recordings.get_recording(recording_id)
        if row is None:
            raise RecordingNotFoundError(f"Recording {recording_id} not found")

        self.recordings.delete_recording(recording_id)
        logger.info("Recording row %s deleted", recording_id)

        path = (row.get("metadata") or {}).get("storage_path")
        if not path:
            return
        try:
            self.storage.remove([path])
        except (StorageError, OSError) as e:
            logger.error("Error deleting %s from storage: %s", path, e)

    def get_audio_url(self, row: dict) -> str:
        if row.get("complete_file_link"):
            return row["complete_file_link"]
        path = (row.get("metadata") or {}).get("storage_path")
        if path:
            try:
                return self.storage.create_signed_url(path, config.SIGNED_URL_TTL_SECS)
            except StorageError as e:
                logger.error("Could not sign URL for %s: %s", path, e)
        raise PersistenceError("Failed to get audio file URL")

    def list_for_owner(self, owner_email: str) -> list[dict]:
        return self.recordings.list_for_owner(owner_email)

    def search_transcripts(self, owner_email: str, limit: int = 50, search: str | None = None) -> list[dict]:
        return [
            {
                "id": row["id"],
                "title": row["title"],
                "description": row["description"],
                "audio_filename": row["audio_filename"],
                "duration": (row.get("metadata") or {}).get("duration", 0),
                "created_at": row["created_at"],
                "ai_summary": summary_text(row),
                "raw_transcript": transcript_text(row),
            }
            for row in self.recordings.search(owner_email, limit, search)
        ]

    def summaries_by_ids(self, recording_ids: list[str]) -> list[str]:
        summaries = []
        for row in self.recordings.get_many(recording_ids):
            title = row.get("title") or UNTITLED
            body = summary_text(row) or transcript_text(row) or NO_TRANSCRIPT
            summaries.append(f"**{title}**\n\n{body}")
        return summaries

    # -- Re-transcription of stored recordings --

    def attach_transcription(self, recording_id: str) -> dict:
        """Re-run the pipeline on the stored blob and attach the result to the row."""
        row = self.recordings.get_recording(recording_id)
        if row is None:
            raise RecordingNotFoundError(f"Recording {recording_id} not found")
        path = (row.get("metadata") or {}).get("storage_path")
        if not path:
            raise PersistenceError("Recording has no stored audio")
        if self.transcriber is None:
            raise PersistenceError("Transcription is not configured")

        self.recordings.update_recording(recording_id, transcription_status="transcribing", error_message=None)
        try:
            audio_bytes = self.storage.read(path)
            mime_type = row["metadata"].get("mime_type", "audio/webm")
            result = self.transcriber.transcribe(audio_bytes, mime_type)
        except (StorageError, LlmError, TranscriptionError) as e:
            logger.error("Error transcribing %s: %s", recording_id, e)
            self.recordings.update_recording(recording_id, transcription_status="error", error_message=str(e))
            raise

        return self.recordings.update_recording(
            recording_id,
            raw_transcript=result.transcript_json(),
            ai_summary={"aiSummary": result.ai_summary},
            transcription_status="completed",
        )

    def attach_transcription_async(self, recording_id: str) -> threading.Thread:
        self.recordings.update_recording(recording_id, transcription_status="pending")

        def _do_transcribe():
            try:
                self.attach_transcription(recording_id)
            except (PersistenceError, StorageError, LlmError, TranscriptionError) as e:
                logger.error("Background transcription of %s failed: %s", recording_id, e)

        thread = threading.Thread(target=_do_transcribe, daemon=True)
        thread.start()
        return thread
