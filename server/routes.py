import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from db.projects import UserRepository
from db.storage import BlobStorage, StorageError
from processing.errors import ConfigurationError, LlmError, ThrottlingError, TranscriptionError
from processing.summarizer import Summarizer, text_statistics
from recorder.errors import CaptureError, DeviceNotFoundError, PermissionDeniedError, RecordingStateError
from recorder.session import RecordingSession
from services.persistence import PersistenceError, PersistenceGateway, RecordingNotFoundError

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_LIMIT = 100


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartRecordingRequest(CamelModel):
    mode: str | None = None


class SaveRecordingRequest(CamelModel):
    user_email: str
    title: str | None = None
    description: str | None = None


class SummaryRequest(CamelModel):
    text: str = ""
    summary_length: str = "medium"


def raise_llm_error(e: Exception):
    """Translate generative-AI failures into HTTP errors."""
    if isinstance(e, ThrottlingError):
        raise HTTPException(429, f"AI service is busy, try again later: {e}") from e
    if isinstance(e, ConfigurationError):
        raise HTTPException(500, f"AI service is not configured: {e}") from e
    raise HTTPException(500, str(e)) from e


def create_router(session: RecordingSession, gateway: PersistenceGateway, summarizer: Summarizer,
                  storage: BlobStorage, users: UserRepository) -> APIRouter:
    router = APIRouter()

    def _recording_or_404(recording_id: str) -> dict:
        row = gateway.recordings.get_recording(recording_id)
        if not row:
            raise HTTPException(404, "Recording not found")
        return row

    # -- Status --

    @router.get("/status")
    def get_status():
        return {
            "is_recording": session.is_recording(),
            "current_recording_id": session.current_recording_id,
            "elapsed": round(session.elapsed(), 1),
            "level": session.level(),
            "pending_local_recordings": len(session.local_recordings()),
            "transcription_configured": bool(gateway.transcriber and gateway.transcriber.is_configured),
        }

    @router.get("/capabilities")
    def get_capabilities(request: Request, refresh: bool = False):
        caps = session.capabilities(request.headers.get("user-agent"), refresh=refresh)
        return caps.to_dict()

    # -- Recording control --

    @router.post("/recording/start")
    def start_recording(request: Request, body: StartRecordingRequest = StartRecordingRequest()):
        try:
            handle = session.start(body.mode, user_agent=request.headers.get("user-agent"))
        except ValueError:
            raise HTTPException(400, f"Unknown recording mode '{body.mode}'")
        except RecordingStateError as e:
            raise HTTPException(400, str(e))
        except PermissionDeniedError as e:
            raise HTTPException(403, f"Microphone access denied: {e}")
        except DeviceNotFoundError as e:
            raise HTTPException(404, str(e))
        except CaptureError as e:
            raise HTTPException(500, str(e))

        return {"id": handle.id, "mode": handle.recording_mode, "warnings": session.last_warnings}

    @router.post("/recording/stop")
    def stop_recording():
        try:
            recording = session.stop()
        except RecordingStateError as e:
            raise HTTPException(400, str(e))
        except CaptureError as e:
            raise HTTPException(500, str(e))
        return {**recording.summary(), "warnings": session.last_warnings}

    # -- Local previews --

    @router.get("/recordings/local")
    def list_local_recordings():
        return [r.summary() for r in session.local_recordings()]

    @router.get("/recordings/local/{recording_id}/audio")
    def get_local_audio(recording_id: str):
        recording = session.get_local(recording_id)
        if not recording:
            raise HTTPException(404, "Local recording not found")
        return Response(content=recording.audio_bytes, media_type=recording.mime_type)

    @router.delete("/recordings/local/{recording_id}")
    def discard_local_recording(recording_id: str):
        if not session.discard(recording_id):
            raise HTTPException(404, "Local recording not found")
        return {"discarded": True}

    @router.post("/recordings/local/{recording_id}/save")
    def save_local_recording(recording_id: str, body: SaveRecordingRequest, request: Request):
        recording = session.get_local(recording_id)
        if not recording:
            raise HTTPException(404, "Local recording not found")
        if not body.user_email.strip():
            raise HTTPException(400, "User email is required")

        metadata = {
            "recording_mode": recording.recording_mode,
            "recording_name": recording.display_name,
            "browser_info": request.headers.get("user-agent"),
        }
        try:
            row = gateway.persist(
                recording.audio_bytes,
                owner_email=body.user_email,
                duration=recording.duration_seconds,
                mime_type=recording.mime_type,
                title=body.title or recording.display_name,
                description=body.description,
                metadata=metadata,
            )
        except ValueError as e:
            raise HTTPException(400, f"Invalid recording metadata: {e}")
        except PersistenceError as e:
            # The preview stays available so the user can retry or download it.
            raise HTTPException(500, f"Failed to save recording: {e}")

        users.upsert(body.user_email)
        session.discard(recording_id)
        return row

    # -- Persisted recordings --

    @router.get("/recordings")
    def list_recordings(userEmail: str):
        return gateway.list_for_owner(userEmail)

    @router.get("/recordings/{recording_id}")
    def get_recording(recording_id: str):
        return _recording_or_404(recording_id)

    @router.get("/recordings/{recording_id}/url")
    def get_recording_url(recording_id: str):
        row = _recording_or_404(recording_id)
        try:
            return {"url": gateway.get_audio_url(row)}
        except PersistenceError as e:
            raise HTTPException(500, str(e))

    @router.delete("/recordings/{recording_id}")
    def delete_recording(recording_id: str):
        try:
            gateway.delete(recording_id)
        except RecordingNotFoundError:
            raise HTTPException(404, "Recording not found")
        return {"deleted": True}

    @router.post("/recordings/{recording_id}/transcribe")
    def transcribe_recording(recording_id: str):
        row = _recording_or_404(recording_id)
        if not (row.get("metadata") or {}).get("storage_path"):
            raise HTTPException(400, "No audio file stored for this recording")
        if row["transcription_status"] in ("pending", "transcribing"):
            raise HTTPException(400, f"Recording is already '{row['transcription_status']}'")
        if not gateway.transcriber or not gateway.transcriber.is_configured:
            raise HTTPException(500, "Transcription is not configured")

        gateway.attach_transcription_async(recording_id)
        return {"status": "pending"}

    @router.get("/audio-transcripts")
    def list_audio_transcripts(userEmail: str | None = None, limit: int = 50, search: str | None = None):
        if not userEmail:
            return JSONResponse({"error": "User email is required"}, status_code=400)
        if limit < 1 or limit > MAX_TRANSCRIPT_LIMIT:
            return JSONResponse({"error": "Limit must be between 1 and 100"}, status_code=400)

        transcripts = gateway.search_transcripts(userEmail, limit, search)
        return {
            "success": True,
            "transcripts": transcripts,
            "count": len(transcripts),
            "searchTerm": search,
            "limit": limit,
        }

    # -- Text summaries --

    @router.post("/summaries")
    def summarize_text(body: SummaryRequest):
        try:
            summary = summarizer.summarize_text(body.text, body.summary_length)
        except ValueError as e:
            raise HTTPException(400, str(e))
        except (LlmError, TranscriptionError) as e:
            logger.error("Error generating summary: %s", e)
            raise_llm_error(e)
        return {**summary.to_dict(), "statistics": text_statistics(body.text)}

    # -- Stored blobs --

    @router.get("/storage/{path:path}")
    def get_stored_file(path: str, expires: int | None = None, token: str | None = None):
        if token is not None and (expires is None or not storage.verify_signature(path, expires, token)):
            raise HTTPException(403, "Invalid or expired signature")
        try:
            file_path = storage.file_path(path)
        except StorageError:
            raise HTTPException(400, "Invalid storage path")
        if not file_path.is_file():
            raise HTTPException(404, "File not found")
        return FileResponse(str(file_path))

    return router
