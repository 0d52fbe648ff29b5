from db.database import Database, utc_now

TABLE = "audio_transcript"


class RecordingRepository:
    """Rows of the audio_transcript table."""

    def __init__(self, db: Database):
        self.db = db

    def insert_recording(self, owner_email: str, audio_filename: str, title: str | None,
                         description: str | None, metadata: dict, raw_transcript: dict | None = None,
                         ai_summary: dict | None = None, transcription_status: str | None = None) -> dict:
        return self.db.insert(TABLE, {
            "audio_filename": audio_filename,
            "complete_file_link": None,
            "added_by_email": owner_email,
            "title": title,
            "description": description,
            "raw_transcript": raw_transcript,
            "ai_summary": ai_summary,
            "metadata": metadata,
            "transcription_status": transcription_status,
            "created_at": utc_now(),
        })

    def get_recording(self, recording_id: str) -> dict | None:
        return self.db.get(TABLE, recording_id)

    def update_recording(self, recording_id: str, **fields) -> dict | None:
        return self.db.update(TABLE, recording_id, **fields)

    def delete_recording(self, recording_id: str) -> bool:
        return self.db.delete(TABLE, recording_id)

    def list_for_owner(self, owner_email: str) -> list[dict]:
        return self.db.select(TABLE, "added_by_email = ?", (owner_email,), order_by="created_at DESC")

    def search(self, owner_email: str, limit: int = 50, search: str | None = None) -> list[dict]:
        where = "added_by_email = ?"
        params: tuple = (owner_email,)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            where += " AND (title LIKE ? OR description LIKE ? OR audio_filename LIKE ?)"
            params += (pattern, pattern, pattern)
        return self.db.select(TABLE, where, params, order_by="created_at DESC", limit=limit)

    def get_many(self, recording_ids: list[str]) -> list[dict]:
        if not recording_ids:
            return []
        placeholders = ", ".join("?" for _ in recording_ids)
        return self.db.select(TABLE, f"id IN ({placeholders})", tuple(recording_ids))
