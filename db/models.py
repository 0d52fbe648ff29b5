SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id              TEXT PRIMARY KEY,
    email           TEXT NOT NULL UNIQUE,
    name            TEXT,
    image           TEXT,
    created_at      TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at      TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS audio_transcript (
    id                   TEXT PRIMARY KEY,
    audio_filename       TEXT,
    complete_file_link   TEXT,
    added_by_email       TEXT NOT NULL,
    title                TEXT,
    description          TEXT,
    raw_transcript       TEXT,
    ai_summary           TEXT,
    metadata             TEXT NOT NULL DEFAULT '{}',
    transcription_status TEXT,
    error_message        TEXT,
    created_at           TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audio_transcript_owner ON audio_transcript (added_by_email, created_at);

CREATE TABLE IF NOT EXISTS projects (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    name            TEXT NOT NULL,
    description     TEXT,
    is_public       INTEGER NOT NULL DEFAULT 0,
    status          TEXT NOT NULL DEFAULT 'active',
    settings        TEXT NOT NULL DEFAULT '{}',
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS project_components (
    id              TEXT PRIMARY KEY,
    project_id      TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    component_type  TEXT NOT NULL,
    position_x      REAL NOT NULL,
    position_y      REAL NOT NULL,
    width           REAL NOT NULL DEFAULT 200,
    height          REAL NOT NULL DEFAULT 100,
    z_index         INTEGER NOT NULL DEFAULT 0,
    properties      TEXT NOT NULL DEFAULT '{}',
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS project_assistants (
    id                       TEXT PRIMARY KEY,
    project_id               TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    assistant_type           TEXT NOT NULL,
    prompt_content           TEXT NOT NULL,
    prompt_version           INTEGER NOT NULL DEFAULT 1,
    generated_from_audio_ids TEXT NOT NULL DEFAULT '[]',
    generation_model         TEXT NOT NULL,
    generation_timestamp     TEXT NOT NULL,
    input_tokens             INTEGER NOT NULL DEFAULT 0,
    output_tokens            INTEGER NOT NULL DEFAULT 0,
    estimated_cost           REAL NOT NULL DEFAULT 0,
    is_active                INTEGER NOT NULL DEFAULT 1,
    is_favorite              INTEGER NOT NULL DEFAULT 0,
    custom_modifications     TEXT,
    created_at               TEXT NOT NULL,
    updated_at               TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_project_assistants_project ON project_assistants (project_id, assistant_type);
"""

JSON_COLUMNS = {
    "audio_transcript": ("raw_transcript", "ai_summary", "metadata"),
    "projects": ("settings",),
    "project_components": ("properties",),
    "project_assistants": ("generated_from_audio_ids",),
}

BOOL_COLUMNS = {
    "projects": ("is_public",),
    "project_assistants": ("is_active", "is_favorite"),
}
