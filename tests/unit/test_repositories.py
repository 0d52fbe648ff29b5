"""
Tests for the SQLite repositories and blob storage.
"""

import time

import pytest

from db.projects import AssistantRepository, ProjectRepository, UserRepository
from db.storage import StorageError


class TestRecordingRepository:
    def test_insert_starts_without_link(self, recordings):
        row = recordings.insert_recording("a@x.com", "rec.webm", "Standup", None, {"duration": 3})

        assert row["id"]
        assert row["complete_file_link"] is None
        assert row["metadata"] == {"duration": 3}
        assert row["raw_transcript"] is None

    def test_json_columns_round_trip(self, recordings):
        row = recordings.insert_recording(
            "a@x.com", "rec.webm", "t", "d", {}, raw_transcript={"rawTranscript": "hi"},
            ai_summary={"aiSummary": "- hi"},
        )
        fetched = recordings.get_recording(row["id"])
        assert fetched["raw_transcript"] == {"rawTranscript": "hi"}
        assert fetched["ai_summary"] == {"aiSummary": "- hi"}

    def test_search_by_owner_and_term(self, recordings):
        recordings.insert_recording("a@x.com", "rec1.webm", "Design review", None, {})
        recordings.insert_recording("a@x.com", "rec2.webm", "Standup", "daily SYNC", {})
        recordings.insert_recording("b@x.com", "rec3.webm", "Design", None, {})

        assert len(recordings.search("a@x.com")) == 2
        assert [r["title"] for r in recordings.search("a@x.com", search="design")] == ["Design review"]
        assert [r["title"] for r in recordings.search("a@x.com", search="sync")] == ["Standup"]
        assert len(recordings.search("a@x.com", limit=1)) == 1

    def test_delete(self, recordings):
        row = recordings.insert_recording("a@x.com", "r.webm", None, None, {})
        assert recordings.delete_recording(row["id"])
        assert recordings.get_recording(row["id"]) is None
        assert not recordings.delete_recording(row["id"])

    def test_get_many(self, recordings):
        ids = [recordings.insert_recording("a@x.com", f"{i}.webm", str(i), None, {})["id"] for i in range(3)]
        assert {r["id"] for r in recordings.get_many(ids[:2])} == set(ids[:2])
        assert recordings.get_many([]) == []


class TestProjectRepository:
    def test_crud(self, db):
        projects = ProjectRepository(db)
        project = projects.create_project("u1", "Shop", "Online shop", settings={"theme": "dark"})

        assert project["status"] == "active"
        assert project["is_public"] is False
        assert project["settings"] == {"theme": "dark"}
        assert project["components"] == []

        updated = projects.update_project(project["id"], name="Shop v2", is_public=True)
        assert updated["name"] == "Shop v2"
        assert updated["is_public"] is True
        assert updated["updated_at"] >= project["updated_at"]

        assert projects.delete_project(project["id"])
        assert projects.get_project(project["id"]) is None
        assert projects.update_project(project["id"], name="x") is None

    def test_list_newest_update_first(self, db):
        projects = ProjectRepository(db)
        first = projects.create_project("u1", "First")
        time.sleep(0.01)
        projects.create_project("u1", "Second")
        projects.create_project("u2", "Other")
        time.sleep(0.01)
        projects.update_project(first["id"], description="touched")

        assert [p["name"] for p in projects.list_projects("u1")] == ["First", "Second"]
        assert projects.owns(first["id"], "u1")
        assert not projects.owns(first["id"], "u2")

    def test_components(self, db):
        projects = ProjectRepository(db)
        project = projects.create_project("u1", "Builder")

        comp = projects.add_component(project["id"], "role", 10, 20, properties={"role": "tutor"})
        assert comp["width"] == 200
        assert comp["height"] == 100
        assert comp["properties"] == {"role": "tutor", "displayName": "role", "componentId": "role"}

        moved = projects.update_component(project["id"], comp["id"], position_x=50, z_index=2)
        assert moved["position_x"] == 50
        assert moved["z_index"] == 2

        assert len(projects.get_project(project["id"])["components"]) == 1
        assert projects.remove_component(project["id"], comp["id"])
        assert projects.list_components(project["id"]) == []

    def test_components_are_scoped_to_their_project(self, db):
        projects = ProjectRepository(db)
        owner = projects.create_project("u1", "Builder")
        other = projects.create_project("u1", "Other")
        comp = projects.add_component(owner["id"], "role", 1, 1)

        assert projects.update_component(other["id"], comp["id"], position_x=999) is None
        assert not projects.remove_component(other["id"], comp["id"])
        assert projects.get_component(owner["id"], comp["id"])["position_x"] == 1

    def test_deleting_project_removes_components(self, db):
        projects = ProjectRepository(db)
        project = projects.create_project("u1", "Builder")
        projects.add_component(project["id"], "tone", 0, 0, display_name="Tone")

        projects.delete_project(project["id"])
        assert projects.list_components(project["id"]) == []


class TestAssistantRepository:
    @pytest.fixture
    def project_id(self, db):
        return ProjectRepository(db).create_project("u1", "Shop")["id"]

    def test_versions_increment(self, db, project_id):
        assistants = AssistantRepository(db)
        v1 = assistants.create_prompt_version(project_id, "qa", "prompt one", ["rec-1"], "gemini", 10, 20, 0.01)
        v2 = assistants.create_prompt_version(project_id, "qa", "prompt two")
        other = assistants.create_prompt_version(project_id, "backend", "backend prompt")

        assert (v1["prompt_version"], v2["prompt_version"], other["prompt_version"]) == (1, 2, 1)
        assert v1["generated_from_audio_ids"] == ["rec-1"]
        assert assistants.latest_prompts(project_id) == {"qa": "prompt two", "backend": "backend prompt"}

    def test_update_content_creates_version(self, db, project_id):
        assistants = AssistantRepository(db)
        assistants.create_prompt_version(project_id, "uiux", "original", ["rec-9"], "gemini", 5, 6, 0.5)

        row = assistants.update_prompt_content(project_id, "uiux", "edited", "tightened tone")
        assert row["prompt_version"] == 2
        assert row["custom_modifications"] == "tightened tone"
        assert row["generated_from_audio_ids"] == ["rec-9"]
        assert assistants.update_prompt_content(project_id, "qa", "none") is None

    def test_deactivate_old_versions(self, db, project_id):
        assistants = AssistantRepository(db)
        for content in ("a", "b", "c"):
            assistants.create_prompt_version(project_id, "qa", content)

        assert assistants.deactivate_old_versions(project_id) == 2
        active = assistants.list_active(project_id)
        assert [r["prompt_content"] for r in active] == ["c"]

    def test_stats(self, db, project_id):
        assistants = AssistantRepository(db)
        assistants.create_prompt_version(project_id, "qa", "a", input_tokens=10, output_tokens=5, estimated_cost=0.1)
        assistants.create_prompt_version(project_id, "qa", "b", input_tokens=1, output_tokens=1, estimated_cost=0.2)
        assistants.create_prompt_version(project_id, "backend", "c")

        stats = assistants.stats(project_id)
        assert stats["totalPrompts"] == 2
        assert stats["totalVersions"] == 3
        assert stats["totalInputTokens"] == 11
        assert stats["totalEstimatedCost"] == pytest.approx(0.3)
        assert stats["latestGeneration"] is not None

    def test_favorite_and_delete(self, db, project_id):
        assistants = AssistantRepository(db)
        row = assistants.create_prompt_version(project_id, "qa", "a")

        assert assistants.set_favorite(row["id"], True)["is_favorite"] is True
        assert assistants.delete(row["id"])
        assert assistants.set_favorite(row["id"], False) is None


class TestUserRepository:
    def test_upsert_and_lookup(self, db):
        users = UserRepository(db)
        assert users.get_by_email("a@x.com") is None

        created = users.upsert("a@x.com", name="Ada")
        again = users.upsert("a@x.com", image="http://img")
        assert again["id"] == created["id"]
        assert again["name"] == "Ada"
        assert again["image"] == "http://img"


class TestBlobStorage:
    def test_upload_and_read(self, storage):
        storage.upload("a/b.webm", b"data", "audio/webm")
        assert storage.read("a/b.webm") == b"data"
        assert storage.get_public_url("a/b@x.webm") == "http://testserver/api/storage/a/b%40x.webm"

    def test_no_overwrite_without_upsert(self, storage):
        storage.upload("a.wav", b"1")
        with pytest.raises(StorageError):
            storage.upload("a.wav", b"2")
        storage.upload("a.wav", b"2", upsert=True)
        assert storage.read("a.wav") == b"2"

    def test_path_traversal_rejected(self, storage):
        with pytest.raises(StorageError):
            storage.upload("../escape.wav", b"x")

    def test_remove_missing_raises(self, storage):
        with pytest.raises(StorageError):
            storage.remove(["nope.wav"])

    def test_signed_url(self, storage):
        storage.upload("s.wav", b"x")
        url = storage.create_signed_url("s.wav", 3600)
        query = dict(part.split("=") for part in url.split("?")[1].split("&"))

        assert storage.verify_signature("s.wav", int(query["expires"]), query["token"])
        assert not storage.verify_signature("other.wav", int(query["expires"]), query["token"])
        assert not storage.verify_signature("s.wav", int(time.time()) - 1, query["token"])

    def test_signed_url_requires_object(self, storage):
        with pytest.raises(StorageError):
            storage.create_signed_url("missing.wav", 60)
