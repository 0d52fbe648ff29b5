import logging
import sqlite3
from typing import Any

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from db.database import Database
from db.projects import AssistantRepository, ProjectRepository, UserRepository
from processing.assistant_prompts import (
    AssistantPromptGenerator,
    assistant_type_configs,
    generate_builder_prompt,
    results_totals,
    validate_prompt_request,
)
from processing.errors import LlmError
from processing.llm_client import LlmClient
from server.routes import CamelModel, raise_llm_error
from services.persistence import PersistenceGateway

logger = logging.getLogger(__name__)


class CreateProjectRequest(CamelModel):
    user_id: str
    name: str
    description: str | None = None
    settings: dict | None = None
    is_public: bool = False


class UpdateProjectRequest(CamelModel):
    name: str | None = None
    description: str | None = None
    status: str | None = None
    settings: dict | None = None
    is_public: bool | None = None


class AddComponentRequest(CamelModel):
    component_type: str
    x: float = 0
    y: float = 0
    display_name: str | None = None
    properties: dict | None = None
    width: float = 200
    height: float = 100
    z_index: int = 0


class UpdateComponentRequest(CamelModel):
    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None
    z_index: int | None = None
    properties: dict | None = None


class BuilderPromptRequest(CamelModel):
    components: Any = None


class GeneratePromptsRequest(CamelModel):
    project_name: str | None = None
    project_description: str | None = None
    assistant_types: list[str] | None = None
    selected_audio_ids: list[str] | None = None


class CreateWithPromptsRequest(GeneratePromptsRequest):
    user_email: str | None = None


class UpdatePromptRequest(CamelModel):
    prompt_content: str
    custom_modifications: str | None = None


class DeactivateRequest(CamelModel):
    assistant_type: str | None = None


class FavoriteRequest(CamelModel):
    is_favorite: bool


class UserLookupRequest(CamelModel):
    email: str | None = None


def create_project_router(db: Database, client: LlmClient, gateway: PersistenceGateway) -> APIRouter:
    router = APIRouter()
    generator = AssistantPromptGenerator(client)

    def _project_or_404(projects: ProjectRepository, project_id: str) -> dict:
        project = projects.get_project(project_id)
        if not project:
            raise HTTPException(404, "Project not found")
        return project

    def _audio_summaries(audio_ids: list[str] | None) -> list[str]:
        if not audio_ids:
            return []
        try:
            return gateway.summaries_by_ids(audio_ids)
        except sqlite3.Error as e:
            logger.error("Failed to fetch audio summaries, continuing without: %s", e)
            return []

    # -- Prompt generation (before /projects/{id} so the literal paths win) --

    @router.get("/assistant-types")
    def list_assistant_types():
        return assistant_type_configs()

    @router.post("/generate-prompt")
    def generate_prompt(body: BuilderPromptRequest):
        if not isinstance(body.components, list):
            return JSONResponse({"error": "Invalid components data"}, status_code=400)
        if not body.components:
            return JSONResponse({"error": "No components provided"}, status_code=400)
        try:
            return {"prompt": generate_builder_prompt(client, body.components)}
        except LlmError as e:
            logger.error("Error in generate-prompt: %s", e)
            raise_llm_error(e)

    @router.post("/projects/generate-prompts")
    def generate_prompts(body: GeneratePromptsRequest):
        errors = validate_prompt_request(body.project_name, body.project_description, body.assistant_types)
        if errors:
            return JSONResponse({"error": "Validation failed", "details": errors}, status_code=400)

        summaries = _audio_summaries(body.selected_audio_ids)
        results = generator.generate(body.project_name, body.project_description, body.assistant_types, summaries)
        return {"success": True, "results": [r.to_dict() for r in results], **results_totals(results)}

    @router.post("/projects/create-with-prompts")
    def create_with_prompts(body: CreateWithPromptsRequest):
        if not (body.project_name and body.project_description and body.assistant_types and body.user_email):
            return JSONResponse(
                {"error": "Missing required fields: projectName, projectDescription, assistantTypes, userEmail"},
                status_code=400,
            )
        errors = validate_prompt_request(body.project_name, body.project_description, body.assistant_types)
        if errors:
            return JSONResponse({"error": "Validation failed", "details": errors}, status_code=400)

        project = ProjectRepository(db).create_project(
            user_id=body.user_email, name=body.project_name, description=body.project_description
        )
        summaries = _audio_summaries(body.selected_audio_ids)
        results = generator.generate(body.project_name, body.project_description, body.assistant_types, summaries)

        assistants = AssistantRepository(db)
        for result in results:
            try:
                assistants.create_prompt_version(
                    project["id"], result.assistant_type, result.prompt_content,
                    generated_from_audio_ids=body.selected_audio_ids,
                    generation_model=generator.model_name,
                    input_tokens=result.input_tokens,
                    output_tokens=result.output_tokens,
                    estimated_cost=result.estimated_cost,
                )
            except sqlite3.Error as e:
                logger.error("Failed to save %s prompt: %s", result.assistant_type, e)

        return {
            "success": True,
            "projectId": project["id"],
            "prompts": [r.to_dict() for r in results],
            **results_totals(results),
        }

    # -- Projects --

    @router.get("/projects")
    def list_projects(userId: str | None = None):
        return ProjectRepository(db).list_projects(userId)

    @router.post("/projects")
    def create_project(body: CreateProjectRequest):
        if not body.name.strip():
            raise HTTPException(400, "Project name is required")
        return ProjectRepository(db).create_project(
            body.user_id, body.name.strip(), body.description, body.settings, body.is_public
        )

    @router.get("/projects/{project_id}")
    def get_project(project_id: str):
        return _project_or_404(ProjectRepository(db), project_id)

    @router.put("/projects/{project_id}")
    def update_project(project_id: str, body: UpdateProjectRequest):
        fields = body.model_dump(exclude_none=True)
        project = ProjectRepository(db).update_project(project_id, **fields)
        if not project:
            raise HTTPException(404, "Project not found")
        return project

    @router.delete("/projects/{project_id}")
    def delete_project(project_id: str):
        if not ProjectRepository(db).delete_project(project_id):
            raise HTTPException(404, "Project not found")
        return {"deleted": True}

    # -- Builder components --

    @router.get("/projects/{project_id}/components")
    def list_components(project_id: str):
        projects = ProjectRepository(db)
        _project_or_404(projects, project_id)
        return projects.list_components(project_id)

    @router.post("/projects/{project_id}/components")
    def add_component(project_id: str, body: AddComponentRequest):
        projects = ProjectRepository(db)
        _project_or_404(projects, project_id)
        return projects.add_component(
            project_id, body.component_type, body.x, body.y,
            display_name=body.display_name, properties=body.properties,
            width=body.width, height=body.height, z_index=body.z_index,
        )

    @router.put("/projects/{project_id}/components/{component_id}")
    def update_component(project_id: str, component_id: str, body: UpdateComponentRequest):
        fields = body.model_dump(exclude_none=True)
        if "x" in fields:
            fields["position_x"] = fields.pop("x")
        if "y" in fields:
            fields["position_y"] = fields.pop("y")
        component = ProjectRepository(db).update_component(project_id, component_id, **fields)
        if not component:
            raise HTTPException(404, "Component not found")
        return component

    @router.delete("/projects/{project_id}/components/{component_id}")
    def remove_component(project_id: str, component_id: str):
        if not ProjectRepository(db).remove_component(project_id, component_id):
            raise HTTPException(404, "Component not found")
        return {"deleted": True}

    # -- Assistant prompts --

    @router.get("/projects/{project_id}/assistants")
    def list_assistants(project_id: str):
        return AssistantRepository(db).list_active(project_id)

    @router.get("/projects/{project_id}/assistants/latest")
    def latest_assistants(project_id: str):
        return AssistantRepository(db).latest_prompts(project_id)

    @router.get("/projects/{project_id}/assistants/stats")
    def assistant_stats(project_id: str):
        return AssistantRepository(db).stats(project_id)

    @router.put("/projects/{project_id}/assistants/{assistant_type}")
    def update_assistant_prompt(project_id: str, assistant_type: str, body: UpdatePromptRequest):
        if not body.prompt_content.strip():
            raise HTTPException(400, "Prompt content is required")
        row = AssistantRepository(db).update_prompt_content(
            project_id, assistant_type, body.prompt_content, body.custom_modifications
        )
        if not row:
            raise HTTPException(404, "Assistant prompt not found")
        return row

    @router.post("/projects/{project_id}/assistants/deactivate-old")
    def deactivate_old_versions(project_id: str, body: DeactivateRequest = DeactivateRequest()):
        count = AssistantRepository(db).deactivate_old_versions(project_id, body.assistant_type)
        return {"deactivated": count}

    @router.put("/assistants/{prompt_id}/favorite")
    def set_favorite(prompt_id: str, body: FavoriteRequest):
        row = AssistantRepository(db).set_favorite(prompt_id, body.is_favorite)
        if not row:
            raise HTTPException(404, "Assistant prompt not found")
        return row

    @router.delete("/assistants/{prompt_id}")
    def delete_assistant_prompt(prompt_id: str):
        if not AssistantRepository(db).delete(prompt_id):
            raise HTTPException(404, "Assistant prompt not found")
        return {"deleted": True}

    # -- Users --

    @router.post("/user/lookup")
    def lookup_user(body: UserLookupRequest):
        if not body.email:
            return JSONResponse({"error": "Email is required"}, status_code=400)
        user = UserRepository(db).get_by_email(body.email)
        if not user:
            return JSONResponse({"error": "User not found"}, status_code=404)
        return user

    return router
