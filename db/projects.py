from db.database import Database, utc_now

DEFAULT_COMPONENT_WIDTH = 200
DEFAULT_COMPONENT_HEIGHT = 100


class ProjectRepository:
    """Projects and the components placed on their builder canvas."""

    def __init__(self, db: Database):
        self.db = db

    def list_projects(self, user_id: str | None = None) -> list[dict]:
        if user_id:
            return self.db.select("projects", "user_id = ?", (user_id,), order_by="updated_at DESC")
        return self.db.select("projects", order_by="updated_at DESC")

    def get_project(self, project_id: str) -> dict | None:
        project = self.db.get("projects", project_id)
        if project:
            project["components"] = self.list_components(project_id)
        return project

    def create_project(self, user_id: str, name: str, description: str | None = None,
                       settings: dict | None = None, is_public: bool = False) -> dict:
        now = utc_now()
        project = self.db.insert("projects", {
            "user_id": user_id,
            "name": name,
            "description": description,
            "is_public": is_public,
            "status": "active",
            "settings": settings or {},
            "created_at": now,
            "updated_at": now,
        })
        project["components"] = []
        return project

    def update_project(self, project_id: str, **fields) -> dict | None:
        if not self.db.get("projects", project_id):
            return None
        fields["updated_at"] = utc_now()
        self.db.update("projects", project_id, **fields)
        return self.get_project(project_id)

    def delete_project(self, project_id: str) -> bool:
        return self.db.delete("projects", project_id)

    def owns(self, project_id: str, user_id: str) -> bool:
        project = self.db.get("projects", project_id)
        return bool(project) and project["user_id"] == user_id

    # -- Components --

    def list_components(self, project_id: str) -> list[dict]:
        return self.db.select("project_components", "project_id = ?", (project_id,),
                              order_by="z_index ASC, created_at ASC")

    def add_component(self, project_id: str, component_type: str, x: float, y: float,
                      display_name: str | None = None, properties: dict | None = None,
                      width: float = DEFAULT_COMPONENT_WIDTH, height: float = DEFAULT_COMPONENT_HEIGHT,
                      z_index: int = 0) -> dict:
        now = utc_now()
        merged = dict(properties or {})
        merged["displayName"] = display_name or merged.get("displayName") or component_type
        merged["componentId"] = component_type
        component = self.db.insert("project_components", {
            "project_id": project_id,
            "component_type": component_type,
            "position_x": x,
            "position_y": y,
            "width": width,
            "height": height,
            "z_index": z_index,
            "properties": merged,
            "created_at": now,
            "updated_at": now,
        })
        self.db.update("projects", project_id, updated_at=now)
        return component

    def get_component(self, project_id: str, component_id: str) -> dict | None:
        rows = self.db.select("project_components", "id = ? AND project_id = ?", (component_id, project_id))
        return rows[0] if rows else None

    def update_component(self, project_id: str, component_id: str, **fields) -> dict | None:
        if not self.get_component(project_id, component_id):
            return None
        fields["updated_at"] = utc_now()
        return self.db.update("project_components", component_id, **fields)

    def remove_component(self, project_id: str, component_id: str) -> bool:
        cursor = self.db.execute(
            "DELETE FROM project_components WHERE id = ? AND project_id = ?", (component_id, project_id)
        )
        return cursor.rowcount > 0


class AssistantRepository:
    """Versioned assistant prompts per project and assistant type."""

    def __init__(self, db: Database):
        self.db = db

    def list_active(self, project_id: str) -> list[dict]:
        return self.db.select("project_assistants", "project_id = ? AND is_active = 1", (project_id,),
                              order_by="assistant_type ASC, prompt_version DESC")

    def latest_prompts(self, project_id: str) -> dict[str, str]:
        prompts = {}
        for row in self.list_active(project_id):
            prompts.setdefault(row["assistant_type"], row["prompt_content"])
        return prompts

    def _latest_version(self, project_id: str, assistant_type: str) -> dict | None:
        rows = self.db.select("project_assistants", "project_id = ? AND assistant_type = ?",
                              (project_id, assistant_type), order_by="prompt_version DESC", limit=1)
        return rows[0] if rows else None

    def create_prompt_version(self, project_id: str, assistant_type: str, prompt_content: str,
                              generated_from_audio_ids: list[str] | None = None,
                              generation_model: str = "", input_tokens: int = 0,
                              output_tokens: int = 0, estimated_cost: float = 0.0,
                              custom_modifications: str | None = None) -> dict:
        latest = self._latest_version(project_id, assistant_type)
        now = utc_now()
        return self.db.insert("project_assistants", {
            "project_id": project_id,
            "assistant_type": assistant_type,
            "prompt_content": prompt_content,
            "prompt_version": latest["prompt_version"] + 1 if latest else 1,
            "generated_from_audio_ids": list(generated_from_audio_ids or []),
            "generation_model": generation_model,
            "generation_timestamp": now,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "estimated_cost": estimated_cost,
            "is_active": True,
            "is_favorite": False,
            "custom_modifications": custom_modifications,
            "created_at": now,
            "updated_at": now,
        })

    def update_prompt_content(self, project_id: str, assistant_type: str, new_content: str,
                              custom_modifications: str | None = None) -> dict | None:
        current = self._latest_version(project_id, assistant_type)
        if current is None:
            return None
        return self.create_prompt_version(
            project_id, assistant_type, new_content,
            generated_from_audio_ids=current["generated_from_audio_ids"],
            generation_model=current["generation_model"],
            input_tokens=current["input_tokens"],
            output_tokens=current["output_tokens"],
            estimated_cost=current["estimated_cost"],
            custom_modifications=custom_modifications,
        )

    def deactivate_old_versions(self, project_id: str, assistant_type: str | None = None) -> int:
        """Keep only the newest version of each assistant type active."""
        deactivated = 0
        for row in self.list_active(project_id):
            if assistant_type and row["assistant_type"] != assistant_type:
                continue
            latest = self._latest_version(project_id, row["assistant_type"])
            if latest and row["id"] != latest["id"]:
                self.db.update("project_assistants", row["id"], is_active=False, updated_at=utc_now())
                deactivated += 1
        return deactivated

    def set_favorite(self, prompt_id: str, is_favorite: bool) -> dict | None:
        if not self.db.get("project_assistants", prompt_id):
            return None
        return self.db.update("project_assistants", prompt_id, is_favorite=is_favorite, updated_at=utc_now())

    def delete(self, prompt_id: str) -> bool:
        return self.db.delete("project_assistants", prompt_id)

    def stats(self, project_id: str) -> dict:
        row = self.db.fetchone(
            """SELECT COUNT(DISTINCT assistant_type) AS total_prompts,
                      COUNT(*) AS total_versions,
                      COALESCE(SUM(input_tokens), 0) AS total_input_tokens,
                      COALESCE(SUM(output_tokens), 0) AS total_output_tokens,
                      COALESCE(SUM(estimated_cost), 0) AS total_estimated_cost,
                      MAX(generation_timestamp) AS latest_generation
               FROM project_assistants WHERE project_id = ?""",
            (project_id,),
        )
        return {
            "totalPrompts": row["total_prompts"],
            "totalVersions": row["total_versions"],
            "totalInputTokens": row["total_input_tokens"],
            "totalOutputTokens": row["total_output_tokens"],
            "totalEstimatedCost": float(row["total_estimated_cost"]),
            "latestGeneration": row["latest_generation"],
        }


class UserRepository:
    def __init__(self, db: Database):
        self.db = db

    def get_by_email(self, email: str) -> dict | None:
        return self.db.fetchone("SELECT id, email, name, image FROM users WHERE email = ?", (email,))

    def upsert(self, email: str, name: str | None = None, image: str | None = None) -> dict:
        existing = self.get_by_email(email)
        if existing:
            self.db.update("users", existing["id"], name=name or existing["name"],
                           image=image or existing["image"], updated_at=utc_now())
        else:
            self.db.insert("users", {"email": email, "name": name, "image": image})
        return self.get_by_email(email)
