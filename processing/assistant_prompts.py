import json
import logging
import math
from dataclasses import dataclass

from processing.errors import LlmError
from processing.llm_client import LlmClient
from processing.prompts import ASSISTANT_PROMPT, BUILDER_PROMPT, FALLBACK_ASSISTANT_PROMPT

logger = logging.getLogger(__name__)

ESTIMATED_TOKENS_PER_CHAR = 0.25
COST_PER_1K_INPUT_TOKENS = 0.00015
COST_PER_1K_OUTPUT_TOKENS = 0.0006
MIN_PROMPT_CHARS = 100
EXPECTED_PROMPT_CHARS = 600
BASE_PROMPT_OVERHEAD_CHARS = 500
AUDIO_SEPARATOR = "\n\n---\n\n"

ASSISTANT_TYPES = {
    "manager": {
        "label": "Project Manager",
        "description": "Oversees project coordination, task delegation, and team alignment",
        "guidelines": [
            "Project planning, timeline management, and milestone tracking",
            "Team coordination and task delegation strategies",
            "Risk assessment and mitigation planning",
            "Stakeholder communication and reporting",
            "Resource allocation and budget considerations",
            "Quality assurance and delivery oversight",
        ],
    },
    "frontend": {
        "label": "Frontend Developer",
        "description": "Handles UI/UX implementation, component development, and client-side logic",
        "guidelines": [
            "UI/UX implementation and component development",
            "Frontend architecture and state management",
            "Responsive design and cross-browser compatibility",
            "Performance optimization and code splitting",
            "Integration with backend APIs and services",
            "Testing strategies for frontend components",
        ],
    },
    "backend": {
        "label": "Backend Developer",
        "description": "Manages server-side logic, APIs, and system architecture",
        "guidelines": [
            "Server-side architecture and API design",
            "Database integration and data modeling",
            "Authentication and authorization systems",
            "Performance optimization and scalability",
            "Error handling and logging strategies",
            "Security best practices and implementation",
        ],
    },
    "database": {
        "label": "Database Engineer",
        "description": "Designs schemas, optimizes queries, and manages data integrity",
        "guidelines": [
            "Database schema design and optimization",
            "Query performance and indexing strategies",
            "Data migration and versioning approaches",
            "Backup and recovery procedures",
            "Security policies and access control",
            "Monitoring and maintenance best practices",
        ],
    },
    "uiux": {
        "label": "UI/UX Designer",
        "description": "Creates user interfaces, design systems, and user experience flows",
        "guidelines": [
            "User interface design and design system creation",
            "User experience flow and interaction design",
            "Accessibility compliance and inclusive design",
            "Prototyping and wireframing approaches",
            "Design tool integration and handoff processes",
            "User research and testing methodologies",
        ],
    },
    "qa": {
        "label": "QA Engineer",
        "description": "Ensures quality through testing, validation, and bug identification",
        "guidelines": [
            "Test strategy development and implementation",
            "Automated testing frameworks and tools",
            "Bug identification, reporting, and tracking",
            "Performance and load testing approaches",
            "Security testing and vulnerability assessment",
            "Documentation and test case management",
        ],
    },
}


@dataclass
class PromptGenerationResult:
    assistant_type: str
    prompt_content: str
    input_tokens: int
    output_tokens: int
    estimated_cost: float

    @property
    def is_fallback(self) -> bool:
        return self.input_tokens == 0

    def to_dict(self) -> dict:
        return {
            "assistantType": self.assistant_type,
            "promptContent": self.prompt_content,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "estimatedCost": self.estimated_cost,
        }


def guidelines_for(assistant_type: str) -> str:
    config = ASSISTANT_TYPES.get(assistant_type)
    if not config:
        return "General software development guidance"
    return "\n".join(f"- {line}" for line in config["guidelines"])


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) * ESTIMATED_TOKENS_PER_CHAR)


def estimate_cost(input_tokens: int, output_tokens: int) -> float:
    return (input_tokens / 1000) * COST_PER_1K_INPUT_TOKENS + (output_tokens / 1000) * COST_PER_1K_OUTPUT_TOKENS


def validate_prompt_request(project_name: str | None, project_description: str | None,
                            assistant_types: list[str] | None) -> list[str]:
    errors = []
    if not project_name or not project_name.strip():
        errors.append("Project name is required")
    if not project_description or not project_description.strip():
        errors.append("Project description is required")
    if not assistant_types:
        errors.append("At least one assistant type must be selected")
    elif any(t not in ASSISTANT_TYPES for t in assistant_types):
        errors.append("Invalid assistant type provided")
    return errors


def estimate_generation_cost(project_description: str, audio_summaries: list[str],
                             assistant_types: list[str]) -> float:
    combined = AUDIO_SEPARATOR.join(audio_summaries)
    input_chars = len(project_description) + len(combined) + BASE_PROMPT_OVERHEAD_CHARS
    input_tokens = math.ceil(input_chars * ESTIMATED_TOKENS_PER_CHAR)
    output_tokens = math.ceil(EXPECTED_PROMPT_CHARS * ESTIMATED_TOKENS_PER_CHAR)
    return estimate_cost(input_tokens, output_tokens) * len(assistant_types)


def fallback_prompt(assistant_type: str, project_name: str, project_description: str) -> str:
    config = ASSISTANT_TYPES[assistant_type]
    return FALLBACK_ASSISTANT_PROMPT.format(
        label=config["label"],
        project_name=project_name,
        project_description=project_description,
        description=config["description"],
        guidelines=guidelines_for(assistant_type),
    )


class AssistantPromptGenerator:
    def __init__(self, client: LlmClient):
        self.client = client

    @property
    def model_name(self) -> str:
        return self.client.model_name

    def _estimation_input(self, assistant_type: str, project_name: str,
                          project_description: str, audio_summaries: list[str]) -> str:
        config = ASSISTANT_TYPES[assistant_type]
        return (
            f"Role: {config['label']}\n"
            f"Project: {project_name}\n"
            f"Description: {project_description}\n"
            f"Audio Content: {AUDIO_SEPARATOR.join(audio_summaries)}\n"
            f"Guidelines: {guidelines_for(assistant_type)}"
        )

    def _generate_single(self, assistant_type: str, project_name: str,
                         project_description: str, audio_summaries: list[str]) -> str:
        config = ASSISTANT_TYPES[assistant_type]
        prompt = ASSISTANT_PROMPT.format(
            label=config["label"],
            description=config["description"],
            project_name=project_name,
            project_description=project_description,
            audio_content=AUDIO_SEPARATOR.join(audio_summaries) or "No audio summaries provided.",
            guidelines=guidelines_for(assistant_type),
        )
        content = self.client.generate(prompt).strip()
        if len(content) < MIN_PROMPT_CHARS:
            raise LlmError(f"Generated prompt too short or empty for {assistant_type}")
        return content

    def generate(self, project_name: str, project_description: str,
                 assistant_types: list[str], audio_summaries: list[str] | None = None) -> list[PromptGenerationResult]:
        audio_summaries = audio_summaries or []
        logger.info("Generating prompts for %s (%d audio summaries)", assistant_types, len(audio_summaries))

        results = []
        for assistant_type in assistant_types:
            try:
                content = self._generate_single(assistant_type, project_name, project_description, audio_summaries)
            except LlmError as e:
                logger.error("Failed to generate %s prompt: %s", assistant_type, e)
                results.append(PromptGenerationResult(
                    assistant_type=assistant_type,
                    prompt_content=fallback_prompt(assistant_type, project_name, project_description),
                    input_tokens=0,
                    output_tokens=0,
                    estimated_cost=0.0,
                ))
                continue

            input_tokens = estimate_tokens(
                self._estimation_input(assistant_type, project_name, project_description, audio_summaries)
            )
            output_tokens = estimate_tokens(content)
            cost = estimate_cost(input_tokens, output_tokens)
            logger.info("Generated %s prompt (%d tokens, $%.4f)", assistant_type, output_tokens, cost)
            results.append(PromptGenerationResult(assistant_type, content, input_tokens, output_tokens, cost))

        logger.info("Prompt generation completed: %d generated, %d fallback",
                    sum(not r.is_fallback for r in results), sum(r.is_fallback for r in results))
        return results


def describe_components(components: list[dict]) -> str:
    lines = []
    for comp in components:
        position = comp.get("position") or {}
        config = json.dumps(comp["configuration"]) if comp.get("configuration") else "default"
        lines.append(
            f"- {comp.get('displayName', 'Component')} at position "
            f"({position.get('x', 0)}, {position.get('y', 0)}) with config: {config}"
        )
    return "\n".join(lines)


def generate_builder_prompt(client: LlmClient, components: list[dict]) -> str:
    """Turn the components arranged on the builder canvas into one prompt."""
    return client.generate(BUILDER_PROMPT.format(components=describe_components(components)))


def results_totals(results: list[PromptGenerationResult]) -> dict:
    return {
        "totalCost": sum(r.estimated_cost for r in results),
        "totalInputTokens": sum(r.input_tokens for r in results),
        "totalOutputTokens": sum(r.output_tokens for r in results),
    }


def assistant_type_configs() -> list[dict]:
    return [{"type": key, **{k: v for k, v in value.items() if k != "guidelines"}}
            for key, value in ASSISTANT_TYPES.items()]
