import base64
import json
import logging

import requests

import config
from processing.errors import (
    ConfigurationError,
    LlmResponseError,
    LlmUnavailableError,
    ThrottlingError,
)

logger = logging.getLogger(__name__)

PROVIDERS = ("gemini", "anthropic", "ollama")

_decoder = json.JSONDecoder()


def extract_json_object(text: str) -> dict | None:
    """Return the first JSON object embedded in a model response, or None."""
    start = text.find("{")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except ValueError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None


def _raise_for_status(response: requests.Response, provider: str):
    if response.ok:
        return
    body = response.text[:500]
    if response.status_code in (401, 403) or "api key" in body.lower():
        raise ConfigurationError(f"{provider} API key is not configured or was rejected: {body}")
    if response.status_code == 429 or "quota" in body.lower():
        raise ThrottlingError(f"{provider} API quota exceeded. Please try again later or check your billing.")
    raise LlmResponseError(f"{provider} returned HTTP {response.status_code}: {body}")


class LlmClient:
    """Text and audio generation over Gemini, Anthropic or Ollama.

    Only Gemini accepts inline audio; the other providers serve the text-only calls.
    """

    def __init__(self, provider: str = "gemini", api_key: str = None, model: str = None,
                 anthropic_api_key: str = None, anthropic_model: str = None,
                 ollama_url: str = None, ollama_model: str = None,
                 base_url: str = None, timeout: float = config.LLM_TIMEOUT_SECS):
        if provider not in PROVIDERS:
            raise ConfigurationError(f"Unknown LLM provider '{provider}'")
        self.provider = provider
        self.api_key = api_key
        self.model = model or config.GEMINI_MODEL
        self.anthropic_api_key = anthropic_api_key
        self.anthropic_model = anthropic_model or config.ANTHROPIC_MODEL
        self.ollama_url = ollama_url or "http://localhost:11434"
        self.ollama_model = ollama_model or "llama3"
        self.base_url = (base_url or config.GEMINI_URL).rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()

    @property
    def model_name(self) -> str:
        if self.provider == "anthropic":
            return self.anthropic_model
        if self.provider == "ollama":
            return self.ollama_model
        return self.model

    @property
    def supports_audio(self) -> bool:
        return self.provider == "gemini"

    def is_configured(self) -> bool:
        if self.provider == "gemini":
            return bool(self.api_key)
        if self.provider == "anthropic":
            return bool(self.anthropic_api_key)
        return True

    def generate(self, prompt: str, audio: bytes | None = None,
                 mime_type: str | None = None) -> str:
        if audio is not None and not self.supports_audio:
            raise ConfigurationError(f"Provider '{self.provider}' cannot transcribe audio; use gemini")

        if self.provider == "gemini":
            return self._call_gemini(prompt, audio, mime_type)

        if self.provider == "ollama":
            try:
                return self._call_ollama(prompt)
            except LlmUnavailableError as e:
                if self.anthropic_api_key:
                    logger.warning("Ollama failed (%s), trying Anthropic...", e)
                    return self._call_anthropic(prompt)
                raise

        return self._call_anthropic(prompt)

    def _post(self, provider: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self._session.post(url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise LlmUnavailableError(f"{provider} unreachable: {e}") from e
        except requests.RequestException as e:
            if e.response is None:
                raise LlmUnavailableError(f"{provider} request failed: {e}") from e
            raise LlmResponseError(f"{provider} request failed: {e}") from e
        _raise_for_status(response, provider)
        return response

    def _call_gemini(self, prompt: str, audio: bytes | None, mime_type: str | None) -> str:
        if not self.api_key:
            raise ConfigurationError(
                "Gemini API key is not configured. Please add GEMINI_API_KEY to your environment variables."
            )

        parts = []
        if audio is not None:
            parts.append({
                "inline_data": {
                    "mime_type": (mime_type or "audio/webm").split(";")[0],
                    "data": base64.b64encode(audio).decode("ascii"),
                }
            })
        parts.append({"text": prompt})

        response = self._post(
            "Gemini",
            f"{self.base_url}/models/{self.model}:generateContent",
            params={"key": self.api_key},
            json={"contents": [{"role": "user", "parts": parts}]},
        )

        try:
            candidate = response.json()["candidates"][0]
            texts = [p.get("text", "") for p in candidate["content"]["parts"]]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LlmResponseError(f"Gemini response had no content: {e}") from e
        return "".join(texts)

    def _call_anthropic(self, prompt: str) -> str:
        import anthropic

        if not self.anthropic_api_key:
            raise ConfigurationError(
                "Anthropic API key is not configured. Please add ANTHROPIC_API_KEY to your environment variables."
            )

        client = anthropic.Anthropic(api_key=self.anthropic_api_key, timeout=self.timeout)
        try:
            message = client.messages.create(
                model=self.anthropic_model,
                max_tokens=4096,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AuthenticationError as e:
            raise ConfigurationError(f"Anthropic API key was rejected: {e}") from e
        except anthropic.RateLimitError as e:
            raise ThrottlingError(f"Anthropic API quota exceeded: {e}") from e
        except anthropic.APIConnectionError as e:
            raise LlmUnavailableError(f"Anthropic unreachable: {e}") from e
        except anthropic.APIStatusError as e:
            raise LlmResponseError(f"Anthropic returned HTTP {e.status_code}: {e}") from e
        return "".join(block.text for block in message.content if block.type == "text")

    def _call_ollama(self, prompt: str) -> str:
        response = self._post(
            "Ollama",
            f"{self.ollama_url}/api/generate",
            json={
                "model": self.ollama_model,
                "prompt": prompt,
                "stream": False,
            },
        )
        try:
            return response.json()["response"]
        except (ValueError, KeyError) as e:
            raise LlmResponseError(f"Ollama response had no content: {e}") from e


def create_client() -> LlmClient:
    return LlmClient(
        provider=config.LLM_PROVIDER,
        api_key=config.GEMINI_API_KEY,
        model=config.GEMINI_MODEL,
        anthropic_api_key=config.ANTHROPIC_API_KEY,
        anthropic_model=config.ANTHROPIC_MODEL,
        ollama_url=config.OLLAMA_URL,
        ollama_model=config.OLLAMA_MODEL,
    )
