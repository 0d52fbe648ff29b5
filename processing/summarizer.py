import logging
import math
import re
from dataclasses import dataclass

from processing.errors import ConfigurationError, LlmError, LlmUnavailableError, ThrottlingError
from processing.llm_client import LlmClient, extract_json_object
from processing.prompts import (
    CONSOLIDATION_PROMPT,
    LENGTH_INSTRUCTIONS,
    SUMMARY_SECTIONS_GUIDE,
    TEXT_SUMMARY_PROMPT,
    TRANSCRIPT_SUMMARY_PROMPT,
)

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 100_000
WORDS_PER_MINUTE = 200
SUMMARY_UNAVAILABLE = "Unable to generate AI summary. Error parsing response."


@dataclass(frozen=True)
class TextSummary:
    original_text: str
    ai_summary: str
    word_count: int
    summary_length: str

    def to_dict(self) -> dict:
        return {
            "originalText": self.original_text,
            "aiSummary": self.ai_summary,
            "wordCount": self.word_count,
            "summaryLength": self.summary_length,
        }


def word_count(text: str) -> int:
    return len(text.split())


def text_statistics(text: str) -> dict:
    trimmed = text.strip()
    words = word_count(trimmed)
    return {
        "wordCount": words,
        "charCount": len(trimmed),
        "charCountNoSpaces": len(re.sub(r"\s", "", trimmed)),
        "paragraphCount": len(re.split(r"\n\s*\n", trimmed)) if trimmed else 0,
        "readingTime": math.ceil(words / WORDS_PER_MINUTE),
    }


class Summarizer:
    def __init__(self, client: LlmClient):
        self.client = client

    def summarize_transcript(self, transcript: str) -> str:
        """Bullet summary of a raw transcript. Unusable responses degrade to a fixed message."""
        prompt = TRANSCRIPT_SUMMARY_PROMPT.format(transcript=transcript, guide=SUMMARY_SECTIONS_GUIDE)
        try:
            response = self.client.generate(prompt)
        except (ConfigurationError, ThrottlingError, LlmUnavailableError):
            raise
        except LlmError as e:
            logger.error("Summary generation failed: %s", e)
            return SUMMARY_UNAVAILABLE

        data = extract_json_object(response)
        if not data or not isinstance(data.get("aiSummary"), str) or not data["aiSummary"].strip():
            logger.error("Failed to parse summary JSON response")
            return SUMMARY_UNAVAILABLE
        return data["aiSummary"]

    def summarize_text(self, text: str, summary_length: str = "medium") -> TextSummary:
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")
        if summary_length not in LENGTH_INSTRUCTIONS:
            raise ValueError(f"Invalid summary length '{summary_length}'")

        if len(text) > MAX_TRANSCRIPT_CHARS:
            summary = self._summarize_long(text, summary_length)
        else:
            summary = self._summarize_chunk(text, summary_length)

        return TextSummary(
            original_text=text,
            ai_summary=summary,
            word_count=word_count(text),
            summary_length=summary_length,
        )

    def _summarize_chunk(self, text: str, summary_length: str) -> str:
        prompt = TEXT_SUMMARY_PROMPT.format(
            text=text,
            length_instruction=LENGTH_INSTRUCTIONS[summary_length],
            guide=SUMMARY_SECTIONS_GUIDE,
        )
        response = self.client.generate(prompt)

        data = extract_json_object(response)
        if data and isinstance(data.get("aiSummary"), str):
            return data["aiSummary"] or "Unable to generate AI summary."

        logger.warning("Failed to parse summary JSON response, using raw text")
        return f"**AI Summary:**\n\n{response}"

    def _summarize_long(self, text: str, summary_length: str) -> str:
        # Split into chunks and summarize each, then consolidate
        chunks = [text[i : i + MAX_TRANSCRIPT_CHARS] for i in range(0, len(text), MAX_TRANSCRIPT_CHARS)]

        partial_summaries = []
        for idx, chunk in enumerate(chunks):
            logger.info("Summarizing part %d/%d...", idx + 1, len(chunks))
            partial_summaries.append(self._summarize_chunk(chunk, summary_length))

        if len(partial_summaries) == 1:
            return partial_summaries[0]

        combined = "\n\n---\n\n".join(partial_summaries)
        return self._summarize_chunk(CONSOLIDATION_PROMPT.format(summaries=combined), summary_length)
