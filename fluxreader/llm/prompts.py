"""Prompt template library for translation backends.

Responsibilities:
- Centralize prompt construction for segment translation and rich analysis.
- Keep prompts deterministic for a given text, context, and language pair.
"""

from __future__ import annotations


class PromptLibrary:
    """Build prompt strings for supported translation tasks."""

    def translation_system_prompt(self) -> str:
        """Return deterministic system prompt for strict translation behavior."""

        return (
            "You are a precise translation assistant for language learners. "
            "Return only translated text with no commentary."
        )

    def analysis_system_prompt(self) -> str:
        """Return deterministic system prompt for structured analysis behavior."""

        return (
            "You are a linguistics tutor. Answer with a single JSON object and nothing else."
        )

    def translate_prompt(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> str:
        """Return translation prompt text for one selected segment."""

        source_clause = f" from {source_language}" if source_language else ""
        lines = [
            f"Translate the following text{source_clause} into {target_language}.",
            "Translate only the text itself; the context is there to disambiguate meaning.",
            "Output only the translation.",
        ]
        if context:
            lines.append(f"\nContext: {context}")
        lines.append(f"\nText: {text}")
        return "\n".join(lines)

    def rich_detail_prompt(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> str:
        """Return a prompt asking for a structured grammar and usage breakdown."""

        source_clause = f" ({source_language})" if source_language else ""
        lines = [
            f"Analyze the text{source_clause} below for a learner whose target language is "
            f"{target_language}.",
            "Respond with JSON using exactly these keys:",
            '{"type": "word" or "sentence", "translation": string, "segment": string,',
            ' "grammar": {"partOfSpeech": string, "tense": string, "gender": string,',
            '   "number": string, "infinitive": string, "explanation": string},',
            ' "examples": [{"sentence": string, "translation": string}],',
            ' "alternatives": [string]}',
            "Omit grammar fields that do not apply. Give two or three examples.",
        ]
        if context:
            lines.append(f"\nContext: {context}")
        lines.append(f"\nText: {text}")
        return "\n".join(lines)
