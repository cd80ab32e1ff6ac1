"""Provider factory helpers for translation backends.

Responsibilities:
- Resolve provider identifiers to concrete translation service implementations.
- Keep the reader session independent from concrete provider class construction.
"""

from __future__ import annotations

from .llm.rate_limiter import RateLimiter
from .llm.translator import (
    EchoTranslationService,
    OllamaTranslationService,
    OpenAITranslationService,
    TranslationService,
)

SUPPORTED_PROVIDERS = ("openai", "ollama", "echo")

DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "ollama": "http://127.0.0.1:11434",
}

DEFAULT_MODELS = {
    "openai": "gpt-4.1-mini",
    "ollama": "llama2",
    "echo": "echo",
}


class ProviderFactory:
    """Factory for provider-backed translation services."""

    @staticmethod
    def create_translation_service(
        provider_id: str,
        model: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> TranslationService:
        """Create a translation service for a configured provider identifier."""

        normalized = provider_id.strip().lower()
        resolved_model = model or DEFAULT_MODELS.get(normalized, "")
        if normalized == "openai":
            return OpenAITranslationService(
                model=resolved_model,
                api_key=api_key,
                base_url=base_url or DEFAULT_BASE_URLS["openai"],
                rate_limiter=rate_limiter,
            )
        if normalized == "ollama":
            return OllamaTranslationService(
                model=resolved_model,
                base_url=base_url or DEFAULT_BASE_URLS["ollama"],
                rate_limiter=rate_limiter,
            )
        if normalized == "echo":
            return EchoTranslationService(model=resolved_model)
        raise ValueError(
            f"Unsupported translation provider `{provider_id}`. "
            f"Expected one of: {', '.join(SUPPORTED_PROVIDERS)}."
        )
