"""Translation service interfaces and provider integrations.

Responsibilities:
- Define protocols for translation and free-form text generation backends.
- Provide OpenAI-backed and Ollama-backed services sharing prompt and parse logic.
- Provide an offline echo service for dry runs and tests.
"""

from __future__ import annotations

from typing import Protocol

from ..errors import ProviderError
from ..models.datatypes import GrammarInfo, RichDetailResult
from .cache import ResponseCache
from .http_client import OllamaClient, OpenAIChatClient
from .prompts import PromptLibrary
from .rate_limiter import RateLimiter
from .response_parser import clean_response, parse_rich_detail


class TranslationService(Protocol):
    """Protocol for translation providers consumed by the orchestrator."""

    def translate_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> str:
        """Translate one selected segment into the target language."""

    def rich_analyze(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> RichDetailResult:
        """Return a structured grammar and usage breakdown of `text`."""

    def forget_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> None:
        """Drop any stored translation so the next request asks the backend again."""

    def list_models(self) -> list[str]:
        """Return model identifiers the backend can serve."""

    def health_check(self) -> bool:
        """Return whether the backend is reachable."""


class TextGenerationService(Protocol):
    """Protocol for free-form text generation."""

    def generate(self, prompt: str) -> str:
        """Return generated text for a prompt."""


class _PromptedTranslationService:
    """Shared prompt, cache, and parse flow for completion-style backends."""

    provider_id = "base"

    def __init__(
        self,
        model: str,
        response_cache: ResponseCache | None = None,
    ) -> None:
        self.model = model
        self.cache = response_cache if response_cache is not None else ResponseCache()
        self.prompts = PromptLibrary()

    def _complete(
        self, system_prompt: str, user_prompt: str, *, long_output: bool = False
    ) -> str:
        raise NotImplementedError

    def translate_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> str:
        """Translate one segment, reusing cached output for identical requests."""

        cache_key = self._segment_cache_key(text, target_language, context, source_language)
        translated = self.cache.get(cache_key)
        if translated is None:
            raw = self._complete(
                self.prompts.translation_system_prompt(),
                self.prompts.translate_prompt(
                    text,
                    target_language,
                    context=context,
                    source_language=source_language,
                ),
            )
            translated = clean_response(raw)
            self.cache.set(cache_key, translated)
        return translated

    def forget_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> None:
        self.cache.discard(
            self._segment_cache_key(text, target_language, context, source_language)
        )

    def _segment_cache_key(
        self,
        text: str,
        target_language: str,
        context: str | None,
        source_language: str | None,
    ) -> str:
        return self.cache.make_key(
            provider=self.provider_id,
            model=self.model,
            operation="translate",
            input_identity={
                "source_language": source_language or "",
                "target_language": target_language,
                "context": context or "",
                "source_text": text,
            },
        )

    def rich_analyze(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> RichDetailResult:
        """Request and parse a rich analysis; never cached so regeneration re-asks."""

        raw = self._complete(
            self.prompts.analysis_system_prompt(),
            self.prompts.rich_detail_prompt(
                text,
                target_language,
                context=context,
                source_language=source_language,
            ),
            long_output=True,
        )
        return parse_rich_detail(raw)

    def generate(self, prompt: str) -> str:
        return clean_response(self._complete("", prompt))

    @property
    def cache_hits(self) -> int:
        return self.cache.hits

    @property
    def cache_misses(self) -> int:
        return self.cache.misses


class OpenAITranslationService(_PromptedTranslationService):
    """OpenAI chat-completions translation service."""

    provider_id = "openai"

    def __init__(
        self,
        model: str = "gpt-4.1-mini",
        api_key: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        response_cache: ResponseCache | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        super().__init__(model=model, response_cache=response_cache)
        self.client = OpenAIChatClient(
            api_key=api_key,
            base_url=base_url,
            rate_limiter=rate_limiter,
        )

    def _complete(
        self, system_prompt: str, user_prompt: str, *, long_output: bool = False
    ) -> str:
        return self.client.chat_completion_text(
            model=self.model,
            system_prompt=system_prompt or self.prompts.translation_system_prompt(),
            user_prompt=user_prompt,
            temperature=0.0,
        )

    def list_models(self) -> list[str]:
        return self.client.list_models()

    def health_check(self) -> bool:
        """Return whether the models endpoint answers with the configured key."""

        try:
            self.client.list_models()
        except ProviderError:
            return False
        return True


class OllamaTranslationService(_PromptedTranslationService):
    """Local Ollama `/api/generate` translation service."""

    provider_id = "ollama"
    _LONG_OUTPUT_OPTIONS = {"num_predict": 4096}

    def __init__(
        self,
        model: str = "llama2",
        base_url: str = "http://127.0.0.1:11434",
        response_cache: ResponseCache | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        super().__init__(model=model, response_cache=response_cache)
        self.client = OllamaClient(base_url=base_url, rate_limiter=rate_limiter)

    def _complete(
        self, system_prompt: str, user_prompt: str, *, long_output: bool = False
    ) -> str:
        prompt = f"{system_prompt}\n\n{user_prompt}" if system_prompt else user_prompt
        options = self._LONG_OUTPUT_OPTIONS if long_output else None
        return self.client.generate(model=self.model, prompt=prompt, options=options)

    def list_models(self) -> list[str]:
        """Return installed models, or an empty list when the server is unreachable."""

        try:
            return self.client.tags()
        except ProviderError:
            return []

    def health_check(self) -> bool:
        try:
            self.client.tags()
        except ProviderError:
            return False
        return True


class EchoTranslationService:
    """Offline service that echoes its input, for dry runs and tests."""

    provider_id = "echo"

    def __init__(self, model: str = "echo") -> None:
        self.model = model

    def translate_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> str:
        return f"[{target_language}] {text}"

    def rich_analyze(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> RichDetailResult:
        kind = "sentence" if len(text.split()) > 1 else "word"
        return RichDetailResult(
            translation=f"[{target_language}] {text}",
            segment=text,
            grammar=GrammarInfo(explanation="Offline echo analysis."),
            kind=kind,
        )

    def forget_segment(
        self,
        text: str,
        target_language: str,
        context: str | None = None,
        source_language: str | None = None,
    ) -> None:
        return None

    def generate(self, prompt: str) -> str:
        return prompt

    def list_models(self) -> list[str]:
        return [self.model]

    def health_check(self) -> bool:
        return True

