"""Translation backends and the helpers they share.

This package defines the service protocols, HTTP clients for OpenAI and
Ollama, prompt templates, response parsing, caching and rate limiting.
"""

from .cache import ResponseCache
from .http_client import OllamaClient, OpenAIChatClient
from .prompts import PromptLibrary
from .rate_limiter import RateLimiter
from .response_parser import clean_response, extract_json, parse_rich_detail
from .translator import (
    EchoTranslationService,
    OllamaTranslationService,
    OpenAITranslationService,
    TextGenerationService,
    TranslationService,
)

__all__ = [
    "EchoTranslationService",
    "OllamaClient",
    "OllamaTranslationService",
    "OpenAIChatClient",
    "OpenAITranslationService",
    "PromptLibrary",
    "RateLimiter",
    "ResponseCache",
    "TextGenerationService",
    "TranslationService",
    "clean_response",
    "extract_json",
    "parse_rich_detail",
]
