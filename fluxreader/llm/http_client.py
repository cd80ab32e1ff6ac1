"""HTTP client utilities for translation backends.

Responsibilities:
- Send minimal chat-completions requests to OpenAI and generate requests to Ollama.
- Normalize response extraction for translation service integrations.
- Raise actionable `ProviderError`s with a deterministic failure classification.
"""

from __future__ import annotations

import json
import re
import socket
from typing import Any

import requests

from ..errors import ProviderError
from .rate_limiter import RateLimiter


class _BaseHTTPClient:
    """Shared HTTP settings and error mapping used by backend-specific clients."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180
    provider_label = "Provider"

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = normalize_base_url(base_url)
        self.timeout_seconds = timeout_seconds
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request_json(
        self,
        method: str,
        endpoint_path: str,
        *,
        rate_key: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Execute one HTTP request and decode its JSON body, mapping failures consistently."""

        self.rate_limiter.acquire(rate_key)
        endpoint = f"{self.base_url}{endpoint_path}"
        try:
            if method == "GET":
                response = requests.get(
                    endpoint, headers=self._headers(), timeout=self.timeout_seconds
                )
            else:
                response = requests.post(
                    endpoint,
                    headers=self._headers(),
                    json=payload,
                    timeout=self.timeout_seconds,
                )
            response.raise_for_status()
            body = bytes(response.content)
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = f"{self.provider_label} request timed out."
            else:
                detail = (
                    f"{self.provider_label} request transport error: "
                    f"{self._short_message(str(exc))}"
                )
            raise ProviderError(detail, failure_kind=failure_kind) from exc
        except TimeoutError as exc:
            raise ProviderError(
                f"{self.provider_label} request timed out.",
                failure_kind="timeout",
            ) from exc

        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProviderError(
                f"{self.provider_label} returned invalid JSON payload.",
                failure_kind="malformed_response",
            ) from exc

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        response = exc.response
        if response is None:
            return ""
        return bytes(response.content).decode("utf-8", errors="replace").strip()

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        redacted = re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )
        return redacted

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider-facing message and optional provider error code."""

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if isinstance(error_payload, dict):
                code_value = error_payload.get("code")
                if isinstance(code_value, str) and code_value.strip():
                    provider_code = code_value.strip()
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()
            elif isinstance(error_payload, str) and error_payload.strip():
                message = error_payload.strip()

        if message is None:
            message = body

        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_code

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_code: str | None,
    ) -> str:
        """Classify HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        normalized_code = provider_code.lower() if provider_code is not None else ""

        if status_code == 401 or "api key" in message_lower:
            return "invalid_api_key"
        if normalized_code == "insufficient_quota" or (
            status_code == 429 and "quota" in message_lower
        ):
            return "insufficient_quota"
        if normalized_code == "model_not_found" or (
            "model" in message_lower
            and any(phrase in message_lower for phrase in ("not found", "does not exist", "invalid"))
        ):
            return "invalid_model"
        if status_code in {408, 504} or "timeout" in message_lower or "timed out" in message_lower:
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return "timeout"
        return "transport"

    @classmethod
    def _http_error_to_provider_error(cls, exc: requests.HTTPError) -> ProviderError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = cls._decode_error_body(exc)
        provider_message, provider_code = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_message, provider_code)

        headline = {
            "invalid_api_key": f"{cls.provider_label} authentication failed",
            "insufficient_quota": f"{cls.provider_label} quota is insufficient for this request",
            "invalid_model": f"{cls.provider_label} rejected the selected model",
            "timeout": f"{cls.provider_label} request timed out",
        }.get(failure_kind, f"{cls.provider_label} request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return ProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=provider_code,
        )


class OpenAIChatClient(_BaseHTTPClient):
    """Minimal requests-based OpenAI chat-completions client."""

    provider_label = "OpenAI"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            api_key=api_key,
            timeout_seconds=timeout_seconds,
            rate_limiter=rate_limiter,
        )

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise ProviderError(
                "Missing OpenAI API key. Set `OPENAI_API_KEY`, use `--api-key`, or store "
                "one with `fluxreader credentials --set-api-key`.",
                failure_kind="invalid_api_key",
            )

    def chat_completion_text(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
    ) -> str:
        """Return the first assistant text response from a chat-completions request."""

        self._require_api_key()
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        response = self._request_json(
            "POST",
            "/chat/completions",
            rate_key=f"openai:chat:{model}",
            payload=payload,
        )
        return self._extract_message_text(response)

    def list_models(self) -> list[str]:
        """Return model identifiers visible to the configured API key."""

        self._require_api_key()
        response = self._request_json("GET", "/models", rate_key="openai:models")
        data = response.get("data") if isinstance(response, dict) else None
        if not isinstance(data, list):
            raise ProviderError("OpenAI response missing `data` list.")
        return sorted(
            item["id"] for item in data if isinstance(item, dict) and isinstance(item.get("id"), str)
        )

    @staticmethod
    def _extract_message_text(payload: Any) -> str:
        """Extract first assistant message text from a chat-completions payload."""

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices:
            raise ProviderError("OpenAI response missing non-empty `choices` list.")

        first_choice = choices[0]
        if not isinstance(first_choice, dict):
            raise ProviderError("OpenAI response `choices[0]` is malformed.")

        message = first_choice.get("message")
        if not isinstance(message, dict):
            raise ProviderError("OpenAI response missing `choices[0].message` object.")

        text = OpenAIChatClient._message_content_to_text(message.get("content"))
        normalized = text.strip()
        if not normalized:
            raise ProviderError("OpenAI response message content is empty.")
        return normalized

    @staticmethod
    def _message_content_to_text(content: Any) -> str:
        """Convert OpenAI message content variants into a plain text string."""

        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if not isinstance(item, dict):
                    continue
                if item.get("type") == "text" and isinstance(item.get("text"), str):
                    parts.append(item["text"])
            return "".join(parts)
        return ""


class OllamaClient(_BaseHTTPClient):
    """Minimal requests-based client for a local Ollama server."""

    provider_label = "Ollama"

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:11434",
        timeout_seconds: float = 120.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            rate_limiter=rate_limiter,
        )

    def generate(self, *, model: str, prompt: str, options: dict[str, Any] | None = None) -> str:
        """Return the full non-streamed response text of `/api/generate`."""

        payload: dict[str, Any] = {"model": model, "prompt": prompt, "stream": False}
        if options:
            payload["options"] = dict(options)
        response = self._request_json(
            "POST",
            "/api/generate",
            rate_key=f"ollama:generate:{model}",
            payload=payload,
        )
        text = response.get("response") if isinstance(response, dict) else None
        if not isinstance(text, str):
            raise ProviderError("Ollama response missing `response` text.")
        return text

    def tags(self) -> list[str]:
        """Return installed model names from `/api/tags`."""

        response = self._request_json("GET", "/api/tags", rate_key="ollama:tags")
        models = response.get("models") if isinstance(response, dict) else None
        if not isinstance(models, list):
            return []
        return [
            item["name"]
            for item in models
            if isinstance(item, dict) and isinstance(item.get("name"), str)
        ]


def normalize_base_url(url: str) -> str:
    """Add a missing `http://` scheme and drop trailing slashes."""

    normalized = url.strip()
    if normalized and not normalized.startswith(("http://", "https://")):
        normalized = f"http://{normalized}"
    return normalized.rstrip("/")
