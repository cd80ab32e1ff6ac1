"""Unit tests for OpenAI/Ollama HTTP clients and prompted translation services."""

from __future__ import annotations

import json

import pytest
import requests

from fluxreader.errors import ProviderError
from fluxreader.llm import http_client
from fluxreader.llm.http_client import OllamaClient, OpenAIChatClient, normalize_base_url
from fluxreader.llm.translator import (
    EchoTranslationService,
    OllamaTranslationService,
    OpenAITranslationService,
)


class _MockRequestsResponse:
    """Minimal requests response mock used by HTTP client tests."""

    def __init__(self, *, payload: bytes, status_code: int = 200) -> None:
        """Initialize response with payload bytes and status code."""

        self.content = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        """Raise HTTP error when status code indicates failure."""

        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class _RecordingTransport:
    """Capture outgoing requests and replay queued responses."""

    def __init__(self, *responses: _MockRequestsResponse) -> None:
        """Queue responses returned in order."""

        self.calls: list[dict[str, object]] = []
        self._responses = list(responses)

    def __call__(self, url: str, **kwargs: object) -> _MockRequestsResponse:
        """Record one request and return the next queued response."""

        self.calls.append({"url": url, **kwargs})
        return self._responses.pop(0)


def _json_response(payload: object, status_code: int = 200) -> _MockRequestsResponse:
    return _MockRequestsResponse(
        payload=json.dumps(payload).encode("utf-8"), status_code=status_code
    )


def _chat_payload(text: str) -> dict[str, object]:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def test_normalize_base_url() -> None:
    """Base URLs should gain a scheme and lose trailing slashes."""

    assert normalize_base_url("localhost:11434/") == "http://localhost:11434"
    assert normalize_base_url("https://api.openai.com/v1//") == "https://api.openai.com/v1"


def test_openai_chat_completion_sends_expected_request(monkeypatch: pytest.MonkeyPatch) -> None:
    """Chat requests should carry auth, model, and both prompts."""

    transport = _RecordingTransport(_json_response(_chat_payload("  hola  ")))
    monkeypatch.setattr(http_client.requests, "post", transport)
    client = OpenAIChatClient(api_key="sk-test-key", base_url="https://example.test/v1/")

    text = client.chat_completion_text(
        model="gpt-test", system_prompt="sys", user_prompt="user", temperature=0.0
    )

    assert text == "hola"
    call = transport.calls[0]
    assert call["url"] == "https://example.test/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test-key"  # type: ignore[index]
    assert call["json"]["model"] == "gpt-test"  # type: ignore[index]
    assert [message["role"] for message in call["json"]["messages"]] == [  # type: ignore[index]
        "system",
        "user",
    ]


def test_openai_requires_api_key() -> None:
    """Requests without an API key should fail before any network call."""

    client = OpenAIChatClient(api_key="  ")

    with pytest.raises(ProviderError) as exc_info:
        client.chat_completion_text(model="m", system_prompt="s", user_prompt="u")

    assert exc_info.value.failure_kind == "invalid_api_key"


@pytest.mark.parametrize(
    ("status_code", "body", "failure_kind"),
    [
        (401, {"error": {"message": "Incorrect API key provided: sk-abcdefghijkl"}}, "invalid_api_key"),
        (429, {"error": {"message": "Over budget", "code": "insufficient_quota"}}, "insufficient_quota"),
        (404, {"error": {"message": "The model `x` does not exist"}}, "invalid_model"),
        (504, {"error": "upstream"}, "timeout"),
        (500, {"error": {"message": "boom"}}, "http_error"),
    ],
)
def test_openai_http_errors_are_classified(
    monkeypatch: pytest.MonkeyPatch,
    status_code: int,
    body: dict[str, object],
    failure_kind: str,
) -> None:
    """HTTP failures should map to deterministic failure kinds without leaking keys."""

    transport = _RecordingTransport(_json_response(body, status_code=status_code))
    monkeypatch.setattr(http_client.requests, "post", transport)
    client = OpenAIChatClient(api_key="sk-test-key")

    with pytest.raises(ProviderError) as exc_info:
        client.chat_completion_text(model="m", system_prompt="s", user_prompt="u")

    assert exc_info.value.failure_kind == failure_kind
    assert exc_info.value.status_code == status_code
    assert "sk-abcdefghijkl" not in str(exc_info.value)


def test_transport_timeout_and_invalid_json(monkeypatch: pytest.MonkeyPatch) -> None:
    """Timeouts and undecodable bodies should raise classified provider errors."""

    def _timeout(url: str, **kwargs: object) -> _MockRequestsResponse:
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(http_client.requests, "post", _timeout)
    client = OllamaClient(base_url="http://ollama.test")
    with pytest.raises(ProviderError) as timeout_info:
        client.generate(model="llama2", prompt="hi")
    assert timeout_info.value.failure_kind == "timeout"

    monkeypatch.setattr(
        http_client.requests,
        "post",
        _RecordingTransport(_MockRequestsResponse(payload=b"<html>oops</html>")),
    )
    with pytest.raises(ProviderError) as json_info:
        client.generate(model="llama2", prompt="hi")
    assert json_info.value.failure_kind == "malformed_response"


def test_openai_list_models_sorts_ids(monkeypatch: pytest.MonkeyPatch) -> None:
    """Model listing should return sorted identifiers."""

    transport = _RecordingTransport(
        _json_response({"data": [{"id": "gpt-b"}, {"id": "gpt-a"}, {"object": "x"}]})
    )
    monkeypatch.setattr(http_client.requests, "get", transport)

    models = OpenAIChatClient(api_key="sk-test-key").list_models()

    assert models == ["gpt-a", "gpt-b"]
    assert transport.calls[0]["url"] == "https://api.openai.com/v1/models"


def test_ollama_generate_and_tags(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ollama requests should disable streaming and read model names from tags."""

    post = _RecordingTransport(_json_response({"response": "casa", "done": True}))
    get = _RecordingTransport(_json_response({"models": [{"name": "llama2:latest"}, {}]}))
    monkeypatch.setattr(http_client.requests, "post", post)
    monkeypatch.setattr(http_client.requests, "get", get)
    client = OllamaClient(base_url="http://ollama.test/")

    assert client.generate(model="llama2", prompt="p", options={"num_predict": 10}) == "casa"
    assert client.tags() == ["llama2:latest"]
    assert post.calls[0]["url"] == "http://ollama.test/api/generate"
    assert post.calls[0]["json"] == {  # type: ignore[comparison-overlap]
        "model": "llama2",
        "prompt": "p",
        "stream": False,
        "options": {"num_predict": 10},
    }
    assert "Authorization" not in post.calls[0]["headers"]  # type: ignore[operator]


def test_ollama_service_caches_translations_and_extends_rich_output(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Segment translations should be cached while rich analysis requests longer output."""

    rich_json = json.dumps(
        {"type": "word", "translation": "house", "segment": "casa", "grammar": {}}
    )
    post = _RecordingTransport(
        _json_response({"response": "<think>x</think>house"}),
        _json_response({"response": f"```json\n{rich_json}\n```"}),
        _json_response({"response": "home"}),
    )
    monkeypatch.setattr(http_client.requests, "post", post)
    service = OllamaTranslationService(model="llama2", base_url="http://ollama.test")

    first = service.translate_segment("casa", "en", context="la casa", source_language="es")
    second = service.translate_segment("casa", "en", context="la casa", source_language="es")
    result = service.rich_analyze("casa", "en", context="la casa", source_language="es")
    service.forget_segment("casa", "en", context="la casa", source_language="es")
    third = service.translate_segment("casa", "en", context="la casa", source_language="es")

    assert (first, second, third) == ("house", "house", "home")
    assert result.translation == "house"
    assert service.cache_hits == 1
    assert "options" not in post.calls[0]["json"]  # type: ignore[operator]
    assert post.calls[1]["json"]["options"] == {"num_predict": 4096}  # type: ignore[index]
    assert len(post.calls) == 3


def test_ollama_service_reports_unreachable_server(monkeypatch: pytest.MonkeyPatch) -> None:
    """Health and model listing should degrade when the server cannot be reached."""

    def _refused(url: str, **kwargs: object) -> _MockRequestsResponse:
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(http_client.requests, "get", _refused)
    service = OllamaTranslationService(base_url="http://ollama.test")

    assert service.health_check() is False
    assert service.list_models() == []


def test_openai_service_translate_and_health(monkeypatch: pytest.MonkeyPatch) -> None:
    """OpenAI service should translate via chat completions and probe health via models."""

    post = _RecordingTransport(_json_response(_chat_payload("good morning")))
    get = _RecordingTransport(_json_response({"error": {"message": "bad key"}}, status_code=401))
    monkeypatch.setattr(http_client.requests, "post", post)
    monkeypatch.setattr(http_client.requests, "get", get)
    service = OpenAITranslationService(model="gpt-test", api_key="sk-test-key")

    assert service.translate_segment("buenos dias", "en") == "good morning"
    assert "buenos dias" in post.calls[0]["json"]["messages"][1]["content"]  # type: ignore[index]
    assert service.health_check() is False


def test_echo_service_is_deterministic() -> None:
    """The echo service should tag text with the target language."""

    service = EchoTranslationService()

    assert service.translate_segment("hola", "en") == "[en] hola"
    assert service.rich_analyze("hola mundo", "en").kind == "sentence"
    assert service.rich_analyze("hola", "en").grammar.explanation == "Offline echo analysis."
    assert service.list_models() == ["echo"]
    assert service.health_check() is True
