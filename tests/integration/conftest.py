"""Integration-test fixtures for deterministic CLI runs."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from fluxreader.telemetry.logger import configure_logging

_RUNTIME_ENV_KEYS = (
    "FLUXREADER_PROVIDER",
    "FLUXREADER_MODEL",
    "FLUXREADER_BASE_URL",
    "OPENAI_API_KEY",
)


class InMemoryCredentialStore:
    """Simple in-memory credential store used for CLI tests."""

    def __init__(self, initial_api_key: str | None = None) -> None:
        """Initialize the store with an optional pre-seeded API key."""

        self._api_key = initial_api_key

    def is_available(self) -> bool:
        """Return availability flag expected by the CLI status command."""

        return True

    def get_api_key(self, provider: str = "openai") -> str | None:
        """Return currently stored API key value."""

        return self._api_key

    def set_api_key(self, api_key: str, provider: str = "openai") -> None:
        """Persist a normalized API key value."""

        self._api_key = api_key.strip()

    def clear_api_key(self, provider: str = "openai") -> bool:
        """Clear API key and return whether one existed."""

        existed = self._api_key is not None
        self._api_key = None
        return existed


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Provide the store the CLI will see during one test."""

    return InMemoryCredentialStore()


@pytest.fixture(autouse=True)
def _isolate_cli_runtime(
    monkeypatch: pytest.MonkeyPatch,
    credential_store: InMemoryCredentialStore,
) -> Iterator[None]:
    """Keep CLI runs away from the real keyring and provider environment variables."""

    for key in _RUNTIME_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("fluxreader.cli.create_credential_store", lambda: credential_store)
    yield
    configure_logging(level="WARNING")


@pytest.fixture
def fast_config(tmp_path: Path) -> Path:
    """Write a config file with short debounce windows and the echo provider."""

    config_path = tmp_path / "fluxreader.yaml"
    config_path.write_text(
        "\n".join(
            [
                "provider: echo",
                "selection_debounce_ms: 5",
                "hover_debounce_ms: 5",
            ]
        ),
        encoding="utf-8",
    )
    return config_path
