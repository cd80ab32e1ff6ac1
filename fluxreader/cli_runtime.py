"""CLI runtime resolution helpers.

This module isolates config file loading, provider runtime source assembly,
secure API-key persistence, and session construction from command wiring.
"""

from __future__ import annotations

from dataclasses import replace
import os
from pathlib import Path
from typing import Callable, Protocol

import typer

from .config import ConfigLoader, ProviderRuntimeConfig, ReaderConfig, RuntimeConfigSources
from .credentials import create_credential_store
from .errors import ReaderStageError
from .parsing import normalize_optional_string
from .playback.engines import DryRunSpeechEngine
from .provider_factory import ProviderFactory
from .session import ReaderSession
from .telemetry.logger import EventLogger


class CredentialStoreProtocol(Protocol):
    """Protocol for secure credential store operations used by CLI runtime resolution."""

    def get_api_key(self, provider: str = "openai") -> str | None:
        """Return currently stored API key, if available."""

    def set_api_key(self, api_key: str, provider: str = "openai") -> None:
        """Persist API key value in secure storage."""


def _set_runtime_cli_value(
    runtime_cli_values: dict[str, str],
    key: str,
    value: str | None,
) -> None:
    """Set a normalized runtime CLI value when user input is present."""

    normalized = normalize_optional_string(value)
    if normalized is not None:
        runtime_cli_values[key] = normalized


def resolve_provider_runtime_sources(
    provider: str | None,
    model: str | None,
    base_url: str | None,
    api_key: str | None,
    prompt_api_key: bool,
    store_api_key: bool,
    credential_store_factory: Callable[[], CredentialStoreProtocol] = create_credential_store,
) -> tuple[dict[str, str], dict[str, str]]:
    """Resolve CLI and secure runtime source mappings for provider configuration."""

    runtime_cli_values: dict[str, str] = {}
    _set_runtime_cli_value(runtime_cli_values, "provider", provider)
    _set_runtime_cli_value(runtime_cli_values, "model", model)
    _set_runtime_cli_value(runtime_cli_values, "base_url", base_url)
    _set_runtime_cli_value(runtime_cli_values, "api_key", api_key)

    api_key_entered_in_run = "api_key" in runtime_cli_values
    if prompt_api_key and "api_key" not in runtime_cli_values:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "OpenAI API key (hidden; leave blank to skip)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is not None:
            runtime_cli_values["api_key"] = prompted_api_key
            api_key_entered_in_run = True

    credential_store = credential_store_factory()
    runtime_secure_values: dict[str, str] = {}
    stored_api_key = credential_store.get_api_key()
    if stored_api_key is not None:
        runtime_secure_values["api_key"] = stored_api_key

    if api_key_entered_in_run and store_api_key:
        try:
            credential_store.set_api_key(runtime_cli_values["api_key"])
            typer.echo("Stored API key in secure credential storage.")
        except (RuntimeError, ValueError) as exc:
            raise ReaderStageError(
                stage="credentials",
                detail=f"Failed to store API key securely: {exc}",
                hint=(
                    "Configure a keyring backend, or rerun with "
                    "`--no-store-api-key` for one-off usage."
                ),
            ) from exc

    return runtime_cli_values, runtime_secure_values


def load_reader_config(config_path: Path | None) -> ReaderConfig:
    """Load a YAML config file when requested and map failures to stage errors."""

    if config_path is None:
        return ReaderConfig()

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise ReaderStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise ReaderStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc


def apply_cli_overrides(
    config: ReaderConfig,
    *,
    source_language: str | None = None,
    target_language: str | None = None,
    page_size: int | None = None,
    speech_rate: float | None = None,
    runtime_cli_values: dict[str, str] | None = None,
    runtime_secure_values: dict[str, str] | None = None,
) -> ReaderConfig:
    """Return a validated copy of `config` with explicit CLI values applied."""

    changes: dict[str, object] = {
        "runtime_sources": RuntimeConfigSources(
            cli=runtime_cli_values or {},
            secure=runtime_secure_values or {},
            env=os.environ,
        )
    }
    if normalize_optional_string(source_language) is not None:
        changes["source_language"] = source_language.strip()
    if normalize_optional_string(target_language) is not None:
        changes["target_language"] = target_language.strip()
    if page_size is not None:
        changes["page_size"] = page_size
    if speech_rate is not None:
        changes["speech_rate"] = speech_rate

    updated = replace(config, **changes)
    try:
        updated.validate()
    except ValueError as exc:
        raise ReaderStageError(
            stage="config",
            detail=str(exc),
            hint="Check command options and config file values.",
        ) from exc
    return updated


def resolve_runtime(config: ReaderConfig) -> ProviderRuntimeConfig:
    """Resolve provider runtime settings, mapping validation failures to stage errors."""

    try:
        return config.resolved_provider_runtime()
    except ValueError as exc:
        raise ReaderStageError(
            stage="provider",
            detail=str(exc),
            hint="Use `--provider openai`, `--provider ollama`, or `--provider echo`.",
        ) from exc


def build_session(
    config: ReaderConfig,
    runtime: ProviderRuntimeConfig,
    engine: DryRunSpeechEngine | None = None,
) -> ReaderSession:
    """Create a reader session wired to the resolved translation provider."""

    service = ProviderFactory.create_translation_service(
        runtime.provider,
        model=runtime.model,
        base_url=runtime.base_url,
        api_key=runtime.api_key,
    )
    session = ReaderSession(service, engine, config=config, logger=EventLogger("session"))
    session.load_voices()
    return session
