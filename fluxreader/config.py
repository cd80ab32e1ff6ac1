"""Configuration model and loaders for Fluxreader.

Responsibilities:
- Define reader settings as a typed dataclass.
- Provide deterministic precedence resolution for provider runtime settings.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `ReaderConfig`: normalized settings for one reader session.
- `ProviderRuntimeConfig`: resolved provider/model/base-URL/API-key values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `ReaderConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .parsing import normalize_optional_string, parse_bounded_float
from .provider_factory import DEFAULT_BASE_URLS, DEFAULT_MODELS, SUPPORTED_PROVIDERS

_DEFAULT_PROVIDER = "ollama"
_MIN_SPEECH_RATE = 0.1
_MAX_SPEECH_RATE = 10.0


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved translation backend settings for one session."""

    provider: str
    model: str
    base_url: str | None = None
    api_key: str | None = None

    def as_display_metadata(self) -> dict[str, str]:
        """Return non-secret runtime metadata safe to print."""

        return {
            "provider": self.provider,
            "model": self.model,
            "base_url": self.base_url or "default",
            "api_key": "set" if self.api_key else "unset",
        }


@dataclass(slots=True)
class ReaderConfig:
    """Runtime configuration for one reader session.

    Attributes:
        provider: Translation provider identifier.
        model: Model identifier; the provider default is used when unset.
        base_url: Backend base URL; the provider default is used when unset.
        api_key: Optional API key for hosted providers.
        source_language: Language of the document text.
        target_language: Language translations are produced in.
        page_size: Number of tokens per display page.
        selection_debounce_ms: Quiet period before a selection is translated.
        hover_debounce_ms: Quiet period before a hovered token is translated.
        speech_rate: Speech rate multiplier.
        voice: Preferred voice identifier.
        runtime_sources: Optional runtime source overrides injected by CLI.
        extra: Additional metadata for future extensions.
    """

    provider: str = _DEFAULT_PROVIDER
    model: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    source_language: str = "es"
    target_language: str = "en"
    page_size: int = 500
    selection_debounce_ms: int = 500
    hover_debounce_ms: int = 300
    speech_rate: float = 1.0
    voice: str | None = None
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate configuration values before a session starts."""

        self._validate_provider_id(self.provider, "provider")
        self._require_non_empty(self.source_language, "source_language")
        self._require_non_empty(self.target_language, "target_language")
        for field_name in ("page_size", "selection_debounce_ms", "hover_debounce_ms"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"`{field_name}` must be a positive integer.")
        parse_bounded_float(
            self.speech_rate,
            "speech_rate",
            minimum=_MIN_SPEECH_RATE,
            maximum=_MAX_SPEECH_RATE,
        )

    def resolved_provider_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider settings with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field default.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        provider = (
            self._resolve_optional_runtime_value(
                key="provider",
                env_key="FLUXREADER_PROVIDER",
                default_value=self.provider,
                sources=resolved_sources,
            )
            or _DEFAULT_PROVIDER
        ).lower()
        self._validate_provider_id(provider, "provider")

        model = self._resolve_optional_runtime_value(
            key="model",
            env_key="FLUXREADER_MODEL",
            default_value=self.model,
            sources=resolved_sources,
        ) or DEFAULT_MODELS[provider]
        base_url = self._resolve_optional_runtime_value(
            key="base_url",
            env_key="FLUXREADER_BASE_URL",
            default_value=self.base_url,
            sources=resolved_sources,
        ) or DEFAULT_BASE_URLS.get(provider)
        api_key = self._resolve_optional_runtime_value(
            key="api_key",
            env_key="OPENAI_API_KEY",
            default_value=self.api_key,
            sources=resolved_sources,
        )

        return ProviderRuntimeConfig(
            provider=provider,
            model=model,
            base_url=base_url,
            api_key=api_key,
        )

    def _resolve_optional_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve an optional runtime value from sources in deterministic order."""

        for mapping, lookup_key in (
            (sources.cli, key),
            (sources.secure, key),
            (sources.env, env_key),
        ):
            value = self._normalized_lookup(mapping, lookup_key)
            if value is not None:
                return value
        return normalize_optional_string(default_value)

    @staticmethod
    def _normalized_lookup(mapping: Mapping[str, str], key: str) -> str | None:
        """Return a stripped mapping value for a key or `None` when missing/blank."""

        if key not in mapping:
            return None
        return normalize_optional_string(mapping.get(key))

    @staticmethod
    def _validate_provider_id(provider_id: str, field_name: str) -> None:
        """Validate provider identifiers against supported providers."""

        if provider_id not in SUPPORTED_PROVIDERS:
            supported = ", ".join(sorted(SUPPORTED_PROVIDERS))
            raise ValueError(
                f"Unsupported `{field_name}` value `{provider_id}`; supported: {supported}."
            )

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


class ConfigLoader:
    """Factory methods for creating `ReaderConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "provider",
            "model",
            "base_url",
            "api_key",
            "source_language",
            "target_language",
            "page_size",
            "selection_debounce_ms",
            "hover_debounce_ms",
            "speech_rate",
            "voice",
            "extra",
        }
    )
    _RUNTIME_ENV_KEYS = frozenset(
        {
            "FLUXREADER_PROVIDER",
            "FLUXREADER_MODEL",
            "FLUXREADER_BASE_URL",
            "OPENAI_API_KEY",
        }
    )

    @staticmethod
    def from_yaml(path: Path) -> ReaderConfig:
        """Create a validated config from a YAML file."""

        payload = ConfigLoader._parse_yaml_payload(path.read_text(encoding="utf-8"), path)
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> ReaderConfig:
        """Create a validated config from `FLUXREADER_*` environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        label = "Environment"

        def _env(name: str) -> str | None:
            return normalize_optional_string(env_map.get(name))

        speech_rate_raw = _env("FLUXREADER_SPEECH_RATE")
        config = ReaderConfig(
            provider=(_env("FLUXREADER_PROVIDER") or _DEFAULT_PROVIDER).lower(),
            model=_env("FLUXREADER_MODEL"),
            base_url=_env("FLUXREADER_BASE_URL"),
            api_key=_env("OPENAI_API_KEY"),
            source_language=_env("FLUXREADER_SOURCE_LANGUAGE") or "es",
            target_language=_env("FLUXREADER_TARGET_LANGUAGE") or "en",
            page_size=ConfigLoader._positive_int(
                _env("FLUXREADER_PAGE_SIZE"), "FLUXREADER_PAGE_SIZE", label, default=500
            ),
            selection_debounce_ms=ConfigLoader._positive_int(
                _env("FLUXREADER_SELECTION_DEBOUNCE_MS"),
                "FLUXREADER_SELECTION_DEBOUNCE_MS",
                label,
                default=500,
            ),
            hover_debounce_ms=ConfigLoader._positive_int(
                _env("FLUXREADER_HOVER_DEBOUNCE_MS"),
                "FLUXREADER_HOVER_DEBOUNCE_MS",
                label,
                default=300,
            ),
            speech_rate=(
                parse_bounded_float(
                    speech_rate_raw,
                    "FLUXREADER_SPEECH_RATE",
                    minimum=_MIN_SPEECH_RATE,
                    maximum=_MAX_SPEECH_RATE,
                )
                if speech_rate_raw is not None
                else 1.0
            ),
            voice=_env("FLUXREADER_VOICE"),
            runtime_sources=RuntimeConfigSources(
                env={
                    key: value
                    for key, value in env_map.items()
                    if key in ConfigLoader._RUNTIME_ENV_KEYS
                    and normalize_optional_string(value) is not None
                }
            ),
        )
        config.validate()
        return config

    @staticmethod
    def _parse_yaml_payload(raw_text: str, path: Path) -> Mapping[str, Any]:
        """Parse YAML text and enforce a mapping root payload."""

        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` could not be parsed: {exc}") from exc

        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return payload

    @staticmethod
    def _build_config_from_mapping(payload: Mapping[str, Any], source_label: str) -> ReaderConfig:
        """Build a validated config from a normalized mapping payload."""

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            raise ValueError(f"{source_label} includes unsupported key(s): {', '.join(unknown)}.")

        def _string(key: str) -> str | None:
            return normalize_optional_string(payload.get(key)) if key in payload else None

        speech_rate = 1.0
        if "speech_rate" in payload:
            speech_rate = parse_bounded_float(
                payload["speech_rate"],
                f"{source_label} field `speech_rate`",
                minimum=_MIN_SPEECH_RATE,
                maximum=_MAX_SPEECH_RATE,
            )

        config = ReaderConfig(
            provider=(_string("provider") or _DEFAULT_PROVIDER).lower(),
            model=_string("model"),
            base_url=_string("base_url"),
            api_key=_string("api_key"),
            source_language=_string("source_language") or "es",
            target_language=_string("target_language") or "en",
            page_size=ConfigLoader._positive_int(
                payload.get("page_size"), "page_size", source_label, default=500
            ),
            selection_debounce_ms=ConfigLoader._positive_int(
                payload.get("selection_debounce_ms"),
                "selection_debounce_ms",
                source_label,
                default=500,
            ),
            hover_debounce_ms=ConfigLoader._positive_int(
                payload.get("hover_debounce_ms"), "hover_debounce_ms", source_label, default=300
            ),
            speech_rate=speech_rate,
            voice=_string("voice"),
            extra=ConfigLoader._optional_string_map(payload, "extra", source_label),
        )
        config.validate()
        return config

    @staticmethod
    def _positive_int(raw_value: object, key: str, source_label: str, default: int) -> int:
        """Read and validate a positive integer value, returning `default` when unset."""

        if raw_value is None:
            return default
        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.")
        if isinstance(raw_value, int):
            parsed = raw_value
        else:
            normalized = normalize_optional_string(raw_value)
            if normalized is None:
                return default
            try:
                parsed = int(normalized)
            except ValueError as exc:
                raise ValueError(
                    f"{source_label} field `{key}` must be a positive integer."
                ) from exc

        if parsed <= 0:
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.")
        return parsed

    @staticmethod
    def _optional_string_map(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> dict[str, str]:
        """Read an optional mapping with non-empty string keys and values."""

        raw = payload.get(key)
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `{key}` must be a mapping/object.")

        normalized: dict[str, str] = {}
        for raw_key, raw_value in raw.items():
            key_value = normalize_optional_string(raw_key)
            value_value = normalize_optional_string(raw_value)
            if key_value is None:
                raise ValueError(f"{source_label} field `{key}` contains a blank key.")
            if value_value is None:
                raise ValueError(
                    f"{source_label} field `{key}` contains blank value for `{key_value}`."
                )
            normalized[key_value] = value_value
        return normalized
