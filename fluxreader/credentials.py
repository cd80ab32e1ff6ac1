"""Secure credential storage helpers for the Fluxreader CLI.

Responsibilities:
- Persist hosted-provider API keys in an OS-backed secure credential store.
- Provide deterministic read/write/delete operations per provider.
- Avoid logging or exposing secret values in diagnostics.

Key types:
- `CredentialStore`: interface for provider credential persistence.
- `KeyringCredentialStore`: keyring-backed secure credential storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import ModuleType

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

_DEFAULT_SERVICE_NAME = "fluxreader"
_DEFAULT_PROVIDER = "openai"


class CredentialStore:
    """Interface for secure provider credential operations."""

    def is_available(self) -> bool:
        """Return whether secure credential operations are available."""

        raise NotImplementedError

    def get_api_key(self, provider: str = _DEFAULT_PROVIDER) -> str | None:
        """Load the stored API key for a provider, when available."""

        raise NotImplementedError

    def set_api_key(self, api_key: str, provider: str = _DEFAULT_PROVIDER) -> None:
        """Persist an API key for a provider."""

        raise NotImplementedError

    def clear_api_key(self, provider: str = _DEFAULT_PROVIDER) -> bool:
        """Delete a stored API key and return whether one existed."""

        raise NotImplementedError


@dataclass(slots=True)
class KeyringCredentialStore(CredentialStore):
    """Secure credential store backed by the `keyring` package."""

    service_name: str = _DEFAULT_SERVICE_NAME

    def _load_keyring_module(self) -> ModuleType:
        """Return the keyring module; tests replace this seam with a fake."""

        return keyring

    @staticmethod
    def _account_name(provider: str) -> str:
        return f"{provider.strip().lower()}_api_key"

    def is_available(self) -> bool:
        """Return `True` when the active keyring backend can store secrets."""

        backend = self._load_keyring_module().get_keyring()
        priority = getattr(backend, "priority", 1)
        return priority > 0

    def get_api_key(self, provider: str = _DEFAULT_PROVIDER) -> str | None:
        """Get a normalized API key from keyring, returning `None` when missing."""

        try:
            value = self._load_keyring_module().get_password(
                self.service_name, self._account_name(provider)
            )
        except KeyringError:
            return None
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    def set_api_key(self, api_key: str, provider: str = _DEFAULT_PROVIDER) -> None:
        """Persist a normalized API key in keyring or raise when the backend fails."""

        normalized = api_key.strip()
        if not normalized:
            raise ValueError("API key must be a non-empty string.")
        try:
            self._load_keyring_module().set_password(
                self.service_name, self._account_name(provider), normalized
            )
        except KeyringError as exc:
            raise RuntimeError(
                "Secure credential storage is unavailable on this system. "
                "Configure a keyring backend to persist API keys securely."
            ) from exc

    def clear_api_key(self, provider: str = _DEFAULT_PROVIDER) -> bool:
        """Remove the stored API key from keyring and report if one was present."""

        if self.get_api_key(provider) is None:
            return False
        try:
            self._load_keyring_module().delete_password(
                self.service_name, self._account_name(provider)
            )
        except PasswordDeleteError:
            return False
        return True


def create_credential_store() -> CredentialStore:
    """Create the default secure credential store implementation."""

    return KeyringCredentialStore()
