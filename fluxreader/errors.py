"""Domain exceptions for reader components and CLI diagnostics."""

from __future__ import annotations


class ReaderStageError(RuntimeError):
    """Raised when a specific command stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped reader error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class TokenIndexError(IndexError):
    """Raised when a token index falls outside the current token sequence."""

    def __init__(self, index: int, token_count: int) -> None:
        super().__init__(f"Token index {index} is out of range for {token_count} tokens.")
        self.index = index
        self.token_count = token_count


class StaleTokensError(RuntimeError):
    """Raised when derived offsets do not belong to the current token sequence."""


class ProviderError(RuntimeError):
    """Raised when a provider request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        """Initialize provider error metadata for diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code
