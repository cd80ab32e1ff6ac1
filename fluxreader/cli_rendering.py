"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
token listings, group translations, and rich-detail results.
"""

from __future__ import annotations

import json
from typing import NoReturn, Sequence

import typer

from .errors import ProviderError, ReaderStageError
from .models.datatypes import GroupKey, RichDetailTab, TranslationEntry


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, ReaderStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    elif isinstance(exc, ProviderError):
        typer.secho(
            f"{command_name} failed at stage `provider`: {exc} (kind={exc.failure_kind})",
            fg=typer.colors.RED,
            err=True,
        )
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_tokens(tokens: Sequence[str], start: int = 0) -> None:
    """Print one `index<TAB>token` row per token, escaping whitespace."""

    for offset, token in enumerate(tokens):
        typer.echo(f"{start + offset}\t{json.dumps(token, ensure_ascii=False)}")


def echo_group_translations(
    rows: Sequence[tuple[GroupKey, str, TranslationEntry | None]],
) -> None:
    """Print each selection group with its inline translation text."""

    if not rows:
        typer.echo("No groups selected.")
        return
    for key, text, entry in rows:
        rendered = entry.display_text if entry is not None else "(not translated)"
        typer.echo(f"[{key.label}] {text} => {rendered}")


def echo_rich_detail(tab: RichDetailTab) -> None:
    """Print a resolved rich-detail tab as indented JSON."""

    payload = tab.result.as_dict() if tab.result is not None else {}
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
