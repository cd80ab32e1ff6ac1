"""Command-line interface for Fluxreader.

Responsibilities:
- Expose user-facing commands for tokenizing, selecting, translating, and reading text.
- Convert CLI arguments into `ReaderConfig` and a wired `ReaderSession`.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import (
    echo_group_translations,
    echo_rich_detail,
    echo_tokens,
    exit_with_command_error,
)
from .cli_runtime import (
    apply_cli_overrides,
    build_session,
    load_reader_config,
    resolve_provider_runtime_sources,
    resolve_runtime,
)
from .credentials import create_credential_store
from .errors import ReaderStageError
from .models.datatypes import SelectionMode, TranslationStatus
from .parsing import normalize_optional_string, parse_index_expression
from .playback.engines import DryRunSpeechEngine
from .session import ReaderSession
from .telemetry.logger import configure_logging
from .text.sentences import sentence_range
from .text.tokenizer import join_span, tokenize

app = typer.Typer(
    name="fluxreader",
    no_args_is_help=True,
    help="Fluxreader CLI.",
)

TextArgument = Annotated[
    str | None,
    typer.Argument(help="Source text. Omit when using `--file`."),
]
FileOption = Annotated[
    Path | None,
    typer.Option("--file", "-f", help="Read source text from a UTF-8 file."),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with reader defaults."),
]
ProviderOption = Annotated[
    str | None,
    typer.Option("--provider", help="Translation provider id: `openai`, `ollama`, or `echo`."),
]
ModelOption = Annotated[str | None, typer.Option("--model", help="Model id override.")]
BaseUrlOption = Annotated[
    str | None, typer.Option("--base-url", help="Provider base URL override.")
]
ApiKeyOption = Annotated[
    str | None,
    typer.Option(
        "--api-key",
        help="Provider API key override. Prefer `--prompt-api-key` to avoid shell history.",
    ),
]
PromptApiKeyOption = Annotated[
    bool,
    typer.Option("--prompt-api-key", help="Prompt for API key with hidden input."),
]
StoreApiKeyOption = Annotated[
    bool,
    typer.Option(
        "--store-api-key/--no-store-api-key",
        help="Persist CLI-entered API key to secure credential storage.",
    ),
]
SourceOption = Annotated[
    str | None, typer.Option("--source", help="Source language code.")
]
TargetOption = Annotated[
    str | None, typer.Option("--target", help="Target language code.")
]


@app.callback()
def main_callback(
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Event log level written to stderr."),
    ] = "WARNING",
) -> None:
    """Configure logging before any command runs."""

    configure_logging(level=log_level.upper())


def _read_source_text(text: str | None, file: Path | None) -> str:
    """Return source text from the argument or file, mapping failures to stage errors."""

    if text is not None and file is not None:
        raise ReaderStageError(
            stage="input",
            detail="Pass source text either as an argument or via `--file`, not both.",
        )
    if file is not None:
        try:
            return file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ReaderStageError(
                stage="input",
                detail=f"Could not read `{file}`: {exc.strerror or exc}",
                hint="Check the path and file permissions.",
            ) from exc
    if text is None:
        raise ReaderStageError(
            stage="input",
            detail="No source text provided.",
            hint="Pass text as an argument or use `--file <path>`.",
        )
    return text


def _parse_indices(expression: str, token_count: int) -> list[int]:
    try:
        indices = parse_index_expression(expression)
    except ValueError as exc:
        raise ReaderStageError(
            stage="selection",
            detail=str(exc),
            hint="Use comma-separated indices and ranges like `0,2-4`.",
        ) from exc
    out_of_range = [index for index in indices if index >= token_count]
    if out_of_range:
        raise ReaderStageError(
            stage="selection",
            detail=f"Token index {out_of_range[0]} is out of range for {token_count} tokens.",
            hint="Run `fluxreader tokens` to list valid indices.",
        )
    return indices


def _parse_mode(mode: str) -> SelectionMode:
    try:
        return SelectionMode(mode.strip().lower())
    except ValueError as exc:
        raise ReaderStageError(
            stage="selection",
            detail=f"Unsupported selection mode `{mode}`.",
            hint="Use `--mode word` or `--mode sentence`.",
        ) from exc


def _session_for(
    config_file: Path | None,
    provider: str | None,
    model: str | None,
    base_url: str | None,
    api_key: str | None,
    prompt_api_key: bool,
    store_api_key: bool,
    source: str | None = None,
    target: str | None = None,
    page_size: int | None = None,
    speech_rate: float | None = None,
    engine: DryRunSpeechEngine | None = None,
) -> ReaderSession:
    runtime_cli_values, runtime_secure_values = resolve_provider_runtime_sources(
        provider=provider,
        model=model,
        base_url=base_url,
        api_key=api_key,
        prompt_api_key=prompt_api_key,
        store_api_key=store_api_key,
        credential_store_factory=create_credential_store,
    )
    config = apply_cli_overrides(
        load_reader_config(config_file),
        source_language=source,
        target_language=target,
        page_size=page_size,
        speech_rate=speech_rate,
        runtime_cli_values=runtime_cli_values,
        runtime_secure_values=runtime_secure_values,
    )
    return build_session(config, resolve_runtime(config), engine)


@app.command("tokens")
def tokens_command(
    text: TextArgument = None,
    file: FileOption = None,
) -> None:
    """Print the token sequence with indices."""

    try:
        tokens = tokenize(_read_source_text(text, file))
    except Exception as exc:
        exit_with_command_error("tokens", exc)

    echo_tokens(tokens)
    typer.echo(f"Tokens: {len(tokens)}")


@app.command("sentence")
def sentence_command(
    index: Annotated[int, typer.Argument(help="Token index inside the sentence.")],
    text: TextArgument = None,
    file: FileOption = None,
) -> None:
    """Print the sentence range containing a token."""

    try:
        tokens = tokenize(_read_source_text(text, file))
        bounds = sentence_range(index, tokens)
    except IndexError as exc:
        exit_with_command_error(
            "sentence",
            ReaderStageError(
                stage="selection",
                detail=str(exc),
                hint="Run `fluxreader tokens` to list valid indices.",
            ),
        )
    except Exception as exc:
        exit_with_command_error("sentence", exc)

    if bounds is None:
        typer.echo("No sentence content at this index.")
        return
    start, end = bounds
    typer.echo(f"Range: {start}-{end}")
    typer.echo(f"Sentence: {join_span(tokens, start, end)}")


async def _translate_selection(
    session: ReaderSession,
    text: str,
    indices: list[int],
    mode: SelectionMode,
) -> None:
    session.set_config(text, session.source_language, session.target_language)
    session.set_mode(mode)
    for index in indices:
        if session.selection.is_selected(index) and mode is SelectionMode.SENTENCE:
            continue
        session.click(index, multi_select=True)
    await session.orchestrator.wait_idle()


@app.command("translate")
def translate_command(
    select: Annotated[
        str,
        typer.Option("--select", "-s", help="Token indices/ranges to select, e.g. `0,2-4`."),
    ],
    text: TextArgument = None,
    file: FileOption = None,
    mode: Annotated[
        str, typer.Option("--mode", help="Selection mode: `word` or `sentence`.")
    ] = "word",
    source: SourceOption = None,
    target: TargetOption = None,
    config_file: ConfigOption = None,
    provider: ProviderOption = None,
    model: ModelOption = None,
    base_url: BaseUrlOption = None,
    api_key: ApiKeyOption = None,
    prompt_api_key: PromptApiKeyOption = False,
    store_api_key: StoreApiKeyOption = True,
) -> None:
    """Select tokens, translate each settled group, and print the results."""

    try:
        source_text = _read_source_text(text, file)
        indices = _parse_indices(select, len(tokenize(source_text)))
        selection_mode = _parse_mode(mode)
        session = _session_for(
            config_file,
            provider,
            model,
            base_url,
            api_key,
            prompt_api_key,
            store_api_key,
            source=source,
            target=target,
        )
        asyncio.run(_translate_selection(session, source_text, indices, selection_mode))
    except Exception as exc:
        exit_with_command_error("translate", exc)

    echo_group_translations(session.group_translations())


async def _analyze_target(
    session: ReaderSession,
    text: str,
    index: int,
    indices: list[int],
    force_single: bool,
) -> str | None:
    session.set_config(text, session.source_language, session.target_language)
    for selected in indices:
        session.click(selected, multi_select=True)
    tab_id = session.more_info(index, force_single=force_single)
    await session.orchestrator.wait_idle()
    return tab_id


@app.command("analyze")
def analyze_command(
    index: Annotated[int, typer.Argument(help="Token index to analyze.")],
    text: TextArgument = None,
    file: FileOption = None,
    select: Annotated[
        str | None,
        typer.Option("--select", "-s", help="Select indices first so the group is analyzed."),
    ] = None,
    single: Annotated[
        bool, typer.Option("--single", help="Analyze only the token, not its group.")
    ] = False,
    source: SourceOption = None,
    target: TargetOption = None,
    config_file: ConfigOption = None,
    provider: ProviderOption = None,
    model: ModelOption = None,
    base_url: BaseUrlOption = None,
    api_key: ApiKeyOption = None,
    prompt_api_key: PromptApiKeyOption = False,
    store_api_key: StoreApiKeyOption = True,
) -> None:
    """Print a structured grammar and usage analysis as JSON."""

    try:
        source_text = _read_source_text(text, file)
        token_count = len(tokenize(source_text))
        (target_index,) = _parse_indices(str(index), token_count)
        indices = _parse_indices(select, token_count) if select else []
        session = _session_for(
            config_file,
            provider,
            model,
            base_url,
            api_key,
            prompt_api_key,
            store_api_key,
            source=source,
            target=target,
        )
        tab_id = asyncio.run(
            _analyze_target(session, source_text, target_index, indices, single)
        )
        if tab_id is None:
            raise ReaderStageError(
                stage="selection",
                detail=f"Token {target_index} has no text to analyze.",
                hint="Pick a non-whitespace token index.",
            )
        tab = session.orchestrator.active_tab
        if tab is None or tab.status is not TranslationStatus.RESOLVED:
            raise ReaderStageError(
                stage="analyze",
                detail=(tab.error if tab is not None else None) or "Analysis did not complete.",
                hint="Check provider availability with `fluxreader health`.",
            )
    except Exception as exc:
        exit_with_command_error("analyze", exc)

    echo_rich_detail(tab)


@app.command("read")
def read_command(
    text: TextArgument = None,
    file: FileOption = None,
    start: Annotated[
        int, typer.Option("--from", help="Token index playback starts from.")
    ] = 0,
    page_size: Annotated[
        int | None, typer.Option("--page-size", help="Tokens per page.")
    ] = None,
    rate: Annotated[
        float | None, typer.Option("--rate", help="Speech rate multiplier (0.1 to 10).")
    ] = None,
    config_file: ConfigOption = None,
) -> None:
    """Dry-run playback and print page changes as the voiced token advances."""

    engine = DryRunSpeechEngine()
    try:
        source_text = _read_source_text(text, file)
        config = apply_cli_overrides(
            load_reader_config(config_file),
            page_size=page_size,
            speech_rate=rate,
            runtime_cli_values={"provider": "echo"},
        )
        session = build_session(config, resolve_runtime(config), engine)
        session.set_config(source_text, session.source_language, session.target_language)
        (start_index,) = _parse_indices(str(start), len(session.tokens))
        session.subscribe(
            lambda reason: typer.echo(f"Page {session.page}/{session.total_pages}")
            if reason == "page"
            else None
        )
        typer.echo(f"Page {session.page}/{session.total_pages}")
        session.play_from(start_index)
        steps = engine.drain()
    except Exception as exc:
        exit_with_command_error("read", exc)

    typer.echo(f"Engine steps: {steps}")
    typer.echo("Playback finished.")


@app.command("models")
def models_command(
    config_file: ConfigOption = None,
    provider: ProviderOption = None,
    base_url: BaseUrlOption = None,
    api_key: ApiKeyOption = None,
) -> None:
    """List models the configured provider can serve."""

    try:
        session = _session_for(config_file, provider, None, base_url, api_key, False, False)
        models = session.orchestrator.service.list_models()
    except Exception as exc:
        exit_with_command_error("models", exc)

    if not models:
        typer.echo("No models reported.")
        return
    for name in models:
        typer.echo(name)


@app.command("health")
def health_command(
    config_file: ConfigOption = None,
    provider: ProviderOption = None,
    base_url: BaseUrlOption = None,
    api_key: ApiKeyOption = None,
) -> None:
    """Check whether the configured provider is reachable."""

    try:
        session = _session_for(config_file, provider, None, base_url, api_key, False, False)
        healthy = session.orchestrator.service.health_check()
        if not healthy:
            raise ReaderStageError(
                stage="health",
                detail="Provider is unreachable.",
                hint="Verify `--base-url` and that the provider service is running.",
            )
    except Exception as exc:
        exit_with_command_error("health", exc)

    typer.echo("Provider: healthy")


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored CLI credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            ReaderStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "OpenAI API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                ReaderStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except RuntimeError as exc:
            exit_with_command_error(
                "credentials",
                ReaderStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    status = "present" if credential_store.get_api_key() is not None else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored OpenAI API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
