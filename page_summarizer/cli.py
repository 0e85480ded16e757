"""CLI entry point for page-summarize."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .cache import JsonFileStore, MemoryStore, SummaryCache
from .constants import SUMMARY_FORMATS, SUMMARY_LENGTHS, YOUTUBE_TRANSCRIPT_MODES
from .errors import SummarizerError
from .pipeline import SummaryOutcome, Summarizer
from .providers.registry import PROVIDERS, get_provider, validate_api_key
from .settings import API_KEY_ENV_VARS, JsonSettingsStore, MemorySettingsStore, Settings, SettingsStore
from .summarize.chunking import count_tokens
from .summarize.client import ApiClient, KeyTestResult

# Main app
app = typer.Typer(
    name="page-summarize",
    help="Summarize web articles and YouTube videos with an LLM provider.",
    no_args_is_help=True,
)

# Subcommand groups
cache_app = typer.Typer(help="Manage the summary cache.")
app.add_typer(cache_app, name="cache")
settings_app = typer.Typer(help="Show or change stored settings.")
app.add_typer(settings_app, name="settings")

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def _check_choice(value: str | None, allowed, label: str) -> None:
    if value is not None and value not in allowed:
        _fail(f"Unknown {label} {value!r}. Choose from: {', '.join(allowed)}")


def _effective_settings(
    stored: Settings,
    provider: str | None,
    model: str | None,
    length: str | None,
    summary_format: str | None,
    api_key: str | None,
) -> dict:
    """Stored settings with this run's command line overrides applied."""
    data = stored.model_dump()
    if provider and provider != stored.provider:
        data["provider"] = provider
        data["api_key"] = os.environ.get(API_KEY_ENV_VARS.get(provider, ""), "")
    if model:
        data["model"] = model
    if length:
        data["summary_length"] = length
    if summary_format:
        data["summary_format"] = summary_format
    if api_key:
        data["api_key"] = api_key
    return data


def _build_summarizer(settings_store: SettingsStore, use_cache: bool = True) -> Summarizer:
    """Wire up the pipeline with file-backed or throwaway caching."""
    cache = SummaryCache(JsonFileStore() if use_cache else MemoryStore())
    return Summarizer(ApiClient(settings_store), cache, settings_store)


async def _run_summary(summarizer: Summarizer, url: str, html: str | None) -> SummaryOutcome:
    try:
        summarizer.startup()
        return await summarizer.summarize_page(url, html)
    finally:
        await summarizer.api_client.aclose()
        await summarizer.aclose()


@app.command()
def summarize(
    url: Annotated[str, typer.Argument(help="Article or YouTube URL")],
    html_file: Annotated[
        Path | None,
        typer.Option("--html", help="Use saved page HTML instead of fetching the URL"),
    ] = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="Provider id for this run (openai, anthropic, gemini, grok)"),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model for this run"),
    ] = None,
    length: Annotated[
        str | None,
        typer.Option("--length", "-l", help="Summary length: BRIEF, STANDARD or DETAILED"),
    ] = None,
    summary_format: Annotated[
        str | None,
        typer.Option("--format", "-f", help="Summary format: paragraph or bullets"),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option("--api-key", help="API key for this run", envvar="PAGE_SUMMARIZER_API_KEY"),
    ] = None,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Do not read or write the summary cache"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose output"),
    ] = False,
) -> None:
    """Summarize an article or YouTube video."""
    _configure_logging(verbose)
    _check_choice(length, tuple(SUMMARY_LENGTHS), "length")
    _check_choice(summary_format, SUMMARY_FORMATS, "format")
    if provider is not None and get_provider(provider) is None:
        _fail(f"Unsupported provider: {provider}")

    html: str | None = None
    if html_file is not None:
        if not html_file.exists():
            _fail(f"File not found: {html_file}")
        html = html_file.read_text(encoding="utf-8", errors="replace")

    stored = JsonSettingsStore().load()
    settings_store = MemorySettingsStore(
        _effective_settings(stored, provider, model, length, summary_format, api_key)
    )
    effective = settings_store.load()
    if verbose:
        console.print(f"[dim]Provider: {effective.provider}, model: {effective.model}[/dim]")

    summarizer = _build_summarizer(settings_store, use_cache=not no_cache)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Generating summary...", total=None)
        try:
            outcome = asyncio.run(_run_summary(summarizer, url, html))
        except SummarizerError as e:
            progress.stop()
            _fail(e.message)

    if verbose:
        console.print(f"[dim]Source: {outcome.source}, ~{count_tokens(outcome.summary)} tokens[/dim]")
    title = outcome.title or url
    suffix = " [dim](cached)[/dim]" if outcome.from_cache else ""
    console.print(Panel(Markdown(outcome.summary), title=f"[bold]{title}[/bold]{suffix}"))


@app.command("test-key")
def test_key(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    api_key: Annotated[str, typer.Argument(help="API key to check")],
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model to test against"),
    ] = None,
) -> None:
    """Check an API key with a minimal request."""
    descriptor = get_provider(provider)
    if descriptor is not None and not validate_api_key(provider, api_key):
        console.print(f"[yellow]Key does not start with {descriptor.key_prefix!r}[/yellow]")

    async def run() -> KeyTestResult:
        async with ApiClient(MemorySettingsStore()) as client:
            return await client.test_api_key(provider, api_key, model)

    result = asyncio.run(run())
    if not result.ok:
        _fail(result.error_message or "API key test failed.")
    console.print("[green]✓[/green] API key works")


@app.command("providers")
def list_providers() -> None:
    """List supported providers and their models."""
    table = Table("Provider", "Name", "Models", "Key prefix")
    for descriptor in PROVIDERS.values():
        models = ", ".join(
            f"{info.name} ({info.max_tokens})" for info in descriptor.models.values()
        )
        table.add_row(descriptor.id, descriptor.name, models, descriptor.key_prefix or "-")
    console.print(table)


# Settings subcommands
def _mask(key: str) -> str:
    if not key:
        return "[dim]not set[/dim]"
    return f"{key[:4]}…{key[-4:]}" if len(key) > 12 else "****"


@settings_app.command("show")
def settings_show() -> None:
    """Show stored settings."""
    store = JsonSettingsStore()
    settings = store.load()
    console.print(f"Settings file: {store.path}")
    for field, value in settings.model_dump().items():
        console.print(f"{field}: {_mask(value) if field == 'api_key' else value}")


@settings_app.command("set")
def settings_set(
    provider: Annotated[str | None, typer.Option("--provider", "-p", help="Provider id")] = None,
    model: Annotated[str | None, typer.Option("--model", "-m", help="Model name")] = None,
    api_key: Annotated[str | None, typer.Option("--api-key", help="API key")] = None,
    length: Annotated[str | None, typer.Option("--length", "-l", help="BRIEF, STANDARD or DETAILED")] = None,
    summary_format: Annotated[str | None, typer.Option("--format", "-f", help="paragraph or bullets")] = None,
    transcript_mode: Annotated[
        str | None,
        typer.Option("--transcript-mode", help="auto, or no-auto to skip auto-generated captions"),
    ] = None,
) -> None:
    """Update stored settings."""
    _check_choice(length, tuple(SUMMARY_LENGTHS), "length")
    _check_choice(summary_format, SUMMARY_FORMATS, "format")
    _check_choice(transcript_mode, YOUTUBE_TRANSCRIPT_MODES, "transcript mode")
    if provider is not None and get_provider(provider) is None:
        _fail(f"Unsupported provider: {provider}")

    updates = {
        "provider": provider,
        "model": model,
        "api_key": api_key,
        "summary_length": length,
        "summary_format": summary_format,
        "youtube_transcript_mode": transcript_mode,
    }
    updates = {key: value for key, value in updates.items() if value is not None}
    if not updates:
        console.print("[yellow]Nothing to change[/yellow]")
        raise typer.Exit(1)

    saved = JsonSettingsStore().save(updates)
    if model and saved.model != model:
        console.print(f"[yellow]{model} is not offered by {saved.provider}; using {saved.model}[/yellow]")
    console.print("[green]Settings saved[/green]")


# Cache subcommands
@cache_app.command("stats")
def cache_stats() -> None:
    """Show cache statistics."""
    store = JsonFileStore()
    stats = SummaryCache(store).stats()
    console.print(f"Cache directory: {store.directory}")
    console.print(f"Entries: {stats['total_entries']} ({stats['active_entries']} active, {stats['expired_entries']} expired)")
    console.print(f"Total size: {stats['total_size_bytes'] / 1024:.1f} KB")
    console.print(f"TTL: {stats['cache_ttl_hours']} hours")


@cache_app.command("cleanup")
def cache_cleanup() -> None:
    """Remove expired cache entries."""
    count = SummaryCache(JsonFileStore()).cleanup()
    console.print(f"[green]Removed {count} expired entries[/green]")


@cache_app.command("clear")
def cache_clear() -> None:
    """Remove all cached summaries."""
    count = SummaryCache(JsonFileStore()).clear()
    console.print(f"[green]Cleared {count} cache entries[/green]")


if __name__ == "__main__":
    app()
