"""Typer CLI entrypoint for PauseShop."""

from __future__ import annotations

import asyncio
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import structlog
import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, GlobalConfig, ProviderConfig
from .detector import load_steps, run_replay
from .engine import (
    CancellationToken,
    ScrapedProduct,
    SearchProvider,
    SearchQuery,
    StreamingBackendClient,
    build_providers,
    encode_frame,
    query_for_terms,
)
from .logging_conf import configure_logging, log_file, provider_logger, tail_log
from .orchestrator import AnalysisOrchestrator, SessionOutcome
from .ui import ConsoleNotifier, render_results_table

app = typer.Typer(
    help="PauseShop command line tools",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(
    name="config",
    help="Inspect or create settings",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Read log files",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


def _default_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(follow_redirects=True)


@dataclass
class AppState:
    repository: ConfigRepository
    config: GlobalConfig
    verbose: bool = False
    client_factory: Callable[[], httpx.AsyncClient] = _default_client
    logger_factory: Callable[[str], structlog.BoundLogger] = provider_logger


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    return AppState(
        repository=repository,
        config=repository.load_global_config(),
        verbose=verbose,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _provider_config(state: AppState, name: str) -> ProviderConfig:
    try:
        return state.config.provider(name)
    except KeyError:
        available = ", ".join(sorted(state.config.providers))
        raise typer.BadParameter(f"Unknown provider `{name}` (available: {available})")


def _render_replay_table(records) -> Table:
    table = Table(title="Pause sessions", box=box.SIMPLE_HEAD)
    table.add_column("t (s)", style="dim", justify="right")
    table.add_column("Action", style="cyan")
    table.add_column("Pause id", style="green")
    for record in records:
        table.add_row(f"{record.at:.2f}", record.action, record.pause_id)
    return table


app.add_typer(config_app, name="config", help="Show or initialise data/settings.yaml")
app.add_typer(log_app, name="log", help="Read the application or provider logs")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging")
) -> None:
    try:
        ctx.obj = build_state(verbose)
    except (ValueError, yaml.YAMLError) as exc:
        console.print(f"Invalid settings: {exc}", style="red", markup=False)
        raise typer.Exit(code=1)


# ----------------------------------------------------------------------
# analyze
# ----------------------------------------------------------------------
async def _run_analysis(
    state: AppState, frame: str, session_id: str, provider_names: List[str]
) -> SessionOutcome:
    config = state.config
    async with state.client_factory() as client:
        backend = StreamingBackendClient(config.backend, client=client)
        providers = build_providers(config, provider_names, client=client, logger_factory=state.logger_factory)
        notifier = ConsoleNotifier(console, display_limit=providers[0].config.display_limit)
        orchestrator = AnalysisOrchestrator(backend, providers, notifier)
        try:
            return await orchestrator.run(frame, session_id, CancellationToken())
        finally:
            for provider in providers:
                await provider.aclose()


@app.command("analyze", help="Stream an image to the backend and search every product found.")
def analyze(
    ctx: typer.Context,
    image: Path = typer.Argument(..., help="Frame to analyse (png/jpeg/webp)."),
    provider: Optional[List[str]] = typer.Option(None, "--provider", "-p", help="Search provider, repeatable."),
    session_id: Optional[str] = typer.Option(None, "--session-id", help="Backend session id to reuse."),
) -> None:
    state = _get_state(ctx)
    if not image.is_file():
        console.print(f"Image `{image}` not found.", style="red")
        raise typer.Exit(code=1)
    names = list(provider) if provider else list(state.config.search_providers)
    for name in names:
        _provider_config(state, name)
    mime_type = mimetypes.guess_type(image.name)[0] or "image/png"
    frame = encode_frame(image.read_bytes(), mime_type)
    outcome = asyncio.run(_run_analysis(state, frame, session_id or str(uuid.uuid4()), names))
    if outcome is not SessionOutcome.COMPLETED:
        raise typer.Exit(code=1)


# ----------------------------------------------------------------------
# search
# ----------------------------------------------------------------------
async def _run_search(state: AppState, config: ProviderConfig, query: SearchQuery) -> list[ScrapedProduct]:
    async with state.client_factory() as client:
        search_provider = SearchProvider(config, client=client, logger=state.logger_factory(config.name))
        try:
            return await search_provider.search(query, CancellationToken())
        finally:
            await search_provider.aclose()


@app.command("search", help="Run one provider search for free-text terms.")
def search(
    ctx: typer.Context,
    terms: str = typer.Argument(..., help="Search terms."),
    provider: str = typer.Option("amazon", "--provider", "-p", help="Search provider name."),
    limit: Optional[int] = typer.Option(None, "--limit", help="Rows to display (defaults to display_limit)."),
) -> None:
    state = _get_state(ctx)
    config = _provider_config(state, provider)
    query = query_for_terms(terms, config)
    if query is None:
        console.print("Search terms are empty after cleaning.", style="red")
        raise typer.Exit(code=1)
    for warning in query.warnings:
        console.print(warning, style="yellow")
    console.print(f"GET {query.search_url}", style="dim")
    results = asyncio.run(_run_search(state, config, query))
    if not results:
        console.print("No products found.", style="yellow")
        raise typer.Exit(code=1)
    console.print(
        render_results_table(
            f"{query.search_terms} · {provider}", results, limit or config.display_limit
        )
    )


# ----------------------------------------------------------------------
# replay
# ----------------------------------------------------------------------
@app.command("replay", help="Feed recorded media events through the pause detector.")
def replay(
    ctx: typer.Context,
    events_file: Path = typer.Argument(..., help="YAML or JSON list of media events."),
    host: Optional[str] = typer.Option(None, "--host", help="Page host name, e.g. www.youtube.com."),
    settle: float = typer.Option(10.0, "--settle", help="Seconds of virtual time to run after the last event."),
) -> None:
    state = _get_state(ctx)
    if not events_file.is_file():
        console.print(f"Events file `{events_file}` not found.", style="red")
        raise typer.Exit(code=1)
    try:
        steps, file_host = load_steps(yaml.safe_load(events_file.read_text(encoding="utf-8")))
    except ValueError as exc:
        console.print(f"Could not read events: {exc}", style="red")
        raise typer.Exit(code=1)
    session_layer = run_replay(
        steps,
        hostname=host or file_host or "",
        config=state.config.detector,
        settle=settle,
    )
    if not session_layer.records:
        console.print("No pause was minted.", style="dim")
        return
    console.print(_render_replay_table(session_layer.records))
    console.print(
        f"minted {len(session_layer.by_action('minted'))}, "
        f"confirmed {len(session_layer.by_action('confirmed'))}, "
        f"cancelled {len(session_layer.by_action('cancelled'))}"
    )


# ----------------------------------------------------------------------
# config / log
# ----------------------------------------------------------------------
@config_app.command("show", help="Print the effective settings.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    path = state.repository.locator.global_config_path()
    source = str(path) if path.exists() else "defaults"
    console.print(f"Settings ({source})", style="cyan")
    console.print(
        yaml.safe_dump(state.config.model_dump(mode="json"), allow_unicode=True, sort_keys=False),
        markup=False,
        highlight=False,
    )


@config_app.command("init", help="Write the default settings file.")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    state = _get_state(ctx)
    path = state.repository.locator.global_config_path()
    if path.exists() and not force:
        console.print(f"{path} already exists; use --force to overwrite.", style="yellow")
        raise typer.Exit(code=1)
    written = state.repository.save_global_config(GlobalConfig())
    console.print(f"Wrote {written}", style="green")


@log_app.command("show", help="Show the most recent log lines.")
def log_show(
    provider: Optional[str] = typer.Option(None, "--provider", help="Provider log (defaults to the app log)."),
    lines: int = typer.Option(100, "--lines", "-n", help="Number of lines."),
) -> None:
    lines_found = tail_log(log_file(provider), lines)
    if not lines_found:
        console.print("No log entries yet.", style="dim")
        return
    header = f"{provider or 'pauseshop'} log · last {len(lines_found)} lines"
    console.print(header, style="cyan")
    console.print("".join(lines_found), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
