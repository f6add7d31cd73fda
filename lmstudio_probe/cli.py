from __future__ import annotations

import asyncio
import json
import shlex
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import config as config_module
from .config import (
    LM_STUDIO_ENV_VARS,
    choose_model,
    get_effective_config,
    lm_studio_env,
    load_config,
    save_config,
    setup_logging,
)
from .doctor import format_results, has_critical_failures, run_all_checks
from .errors import LMStudioError
from .lm_studio import fetch_lm_studio_models, probe_lm_studio_status, test_lm_studio_connection

app = typer.Typer(no_args_is_help=True, help="Inspect a local LM Studio server.")
console = Console()

URL_OPTION_HELP = "LM Studio base URL (default: configured URL)"


def _print_error(error: LMStudioError) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(error.message)}", highlight=False)
    if error.hint:
        console.print(f"[dim]{error.hint}[/dim]")


def _resolve_url(url: Optional[str]) -> str:
    return url or get_effective_config().lm_studio.base_url


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    Inspect a local LM Studio server.
    """
    level = "DEBUG" if verbose else get_effective_config().logging.level
    setup_logging(level)


@app.command()
def models(
    url: Optional[str] = typer.Option(None, "--url", "-u", help=URL_OPTION_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List the models LM Studio has loaded.
    """
    config = get_effective_config()
    base = url or config.lm_studio.base_url

    try:
        names = asyncio.run(fetch_lm_studio_models(base))
    except LMStudioError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps(names, indent=2))
    else:
        table = Table(title=f"LM Studio @ {base.rstrip('/')}")
        table.add_column("Model")
        for name in names:
            table.add_row(name)
        console.print(table)

    selected = choose_model(names, config.lm_studio.selected_model)
    if selected != config.lm_studio.selected_model:
        # Only the file config is written back, never env overrides
        stored = load_config()
        stored.lm_studio.selected_model = selected
        save_config(stored)
        if not json_output:
            console.print(f"[dim]Selected model: {selected}[/dim]")


@app.command()
def ping(
    url: Optional[str] = typer.Option(None, "--url", "-u", help=URL_OPTION_HELP),
):
    """
    Test the connection to LM Studio.
    """
    base = _resolve_url(url)

    try:
        connected = asyncio.run(test_lm_studio_connection(base))
    except LMStudioError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    if connected:
        console.print(f"[green]✓[/green] LM Studio is reachable at {base}")
        return

    console.print(f"[bold red]✗[/bold red] Failed to connect to LM Studio at {base}")
    console.print("[dim]Make sure it's running and the \"Local server\" is enabled.[/dim]")
    raise typer.Exit(code=1)


@app.command()
def status(
    url: Optional[str] = typer.Option(None, "--url", "-u", help=URL_OPTION_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show response time, status and model count of the server.
    """
    base = _resolve_url(url)

    try:
        result = asyncio.run(probe_lm_studio_status(base))
    except LMStudioError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps(result.to_dict(), indent=2))
    elif not result.reachable:
        console.print(f"[bold red]✗[/bold red] LM Studio is not accessible at {result.url}")
        console.print(f"[dim]{result.error}[/dim]")
    else:
        table = Table(title=f"LM Studio @ {base.rstrip('/')}", show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Status", f"{result.status_code} {result.reason}")
        table.add_row("Response time", f"{result.elapsed_ms}ms")
        table.add_row("Content-Type", result.content_type or "-")
        table.add_row("API object", result.api_object or "unknown")
        table.add_row("Models available", str(result.model_count or 0))
        console.print(table)
        if not result.ok:
            console.print("[yellow]LM Studio responded but with an error status[/yellow]")

    if not result.ok:
        raise typer.Exit(code=1)


@app.command()
def use(
    model: str = typer.Argument(..., help="Model id to select"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help=URL_OPTION_HELP),
):
    """
    Select the model to use (must be loaded in LM Studio).
    """
    base = _resolve_url(url)

    try:
        names = asyncio.run(fetch_lm_studio_models(base))
    except LMStudioError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    if model not in names:
        console.print(f"[bold red]Error:[/bold red] Model '{model}' is not loaded")
        console.print(f"[dim]Available models: {', '.join(names)}[/dim]")
        raise typer.Exit(code=1)

    stored = load_config()
    stored.lm_studio.selected_model = model
    save_config(stored)
    console.print(f"[green]✓[/green] Selected model: {model}")


@app.command()
def doctor(
    url: Optional[str] = typer.Option(None, "--url", "-u", help=URL_OPTION_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Run LM Studio health diagnostics.
    """
    results = asyncio.run(run_all_checks(get_effective_config(), base_url=url))
    output = format_results(results, use_json=json_output)
    if json_output:
        print(output)
    else:
        console.print(output, markup=False, highlight=False)

    if has_critical_failures(results):
        raise typer.Exit(code=1)


@app.command()
def env(
    url: Optional[str] = typer.Option(None, "--url", "-u", help=URL_OPTION_HELP),
    unset: bool = typer.Option(False, "--unset", help="Print commands that clear the variables"),
):
    """
    Print shell exports that point OpenAI/Anthropic clients at LM Studio.

    Use as: eval "$(lmstudio-probe env)"
    """
    if unset:
        for name in LM_STUDIO_ENV_VARS:
            print(f"unset {name}")
        return

    config = get_effective_config()
    if url:
        config.lm_studio.base_url = url

    for name, value in lm_studio_env(config).items():
        print(f"export {name}={shlex.quote(value)}")


@app.command()
def where():
    """
    Show current configuration.
    """
    config = get_effective_config()
    console.print(f"config_file={config_module.CONFIG_FILE}", highlight=False)
    console.print(f"base_url={config.lm_studio.base_url}", highlight=False)
    console.print(f"selected_model={config.lm_studio.selected_model}", highlight=False)
    console.print(f"log_level={config.logging.level}", highlight=False)


if __name__ == "__main__":
    app()
