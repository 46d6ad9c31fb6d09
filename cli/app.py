from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_cycle, render_reading, render_status, render_users
from models.records import MAX_LOCATION, MIN_LOCATION


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the airwatch service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the poller state and the outcome of its last cycle."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("run")
def run_command(ctx: typer.Context) -> None:
    """Trigger one poll cycle now and show its outcome."""
    state = _get_state(ctx)
    typer.echo(f"Running poll cycle on {state.config.base_url} ...")
    render_cycle(state.client.run_cycle())


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    location: int = typer.Argument(
        ..., min=MIN_LOCATION, max=MAX_LOCATION, help="Monitoring location id."
    ),
) -> None:
    """Show the most recent stored reading for a location."""
    state = _get_state(ctx)
    render_reading(state.client.get_latest(location))


@app.command("users")
def users_command(
    ctx: typer.Context,
    location: int = typer.Argument(
        ..., min=MIN_LOCATION, max=MAX_LOCATION, help="Monitoring location id."
    ),
) -> None:
    """List users registered to a location."""
    state = _get_state(ctx)
    render_users(location, state.client.get_users(location))


@app.command("cleanup")
def cleanup_command(
    ctx: typer.Context,
    days: int = typer.Option(30, "--days", min=0, help="Days of forecasts to keep."),
) -> None:
    """Delete forecasts older than the retention window."""
    state = _get_state(ctx)
    payload = state.client.cleanup_forecasts(days)
    typer.secho(
        f"Deleted {payload.get('deleted_count')} forecast records older than {days} days.",
        fg=typer.colors.GREEN,
    )
