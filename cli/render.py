from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _join(values: Iterable[Any]) -> str:
    items = [str(value) for value in values]
    return ", ".join(items) if items else "none"


def render_cycle(payload: Dict[str, Any]) -> None:
    echo_heading("Poll Cycle")
    echo_key_values(
        [
            ("fetched", _join(payload.get("fetched") or [])),
            ("stored", _join(payload.get("stored") or [])),
            ("duplicates", _join(payload.get("duplicates") or [])),
            ("alerted", _join(payload.get("alerted") or [])),
            ("cycle_ms", payload.get("cycle_ms")),
        ]
    )

    failed = payload.get("failed") or {}
    store_errors = payload.get("store_errors") or {}
    policy_errors = payload.get("policy_errors") or {}
    typer.echo()
    echo_heading("Failures")
    if failed or store_errors or policy_errors:
        for location, reason in failed.items():
            typer.echo(f"  - location {location} fetch: {reason}")
        for location, reason in store_errors.items():
            typer.echo(f"  - location {location} store: {reason}")
        for location, reason in policy_errors.items():
            typer.echo(f"  - location {location} alert decision: {reason}")
    else:
        typer.echo("No failures recorded.")

    dispatch = payload.get("dispatch")
    if dispatch:
        typer.echo()
        echo_heading("Notifications")
        echo_key_values(
            [
                ("sent", dispatch.get("success_count")),
                ("failed", dispatch.get("failure_count")),
            ]
        )


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Poller Status")
    echo_key_values(
        [
            ("state", payload.get("state")),
            ("running", payload.get("running")),
            ("cycles_completed", payload.get("cycles_completed")),
            ("interval_seconds", payload.get("interval_seconds")),
            ("locations", _join(payload.get("locations") or [])),
            ("alert_dispatch_enabled", payload.get("alert_dispatch_enabled")),
        ]
    )
    last_cycle = payload.get("last_cycle")
    typer.echo()
    if last_cycle:
        render_cycle(last_cycle)
    else:
        typer.echo("No cycle has completed yet.")


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading(f"Location {payload.get('location')}")
    echo_key_values(
        [
            ("reported", f"{payload.get('report_date')} {payload.get('report_time')}"),
            ("PM2.5 AQI", payload.get("PM2_5_AQI")),
            ("PM10 AQI", payload.get("PM10_AQI")),
            ("O3 AQI", payload.get("O3_AQI")),
            ("NO2 AQI", payload.get("NO2_AQI")),
            ("SO2 AQI", payload.get("SO2_AQI")),
            ("CO AQI", payload.get("CO_AQI")),
            ("temperature", payload.get("temperature")),
            ("humidity", payload.get("humidity")),
        ]
    )


def render_users(location: int, users: List[Dict[str, Any]]) -> None:
    echo_heading(f"Users in location {location}")
    if not users:
        typer.echo("No users registered.")
        return
    for user in users:
        threshold = user.get("alert_threshold") or "-"
        typer.echo(f"  - {user.get('user_id')} (threshold: {threshold})")
