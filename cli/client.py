from __future__ import annotations

from typing import Any, Dict, List, NoReturn

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the airwatch service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_status(self) -> Dict[str, Any]:
        return self._request("GET", "/poller/status")

    def run_cycle(self) -> Dict[str, Any]:
        return self._request("POST", "/poller/run")

    def get_latest(self, location: int) -> Dict[str, Any]:
        return self._request(
            "GET",
            f"/readings/{location}/latest",
            not_found=f"No stored readings for location {location}.",
        )

    def get_users(self, location: int) -> List[Dict[str, Any]]:
        try:
            response = self._client.get(f"/users/location/{location}")
            if response.status_code == 404:
                return []
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            self._handle_transport_error(exc)
        return response.json()

    def cleanup_forecasts(self, days_to_keep: int) -> Dict[str, Any]:
        return self._request(
            "DELETE", "/forecasts/cleanup", params={"days_to_keep": days_to_keep}
        )

    def _request(
        self,
        method: str,
        path: str,
        not_found: str | None = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            if response.status_code == 404 and not_found:
                raise typer.BadParameter(not_found)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            self._handle_transport_error(exc)
        payload = response.json()
        if not isinstance(payload, dict):
            raise typer.BadParameter(f"Unexpected response payload from {path}.")
        return payload

    def _handle_transport_error(self, exc: httpx.HTTPError) -> NoReturn:
        typer.secho(
            f"Could not reach {self._config.base_url}: {exc}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> NoReturn:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
