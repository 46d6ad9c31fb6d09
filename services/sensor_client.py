"""Client for the upstream air-quality monitoring station API."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Mapping

import httpx
from pydantic import ValidationError

from models.records import Reading
from services.errors import UpstreamError

logger = logging.getLogger(__name__)

_SUCCESS_RESULT = 200

# Canonical field -> upstream key. Values arrive as strings and are parsed.
_PARSED_FIELDS: Dict[str, str] = {
    "o3_ppb": "o3_ppb_field",
    "co_ppm": "co_ppm_field",
    "so2_ppb": "so2_ppb_field",
    "no2_ppb": "no2_ppb_field",
    "pm10_ug_m3": "pm10_ug_m3_field",
    "pm2_5_ug_m3": "pm2_5_ug_m3_field",
    "temperature": "temperature_field",
    "humidity": "humidity_field",
    "atmospheric_pressure_kpa": "atmospheric_pressure_kpa_field",
    "wind_speed_m_s": "wind_speed_m_s_field",
    "total_solar_radiation_w_m2": "total_solar_radiation_w_m2_field",
    "PM2_5_AQI": "PM2.5_AQI",
    "PM10_AQI": "PM10_AQI",
    "SO2_AQI": "SO2_AQI",
    "NO2_AQI": "NO2_AQI",
    "O3_AQI": "O3_AQI",
    "CO_AQI": "CO_AQI",
}

# Canonical field -> upstream key. Stored exactly as the upstream sends them;
# existing documents depend on these not being re-parsed.
_PASSTHROUGH_FIELDS: Dict[str, str] = {
    "id": "id",
    "location": "mn",
    "datatime": "datatime",
    "report_date": "report_date",
    "report_time": "report_time",
    "no_ppb": "no_ppb_field",
    "nox_ppb": "nox_ppb_field",
    "wind_direction": "wind_direction_field",
    "rainfall_mm": "rainfall_mm_field",
}


class SensorClient:
    """Fetches and normalizes the current reading for a monitoring location."""

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self.base_url = base_url

    async def fetch_reading(self, location: int) -> Reading:
        params = {"location": str(location), "date": "", "time": ""}
        try:
            response = await self._client.get(self.base_url, params=params)
            response.raise_for_status()
            envelope = response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                location, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(location, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise UpstreamError(location, "response body is not JSON") from exc

        if not isinstance(envelope, dict):
            raise UpstreamError(location, "invalid response structure")
        if envelope.get("result") != _SUCCESS_RESULT or not envelope.get("aqms"):
            raise UpstreamError(location, "invalid response structure")

        aqms = envelope["aqms"]
        if not isinstance(aqms, Mapping):
            raise UpstreamError(location, "aqms payload is not an object")

        reading = normalize_payload(location, aqms)
        logger.debug("Fetched reading", extra={"location": location})
        return reading


def normalize_payload(location: int, aqms: Mapping[str, Any]) -> Reading:
    """Map an upstream ``aqms`` object onto a complete ``Reading``.

    Raises ``UpstreamError`` if any field is missing or cannot be parsed.
    """
    document: Dict[str, Any] = {}

    for field, key in _PASSTHROUGH_FIELDS.items():
        value = aqms.get(key)
        if value is None or value == "":
            raise UpstreamError(location, f"missing field {key!r}")
        document[field] = value

    for field, key in _PARSED_FIELDS.items():
        document[field] = _parse_float(location, key, aqms.get(key))

    document["report_date_time"] = _parse_report_datetime(
        location, document["report_date"], document["report_time"]
    )

    try:
        reading = Reading.model_validate(document)
    except ValidationError as exc:
        raise UpstreamError(location, f"payload failed validation: {exc}") from exc
    if reading.location != location:
        raise UpstreamError(
            location, f"payload reports location {reading.location}, expected {location}"
        )
    return reading


def _parse_float(location: int, key: str, value: Any) -> float:
    if value is None or isinstance(value, bool):
        raise UpstreamError(location, f"missing field {key!r}")
    try:
        parsed = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except ValueError as exc:
        raise UpstreamError(location, f"non-numeric value for {key!r}") from exc
    if not math.isfinite(parsed):
        raise UpstreamError(location, f"non-numeric value for {key!r}")
    return parsed


def _parse_report_datetime(location: int, report_date: Any, report_time: Any) -> datetime:
    """Parse the report timestamp as a naive local datetime.

    Offset-qualified timestamps are converted to local time first so they
    compare cleanly with stored readings.
    """
    try:
        parsed = datetime.fromisoformat(f"{report_date}T{report_time}")
    except ValueError as exc:
        raise UpstreamError(
            location, f"invalid report timestamp {report_date!r} {report_time!r}"
        ) from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
