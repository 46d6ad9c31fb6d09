"""Tests for fetching and normalizing upstream station payloads."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List

import httpx
import pytest

from models.records import Reading
from services.errors import UpstreamError
from services.sensor_client import SensorClient

BASE_URL = "http://sensors.test/api/aqms_data/"


def _fetch(handler: Callable[[httpx.Request], httpx.Response], location: int = 1) -> Reading:
    async def run() -> Reading:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await SensorClient(client, BASE_URL).fetch_reading(location)

    return asyncio.run(run())


def _responding(payload: Any, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return handler


def test_fetch_reading_normalizes_payload(upstream_payload) -> None:
    requests: List[httpx.Request] = []
    payload = upstream_payload(location=3)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=payload)

    reading = _fetch(handler, location=3)

    assert requests[0].url.params["location"] == "3"
    assert requests[0].url.params["date"] == ""
    assert requests[0].url.params["time"] == ""

    assert reading.location == 3
    assert reading.id == 5123
    assert reading.report_date == "2025-05-01"
    assert reading.report_time == "10:00:00"
    assert reading.report_date_time == datetime(2025, 5, 1, 10, 0, 0)
    assert reading.o3_ppb == 20.5
    assert reading.no2_ppb == 12.25
    assert reading.PM2_5_AQI == 150.0
    assert reading.O3_AQI == 50.0


def test_passthrough_fields_keep_upstream_values(upstream_payload) -> None:
    reading = _fetch(_responding(upstream_payload()))

    assert reading.no_ppb == 5.5
    assert reading.nox_ppb == 17.75
    assert reading.wind_direction == 180
    assert reading.rainfall_mm == 0


def test_non_success_result_raises_upstream_error(upstream_payload) -> None:
    payload = upstream_payload()
    payload["result"] = 500

    with pytest.raises(UpstreamError) as exc_info:
        _fetch(_responding(payload), location=1)

    assert exc_info.value.location == 1


def test_missing_aqms_raises_upstream_error() -> None:
    with pytest.raises(UpstreamError):
        _fetch(_responding({"result": 200}))


@pytest.mark.parametrize("key", ["mn", "report_time", "no_ppb_field", "PM2.5_AQI", "humidity_field"])
def test_missing_field_never_yields_partial_reading(upstream_payload, key: str) -> None:
    payload = upstream_payload()
    del payload["aqms"][key]

    with pytest.raises(UpstreamError) as exc_info:
        _fetch(_responding(payload))

    assert key in exc_info.value.reason


def test_non_numeric_value_raises_upstream_error(upstream_payload) -> None:
    payload = upstream_payload(**{"co_ppm_field": "n/a"})

    with pytest.raises(UpstreamError) as exc_info:
        _fetch(_responding(payload))

    assert "co_ppm_field" in exc_info.value.reason


@pytest.mark.parametrize("value", ["NaN", "inf", "-Infinity", " nan "])
def test_non_finite_value_raises_upstream_error(upstream_payload, value: Any) -> None:
    payload = upstream_payload(**{"PM2.5_AQI": value})

    with pytest.raises(UpstreamError) as exc_info:
        _fetch(_responding(payload))

    assert "PM2.5_AQI" in exc_info.value.reason


def test_mismatched_location_raises_upstream_error(upstream_payload) -> None:
    payload = upstream_payload(location=4)

    with pytest.raises(UpstreamError) as exc_info:
        _fetch(_responding(payload), location=3)

    assert exc_info.value.location == 3
    assert "expected 3" in exc_info.value.reason


def test_offset_timestamp_is_normalized_to_naive_local_time(upstream_payload) -> None:
    payload = upstream_payload(report_time="10:00:00+05:00")

    reading = _fetch(_responding(payload))

    expected = (
        datetime(2025, 5, 1, 10, 0, tzinfo=timezone(timedelta(hours=5)))
        .astimezone()
        .replace(tzinfo=None)
    )
    assert reading.report_date_time.tzinfo is None
    assert reading.report_date_time == expected


def test_out_of_range_location_raises_upstream_error(upstream_payload) -> None:
    payload = upstream_payload(mn=42)

    with pytest.raises(UpstreamError):
        _fetch(_responding(payload))


def test_http_error_status_raises_upstream_error() -> None:
    with pytest.raises(UpstreamError) as exc_info:
        _fetch(_responding({"detail": "boom"}, status_code=503), location=7)

    assert exc_info.value.location == 7
    assert "503" in exc_info.value.reason


def test_non_json_body_raises_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(UpstreamError) as exc_info:
        _fetch(handler)

    assert "JSON" in exc_info.value.reason


def test_transport_failure_raises_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as exc_info:
        _fetch(handler, location=2)

    assert "connection refused" in exc_info.value.reason


def test_invalid_report_timestamp_raises_upstream_error(upstream_payload) -> None:
    payload: Dict[str, Any] = upstream_payload(report_time="25:99")

    with pytest.raises(UpstreamError):
        _fetch(_responding(payload))
