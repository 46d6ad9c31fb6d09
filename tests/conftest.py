from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict

import pytest

from models.records import Reading


def _reading(
    location: int = 1,
    report_date: str = "2025-05-01",
    report_time: str = "10:00:00",
    **overrides: Any,
) -> Reading:
    values: Dict[str, Any] = {
        "id": 1000 + location,
        "location": location,
        "datatime": f"{report_date} {report_time}",
        "report_date": report_date,
        "report_time": report_time,
        "report_date_time": datetime.fromisoformat(f"{report_date}T{report_time}"),
        "o3_ppb": 20.0,
        "co_ppm": 0.4,
        "so2_ppb": 3.0,
        "no_ppb": 5.0,
        "no2_ppb": 12.0,
        "nox_ppb": 17.0,
        "pm10_ug_m3": 80.0,
        "pm2_5_ug_m3": 35.0,
        "temperature": 31.5,
        "humidity": 40.0,
        "atmospheric_pressure_kpa": 98.7,
        "wind_speed_m_s": 2.1,
        "wind_direction": 180.0,
        "rainfall_mm": 0.0,
        "total_solar_radiation_w_m2": 450.0,
        "PM2_5_AQI": 60.0,
        "PM10_AQI": 55.0,
        "SO2_AQI": 10.0,
        "NO2_AQI": 20.0,
        "O3_AQI": 30.0,
        "CO_AQI": 5.0,
    }
    values.update(overrides)
    return Reading(**values)


def _upstream_payload(location: int = 1, **overrides: Any) -> Dict[str, Any]:
    aqms: Dict[str, Any] = {
        "id": 5120 + location,
        "mn": location,
        "datatime": "2025-05-01 10:05:00",
        "report_date": "2025-05-01",
        "report_time": "10:00:00",
        "o3_ppb_field": "20.5",
        "co_ppm_field": "0.41",
        "so2_ppb_field": "3.2",
        "no_ppb_field": 5.5,
        "no2_ppb_field": "12.25",
        "nox_ppb_field": 17.75,
        "pm10_ug_m3_field": "80.0",
        "pm2_5_ug_m3_field": "35.5",
        "temperature_field": "31.5",
        "humidity_field": "40",
        "atmospheric_pressure_kpa_field": "98.7",
        "wind_speed_m_s_field": "2.1",
        "wind_direction_field": 180,
        "rainfall_mm_field": 0,
        "total_solar_radiation_w_m2_field": "450.5",
        "PM2.5_AQI": "150",
        "PM10_AQI": "63",
        "SO2_AQI": "4",
        "NO2_AQI": "11",
        "O3_AQI": "50",
        "CO_AQI": "5",
    }
    aqms.update(overrides)
    return {"result": 200, "aqms": aqms}


@pytest.fixture()
def make_reading() -> Callable[..., Reading]:
    return _reading


@pytest.fixture()
def upstream_payload() -> Callable[..., Dict[str, Any]]:
    return _upstream_payload
