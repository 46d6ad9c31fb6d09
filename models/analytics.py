"""Aggregated views over stored readings and forecasts."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.records import MAX_LOCATION, MIN_LOCATION, ForecastRecord, Reading

# Fields averaged per history bucket.
BUCKET_FIELDS = (
    "o3_ppb",
    "co_ppm",
    "so2_ppb",
    "no2_ppb",
    "pm10_ug_m3",
    "pm2_5_ug_m3",
    "PM2_5_AQI",
    "PM10_AQI",
    "SO2_AQI",
    "NO2_AQI",
    "O3_AQI",
    "CO_AQI",
)
SUMMARY_FIELDS = BUCKET_FIELDS + ("no_ppb", "nox_ppb")


class PollutantBucket(BaseModel):
    """Averages over one slice of a history window; ``None`` when the slice is empty."""

    start: datetime
    end: datetime
    count: int = Field(default=0, ge=0)
    o3_ppb: Optional[float] = None
    co_ppm: Optional[float] = None
    so2_ppb: Optional[float] = None
    no2_ppb: Optional[float] = None
    pm10_ug_m3: Optional[float] = None
    pm2_5_ug_m3: Optional[float] = None
    PM2_5_AQI: Optional[float] = None
    PM10_AQI: Optional[float] = None
    SO2_AQI: Optional[float] = None
    NO2_AQI: Optional[float] = None
    O3_AQI: Optional[float] = None
    CO_AQI: Optional[float] = None


class PollutantAverages(BaseModel):
    o3_ppb: float = 0
    co_ppm: float = 0
    so2_ppb: float = 0
    no_ppb: float = 0
    no2_ppb: float = 0
    nox_ppb: float = 0
    pm10_ug_m3: float = 0
    pm2_5_ug_m3: float = 0
    PM2_5_AQI: float = 0
    PM10_AQI: float = 0
    SO2_AQI: float = 0
    NO2_AQI: float = 0
    O3_AQI: float = 0
    CO_AQI: float = 0


class CurrentPollutants(PollutantAverages):
    timestamp: datetime


class PollutantSummary(BaseModel):
    current: CurrentPollutants
    daily_avg: PollutantAverages
    weekly_avg: PollutantAverages


class LatestReadingWithForecast(Reading):
    """Latest stored reading plus tomorrow's forecast, if one exists."""

    forecast: Optional[ForecastRecord] = None


class LocationAqi(BaseModel):
    location: int = Field(..., ge=MIN_LOCATION, le=MAX_LOCATION)
    aqi: int = 0
    report_date_time: Optional[datetime] = None
