"""Domain records persisted in the document collections."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

MIN_LOCATION = 1
MAX_LOCATION = 21


class Reading(BaseModel):
    """One sensor, weather and AQI observation for a location."""

    id: int
    location: int = Field(..., ge=MIN_LOCATION, le=MAX_LOCATION)
    datatime: str
    report_date: str
    report_time: str
    report_date_time: datetime

    # Air quality
    o3_ppb: float
    co_ppm: float
    so2_ppb: float
    no_ppb: float
    no2_ppb: float
    nox_ppb: float
    pm10_ug_m3: float
    pm2_5_ug_m3: float

    # Weather
    temperature: float
    humidity: float
    atmospheric_pressure_kpa: float
    wind_speed_m_s: float
    wind_direction: float
    rainfall_mm: float
    total_solar_radiation_w_m2: float

    # AQI sub-indices
    PM2_5_AQI: float
    PM10_AQI: float
    SO2_AQI: float
    NO2_AQI: float
    O3_AQI: float
    CO_AQI: float


class AlertThreshold(str, Enum):
    """AQI band above which a user wants to be alerted."""

    good = "good"
    satisfactory = "satisfactory"
    moderate = "moderate"
    unhealthy_for_sensitive = "unhealthyForSensitive"
    unhealthy = "unhealthy"
    very_unhealthy = "veryUnhealthy"
    hazardous = "hazardous"


class Language(str, Enum):
    english = "english"
    urdu = "urdu"


class User(BaseModel):
    """A registered device."""

    user_id: str = Field(default_factory=lambda: str(uuid4()))
    push_token: str = Field(..., min_length=1)
    location: int = Field(..., ge=MIN_LOCATION, le=MAX_LOCATION)
    mobile_number: Optional[str] = None
    alert_threshold: Optional[AlertThreshold] = AlertThreshold.unhealthy
    language: Optional[Language] = None


class ForecastRecord(BaseModel):
    """Per-location AQI forecast for a single day."""

    location: int = Field(..., ge=MIN_LOCATION, le=MAX_LOCATION)
    forecast_date: date
    PM2_5_AQI_forecast: float = Field(..., ge=0)
    PM10_AQI_forecast: float = Field(default=0, ge=0)
    SO2_AQI_forecast: float = Field(default=0, ge=0)
    NO2_AQI_forecast: float = Field(default=0, ge=0)
    O3_AQI_forecast: float = Field(default=0, ge=0)
    CO_AQI_forecast: float = Field(default=0, ge=0)
    model_version: str = "202500508"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    alerts_sent: bool = False
