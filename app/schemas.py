"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.records import (
    MAX_LOCATION,
    MIN_LOCATION,
    AlertThreshold,
    ForecastRecord,
    Language,
    User,
)


class RegisterUserRequest(BaseModel):
    push_token: str = Field(..., min_length=1, description="Device push token.")
    location: int = Field(..., ge=MIN_LOCATION, le=MAX_LOCATION)
    mobile_number: Optional[str] = None


class UpdateUserRequest(BaseModel):
    user_id: str
    push_token: Optional[str] = None
    location: Optional[int] = Field(default=None, ge=MIN_LOCATION, le=MAX_LOCATION)


class LocationSettingRequest(BaseModel):
    user_id: str
    location: int = Field(..., ge=MIN_LOCATION, le=MAX_LOCATION)


class AlertThresholdSettingRequest(BaseModel):
    user_id: str
    alert_threshold: AlertThreshold


class LanguageSettingRequest(BaseModel):
    user_id: str
    language: Language


class UserResponse(BaseModel):
    message: str
    user: User


class CleanupResponse(BaseModel):
    days_to_keep: int
    deleted_count: int = Field(..., ge=0)


class DispatchSummary(BaseModel):
    success_count: int = 0
    failure_count: int = 0
    failed_tokens: List[str] = Field(default_factory=list)


class ForecastUploadResponse(BaseModel):
    """Stored forecasts and the threshold alerts sent for them."""

    forecasts: List[ForecastRecord]
    alerted_locations: List[int] = Field(default_factory=list)
    dispatch: Optional[DispatchSummary] = None


class CycleSummary(BaseModel):
    """Outcome of one poll cycle as exposed over HTTP."""

    fetched: List[int] = Field(default_factory=list)
    failed: Dict[int, str] = Field(default_factory=dict)
    stored: List[int] = Field(default_factory=list)
    duplicates: List[int] = Field(default_factory=list)
    store_errors: Dict[int, str] = Field(default_factory=dict)
    policy_errors: Dict[int, str] = Field(default_factory=dict)
    alerted: List[int] = Field(default_factory=list)
    dispatch: Optional[DispatchSummary] = None
    cycle_ms: int = Field(default=0, ge=0)


class PollerStatus(BaseModel):
    state: str
    running: bool
    cycles_completed: int
    interval_seconds: float
    locations: List[int]
    alert_dispatch_enabled: bool
    last_cycle: Optional[CycleSummary] = None
