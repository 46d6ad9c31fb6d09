"""HTTP route definitions for readings, forecasts and the poller."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from app.schemas import (
    CleanupResponse,
    CycleSummary,
    DispatchSummary,
    ForecastUploadResponse,
    PollerStatus,
)
from models.analytics import (
    LatestReadingWithForecast,
    LocationAqi,
    PollutantBucket,
    PollutantSummary,
)
from models.records import MAX_LOCATION, MIN_LOCATION, ForecastRecord, Reading
from services.errors import UpstreamError
from services.pipeline import Pipeline, build_default_pipeline
from services.poller import CycleReport

router = APIRouter()

LocationId = Annotated[
    int, Path(ge=MIN_LOCATION, le=MAX_LOCATION, description="Monitoring location id.")
]


def get_pipeline() -> Pipeline:
    return build_default_pipeline()


def _summarize(report: CycleReport) -> CycleSummary:
    return CycleSummary.model_validate(asdict(report))


@router.get(
    "/readings/{location}/current",
    response_model=Reading,
    summary="Fetch the live reading for a location from the sensor API.",
)
async def get_current_reading(
    location: LocationId,
    pipeline: Pipeline = Depends(get_pipeline),
) -> Reading:
    try:
        return await pipeline.sensor_client.fetch_reading(location)
    except UpstreamError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to fetch EPA monitors data.",
        ) from exc


@router.get(
    "/readings/{location}/latest",
    response_model=Reading,
    summary="Most recent stored reading for a location.",
)
async def get_latest_reading(
    location: LocationId,
    pipeline: Pipeline = Depends(get_pipeline),
) -> Reading:
    try:
        return await pipeline.readings.latest(location)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get(
    "/readings/{location}/history/{period}",
    response_model=List[Reading],
    summary="Stored readings for a location over 1d, 1w, 1m, 3m, 6m or 1y.",
)
async def get_reading_history(
    period: str,
    location: LocationId,
    pipeline: Pipeline = Depends(get_pipeline),
) -> List[Reading]:
    try:
        return await pipeline.readings.history(location, period)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get(
    "/readings/{location}/history/{period}/buckets",
    response_model=List[PollutantBucket],
    summary="Pollutant averages over equal slices of a history period.",
)
async def get_bucketed_history(
    period: str,
    location: LocationId,
    pipeline: Pipeline = Depends(get_pipeline),
) -> List[PollutantBucket]:
    try:
        return await pipeline.analytics.bucketed_history(location, period)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get(
    "/readings/{location}/summary",
    response_model=PollutantSummary,
    summary="Live pollutant levels with daily and weekly averages.",
)
async def get_pollutant_summary(
    location: LocationId,
    pipeline: Pipeline = Depends(get_pipeline),
) -> PollutantSummary:
    try:
        return await pipeline.analytics.summary(location)
    except UpstreamError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to get pollutant summary for location {location}.",
        ) from exc


@router.get(
    "/readings/{location}/latest-with-forecast",
    response_model=LatestReadingWithForecast,
    summary="Most recent stored reading with tomorrow's forecast.",
)
async def get_latest_with_forecast(
    location: LocationId,
    pipeline: Pipeline = Depends(get_pipeline),
) -> LatestReadingWithForecast:
    try:
        return await pipeline.analytics.latest_with_forecast(location)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get(
    "/readings/overview",
    response_model=List[LocationAqi],
    summary="Latest PM2.5 AQI for each polled location, or the given ones.",
)
async def get_locations_overview(
    locations: Optional[List[int]] = Query(default=None),
    pipeline: Pipeline = Depends(get_pipeline),
) -> List[LocationAqi]:
    wanted = locations or list(pipeline.poller.locations)
    if any(not MIN_LOCATION <= location <= MAX_LOCATION for location in wanted):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Locations must be between {MIN_LOCATION} and {MAX_LOCATION}.",
        )
    return await pipeline.analytics.overview(wanted)


@router.get(
    "/forecasts/history",
    response_model=List[ForecastRecord],
    summary="Forecast records, newest first, with optional filters.",
)
async def get_forecast_history(
    location: Optional[int] = Query(default=None, ge=MIN_LOCATION, le=MAX_LOCATION),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    pipeline: Pipeline = Depends(get_pipeline),
) -> List[ForecastRecord]:
    return await pipeline.forecasts.query(
        location=location, start_date=start_date, end_date=end_date, limit=limit
    )


@router.get(
    "/forecasts/latest",
    response_model=List[ForecastRecord],
    summary="Latest forecast for every location, or for the given locations.",
)
async def get_latest_forecasts(
    locations: Optional[List[int]] = Query(default=None),
    pipeline: Pipeline = Depends(get_pipeline),
) -> List[ForecastRecord]:
    return await pipeline.forecasts.latest_for_locations(locations)


@router.post(
    "/forecasts",
    status_code=status.HTTP_201_CREATED,
    response_model=ForecastUploadResponse,
    summary="Store forecast records and alert users whose threshold they reach.",
)
async def store_forecasts(
    forecasts: List[ForecastRecord],
    pipeline: Pipeline = Depends(get_pipeline),
) -> ForecastUploadResponse:
    if pipeline.forecast_alerter is None:
        saved = await pipeline.forecasts.store_forecasts(forecasts)
        return ForecastUploadResponse(forecasts=saved)
    report = await pipeline.forecast_alerter.process(forecasts)
    return ForecastUploadResponse(
        forecasts=report.forecasts,
        alerted_locations=report.alerted_locations,
        dispatch=DispatchSummary.model_validate(asdict(report.dispatch)),
    )


@router.delete(
    "/forecasts/cleanup",
    response_model=CleanupResponse,
    summary="Delete forecasts older than the retention window.",
)
async def cleanup_forecasts(
    days_to_keep: int = Query(default=30, ge=0),
    pipeline: Pipeline = Depends(get_pipeline),
) -> CleanupResponse:
    deleted = await pipeline.forecasts.cleanup_older_than(days_to_keep)
    return CleanupResponse(days_to_keep=days_to_keep, deleted_count=deleted)


@router.get(
    "/forecasts/{location}/{forecast_date}",
    response_model=ForecastRecord,
    summary="Forecast for one location and day.",
)
async def get_forecast(
    forecast_date: date,
    location: LocationId,
    pipeline: Pipeline = Depends(get_pipeline),
) -> ForecastRecord:
    try:
        return await pipeline.forecasts.get(location, forecast_date)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post(
    "/poller/run",
    response_model=CycleSummary,
    summary="Run one poll cycle immediately.",
)
async def run_poll_cycle(pipeline: Pipeline = Depends(get_pipeline)) -> CycleSummary:
    report = await pipeline.poller.run_cycle()
    return _summarize(report)


@router.get(
    "/poller/status",
    response_model=PollerStatus,
    summary="Current poller state and the last cycle outcome.",
)
async def get_poller_status(pipeline: Pipeline = Depends(get_pipeline)) -> PollerStatus:
    poller = pipeline.poller
    last = poller.last_report
    return PollerStatus(
        state=poller.state.value,
        running=poller.running,
        cycles_completed=poller.cycles_completed,
        interval_seconds=poller.interval_seconds,
        locations=list(poller.locations),
        alert_dispatch_enabled=poller.alert_hook is not None,
        last_cycle=_summarize(last) if last is not None else None,
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
