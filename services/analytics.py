"""Pollutant summaries, bucketed history and cross-location overviews."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from statistics import fmean
from typing import Dict, Iterable, List, Optional, Sequence

from models.analytics import (
    BUCKET_FIELDS,
    SUMMARY_FIELDS,
    CurrentPollutants,
    LatestReadingWithForecast,
    LocationAqi,
    PollutantAverages,
    PollutantBucket,
    PollutantSummary,
)
from models.records import Reading
from services.forecasts import ForecastStore
from services.readings import HISTORY_PERIODS, ReadingStore
from services.sensor_client import SensorClient

logger = logging.getLogger(__name__)

BUCKET_COUNTS: Dict[str, int] = {
    "1d": 8,
    "1w": 7,
    "1m": 4,
    "3m": 3,
    "6m": 6,
    "1y": 4,
}


def average_fields(
    readings: Sequence[Reading], fields: Iterable[str]
) -> Dict[str, Optional[float]]:
    if not readings:
        return {name: None for name in fields}
    return {name: fmean(getattr(reading, name) for reading in readings) for name in fields}


def split_into_buckets(
    readings: Iterable[Reading], start: datetime, end: datetime, count: int
) -> List[PollutantBucket]:
    """Split ``[start, end]`` into ``count`` equal slices and average each one.

    The final slice includes ``end``.
    """
    width = (end - start) / count
    grouped: List[List[Reading]] = [[] for _ in range(count)]
    for reading in readings:
        offset = reading.report_date_time - start
        if offset < timedelta(0) or reading.report_date_time > end:
            continue
        grouped[min(int(offset / width), count - 1)].append(reading)

    return [
        PollutantBucket(
            start=start + width * index,
            end=start + width * (index + 1),
            count=len(members),
            **average_fields(members, BUCKET_FIELDS),
        )
        for index, members in enumerate(grouped)
    ]


def _averages(readings: Sequence[Reading]) -> PollutantAverages:
    values = average_fields(readings, SUMMARY_FIELDS)
    return PollutantAverages(**{name: value or 0 for name, value in values.items()})


class ReadingAnalytics:
    """Read-only aggregations built on the reading and forecast stores."""

    def __init__(
        self,
        readings: ReadingStore,
        forecasts: ForecastStore,
        sensor_client: SensorClient,
    ) -> None:
        self.readings = readings
        self.forecasts = forecasts
        self.sensor_client = sensor_client

    async def bucketed_history(
        self, location: int, period: str, now: Optional[datetime] = None
    ) -> List[PollutantBucket]:
        reference = now or datetime.now()
        readings = await self.readings.history(location, period, now=reference)
        return split_into_buckets(
            readings, reference - HISTORY_PERIODS[period], reference, BUCKET_COUNTS[period]
        )

    async def summary(self, location: int, now: Optional[datetime] = None) -> PollutantSummary:
        """Live reading plus 24-hour and 7-day averages of stored readings.

        Raises ``UpstreamError`` when the live reading cannot be fetched.
        """
        reference = now or datetime.now()
        current = await self.sensor_client.fetch_reading(location)
        past_day = await self.readings.history(location, "1d", now=reference)
        past_week = await self.readings.history(location, "1w", now=reference)
        return PollutantSummary(
            current=CurrentPollutants(
                timestamp=current.report_date_time,
                **{name: getattr(current, name) for name in SUMMARY_FIELDS},
            ),
            daily_avg=_averages(past_day),
            weekly_avg=_averages(past_week),
        )

    async def latest_with_forecast(
        self, location: int, today: Optional[date] = None
    ) -> LatestReadingWithForecast:
        reading = await self.readings.latest(location)
        tomorrow = (today or date.today()) + timedelta(days=1)
        try:
            forecast = await self.forecasts.get(location, tomorrow)
        except KeyError:
            logger.info(
                "No forecast for %s", tomorrow.isoformat(), extra={"location": location}
            )
            forecast = None
        return LatestReadingWithForecast(**reading.model_dump(), forecast=forecast)

    async def overview(self, locations: Iterable[int]) -> List[LocationAqi]:
        """Rounded PM2.5 AQI of the latest reading at each location.

        Locations without a stored reading report an AQI of 0.
        """
        wanted = list(locations)
        results = await asyncio.gather(
            *(self.readings.latest(location) for location in wanted),
            return_exceptions=True,
        )
        overview = []
        for location, result in zip(wanted, results):
            if isinstance(result, KeyError):
                logger.warning("No reading for overview", extra={"location": location})
                overview.append(LocationAqi(location=location))
                continue
            if isinstance(result, BaseException):
                raise result
            overview.append(
                LocationAqi(
                    location=location,
                    aqi=round(result.PM2_5_AQI),
                    report_date_time=result.report_date_time,
                )
            )
        return overview
