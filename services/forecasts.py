"""Storage, lookup and retention of per-location AQI forecasts."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from datastore.collections import DocumentCollection
from models.records import ForecastRecord

logger = logging.getLogger(__name__)


class ForecastStore:

    def __init__(self, collection: DocumentCollection[ForecastRecord]) -> None:
        self.collection = collection

    async def store_forecasts(self, forecasts: Iterable[ForecastRecord]) -> list[ForecastRecord]:
        """Upsert each forecast, replacing any record for the same location and day."""
        items = list(forecasts)
        logger.info("Storing %d forecast records", len(items))
        saved = []
        for forecast in items:
            record = forecast.model_copy(update={"alerts_sent": False})
            saved.append(
                await asyncio.to_thread(
                    self.collection.upsert,
                    record,
                    location=forecast.location,
                    forecast_date=forecast.forecast_date,
                )
            )
        return saved

    async def query(
        self,
        location: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 100,
    ) -> list[ForecastRecord]:
        def in_range(record: ForecastRecord) -> bool:
            if location is not None and record.location != location:
                return False
            if start_date is not None and record.forecast_date < start_date:
                return False
            if end_date is not None and record.forecast_date > end_date:
                return False
            return True

        records = await asyncio.to_thread(self.collection.find, in_range)
        # Newest day first, then by location.
        records.sort(key=lambda record: (-record.forecast_date.toordinal(), record.location))
        return records[: max(limit, 0)]

    async def latest_for_locations(
        self, locations: Optional[Iterable[int]] = None
    ) -> list[ForecastRecord]:
        wanted = set(locations) if locations else None
        records = await asyncio.to_thread(
            self.collection.find,
            None if wanted is None else (lambda record: record.location in wanted),
        )
        latest: dict[int, ForecastRecord] = {}
        for record in records:
            current = latest.get(record.location)
            if current is None or record.forecast_date > current.forecast_date:
                latest[record.location] = record
        return [latest[location] for location in sorted(latest)]

    async def get(self, location: int, forecast_date: date) -> ForecastRecord:
        record = await asyncio.to_thread(
            self.collection.find_one, location=location, forecast_date=forecast_date
        )
        if record is None:
            raise KeyError(
                f"No forecast for location {location} on {forecast_date.isoformat()}."
            )
        return record

    async def mark_alerts_sent(self, location: int, forecast_date: date) -> ForecastRecord:
        updated = await asyncio.to_thread(
            self.collection.update_one,
            {"alerts_sent": True},
            location=location,
            forecast_date=forecast_date,
        )
        if updated is None:
            raise KeyError(
                f"No forecast for location {location} on {forecast_date.isoformat()}."
            )
        logger.info(
            "Marked alerts as sent for %s", forecast_date.isoformat(), extra={"location": location}
        )
        return updated

    async def cleanup_older_than(self, days_to_keep: int = 30, today: Optional[date] = None) -> int:
        """Delete forecasts dated before ``today - days_to_keep``; returns how many."""
        if days_to_keep < 0:
            raise ValueError("days_to_keep must not be negative.")
        cutoff = (today or date.today()) - timedelta(days=days_to_keep)
        deleted = await asyncio.to_thread(
            self.collection.delete_many, lambda record: record.forecast_date < cutoff
        )
        logger.info(
            "Cleaned up forecasts older than %d days",
            days_to_keep,
            extra={"deleted_count": deleted},
        )
        return deleted
