"""Idempotent persistence and retrieval of sensor readings."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from datastore.collections import DocumentCollection
from models.records import Reading
from services.errors import StoreError
from services.reading_cache import ReadingCache

logger = logging.getLogger(__name__)

HISTORY_PERIODS: Dict[str, timedelta] = {
    "1d": timedelta(days=1),
    "1w": timedelta(weeks=1),
    "1m": timedelta(days=30),
    "3m": timedelta(days=90),
    "6m": timedelta(days=180),
    "1y": timedelta(days=365),
}


@dataclass(frozen=True)
class StoreOutcome:
    stored: bool


class ReadingStore:
    """Stores readings at most once per (location, report_date, report_time).

    The existence check and the insert are two separate steps with no lock
    between them; two pollers writing the same reading concurrently can both
    insert it.
    """

    def __init__(
        self,
        collection: DocumentCollection[Reading],
        cache: Optional[ReadingCache] = None,
    ) -> None:
        self.collection = collection
        self.cache = cache

    async def store_if_absent(self, reading: Reading) -> StoreOutcome:
        try:
            existing = await asyncio.to_thread(
                self.collection.find_one,
                location=reading.location,
                report_date=reading.report_date,
                report_time=reading.report_time,
            )
            if existing is not None:
                logger.debug(
                    "Duplicate reading skipped",
                    extra={"location": reading.location, "stored": False},
                )
                return StoreOutcome(stored=False)
            await asyncio.to_thread(self.collection.insert, reading)
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(
                f"Failed to store reading for location {reading.location}: {exc}"
            ) from exc

        logger.info(
            "Stored reading for location %s at %s %s",
            reading.location,
            reading.report_date,
            reading.report_time,
            extra={"location": reading.location, "stored": True},
        )
        return StoreOutcome(stored=True)

    async def latest(self, location: int) -> Reading:
        """Return the most recent stored reading, served from cache when fresh."""
        if self.cache is not None:
            cached = self.cache.get(location)
            if cached is not None:
                return cached

        readings = await asyncio.to_thread(self.collection.find, location=location)
        if not readings:
            raise KeyError(f"No readings stored for location {location}.")
        newest = max(readings, key=lambda reading: reading.report_date_time)
        if self.cache is not None:
            self.cache.put(location, newest)
        return newest

    async def history(
        self, location: int, period: str, now: Optional[datetime] = None
    ) -> list[Reading]:
        window = HISTORY_PERIODS.get(period)
        if window is None:
            raise ValueError(
                f"Unsupported period {period!r}; expected one of {', '.join(HISTORY_PERIODS)}."
            )
        reference = now or datetime.now()
        cutoff = reference - window
        readings = await asyncio.to_thread(
            self.collection.find,
            lambda reading: cutoff <= reading.report_date_time <= reference,
            location=location,
        )
        return sorted(readings, key=lambda reading: reading.report_date_time)

    def invalidate(self, location: int) -> None:
        if self.cache is not None:
            self.cache.invalidate(location)
