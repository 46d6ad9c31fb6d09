"""Tests for forecast storage, queries and retention cleanup."""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from datastore.collections import DocumentCollection
from models.records import ForecastRecord
from services.forecasts import ForecastStore


def _store() -> ForecastStore:
    return ForecastStore(DocumentCollection("air_quality_forecasts", ForecastRecord))


def _forecast(location: int, day: date, pm25: float = 90.0) -> ForecastRecord:
    return ForecastRecord(location=location, forecast_date=day, PM2_5_AQI_forecast=pm25)


def test_store_forecasts_upserts_and_resets_alert_flag() -> None:
    store = _store()
    day = date(2025, 5, 8)
    asyncio.run(store.store_forecasts([_forecast(1, day)]))
    asyncio.run(store.mark_alerts_sent(1, day))

    asyncio.run(store.store_forecasts([_forecast(1, day, pm25=140.0)]))
    record = asyncio.run(store.get(1, day))

    assert store.collection.count() == 1
    assert record.PM2_5_AQI_forecast == 140.0
    assert record.alerts_sent is False


def test_query_orders_newest_first_and_applies_filters() -> None:
    store = _store()
    asyncio.run(
        store.store_forecasts(
            [
                _forecast(2, date(2025, 5, 1)),
                _forecast(1, date(2025, 5, 3)),
                _forecast(3, date(2025, 5, 3)),
                _forecast(1, date(2025, 5, 2)),
            ]
        )
    )

    everything = asyncio.run(store.query())
    only_one = asyncio.run(store.query(location=1))
    windowed = asyncio.run(
        store.query(start_date=date(2025, 5, 2), end_date=date(2025, 5, 2))
    )
    limited = asyncio.run(store.query(limit=2))

    assert [(r.forecast_date.day, r.location) for r in everything] == [
        (3, 1),
        (3, 3),
        (2, 1),
        (1, 2),
    ]
    assert [r.forecast_date.day for r in only_one] == [3, 2]
    assert [(r.forecast_date.day, r.location) for r in windowed] == [(2, 1)]
    assert len(limited) == 2


def test_latest_for_locations_picks_newest_per_location() -> None:
    store = _store()
    asyncio.run(
        store.store_forecasts(
            [
                _forecast(1, date(2025, 5, 1)),
                _forecast(1, date(2025, 5, 4)),
                _forecast(2, date(2025, 5, 2)),
            ]
        )
    )

    latest = asyncio.run(store.latest_for_locations())
    only_two = asyncio.run(store.latest_for_locations([2]))

    assert [(r.location, r.forecast_date.day) for r in latest] == [(1, 4), (2, 2)]
    assert [r.location for r in only_two] == [2]


def test_get_and_mark_missing_forecast_raise_key_error() -> None:
    store = _store()

    with pytest.raises(KeyError):
        asyncio.run(store.get(1, date(2025, 5, 1)))
    with pytest.raises(KeyError):
        asyncio.run(store.mark_alerts_sent(1, date(2025, 5, 1)))


def test_cleanup_removes_records_before_cutoff() -> None:
    store = _store()
    asyncio.run(
        store.store_forecasts(
            [
                _forecast(1, date(2025, 3, 1)),
                _forecast(1, date(2025, 3, 31)),
                _forecast(1, date(2025, 4, 20)),
            ]
        )
    )

    deleted = asyncio.run(store.cleanup_older_than(30, today=date(2025, 5, 1)))

    assert deleted == 2
    remaining = asyncio.run(store.query())
    assert [r.forecast_date for r in remaining] == [date(2025, 4, 20)]


def test_cleanup_rejects_negative_retention() -> None:
    store = _store()

    with pytest.raises(ValueError):
        asyncio.run(store.cleanup_older_than(-1))
