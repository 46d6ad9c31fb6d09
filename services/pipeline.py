"""Wiring of the ingestion and alerting services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import httpx

from datastore.collections import (
    build_forecasts_collection,
    build_readings_collection,
    build_users_collection,
)
from messaging.push_gateway import PushGateway, build_push_gateway
from services.alerts import RandomAlertPolicy
from services.analytics import ReadingAnalytics
from services.errors import FatalStartupError, StoreError
from services.forecast_alerts import ForecastAlerter
from services.forecasts import ForecastStore
from services.notifications import NotificationDispatcher
from services.poller import PollingOrchestrator
from services.reading_cache import ReadingCache
from services.readings import ReadingStore
from services.sensor_client import SensorClient
from services.users import UserRegistry
from settings import get_settings

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    http_client: httpx.AsyncClient
    sensor_client: SensorClient
    readings: ReadingStore
    users: UserRegistry
    forecasts: ForecastStore
    gateway: PushGateway
    dispatcher: NotificationDispatcher
    poller: PollingOrchestrator
    analytics: ReadingAnalytics
    forecast_alerter: Optional[ForecastAlerter] = None

    async def aclose(self) -> None:
        await self.poller.stop()
        await self.http_client.aclose()


@lru_cache
def build_default_pipeline() -> Pipeline:
    """Build the pipeline from settings; storage that cannot be opened is fatal."""
    settings = get_settings()
    try:
        readings_collection = build_readings_collection()
        users_collection = build_users_collection()
        forecasts_collection = build_forecasts_collection()
    except StoreError as exc:
        logger.critical("Datastore unavailable at startup", extra={"reason": str(exc)})
        raise FatalStartupError(str(exc)) from exc

    http_client = httpx.AsyncClient()
    sensor_client = SensorClient(client=http_client, base_url=settings.sensor_api_base_url)
    readings = ReadingStore(
        readings_collection,
        cache=ReadingCache(ttl_seconds=settings.reading_cache_ttl_seconds),
    )
    users = UserRegistry(users_collection)
    gateway = build_push_gateway(settings, http_client)
    dispatcher = NotificationDispatcher(users=users, gateway=gateway)
    forecasts = ForecastStore(forecasts_collection)
    poller = PollingOrchestrator(
        sensor_client=sensor_client,
        store=readings,
        policy=RandomAlertPolicy(),
        locations=settings.poll_locations,
        interval_seconds=settings.poll_interval_seconds,
        alert_hook=dispatcher.notify if settings.alert_dispatch_enabled else None,
    )
    forecast_alerter = (
        ForecastAlerter(users=users, forecasts=forecasts, gateway=gateway)
        if settings.alert_dispatch_enabled
        else None
    )
    return Pipeline(
        http_client=http_client,
        sensor_client=sensor_client,
        readings=readings,
        users=users,
        forecasts=forecasts,
        gateway=gateway,
        dispatcher=dispatcher,
        poller=poller,
        analytics=ReadingAnalytics(readings, forecasts, sensor_client),
        forecast_alerter=forecast_alerter,
    )
