"""Tests for threshold alerts raised by uploaded forecasts."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import List, Optional

import pytest

from datastore.collections import DocumentCollection
from messaging.push_gateway import PushMessage
from models.records import AlertThreshold, ForecastRecord, Language, User
from services.errors import DispatchError
from services.forecast_alerts import (
    AQI_THRESHOLD_MAP,
    ForecastAlerter,
    build_forecast_message,
    format_forecast_date,
)
from services.forecasts import ForecastStore

DAY = date(2025, 5, 8)


class RecordingGateway:
    def __init__(self, rejected: Optional[set[str]] = None) -> None:
        self.rejected = rejected or set()
        self.sent: List[PushMessage] = []

    async def send(self, message: PushMessage) -> str:
        self.sent.append(message)
        if message.token in self.rejected:
            raise DispatchError(message.token, "registration-token-not-registered")
        return f"msg-{len(self.sent)}"


class StaticUsers:
    def __init__(self, users: List[User]) -> None:
        self.users = users

    async def list_all(self) -> list[User]:
        return list(self.users)


def _user(
    token: str,
    location: int = 3,
    threshold: Optional[AlertThreshold] = AlertThreshold.unhealthy,
    language: Optional[Language] = None,
) -> User:
    return User(
        push_token=token, location=location, alert_threshold=threshold, language=language
    )


def _forecast(location: int = 3, aqi: float = 320.0, day: date = DAY) -> ForecastRecord:
    return ForecastRecord(location=location, forecast_date=day, PM2_5_AQI_forecast=aqi)


def _alerter(users: List[User], gateway: RecordingGateway) -> ForecastAlerter:
    store = ForecastStore(DocumentCollection("air_quality_forecasts", ForecastRecord))
    return ForecastAlerter(users=StaticUsers(users), forecasts=store, gateway=gateway)


def test_threshold_bands_cover_every_preference() -> None:
    assert set(AQI_THRESHOLD_MAP) == set(AlertThreshold)
    assert AQI_THRESHOLD_MAP[AlertThreshold.good] == 50
    assert AQI_THRESHOLD_MAP[AlertThreshold.unhealthy] == 300
    assert AQI_THRESHOLD_MAP[AlertThreshold.hazardous] == 500


def test_messages_are_localized() -> None:
    english = build_forecast_message(Language.english, 212.6, DAY)
    urdu = build_forecast_message(Language.urdu, 212.6, DAY)

    assert format_forecast_date(DAY) == "May 8, 2025"
    assert english.title == "Air Quality Alert"
    assert english.body == (
        "Air quality alert: Forecast shows PM2.5 AQI of 213 for May 8, 2025. "
        "This exceeds your alert threshold. Take necessary precautions."
    )
    assert urdu.title == "ہوا کے معیار کا الرٹ"
    assert "PM2.5 AQI 213" in urdu.body
    assert "May 8, 2025" in urdu.body


@pytest.mark.parametrize(
    ("threshold", "aqi", "alerted"),
    [
        (AlertThreshold.good, 50.0, True),
        (AlertThreshold.good, 49.9, False),
        (AlertThreshold.moderate, 150.0, True),
        (AlertThreshold.unhealthy_for_sensitive, 199.0, False),
        (AlertThreshold.very_unhealthy, 400.0, True),
        (None, 299.0, False),
        (None, 300.0, True),
    ],
)
def test_users_alerted_when_forecast_reaches_their_band(
    threshold: Optional[AlertThreshold], aqi: float, alerted: bool
) -> None:
    gateway = RecordingGateway()
    alerter = _alerter([_user("device-1", threshold=threshold)], gateway)

    report = asyncio.run(alerter.process([_forecast(aqi=aqi)]))

    assert [message.token for message in gateway.sent] == (["device-1"] if alerted else [])
    assert report.alerted_locations == ([3] if alerted else [])


def test_tokens_grouped_by_language_and_blank_tokens_skipped() -> None:
    gateway = RecordingGateway()
    users = [
        _user("device-en"),
        _user("device-ur", language=Language.urdu),
        _user("   "),
        _user("device-elsewhere", location=4),
    ]

    report = asyncio.run(_alerter(users, gateway).process([_forecast(aqi=320.0)]))

    sent = {message.token: message.notification for message in gateway.sent}
    assert sorted(sent) == ["device-en", "device-ur"]
    assert sent["device-en"].title == "Air Quality Alert"
    assert sent["device-ur"].title == "ہوا کے معیار کا الرٹ"
    assert report.dispatch.success_count == 2


def test_successful_alerts_mark_forecast_as_sent() -> None:
    gateway = RecordingGateway()
    alerter = _alerter([_user("device-1")], gateway)

    report = asyncio.run(alerter.process([_forecast(location=3), _forecast(location=5)]))

    stored = asyncio.run(alerter.forecasts.get(3, DAY))
    untouched = asyncio.run(alerter.forecasts.get(5, DAY))
    assert stored.alerts_sent is True
    assert untouched.alerts_sent is False
    assert [(record.location, record.alerts_sent) for record in report.forecasts] == [
        (3, True),
        (5, False),
    ]


def test_last_forecast_per_location_is_alerted() -> None:
    gateway = RecordingGateway()
    alerter = _alerter([_user("device-1")], gateway)

    asyncio.run(
        alerter.process(
            [
                _forecast(aqi=350.0, day=date(2025, 5, 8)),
                _forecast(aqi=410.0, day=date(2025, 5, 9)),
            ]
        )
    )

    assert len(gateway.sent) == 1
    assert "PM2.5 AQI of 410 for May 9, 2025" in gateway.sent[0].notification.body
    assert asyncio.run(alerter.forecasts.get(3, date(2025, 5, 9))).alerts_sent is True
    assert asyncio.run(alerter.forecasts.get(3, date(2025, 5, 8))).alerts_sent is False


def test_failed_tokens_do_not_stop_remaining_sends(caplog) -> None:
    gateway = RecordingGateway(rejected={"device-bad"})
    users = [_user("device-bad"), _user("device-good")]

    with caplog.at_level(logging.WARNING, logger="services.forecast_alerts"):
        report = asyncio.run(_alerter(users, gateway).process([_forecast()]))

    assert [message.token for message in gateway.sent] == ["device-bad", "device-good"]
    assert report.dispatch.success_count == 1
    assert report.dispatch.failed_tokens == ["device-bad"]
    assert report.alerted_locations == [3]
    assert any(getattr(record, "token", None) == "device-bad" for record in caplog.records)


def test_forecast_left_unmarked_when_every_send_fails() -> None:
    gateway = RecordingGateway(rejected={"device-1"})
    alerter = _alerter([_user("device-1")], gateway)

    report = asyncio.run(alerter.process([_forecast()]))

    assert report.alerted_locations == []
    assert report.dispatch.failure_count == 1
    assert asyncio.run(alerter.forecasts.get(3, DAY)).alerts_sent is False


def test_forecasts_stored_even_without_users() -> None:
    gateway = RecordingGateway()
    alerter = _alerter([], gateway)

    report = asyncio.run(alerter.process([_forecast(aqi=480.0)]))

    assert gateway.sent == []
    assert report.dispatch.attempted == 0
    assert [record.location for record in report.forecasts] == [3]
    assert asyncio.run(alerter.forecasts.get(3, DAY)).PM2_5_AQI_forecast == 480.0
