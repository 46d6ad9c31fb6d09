"""Alert notifications for users in affected locations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Iterable, List, Sequence

from messaging.push_gateway import PushGateway, PushMessage, PushNotification
from models.records import Reading
from services.users import UserRegistry

logger = logging.getLogger(__name__)

ALERT_TITLE = "Air Quality Alert"
ELEVATED_AQI_THRESHOLD = 100

# Display label -> Reading AQI field, in message order.
_AQI_CATEGORIES = (
    ("PM2.5", "PM2_5_AQI"),
    ("PM10", "PM10_AQI"),
    ("Ozone", "O3_AQI"),
    ("NO2", "NO2_AQI"),
    ("SO2", "SO2_AQI"),
    ("CO", "CO_AQI"),
)


@dataclass
class DispatchReport:
    """Outcome of one dispatch run. Informational only."""

    success_count: int = 0
    failure_count: int = 0
    failed_tokens: List[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.success_count + self.failure_count


def elevated_categories(readings: Iterable[Reading]) -> list[str]:
    found = set()
    for reading in readings:
        for label, attribute in _AQI_CATEGORIES:
            if getattr(reading, attribute) > ELEVATED_AQI_THRESHOLD:
                found.add(label)
    return [label for label, _ in _AQI_CATEGORIES if label in found]


def build_alert_body(readings: Iterable[Reading]) -> str:
    body = "Air quality alert: Potential health risk detected in your area."
    categories = elevated_categories(readings)
    if categories:
        body += f" Elevated levels of: {', '.join(categories)}."
    return body + " Take necessary precautions."


class NotificationDispatcher:
    """Sends one push per subscribed device for the alerted locations."""

    def __init__(self, users: UserRegistry, gateway: PushGateway) -> None:
        self.users = users
        self.gateway = gateway

    async def notify(
        self,
        locations_with_alerts: AbstractSet[int],
        readings: Sequence[Reading],
    ) -> DispatchReport:
        report = DispatchReport()
        if not locations_with_alerts:
            logger.info("No locations to alert")
            return report

        users = await self.users.list_all()
        tokens = [
            user.push_token
            for user in users
            if user.location in locations_with_alerts and user.push_token
        ]
        if not tokens:
            logger.info(
                "No users found in alert locations",
                extra={"locations": sorted(locations_with_alerts)},
            )
            return report

        alerted_readings = [
            reading for reading in readings if reading.location in locations_with_alerts
        ]
        body = build_alert_body(alerted_readings)

        for token in tokens:
            message = PushMessage(
                notification=PushNotification(title=ALERT_TITLE, body=body),
                token=token,
            )
            try:
                await self.gateway.send(message)
            except Exception as exc:  # noqa: BLE001 - one bad token must not stop the rest
                report.failure_count += 1
                report.failed_tokens.append(token)
                logger.warning(
                    "Push notification failed",
                    extra={"token": token, "reason": str(exc)},
                )
                continue
            report.success_count += 1

        logger.info(
            "Dispatched alert notifications",
            extra={
                "locations": sorted(locations_with_alerts),
                "success_count": report.success_count,
                "failure_count": report.failure_count,
            },
        )
        if report.failed_tokens:
            logger.warning("Failed tokens: %s", ", ".join(report.failed_tokens))
        return report
