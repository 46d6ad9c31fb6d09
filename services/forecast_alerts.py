"""Threshold alerts for newly uploaded AQI forecasts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from messaging.push_gateway import PushGateway, PushMessage, PushNotification
from models.records import AlertThreshold, ForecastRecord, Language, User
from services.forecasts import ForecastStore
from services.notifications import DispatchReport
from services.users import UserRegistry

logger = logging.getLogger(__name__)

# Upper PM2.5 AQI bound of each band; a forecast at or above it alerts the user.
AQI_THRESHOLD_MAP: Dict[AlertThreshold, int] = {
    AlertThreshold.good: 50,
    AlertThreshold.satisfactory: 100,
    AlertThreshold.moderate: 150,
    AlertThreshold.unhealthy_for_sensitive: 200,
    AlertThreshold.unhealthy: 300,
    AlertThreshold.very_unhealthy: 400,
    AlertThreshold.hazardous: 500,
}
DEFAULT_THRESHOLD = AlertThreshold.unhealthy
DEFAULT_LANGUAGE = Language.english

_TITLES = {
    Language.english: "Air Quality Alert",
    Language.urdu: "ہوا کے معیار کا الرٹ",
}


def threshold_value(threshold: Optional[AlertThreshold]) -> int:
    return AQI_THRESHOLD_MAP[threshold or DEFAULT_THRESHOLD]


def format_forecast_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def build_forecast_message(
    language: Language, aqi: float, forecast_date: date
) -> PushNotification:
    """Localized alert for one forecast; AQI is rounded to a whole number."""
    rounded = round(aqi)
    day = format_forecast_date(forecast_date)
    if language is Language.urdu:
        body = (
            f"ہوا کے معیار کا الرٹ: پیش گوئی {day} کے لیے PM2.5 AQI {rounded} دکھاتی ہے۔ "
            "یہ آپ کی الرٹ کی حد سے تجاوز کرتا ہے۔ ضروری احتیاطی تدابیر اختیار کریں۔"
        )
    else:
        body = (
            f"Air quality alert: Forecast shows PM2.5 AQI of {rounded} for {day}. "
            "This exceeds your alert threshold. Take necessary precautions."
        )
    return PushNotification(title=_TITLES[language], body=body)


def tokens_by_language(
    users: Iterable[User], forecast: ForecastRecord
) -> Dict[Language, List[str]]:
    """Group the push tokens of users whose threshold the forecast reaches."""
    grouped: Dict[Language, List[str]] = {}
    for user in users:
        if user.location != forecast.location or not user.push_token.strip():
            continue
        if forecast.PM2_5_AQI_forecast < threshold_value(user.alert_threshold):
            continue
        grouped.setdefault(user.language or DEFAULT_LANGUAGE, []).append(user.push_token)
    return grouped


@dataclass
class ForecastAlertReport:
    forecasts: List[ForecastRecord] = field(default_factory=list)
    alerted_locations: List[int] = field(default_factory=list)
    dispatch: DispatchReport = field(default_factory=DispatchReport)


class ForecastAlerter:
    """Stores uploaded forecasts and pushes threshold alerts for them.

    Only the last forecast given for a location is alerted on. A location's
    forecast is marked ``alerts_sent`` once at least one push succeeded.
    """

    def __init__(
        self, users: UserRegistry, forecasts: ForecastStore, gateway: PushGateway
    ) -> None:
        self.users = users
        self.forecasts = forecasts
        self.gateway = gateway

    async def process(self, records: Iterable[ForecastRecord]) -> ForecastAlertReport:
        report = ForecastAlertReport()
        report.forecasts = await self.forecasts.store_forecasts(records)
        if not report.forecasts:
            return report

        per_location: Dict[int, ForecastRecord] = {}
        for forecast in report.forecasts:
            per_location[forecast.location] = forecast

        users = await self.users.list_all()
        for location in sorted(per_location):
            forecast = per_location[location]
            grouped = tokens_by_language(users, forecast)
            if not grouped:
                logger.debug("No users above threshold", extra={"location": location})
                continue

            delivered = 0
            for language, tokens in grouped.items():
                notification = build_forecast_message(
                    language, forecast.PM2_5_AQI_forecast, forecast.forecast_date
                )
                delivered += await self._send_all(notification, tokens, report.dispatch)

            if delivered:
                marked = await self.forecasts.mark_alerts_sent(location, forecast.forecast_date)
                report.forecasts = [
                    marked if record is forecast else record for record in report.forecasts
                ]
                report.alerted_locations.append(location)

        logger.info(
            "Processed forecast alerts",
            extra={
                "locations": report.alerted_locations,
                "success_count": report.dispatch.success_count,
                "failure_count": report.dispatch.failure_count,
            },
        )
        return report

    async def _send_all(
        self, notification: PushNotification, tokens: List[str], report: DispatchReport
    ) -> int:
        delivered = 0
        for token in tokens:
            try:
                await self.gateway.send(PushMessage(notification=notification, token=token))
            except Exception as exc:  # noqa: BLE001 - one bad token must not stop the rest
                report.failure_count += 1
                report.failed_tokens.append(token)
                logger.warning(
                    "Forecast alert failed", extra={"token": token, "reason": str(exc)}
                )
                continue
            report.success_count += 1
            delivered += 1
        return delivered
