"""Periodic polling of monitoring stations.

Each cycle fetches every configured location concurrently, stores new
readings, asks the alert policy about each one, and hands the alerted
locations to the alert hook once at the end.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import AbstractSet, Awaitable, Callable, Dict, List, Optional, Sequence

from models.records import Reading
from services.alerts import AlertPolicy
from services.errors import StoreError
from services.notifications import DispatchReport
from services.readings import ReadingStore
from services.sensor_client import SensorClient

logger = logging.getLogger(__name__)

AlertHook = Callable[[AbstractSet[int], Sequence[Reading]], Awaitable[Optional[DispatchReport]]]


class PollerState(str, Enum):
    idle = "idle"
    fetching = "fetching"
    processing = "processing"


@dataclass
class CycleReport:
    """Summary of a single poll cycle."""

    fetched: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)
    stored: List[int] = field(default_factory=list)
    duplicates: List[int] = field(default_factory=list)
    store_errors: Dict[int, str] = field(default_factory=dict)
    policy_errors: Dict[int, str] = field(default_factory=dict)
    alerted: List[int] = field(default_factory=list)
    dispatch: Optional[DispatchReport] = None
    cycle_ms: int = 0


class PollingOrchestrator:

    def __init__(
        self,
        sensor_client: SensorClient,
        store: ReadingStore,
        policy: AlertPolicy,
        locations: Sequence[int],
        interval_seconds: float = 300.0,
        alert_hook: Optional[AlertHook] = None,
    ) -> None:
        self.sensor_client = sensor_client
        self.store = store
        self.policy = policy
        self.locations = tuple(locations)
        self.interval_seconds = interval_seconds
        self.alert_hook = alert_hook
        self.state = PollerState.idle
        self.cycles_completed = 0
        self.last_report: Optional[CycleReport] = None
        self._cycle_lock = asyncio.Lock()
        self._loop_task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def run_cycle(self) -> CycleReport:
        """Run one fetch, store, decide and notify pass. Cycles never overlap."""
        async with self._cycle_lock:
            try:
                return await self._run_cycle()
            finally:
                self._set_state(PollerState.idle)

    async def _run_cycle(self) -> CycleReport:
        start_time = time.perf_counter()
        report = CycleReport()

        self._set_state(PollerState.fetching)
        tasks = {
            location: asyncio.create_task(
                self.sensor_client.fetch_reading(location),
                name=f"fetch-location-{location}",
            )
            for location in self.locations
        }
        if tasks:
            try:
                await asyncio.wait(tasks.values())
            except asyncio.CancelledError:
                for task in tasks.values():
                    task.cancel()
                raise

        self._set_state(PollerState.processing)
        readings: List[Reading] = []
        alerted: set[int] = set()
        for location, task in tasks.items():
            exc = asyncio.CancelledError() if task.cancelled() else task.exception()
            if exc is not None:
                reason = str(exc) or type(exc).__name__
                report.failed[location] = reason
                logger.warning(
                    "Fetch failed; skipping location this cycle",
                    extra={"location": location, "reason": reason},
                )
                continue

            reading = task.result()
            report.fetched.append(location)
            readings.append(reading)

            try:
                if self.policy.should_alert(location, reading):
                    alerted.add(location)
            except Exception as policy_exc:  # noqa: BLE001 - a failed decision means no alert
                report.policy_errors[location] = str(policy_exc) or type(policy_exc).__name__
                logger.error(
                    "Alert decision failed; treating as no alert",
                    extra={"location": location, "reason": report.policy_errors[location]},
                )

            try:
                outcome = await self.store.store_if_absent(reading)
            except StoreError as store_exc:
                report.store_errors[location] = str(store_exc)
                logger.error(
                    "Failed to store reading",
                    extra={"location": location, "reason": str(store_exc)},
                )
                continue

            if outcome.stored:
                report.stored.append(location)
                self.store.invalidate(reading.location)
            else:
                report.duplicates.append(location)

        report.alerted = sorted(alerted)
        logger.info(
            "Locations that require an alert: %s",
            ", ".join(str(location) for location in report.alerted) or "None",
        )

        if alerted and self.alert_hook is not None:
            try:
                report.dispatch = await self.alert_hook(frozenset(alerted), readings)
            except Exception as exc:  # noqa: BLE001 - notification problems never fail a cycle
                logger.error("Alert dispatch failed", extra={"reason": str(exc)})

        report.cycle_ms = int((time.perf_counter() - start_time) * 1000)
        self.cycles_completed += 1
        self.last_report = report
        logger.info(
            "Poll cycle complete",
            extra={"locations": len(report.fetched), "cycle_ms": report.cycle_ms},
        )
        return report

    async def run_forever(self) -> None:
        """Run a cycle now, then one every ``interval_seconds`` until cancelled."""
        while True:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001 - keep the schedule alive
                logger.exception("Poll cycle crashed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        logger.info(
            "Starting poller", extra={"locations": len(self.locations), "status": "started"}
        )
        self._loop_task = asyncio.create_task(self.run_forever(), name="epa-poller")

    async def stop(self) -> None:
        task = self._loop_task
        self._loop_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped poller", extra={"status": "stopped"})

    def _set_state(self, state: PollerState) -> None:
        if self.state is not state:
            logger.debug("Poller state change", extra={"state": state.value})
        self.state = state
