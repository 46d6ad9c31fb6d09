"""Alert decision policies."""

from __future__ import annotations

import random
from typing import Optional, Protocol

from models.records import Reading


class AlertPolicy(Protocol):
    def should_alert(self, location: int, reading: Reading) -> bool:
        ...


class RandomAlertPolicy:
    """Coin flip, independent of the reading.

    Stand-in until a forecasting model supplies real alert decisions.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def should_alert(self, location: int, reading: Reading) -> bool:
        return self._rng.random() < 0.5
