"""Short-lived cache of latest stored readings, invalidated per location."""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from models.records import Reading

logger = logging.getLogger(__name__)


class ReadingCache:

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[int, Tuple[float, Reading]] = {}
        self._lock = Lock()

    def get(self, location: int) -> Optional[Reading]:
        with self._lock:
            entry = self._entries.get(location)
            if entry is None:
                return None
            stored_at, reading = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[location]
                return None
            return reading.model_copy(deep=True)

    def put(self, location: int, reading: Reading) -> None:
        with self._lock:
            self._entries[location] = (self._clock(), reading.model_copy(deep=True))

    def invalidate(self, location: int) -> None:
        with self._lock:
            removed = self._entries.pop(location, None)
        if removed is not None:
            logger.debug("Invalidated cached reading", extra={"location": location})
