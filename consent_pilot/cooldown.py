"""Duplicate-click suppression across frames sharing an origin."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .models import CooldownRecord
from .utils import cooldown_key, now_ms

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 12000


class CooldownGuard:
    """Session-scoped record of the last automated click per origin.

    Records expire by time only. ``try_acquire`` checks and marks in one
    step, so frames handled concurrently cannot both pass.
    """

    def __init__(self, window_ms: float = DEFAULT_WINDOW_MS, clock: Callable[[], float] = now_ms):
        self.window_ms = window_ms
        self._clock = clock
        self._records: dict[str, CooldownRecord] = {}

    def key_for(self, url: str) -> str:
        return cooldown_key(url)

    def is_cooling(self, key: str) -> bool:
        record = self._records.get(key)
        if record is None:
            return False
        return self._clock() - record.timestamp_ms < self.window_ms

    def mark(self, key: str) -> CooldownRecord:
        record = CooldownRecord(timestamp_ms=self._clock(), origin_key=key)
        self._records[key] = record
        logger.debug("Cooldown started for %s", key)
        return record

    def try_acquire(self, key: str) -> bool:
        """Mark key and return True unless it is still cooling down."""
        if self.is_cooling(key):
            return False
        self.mark(key)
        return True

    def get(self, key: str) -> CooldownRecord | None:
        return self._records.get(key)
