"""
sharedclustering/progress.py
============================
Progress reporting for long batch jobs.

A ``ProgressData`` is polled by whoever started the job (a CLI bar, an API
status endpoint). Engine code only resets and increments it, always through
``scoped()`` so the counter is cleared on success, failure and early return.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


class ProgressData:
    def __init__(self):
        self._lock       = threading.Lock()
        self.description: Optional[str] = None
        self.maximum     = 0
        self.value       = 0

    def reset(self, description: Optional[str] = None, maximum: int = 0):
        with self._lock:
            self.description = description
            self.maximum     = maximum
            self.value       = 0
        if description:
            logger.debug(f"{description} (0/{maximum})")

    def increment(self):
        with self._lock:
            self.value += 1

    @property
    def percent(self) -> float:
        if self.maximum <= 0:
            return 0.0
        return min(100.0, 100.0 * self.value / self.maximum)

    @contextmanager
    def scoped(self, description: str, maximum: int = 0) -> Iterator["ProgressData"]:
        self.reset(description, maximum)
        try:
            yield self
        finally:
            self.reset()


class SuppressProgress(ProgressData):
    """Drop-in progress sink that records nothing."""

    def reset(self, description: Optional[str] = None, maximum: int = 0):
        pass

    def increment(self):
        pass
