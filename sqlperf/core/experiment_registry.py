"""
Experiment Registry

Tracks the experiments started in this process so the status API can look
them up by timestamp. Finished experiments are evicted oldest-first once the
registry grows past its limit; running ones are never evicted.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Optional

from sqlperf.config import settings
from sqlperf.core.errors import ExperimentNotFoundError
from sqlperf.core.experiment import ExperimentStatus

logger = logging.getLogger(__name__)


class ExperimentRegistry:
    def __init__(self, max_experiments: Optional[int] = None) -> None:
        self._max_experiments = max_experiments or settings.REGISTRY_MAX_EXPERIMENTS
        self._experiments: OrderedDict[int, ExperimentStatus] = OrderedDict()
        self._lock = threading.Lock()

    def register(self, status: ExperimentStatus) -> None:
        with self._lock:
            self._experiments[status.timestamp] = status
            self._evict_finished()

    def get(self, timestamp: int) -> ExperimentStatus:
        with self._lock:
            status = self._experiments.get(timestamp)
        if status is None:
            raise ExperimentNotFoundError(timestamp)
        return status

    def list(self) -> list[ExperimentStatus]:
        with self._lock:
            return list(self._experiments.values())

    def clear(self) -> None:
        with self._lock:
            self._experiments.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._experiments)

    def _evict_finished(self) -> None:
        excess = len(self._experiments) - self._max_experiments
        if excess <= 0:
            return
        for ts in [ts for ts, s in self._experiments.items() if s.is_finished][:excess]:
            del self._experiments[ts]
            logger.debug("Evicted finished experiment %s from registry", ts)


# Global singleton instance
registry = ExperimentRegistry()
