"""
Harness exceptions.
"""

from __future__ import annotations


class ExperimentTimeoutError(TimeoutError):
    """The experiment did not finish within the requested wait."""

    def __init__(self, timestamp: int, timeout: float | None) -> None:
        super().__init__(
            f"Experiment {timestamp} did not finish within {timeout}s"
        )
        self.timestamp = timestamp
        self.timeout = timeout


class PersistenceError(RuntimeError):
    """Writing or reading the results store failed."""


class ExperimentNotFoundError(KeyError):
    """No experiment is known under the given timestamp."""

    def __init__(self, timestamp: int) -> None:
        super().__init__(timestamp)
        self.timestamp = timestamp

    def __str__(self) -> str:
        return f"Experiment not found: {self.timestamp}"


class ResultsNotFoundError(PersistenceError):
    """No persisted results exist for the given experiment."""
