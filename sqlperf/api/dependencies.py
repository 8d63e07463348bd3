"""
FastAPI dependencies shared by the route modules.

Tests override these through `app.dependency_overrides`.
"""

from __future__ import annotations

from sqlperf.core.experiment_registry import ExperimentRegistry, registry
from sqlperf.core.results_store import ResultsStore


def get_registry() -> ExperimentRegistry:
    return registry


def get_results_store() -> ResultsStore:
    return ResultsStore()
