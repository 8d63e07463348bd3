"""
Experiment orchestration: queries, variations, status tracking, and results.
"""

from sqlperf.core.benchmark import Benchmark
from sqlperf.core.errors import (
    ExperimentNotFoundError,
    ExperimentTimeoutError,
    PersistenceError,
)
from sqlperf.core.experiment import ExperimentStatus
from sqlperf.core.experiment_registry import ExperimentRegistry
from sqlperf.core.query import Query, QueryStage
from sqlperf.core.results_store import ResultsStore
from sqlperf.core.variations import Variation, combinations

__all__ = [
    "Benchmark",
    "ExperimentNotFoundError",
    "ExperimentRegistry",
    "ExperimentStatus",
    "ExperimentTimeoutError",
    "PersistenceError",
    "Query",
    "QueryStage",
    "ResultsStore",
    "Variation",
    "combinations",
]
