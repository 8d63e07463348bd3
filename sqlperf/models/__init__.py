"""
Data models for sqlperf.

This package contains Pydantic models for:
- Benchmark results (phase timings, breakdowns, failures)
- Experiment runs and engine configuration snapshots
"""

from sqlperf.models.benchmark_result import (
    BenchmarkResult,
    BreakdownResult,
    Failure,
    FailureKind,
)

from sqlperf.models.experiment import (
    EngineConfiguration,
    ExperimentRun,
    ExperimentState,
)

__all__ = [
    # benchmark_result
    "BenchmarkResult",
    "BreakdownResult",
    "Failure",
    "FailureKind",
    # experiment
    "EngineConfiguration",
    "ExperimentRun",
    "ExperimentState",
]
