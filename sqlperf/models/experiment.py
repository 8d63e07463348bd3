"""
Experiment Models

Defines Pydantic models for experiment runs and the engine configuration
snapshot attached to each run.
"""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sqlperf.models.benchmark_result import BenchmarkResult


class ExperimentState(str, Enum):
    """Experiment execution status."""

    RUNNING = "Running"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"


class EngineConfiguration(BaseModel):
    """
    Immutable snapshot of engine-wide settings.

    Variation setups receive one of these and return a modified copy; the
    `with_*` helpers never mutate the instance they are called on and never
    share its maps with the copy they return.
    """

    engine_conf: Dict[str, str] = Field(
        default_factory=dict, description="Engine (session) options"
    )
    process_conf: Dict[str, str] = Field(
        default_factory=dict, description="Process-level options"
    )
    default_parallelism: int = Field(1, ge=1, description="Default parallelism")

    model_config = ConfigDict(frozen=True)

    @field_validator("engine_conf", "process_conf", mode="before")
    @classmethod
    def stringify_values(cls, v: Any) -> Dict[str, str]:
        if v is None:
            return {}
        return {str(k): str(val) for k, val in dict(v).items()}

    def with_engine_option(self, key: str, value: Any) -> "EngineConfiguration":
        conf = dict(self.engine_conf)
        conf[key] = str(value)
        return self.model_copy(update={"engine_conf": conf}, deep=True)

    def with_process_option(self, key: str, value: Any) -> "EngineConfiguration":
        conf = dict(self.process_conf)
        conf[key] = str(value)
        return self.model_copy(update={"process_conf": conf}, deep=True)

    def with_default_parallelism(self, parallelism: int) -> "EngineConfiguration":
        if int(parallelism) < 1:
            raise ValueError("default_parallelism must be >= 1")
        return self.model_copy(
            update={"default_parallelism": int(parallelism)}, deep=True
        )


class ExperimentRun(BaseModel):
    """
    Outcome of one (iteration, combination) cell of an experiment.

    `timestamp` is shared by every run of one experiment and serves as the
    experiment's key in the results store.
    """

    timestamp: int = Field(..., description="Experiment start (epoch ms)")
    iteration: int = Field(..., ge=1, description="Iteration number (1-based)")
    tags: Dict[str, str] = Field(default_factory=dict, description="Run tags")
    configuration: EngineConfiguration = Field(
        ..., description="Engine configuration in effect"
    )
    results: List[BenchmarkResult] = Field(
        default_factory=list, description="One result per query"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if r.failure is not None)
