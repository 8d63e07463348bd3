"""
Benchmark Result Models

Defines Pydantic models for the outcome of a single query benchmark:
per-phase timings, optional per-operator breakdown, or a captured failure.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FailureKind(str, Enum):
    """Stage of query execution that raised."""

    BUILD = "build"
    PARSE = "parse"
    ANALYSIS = "analysis"
    OPTIMIZATION = "optimization"
    PLANNING = "planning"
    BREAKDOWN = "breakdown"
    EXECUTION = "execution"


class Failure(BaseModel):
    """A query failure: where it happened and what the engine said."""

    kind: FailureKind = Field(..., description="Stage that raised")
    message: str = Field("", description="Error message")

    model_config = ConfigDict(frozen=True)


class BreakdownResult(BaseModel):
    """Timing of one physical operator executed in isolation."""

    node_name: str = Field(..., description="Physical operator name")
    node_name_description: str = Field(
        ..., description="One-line operator description"
    )
    index: int = Field(..., ge=0, description="Pre-order position in the plan tree")
    execution_time: float = Field(..., description="Elapsed time (ms)")

    model_config = ConfigDict(frozen=True)


class BenchmarkResult(BaseModel):
    """
    Outcome of one query run.

    Either the timing fields are populated (success) or `failure` is
    (failure). A missing `execution_time` means the query failed.
    """

    name: str = Field(..., description="Query name")
    join_types: List[str] = Field(
        default_factory=list, description="Join operators in the physical plan"
    )
    tables: List[str] = Field(
        default_factory=list, description="Relations referenced by the query"
    )

    # Phase timings (milliseconds)
    parsing_time: Optional[float] = Field(None, description="Parse time (ms)")
    analysis_time: Optional[float] = Field(None, description="Analysis time (ms)")
    optimization_time: Optional[float] = Field(
        None, description="Optimization time (ms)"
    )
    planning_time: Optional[float] = Field(None, description="Planning time (ms)")
    execution_time: Optional[float] = Field(None, description="Execution time (ms)")

    query_execution: Optional[str] = Field(
        None, description="Full description of the query execution"
    )
    break_down: List[BreakdownResult] = Field(
        default_factory=list, description="Per-operator timings"
    )
    failure: Optional[Failure] = Field(None, description="Failure, if any")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_outcome(self):
        """A result carries timings or a failure, never both."""
        timings = (
            self.parsing_time,
            self.analysis_time,
            self.optimization_time,
            self.planning_time,
            self.execution_time,
        )
        if self.failure is not None:
            if any(t is not None for t in timings) or self.break_down:
                raise ValueError("Failed results must not carry timings")
        elif self.execution_time is None:
            raise ValueError("Successful results require execution_time")
        return self

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    @classmethod
    def failed(cls, name: str, kind: FailureKind, message: str) -> "BenchmarkResult":
        return cls(name=name, failure=Failure(kind=kind, message=message))
