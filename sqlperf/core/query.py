"""
Benchmark Query

Wraps one benchmark query and times each phase of its execution:
parse, analysis, optimization, physical planning, and execution, plus an
optional per-operator breakdown.

The query representation is rebuilt from its builder on every call. Nothing
is cached between calls, so every benchmark pays the full build cost and each
phase timer measures a cold phase.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Iterable, Optional, TypeVar

from sqlperf.connectors.base import Dataset, PlanNode, QueryEngine
from sqlperf.models import BenchmarkResult, BreakdownResult, FailureKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueryStage(str, Enum):
    """Lifecycle of a single benchmark invocation."""

    PENDING = "pending"
    BUILDING = "building"
    PARSING = "parsing"
    ANALYZING = "analyzing"
    OPTIMIZING = "optimizing"
    PLANNING = "planning"
    BREAKDOWN = "breakdown"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_FAILURE_KIND_BY_STAGE: dict[QueryStage, FailureKind] = {
    QueryStage.PENDING: FailureKind.BUILD,
    QueryStage.BUILDING: FailureKind.BUILD,
    QueryStage.PARSING: FailureKind.PARSE,
    QueryStage.ANALYZING: FailureKind.ANALYSIS,
    QueryStage.OPTIMIZING: FailureKind.OPTIMIZATION,
    QueryStage.PLANNING: FailureKind.PLANNING,
    QueryStage.BREAKDOWN: FailureKind.BREAKDOWN,
    QueryStage.EXECUTING: FailureKind.EXECUTION,
}


def benchmark_ms(fn: Callable[[], T]) -> tuple[float, T]:
    """Run `fn` once; return (elapsed milliseconds, return value)."""
    start = time.perf_counter()
    value = fn()
    return (time.perf_counter() - start) * 1000.0, value


def _drain(rows: Iterable[Any]) -> int:
    count = 0
    for _ in rows:
        count += 1
    return count


class Query:
    """
    One benchmark query and its metadata.

    Args:
        name: Query name (unique within an experiment).
        builder: Zero-argument factory returning a fresh lazy Dataset. It is
            invoked on every call; two calls build twice.
        description: Free-form description.
        collect_results: Collect every output row when timing execution
            (otherwise rows are streamed and discarded).
        sql_text: Source SQL, when the query was built from SQL.
        engine: Engine used for job descriptions (optional).
    """

    def __init__(
        self,
        name: str,
        builder: Callable[[], Dataset],
        description: str = "",
        collect_results: bool = True,
        sql_text: Optional[str] = None,
        engine: Optional[QueryEngine] = None,
    ) -> None:
        if not name:
            raise ValueError("Query name must not be empty")
        self.name = name
        self._builder = builder
        self.description = description
        self.collect_results = collect_results
        self.sql_text = sql_text
        self.engine = engine

    @classmethod
    def from_sql(
        cls,
        engine: QueryEngine,
        name: str,
        sql_text: str,
        description: str = "",
        collect_results: bool = True,
    ) -> "Query":
        return cls(
            name,
            lambda: engine.sql(sql_text),
            description,
            collect_results=collect_results,
            sql_text=sql_text,
            engine=engine,
        )

    def new_dataset(self) -> Dataset:
        """Build a fresh Dataset for this query."""
        return self._builder()

    @property
    def tables_involved(self) -> list[str]:
        return list(self.new_dataset().query_execution.referenced_tables())

    def plan_description(self) -> str:
        """Physical plan of a fresh build, as text."""
        return str(self.new_dataset().query_execution.executed_plan)

    def __str__(self) -> str:
        return f"\n== Query: {self.name} ==\n{self.new_dataset().query_execution.analyzed}\n"

    def __repr__(self) -> str:
        return f"Query(name={self.name!r}, collect_results={self.collect_results})"

    def benchmark(
        self,
        include_breakdown: bool = False,
        description: str = "",
        engine: Optional[QueryEngine] = None,
    ) -> BenchmarkResult:
        """
        Run the query once and time every phase.

        Any exception is captured into the returned result's `failure`; no
        timing fields are populated in that case.

        Args:
            include_breakdown: Execute every physical operator in isolation
                and record its time. Substantially more expensive.
            description: Setup description attached to the engine job.
            engine: Engine that receives the job description (default: the
                engine this query was bound to, if any).
        """
        engine = engine if engine is not None else self.engine
        stage = QueryStage.PENDING
        try:
            stage = QueryStage.BUILDING
            dataset = self._builder()
            if engine is not None:
                engine.set_job_description(f"Query: {self.name}, {description}")
            query_execution = dataset.query_execution

            stage = QueryStage.PARSING
            parsing_time, _ = benchmark_ms(lambda: query_execution.logical)
            stage = QueryStage.ANALYZING
            analysis_time, _ = benchmark_ms(lambda: query_execution.analyzed)
            stage = QueryStage.OPTIMIZING
            optimization_time, _ = benchmark_ms(lambda: query_execution.optimized_plan)
            stage = QueryStage.PLANNING
            planning_time, plan = benchmark_ms(lambda: query_execution.executed_plan)

            breakdown: list[BreakdownResult] = []
            if include_breakdown:
                stage = QueryStage.BREAKDOWN
                breakdown = self._breakdown(plan)

            stage = QueryStage.EXECUTING
            if self.collect_results:
                execution_time, _ = benchmark_ms(dataset.collect)
            else:
                execution_time, _ = benchmark_ms(lambda: _drain(dataset.iter_rows()))

            join_types = [
                node.node_name for node in plan.iter_nodes() if "Join" in node.node_name
            ]
            result = BenchmarkResult(
                name=self.name,
                join_types=join_types,
                tables=list(query_execution.referenced_tables()),
                parsing_time=parsing_time,
                analysis_time=analysis_time,
                optimization_time=optimization_time,
                planning_time=planning_time,
                execution_time=execution_time,
                query_execution=str(query_execution),
                break_down=breakdown,
            )
            stage = QueryStage.SUCCEEDED
            return result
        except Exception as e:
            kind = _FAILURE_KIND_BY_STAGE.get(stage, FailureKind.EXECUTION)
            logger.debug("Query %s failed during %s: %s", self.name, stage.value, e)
            return BenchmarkResult.failed(self.name, kind, str(e) or repr(e))

    def _breakdown(self, plan: PlanNode) -> list[BreakdownResult]:
        results: list[BreakdownResult] = []
        for index, node in enumerate(plan.iter_nodes()):
            elapsed, _ = benchmark_ms(lambda: _drain(node.execute()))
            results.append(
                BreakdownResult(
                    node_name=node.node_name,
                    node_name_description=node.simple_string(),
                    index=index,
                    execution_time=elapsed,
                )
            )
        return results
