"""
Experiment Status

Owns all mutable state of one experiment and runs the whole
(iteration x combination x query) loop on a single background worker.

The worker is the only writer. Results, runs, and log messages are appended
under a lock once fully built. Readers get deep copies taken under the same
lock, so nothing they hold aliases published state, and each snapshot is a
prefix of the final ordering. Scalar progress fields (current query, plan,
config, failure count) are plain attribute assignments.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, TypeVar

from pydantic import BaseModel

from sqlperf.connectors.base import QueryEngine
from sqlperf.core.errors import ExperimentTimeoutError
from sqlperf.core.query import Query
from sqlperf.core.results_store import ResultsStore
from sqlperf.core.variations import Variation, combinations
from sqlperf.models import (
    BenchmarkResult,
    EngineConfiguration,
    ExperimentRun,
    ExperimentState,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_timestamp_lock = threading.Lock()
_last_timestamp = 0


def next_experiment_timestamp() -> int:
    """Epoch milliseconds, strictly increasing within this process."""
    global _last_timestamp
    with _timestamp_lock:
        ts = int(time.time() * 1000)
        if ts <= _last_timestamp:
            ts = _last_timestamp + 1
        _last_timestamp = ts
        return ts


def _detached(models: Iterable[M]) -> list[M]:
    return [m.model_copy(deep=True) for m in models]


class ExperimentStatus:
    """
    Live handle on a running (or finished) experiment.

    Created by `Benchmark.run_experiment`; call `start()` once to launch the
    worker. Dropping the handle does not stop the worker.
    """

    def __init__(
        self,
        *,
        engine: QueryEngine,
        queries: Sequence[Query],
        variations: Sequence[Variation[Any]],
        iterations: int,
        include_breakdown: bool = False,
        tags: Optional[Mapping[str, str]] = None,
        store: Optional[ResultsStore] = None,
        tail_lines: int = 5,
    ) -> None:
        self.engine = engine
        self.queries = tuple(queries)
        self.variations = tuple(variations)
        self.iterations = iterations
        self.include_breakdown = include_breakdown
        self.tags = {str(k): str(v) for k, v in (tags or {}).items()}
        self.store = store
        self.tail_lines = tail_lines

        self.timestamp = next_experiment_timestamp()
        self.combinations = combinations(self.variations)

        self._lock = threading.Lock()
        self._results: list[BenchmarkResult] = []
        self._runs: list[ExperimentRun] = []
        self._messages: list[str] = []

        # Progress for the live report.
        self.current_query = ""
        self.current_plan = ""
        self.current_config = ""
        self.failures = 0
        self.start_time = 0.0
        self.results_path: Optional[Path] = None

        self._future: Optional[Future] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> "ExperimentStatus":
        if self._future is not None:
            raise RuntimeError(f"Experiment {self.timestamp} already started")
        executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"experiment-{self.timestamp}"
        )
        self._future = executor.submit(self._run)
        # The worker thread exits once the loop finishes.
        executor.shutdown(wait=False)
        return self

    @property
    def future(self) -> Future:
        if self._future is None:
            raise RuntimeError(f"Experiment {self.timestamp} has not been started")
        return self._future

    @property
    def total_queries(self) -> int:
        return self.iterations * len(self.combinations) * len(self.queries)

    @property
    def status(self) -> ExperimentState:
        if self._future is None or not self._future.done():
            return ExperimentState.RUNNING
        if self._future.exception() is not None:
            return ExperimentState.FAILED
        return ExperimentState.SUCCESSFUL

    @property
    def is_finished(self) -> bool:
        return self._future is not None and self._future.done()

    def wait_for_finish(self, timeout: Optional[float]) -> list[ExperimentRun]:
        """
        Block until the experiment finishes.

        Returns:
            Every run of the experiment.

        Raises:
            ExperimentTimeoutError: Still running after `timeout` seconds. The
                worker keeps going.
            Exception: Whatever aborted the worker, when the experiment failed.
        """
        try:
            return _detached(self.future.result(timeout=timeout))
        except FutureTimeoutError as e:
            raise ExperimentTimeoutError(self.timestamp, timeout) from e

    async def wait(self, timeout: Optional[float]) -> list[ExperimentRun]:
        """Async variant of `wait_for_finish` for event-loop callers."""
        wrapped = asyncio.wrap_future(self.future)
        try:
            runs = await asyncio.wait_for(asyncio.shield(wrapped), timeout)
        except asyncio.TimeoutError as e:
            raise ExperimentTimeoutError(self.timestamp, timeout) from e
        return _detached(runs)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def get_current_results(self) -> list[BenchmarkResult]:
        with self._lock:
            return _detached(self._results)

    def get_current_runs(self) -> list[ExperimentRun]:
        with self._lock:
            return _detached(self._runs)

    def messages(self) -> list[str]:
        with self._lock:
            return list(self._messages)

    def tail(self, n: Optional[int] = None) -> str:
        n = self.tail_lines if n is None else n
        if n <= 0:
            return ""
        with self._lock:
            return "\n".join(self._messages[-n:])

    @property
    def iterations_complete(self) -> int:
        if not self.combinations:
            return 0
        with self._lock:
            return len(self._runs) // len(self.combinations)

    @property
    def permalink(self) -> str:
        if self.store is not None:
            return str(self.store.experiment_path(self.timestamp))
        return f"timestamp={self.timestamp}"

    def summary(self) -> dict[str, Any]:
        with self._lock:
            queries_run = len(self._results)
            runs = len(self._runs)
        return {
            "timestamp": self.timestamp,
            "status": self.status.value,
            "permalink": self.permalink,
            "iterations": self.iterations,
            "iterations_complete": self.iterations_complete,
            "combinations": len(self.combinations),
            "runs": runs,
            "failures": self.failures,
            "queries_run": queries_run,
            "total_queries": self.total_queries,
            "elapsed_seconds": self._elapsed_seconds(),
            "current_query": self.current_query,
            "current_config": self.current_config,
            "results_path": str(self.results_path) if self.results_path else None,
        }

    def report(self, n: Optional[int] = None) -> str:
        """Human-readable progress report."""
        with self._lock:
            queries_run = len(self._results)
        query_runtime = int(time.time() - self.start_time) if self.start_time else 0
        return "\n".join(
            [
                f"{self.status.value} Experiment",
                f"Permalink: {self.permalink}",
                f"Iterations complete: {self.iterations_complete} / {self.iterations}",
                f"Failures: {self.failures}",
                f"Queries run: {queries_run} / {self.total_queries}",
                f"Run time: {self._elapsed_seconds()}s",
                "",
                f"Current Query: {self.current_query}",
                f"Runtime: {query_runtime}s",
                self.current_config,
                "",
                "QueryPlan",
                self.current_plan,
                "",
                "Logs",
                self.tail(n),
            ]
        )

    def __str__(self) -> str:
        return f"Permalink: {self.permalink}"

    def __repr__(self) -> str:
        return f"ExperimentStatus(timestamp={self.timestamp}, status={self.status.value})"

    def _elapsed_seconds(self) -> int:
        return int((time.time() * 1000 - self.timestamp) // 1000)

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    def _log(self, message: str, level: int = logging.INFO, **kwargs: Any) -> None:
        with self._lock:
            self._messages.append(message)
        logger.log(level, "[experiment %s] %s", self.timestamp, message, **kwargs)

    def _run(self) -> list[ExperimentRun]:
        self._log(
            f"Starting experiment: {self.iterations} iterations x "
            f"{len(self.combinations)} combinations x {len(self.queries)} queries"
        )
        try:
            base = self.engine.current_configuration().model_copy(deep=True)
            for iteration in range(1, self.iterations + 1):
                for combination in self.combinations:
                    self._run_combination(iteration, combination, base)
        except Exception as e:
            self._log(f"Experiment failed: {e}", logging.ERROR, exc_info=True)
            raise

        runs = self.get_current_runs()
        self._persist(runs)
        return runs

    def _run_combination(
        self,
        iteration: int,
        combination: tuple[int, ...],
        base: EngineConfiguration,
    ) -> None:
        configuration = base
        selections: list[tuple[str, str]] = []
        for variation, index in zip(self.variations, combination):
            configuration = variation.apply(configuration, index)
            selections.append((variation.name, str(variation.options[index])))
        self.engine.apply_configuration(configuration)
        self.current_config = ", ".join(f"{k}: {v}" for k, v in selections)

        tags = dict(selections)
        tags.update(self.tags)
        snapshot = self.engine.current_configuration().model_copy(deep=True)

        setup = f"iteration: {iteration}, " + ", ".join(f"{k}={v}" for k, v in selections)
        results: list[BenchmarkResult] = []
        for query in self.queries:
            self._log(f"Running query {query.name} {setup}")
            self.current_query = query.name
            self.current_plan = self._describe_plan(query)
            self.start_time = time.time()

            result = query.benchmark(self.include_breakdown, setup, self.engine)
            if result.failure is not None:
                self.failures += 1
                self._log(
                    f"Query '{query.name}' failed: {result.failure.message}",
                    logging.WARNING,
                )
            else:
                self._log(f"Exec time: {result.execution_time:.3f}ms")
            with self._lock:
                self._results.append(result)
            results.append(result)

        run = ExperimentRun(
            timestamp=self.timestamp,
            iteration=iteration,
            tags=tags,
            configuration=snapshot,
            results=results,
        )
        with self._lock:
            self._runs.append(run)

    def _describe_plan(self, query: Query) -> str:
        try:
            return query.plan_description()
        except Exception as e:
            # The benchmark call reports the failure; the loop keeps going.
            return f"<plan unavailable: {e}>"

    def _persist(self, runs: list[ExperimentRun]) -> None:
        if self.store is None:
            self._log("No results store configured; results kept in memory only")
            return
        try:
            self.results_path = self.store.write_experiment(self.timestamp, runs)
            self._log(
                f"Results written to table: '{self.store.table_name}' at {self.results_path}"
            )
        except Exception as e:
            self._log(f"Failed to write data: {e}", logging.ERROR, exc_info=True)
