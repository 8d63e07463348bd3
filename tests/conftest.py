"""
Global pytest configuration and fixtures for sqlperf tests.

This module provides:
- An in-memory fake query engine implementing sqlperf.connectors.base
- Results store / registry / benchmark fixtures isolated per test
- FastAPI test client fixtures
- Polling helpers for tests that observe a running experiment
"""

from __future__ import annotations

import re
import threading
import time
from typing import Any, Callable, Iterator, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from sqlperf.connectors.base import Dataset, PlanNode, QueryEngine, QueryExecution
from sqlperf.core.benchmark import Benchmark
from sqlperf.core.experiment_registry import ExperimentRegistry
from sqlperf.core.query import Query
from sqlperf.core.results_store import ResultsStore
from sqlperf.models import EngineConfiguration


# =============================================================================
# Fake Engine
# =============================================================================

_TABLE_RE = re.compile(r"\b(?:FROM|JOIN)\s+([\w.]+)", re.IGNORECASE)


class FakePlanNode(PlanNode):
    def __init__(
        self,
        name: str,
        rows: Sequence[Any] = (),
        children: Sequence[PlanNode] = (),
        gate: Optional[threading.Event] = None,
    ) -> None:
        self._name = name
        self.rows = list(rows)
        self._children = list(children)
        self.gate = gate
        self.executions = 0

    @property
    def node_name(self) -> str:
        return self._name

    @property
    def children(self) -> Sequence[PlanNode]:
        return self._children

    def simple_string(self) -> str:
        return f"{self._name} [{len(self.rows)} rows]"

    def execute(self) -> list[Any]:
        self.executions += 1
        if self.gate is not None and not self.gate.wait(timeout=10):
            raise RuntimeError("gate never opened")
        return list(self.rows)


class FakeQueryExecution(QueryExecution):
    """Phases are forced once and memoized; `fail_at` makes one phase raise."""

    def __init__(
        self,
        tables: list[str],
        plan: PlanNode,
        fail_at: Optional[str] = None,
    ) -> None:
        self._tables = tables
        self._plan = plan
        self.fail_at = fail_at
        self.forced: list[str] = []
        self._cache: dict[str, Any] = {}

    def _force(self, phase: str, value: Callable[[], Any]) -> Any:
        if phase not in self._cache:
            if self.fail_at == phase:
                raise RuntimeError(f"{phase} failed")
            self.forced.append(phase)
            self._cache[phase] = value()
        return self._cache[phase]

    @property
    def logical(self) -> Any:
        return self._force(
            "parse", lambda: "'Project [*]\n" + "\n".join(f"+- 'UnresolvedRelation [{t}]" for t in self._tables)
        )

    @property
    def analyzed(self) -> Any:
        self.logical
        return self._force("analyze", lambda: f"Project [*] over {', '.join(self._tables)}")

    @property
    def optimized_plan(self) -> Any:
        self.analyzed
        return self._force("optimize", lambda: f"Optimized({', '.join(self._tables)})")

    @property
    def executed_plan(self) -> PlanNode:
        self.optimized_plan
        return self._force("plan", lambda: self._plan)

    def referenced_tables(self) -> list[str]:
        self.logical
        return list(self._tables)


class FakeDataset(Dataset):
    def __init__(self, execution: FakeQueryExecution) -> None:
        self._execution = execution
        self.collected = 0
        self.streamed = 0

    @property
    def query_execution(self) -> QueryExecution:
        return self._execution

    def _rows(self) -> list[Any]:
        if self._execution.fail_at == "execute":
            raise RuntimeError("execute failed")
        return self._execution.executed_plan.execute()

    def collect(self) -> list[Any]:
        self.collected += 1
        return self._rows()

    def iter_rows(self) -> Iterator[Any]:
        self.streamed += 1
        yield from self._rows()


class FakeEngine(QueryEngine):
    """
    Understands just enough SQL for the tests:

    - `SELECT * FROM a` scans table `a`
    - `SELECT * FROM a JOIN b` hash-joins two scans
    - `FAIL <stage>` raises at that stage (build, parse, analyze, optimize,
      plan, execute)
    - `SLOW ...` blocks execution until `engine.gate` is set
    """

    def __init__(self, tables: Optional[dict[str, list[Any]]] = None) -> None:
        self.tables = tables if tables is not None else {
            "store_sales": [(1, 10.0), (2, 20.0), (3, 30.0)],
            "item": [(1, "a"), (2, "b")],
        }
        self._configuration = EngineConfiguration(
            engine_conf={"sql.shuffle.partitions": "200"},
            process_conf={"app.name": "sqlperf-tests"},
            default_parallelism=8,
        )
        self.applied: list[EngineConfiguration] = []
        self.job_descriptions: list[str] = []
        self.built: list[str] = []
        self.datasets: list[FakeDataset] = []
        self.gate = threading.Event()

    def sql(self, text: str) -> Dataset:
        self.built.append(text)
        words = text.split()
        fail_at = words[1].lower() if words and words[0].upper() == "FAIL" else None
        if fail_at == "build":
            raise ValueError("syntax error at or near 'FAIL'")

        tables = [t.split(".")[-1] for t in _TABLE_RE.findall(text)] or ["dual"]
        gate = self.gate if words and words[0].upper() == "SLOW" else None
        scans = [
            FakePlanNode("Scan", self.tables.get(t, []), gate=gate) for t in tables
        ]
        if len(scans) > 1:
            rows = [a + b for a in scans[0].rows for b in scans[1].rows]
            plan: PlanNode = FakePlanNode("HashJoin", rows, scans[:2], gate=gate)
        else:
            plan = scans[0]
        dataset = FakeDataset(FakeQueryExecution(tables, plan, fail_at))
        self.datasets.append(dataset)
        return dataset

    def current_configuration(self) -> EngineConfiguration:
        return self._configuration

    def apply_configuration(self, configuration: EngineConfiguration) -> None:
        self.applied.append(configuration)
        self._configuration = configuration

    def set_job_description(self, description: str) -> None:
        self.job_descriptions.append(description)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def engine() -> Iterator[FakeEngine]:
    eng = FakeEngine()
    yield eng
    # Release any experiment still blocked on the gate.
    eng.gate.set()


@pytest.fixture
def results_store(tmp_path) -> ResultsStore:
    return ResultsStore(tmp_path / "results", fmt="json")


@pytest.fixture
def experiment_registry() -> ExperimentRegistry:
    return ExperimentRegistry(max_experiments=50)


@pytest.fixture
def benchmark(
    engine: FakeEngine,
    results_store: ResultsStore,
    experiment_registry: ExperimentRegistry,
) -> Benchmark:
    return Benchmark(engine, store=results_store, registry=experiment_registry)


@pytest.fixture
def ok_query(engine: FakeEngine) -> Query:
    return Query.from_sql(engine, "q_scan", "SELECT * FROM store_sales", "full scan")


@pytest.fixture
def join_query(engine: FakeEngine) -> Query:
    return Query.from_sql(
        engine, "q_join", "SELECT * FROM tpcds.store_sales JOIN item", "join"
    )


@pytest.fixture
def failing_query(engine: FakeEngine) -> Query:
    return Query.from_sql(engine, "q_fail", "FAIL execute", "always fails")


@pytest.fixture
def slow_query(engine: FakeEngine) -> Query:
    return Query.from_sql(engine, "q_slow", "SLOW SELECT * FROM item", "blocks on gate")


@pytest.fixture
def client(
    experiment_registry: ExperimentRegistry, results_store: ResultsStore
) -> Iterator[TestClient]:
    """
    FastAPI test client wired to the per-test registry and results store.
    """
    from sqlperf.api.dependencies import get_registry, get_results_store
    from sqlperf.main import app

    app.dependency_overrides[get_registry] = lambda: experiment_registry
    app.dependency_overrides[get_results_store] = lambda: results_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# =============================================================================
# Helpers
# =============================================================================


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll `predicate` until it holds; fail the test after `timeout` seconds."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.005)
    pytest.fail(f"Condition not met within {timeout}s")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )
