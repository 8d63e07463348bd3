#!/usr/bin/env python3
"""
Tests for Pydantic data models.

Validates model creation, validation, and serialization.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from pydantic import ValidationError

from sqlperf.models import (
    BenchmarkResult,
    BreakdownResult,
    EngineConfiguration,
    ExperimentRun,
    ExperimentState,
    Failure,
    FailureKind,
)


def _ok(name: str = "q1") -> BenchmarkResult:
    return BenchmarkResult(
        name=name,
        tables=["store_sales"],
        parsing_time=0.1,
        analysis_time=0.2,
        optimization_time=0.3,
        planning_time=0.4,
        execution_time=5.0,
    )


class TestBenchmarkResult:
    def test_successful_result(self):
        result = _ok()
        assert result.succeeded
        assert result.failure is None
        assert result.break_down == []

    def test_failed_constructor_carries_no_timings(self):
        result = BenchmarkResult.failed("q1", FailureKind.ANALYSIS, "no such table")
        assert not result.succeeded
        assert result.failure == Failure(kind=FailureKind.ANALYSIS, message="no such table")
        assert result.parsing_time is None
        assert result.execution_time is None

    def test_failure_with_timings_rejected(self):
        with pytest.raises(ValidationError, match="must not carry timings"):
            BenchmarkResult(
                name="q1",
                parsing_time=1.0,
                failure=Failure(kind=FailureKind.EXECUTION, message="boom"),
            )

    def test_failure_with_breakdown_rejected(self):
        with pytest.raises(ValidationError):
            BenchmarkResult(
                name="q1",
                break_down=[BreakdownResult(
                    node_name="Scan", node_name_description="Scan t", index=0, execution_time=1.0
                )],
                failure=Failure(kind=FailureKind.BREAKDOWN, message="boom"),
            )

    def test_success_requires_execution_time(self):
        with pytest.raises(ValidationError, match="execution_time"):
            BenchmarkResult(name="q1", parsing_time=1.0)

    def test_json_serialization_uses_kind_values(self):
        data = BenchmarkResult.failed("q1", FailureKind.PLANNING, "x").model_dump(mode="json")
        assert data["failure"] == {"kind": "planning", "message": "x"}

    def test_results_are_immutable(self):
        with pytest.raises(ValidationError):
            _ok().name = "other"


class TestEngineConfiguration:
    def test_values_are_stringified(self):
        conf = EngineConfiguration(engine_conf={"partitions": 200, "cache": True})
        assert conf.engine_conf == {"partitions": "200", "cache": "True"}

    def test_with_helpers_return_copies(self):
        base = EngineConfiguration(engine_conf={"a": "1"}, default_parallelism=4)

        changed = (
            base.with_engine_option("b", 2)
            .with_process_option("executor.memory", "4g")
            .with_default_parallelism(16)
        )

        assert changed.engine_conf == {"a": "1", "b": "2"}
        assert changed.process_conf == {"executor.memory": "4g"}
        assert changed.default_parallelism == 16
        assert base.engine_conf == {"a": "1"}
        assert base.process_conf == {}
        assert base.default_parallelism == 4

    @pytest.mark.parametrize(
        "derive",
        [
            lambda c: c.with_engine_option("b", "2"),
            lambda c: c.with_process_option("executor.cores", 4),
            lambda c: c.with_default_parallelism(16),
        ],
    )
    def test_with_helpers_do_not_share_maps(self, derive):
        base = EngineConfiguration(
            engine_conf={"a": "1"}, process_conf={"app.name": "bench"}
        )
        derived = derive(base)

        derived.engine_conf["leak"] = "x"
        derived.process_conf["leak"] = "x"

        assert base.engine_conf == {"a": "1"}
        assert base.process_conf == {"app.name": "bench"}

    def test_parallelism_must_be_positive(self):
        with pytest.raises(ValueError):
            EngineConfiguration().with_default_parallelism(0)
        with pytest.raises(ValidationError):
            EngineConfiguration(default_parallelism=0)


class TestExperimentRun:
    def test_failure_count(self):
        run = ExperimentRun(
            timestamp=1_700_000_000_000,
            iteration=1,
            tags={"parallelism": "2"},
            configuration=EngineConfiguration(),
            results=[_ok("q1"), BenchmarkResult.failed("q2", FailureKind.EXECUTION, "boom")],
        )
        assert run.failure_count == 1

    def test_iteration_is_one_based(self):
        with pytest.raises(ValidationError):
            ExperimentRun(timestamp=1, iteration=0, configuration=EngineConfiguration())

    def test_json_round_trip(self):
        run = ExperimentRun(
            timestamp=1_700_000_000_000,
            iteration=2,
            tags={"StandardRun": "true"},
            configuration=EngineConfiguration(engine_conf={"k": "v"}),
            results=[_ok()],
        )
        assert ExperimentRun.model_validate_json(run.model_dump_json()) == run


def test_experiment_state_values():
    assert [s.value for s in ExperimentState] == ["Running", "Successful", "Failed"]
