"""
File-based Results Store

Persists finished experiments as one record per ExperimentRun under
`<RESULTS_LOCATION>/<timestamp>/`, and loads them back for analysis.

Two formats are supported:
- json: newline-delimited JSON (`part-00000.json`), one run per line
- parquet: a single Parquet file (`part-00000.parquet`) with an explicit
  nested PyArrow schema

Files are written to a temp name and renamed into place, so readers never see
a partial experiment.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import pyarrow as pa
import pyarrow.parquet as pq

from sqlperf.config import settings
from sqlperf.core.errors import PersistenceError, ResultsNotFoundError
from sqlperf.models import ExperimentRun

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("json", "parquet")
PART_NAME = "part-00000"

_STRING_MAP = pa.map_(pa.string(), pa.string())

_CONFIGURATION_TYPE = pa.struct(
    [
        ("engine_conf", _STRING_MAP),
        ("process_conf", _STRING_MAP),
        ("default_parallelism", pa.int64()),
    ]
)

_BREAKDOWN_TYPE = pa.struct(
    [
        ("node_name", pa.string()),
        ("node_name_description", pa.string()),
        ("index", pa.int64()),
        ("execution_time", pa.float64()),
    ]
)

_FAILURE_TYPE = pa.struct([("kind", pa.string()), ("message", pa.string())])

_TIMING_FIELDS = (
    "parsing_time",
    "analysis_time",
    "optimization_time",
    "planning_time",
    "execution_time",
)

_RESULT_TYPE = pa.struct(
    [
        ("name", pa.string()),
        ("join_types", pa.list_(pa.string())),
        ("tables", pa.list_(pa.string())),
        *[(f, pa.float64()) for f in _TIMING_FIELDS],
        ("query_execution", pa.string()),
        ("break_down", pa.list_(_BREAKDOWN_TYPE)),
        ("failure", _FAILURE_TYPE),
    ]
)


def build_run_schema() -> pa.Schema:
    """PyArrow schema for one ExperimentRun record."""
    return pa.schema(
        [
            ("timestamp", pa.int64()),
            ("iteration", pa.int64()),
            ("tags", _STRING_MAP),
            ("configuration", _CONFIGURATION_TYPE),
            ("results", pa.list_(_RESULT_TYPE)),
        ]
    )


def build_flat_schema() -> pa.Schema:
    """PyArrow schema for the flattened one-row-per-query results table."""
    return pa.schema(
        [
            ("timestamp", pa.int64()),
            ("iteration", pa.int64()),
            ("tags", _STRING_MAP),
            ("engine_conf", _STRING_MAP),
            ("process_conf", _STRING_MAP),
            ("default_parallelism", pa.int64()),
            ("name", pa.string()),
            ("join_types", pa.list_(pa.string())),
            ("tables", pa.list_(pa.string())),
            *[(f, pa.float64()) for f in _TIMING_FIELDS],
            ("query_execution", pa.string()),
            ("break_down", pa.list_(_BREAKDOWN_TYPE)),
            ("failure_kind", pa.string()),
            ("failure_message", pa.string()),
        ]
    )


def _map_items(value: Optional[dict[str, str]]) -> list[tuple[str, str]]:
    return list((value or {}).items())


def _as_dict(value: Any) -> dict[str, str]:
    # Arrow map columns come back as lists of (key, value) tuples.
    if value is None:
        return {}
    return dict(value)


def _run_to_record(run: ExperimentRun) -> dict[str, Any]:
    record = run.model_dump(mode="json")
    record["tags"] = _map_items(record["tags"])
    conf = record["configuration"]
    conf["engine_conf"] = _map_items(conf["engine_conf"])
    conf["process_conf"] = _map_items(conf["process_conf"])
    return record


def _record_to_run(record: dict[str, Any]) -> ExperimentRun:
    record = dict(record)
    record["tags"] = _as_dict(record.get("tags"))
    conf = dict(record.get("configuration") or {})
    conf["engine_conf"] = _as_dict(conf.get("engine_conf"))
    conf["process_conf"] = _as_dict(conf.get("process_conf"))
    record["configuration"] = conf
    return ExperimentRun.model_validate(record)


def flatten_runs(runs: Iterable[ExperimentRun]) -> list[dict[str, Any]]:
    """One row per BenchmarkResult, carrying its run's metadata."""
    rows: list[dict[str, Any]] = []
    for run in runs:
        conf = run.configuration
        for result in run.results:
            row: dict[str, Any] = {
                "timestamp": run.timestamp,
                "iteration": run.iteration,
                "tags": _map_items(run.tags),
                "engine_conf": _map_items(conf.engine_conf),
                "process_conf": _map_items(conf.process_conf),
                "default_parallelism": conf.default_parallelism,
                "name": result.name,
                "join_types": list(result.join_types),
                "tables": list(result.tables),
                "query_execution": result.query_execution,
                "break_down": [b.model_dump() for b in result.break_down],
                "failure_kind": result.failure.kind.value if result.failure else None,
                "failure_message": result.failure.message if result.failure else None,
            }
            for f in _TIMING_FIELDS:
                row[f] = getattr(result, f)
            rows.append(row)
    return rows


class ResultsStore:
    """
    Directory-per-experiment results sink.

    Usage:
        store = ResultsStore("/data/sql/performance", fmt="parquet")
        path = store.write_experiment(timestamp, runs)
        runs = store.load_experiment(timestamp)
    """

    def __init__(
        self,
        location: str | os.PathLike[str] | None = None,
        *,
        fmt: Optional[str] = None,
        table_name: Optional[str] = None,
    ) -> None:
        self.location = Path(location or settings.RESULTS_LOCATION)
        self.format = (fmt or settings.RESULTS_FORMAT).lower()
        if self.format not in SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported results format {self.format!r}; "
                f"expected one of {', '.join(SUPPORTED_FORMATS)}"
            )
        self.table_name = table_name or settings.RESULTS_TABLE_NAME
        self._schema = build_run_schema()

    def __repr__(self) -> str:
        return f"ResultsStore(location={str(self.location)!r}, fmt={self.format!r})"

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def experiment_path(self, timestamp: int) -> Path:
        return self.location / str(int(timestamp))

    def _part_file(self, directory: Path, fmt: str) -> Path:
        return directory / f"{PART_NAME}.{fmt}"

    def _find_part(self, timestamp: int) -> Optional[Path]:
        directory = self.experiment_path(timestamp)
        for fmt in SUPPORTED_FORMATS:
            candidate = self._part_file(directory, fmt)
            if candidate.exists():
                return candidate
        return None

    # -------------------------------------------------------------------------
    # Write
    # -------------------------------------------------------------------------

    def write_experiment(self, timestamp: int, runs: Sequence[ExperimentRun]) -> Path:
        """
        Write every run of one experiment.

        Returns:
            The experiment directory.

        Raises:
            PersistenceError: The experiment already exists or the write failed.
        """
        directory = self.experiment_path(timestamp)
        target = self._part_file(directory, self.format)
        if self._find_part(timestamp) is not None:
            raise PersistenceError(f"Results already exist at {directory}")

        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{PART_NAME}_", suffix=f".{self.format}", dir=directory
            )
            os.close(fd)
            tmp_path = Path(tmp_name)
            try:
                if self.format == "json":
                    self._write_json(tmp_path, runs)
                else:
                    self._write_parquet(tmp_path, runs)
                tmp_path.replace(target)
            finally:
                if tmp_path.exists():
                    tmp_path.unlink()
        except (OSError, pa.ArrowException, ValueError, TypeError) as e:
            raise PersistenceError(f"Failed to write results to {directory}: {e}") from e

        logger.info(
            "Wrote %d runs for experiment %s to %s", len(runs), timestamp, target
        )
        return directory

    def _write_json(self, path: Path, runs: Sequence[ExperimentRun]) -> None:
        with open(path, "w", encoding="utf-8") as f:
            for run in runs:
                f.write(run.model_dump_json())
                f.write("\n")

    def _write_parquet(self, path: Path, runs: Sequence[ExperimentRun]) -> None:
        table = pa.Table.from_pylist(
            [_run_to_record(run) for run in runs], schema=self._schema
        )
        pq.write_table(table, path, compression="snappy")

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def list_experiments(self) -> list[int]:
        """Timestamps of every persisted experiment, oldest first."""
        if not self.location.exists():
            return []
        timestamps = []
        for child in self.location.iterdir():
            if child.is_dir() and child.name.isdigit():
                if self._find_part(int(child.name)) is not None:
                    timestamps.append(int(child.name))
        return sorted(timestamps)

    def load_experiment(self, timestamp: int) -> list[ExperimentRun]:
        part = self._find_part(timestamp)
        if part is None:
            raise ResultsNotFoundError(f"No results found for experiment {timestamp}")
        try:
            if part.suffix == ".json":
                with open(part, "r", encoding="utf-8") as f:
                    return [
                        ExperimentRun.model_validate(json.loads(line))
                        for line in f
                        if line.strip()
                    ]
            records = pq.read_table(part).to_pylist()
            return [_record_to_run(r) for r in records]
        except (OSError, pa.ArrowException, ValueError) as e:
            raise PersistenceError(f"Failed to read results from {part}: {e}") from e

    def results_table(self, timestamps: Optional[Iterable[int]] = None) -> pa.Table:
        """Flattened table (one row per query result) over the given experiments."""
        selected = list(timestamps) if timestamps is not None else self.list_experiments()
        rows: list[dict[str, Any]] = []
        for ts in selected:
            rows.extend(flatten_runs(self.load_experiment(ts)))
        return pa.Table.from_pylist(rows, schema=build_flat_schema())

    def delete_experiment(self, timestamp: int) -> None:
        directory = self.experiment_path(timestamp)
        if directory.exists():
            shutil.rmtree(directory)
            logger.info("Deleted results for experiment %s", timestamp)
