"""
API routes for persisted experiment results.

- Experiments on disk: GET /api/results
- Runs of one experiment: GET /api/results/{timestamp}
- Flattened rows (one per query result): GET /api/results/{timestamp}/rows
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query

from sqlperf.api.dependencies import get_results_store
from sqlperf.api.error_handling import http_exception
from sqlperf.core.results_store import ResultsStore

router = APIRouter()


@router.get("/", response_model=List[int])
async def list_persisted_experiments(store: ResultsStore = Depends(get_results_store)):
    try:
        return store.list_experiments()
    except Exception as e:
        raise http_exception("list persisted experiments", e)


@router.get("/{timestamp}", response_model=List[Dict[str, Any]])
async def get_persisted_runs(
    timestamp: int, store: ResultsStore = Depends(get_results_store)
):
    try:
        runs = store.load_experiment(timestamp)
    except Exception as e:
        raise http_exception("load experiment results", e)
    return [r.model_dump(mode="json") for r in runs]


@router.get("/{timestamp}/rows", response_model=List[Dict[str, Any]])
async def get_persisted_rows(
    timestamp: int,
    failed_only: bool = Query(False, description="Only rows that carry a failure"),
    store: ResultsStore = Depends(get_results_store),
):
    """
    One row per query result with its run's iteration, tags, and configuration.
    """
    try:
        table = store.results_table([timestamp])
    except Exception as e:
        raise http_exception("load experiment rows", e)

    rows = table.to_pylist()
    for row in rows:
        # Arrow maps come back as (key, value) pairs.
        for col in ("tags", "engine_conf", "process_conf"):
            row[col] = dict(row[col] or [])
    if failed_only:
        rows = [r for r in rows if r["failure_kind"] is not None]
    return rows
