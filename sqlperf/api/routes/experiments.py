"""
API routes for experiments running (or recently finished) in this process.

- List: GET /api/experiments
- Status: GET /api/experiments/{timestamp}
- Live report: GET /api/experiments/{timestamp}/report
- Partial results: GET /api/experiments/{timestamp}/results
- Partial runs: GET /api/experiments/{timestamp}/runs
- Wait: POST /api/experiments/{timestamp}/wait?timeout=...
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from sqlperf.api.dependencies import get_registry
from sqlperf.api.error_handling import http_exception
from sqlperf.core.errors import ExperimentTimeoutError
from sqlperf.core.experiment_registry import ExperimentRegistry

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[Dict[str, Any]])
async def list_experiments(registry: ExperimentRegistry = Depends(get_registry)):
    """
    List experiments known to this process, oldest first.
    """
    return [status.summary() for status in registry.list()]


@router.get("/{timestamp}", response_model=Dict[str, Any])
async def get_experiment(
    timestamp: int, registry: ExperimentRegistry = Depends(get_registry)
):
    try:
        return registry.get(timestamp).summary()
    except Exception as e:
        raise http_exception("get experiment", e)


@router.get("/{timestamp}/report", response_class=PlainTextResponse)
async def get_experiment_report(
    timestamp: int,
    lines: int | None = Query(None, ge=0, description="Log lines to include"),
    registry: ExperimentRegistry = Depends(get_registry),
):
    """
    Human-readable progress report for an experiment.
    """
    try:
        return registry.get(timestamp).report(lines)
    except Exception as e:
        raise http_exception("get experiment report", e)


@router.get("/{timestamp}/results", response_model=List[Dict[str, Any]])
async def get_experiment_results(
    timestamp: int, registry: ExperimentRegistry = Depends(get_registry)
):
    try:
        results = registry.get(timestamp).get_current_results()
    except Exception as e:
        raise http_exception("get experiment results", e)
    return [r.model_dump(mode="json") for r in results]


@router.get("/{timestamp}/runs", response_model=List[Dict[str, Any]])
async def get_experiment_runs(
    timestamp: int, registry: ExperimentRegistry = Depends(get_registry)
):
    try:
        runs = registry.get(timestamp).get_current_runs()
    except Exception as e:
        raise http_exception("get experiment runs", e)
    return [r.model_dump(mode="json") for r in runs]


@router.post("/{timestamp}/wait", response_model=Dict[str, Any])
async def wait_for_experiment(
    timestamp: int,
    timeout: float = Query(30.0, ge=0, description="Seconds to wait"),
    registry: ExperimentRegistry = Depends(get_registry),
):
    """
    Wait for an experiment to finish.

    Returns 408 if it is still running after `timeout` seconds; the experiment
    itself is unaffected.
    """
    try:
        status = registry.get(timestamp)
    except Exception as e:
        raise http_exception("wait for experiment", e)

    try:
        await status.wait(timeout)
    except ExperimentTimeoutError as e:
        raise http_exception("wait for experiment", e)
    except Exception as e:
        # The worker aborted; the summary reports the Failed state.
        logger.info("Experiment %s finished with failure: %s", timestamp, e)
    return status.summary()
