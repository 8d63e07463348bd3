"""
Centralized API error handling helpers.

Goal: map harness errors (unknown experiment, wait timeout, unreadable
results) to consistent, actionable HTTP responses instead of bare 500s.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status

from sqlperf.config import settings
from sqlperf.core.errors import (
    ExperimentNotFoundError,
    ExperimentTimeoutError,
    PersistenceError,
    ResultsNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApiError:
    status_code: int
    code: str
    message: str
    hint: str | None = None
    debug: str | None = None


def _maybe_debug(exc: BaseException) -> str | None:
    if settings.APP_DEBUG:
        return str(exc)
    return None


def classify_harness_error(exc: BaseException) -> ApiError | None:
    """Classify known harness failures into user-actionable errors."""

    if isinstance(exc, ExperimentNotFoundError):
        return ApiError(
            status_code=status.HTTP_404_NOT_FOUND,
            code="EXPERIMENT_NOT_FOUND",
            message=str(exc),
            hint="Experiments are only tracked by the process that started them.",
        )

    if isinstance(exc, ExperimentTimeoutError):
        return ApiError(
            status_code=status.HTTP_408_REQUEST_TIMEOUT,
            code="EXPERIMENT_STILL_RUNNING",
            message=str(exc),
            hint="The experiment keeps running; poll its status or wait again.",
        )

    if isinstance(exc, ResultsNotFoundError):
        return ApiError(
            status_code=status.HTTP_404_NOT_FOUND,
            code="RESULTS_NOT_FOUND",
            message=str(exc),
        )

    if isinstance(exc, PersistenceError):
        return ApiError(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="RESULTS_STORE_UNAVAILABLE",
            message="Failed to access the results store.",
            hint="Check RESULTS_LOCATION and file permissions, then retry.",
            debug=_maybe_debug(exc),
        )

    return None


def http_exception(operation: str, exc: BaseException) -> HTTPException:
    """
    Convert an exception into a consistent HTTPException payload.
    """
    known = classify_harness_error(exc)
    if known is not None:
        logger.info("API request '%s' failed: %s", operation, exc)
        detail: dict[str, Any] = {
            "code": known.code,
            "message": known.message,
            "operation": operation,
        }
        if known.hint:
            detail["hint"] = known.hint
        if known.debug:
            detail["debug"] = known.debug
        return HTTPException(status_code=known.status_code, detail=detail)

    # Log the full traceback to the server console for debugging
    logger.error(
        "API error during '%s': %s\n%s",
        operation,
        exc,
        traceback.format_exc(),
    )

    # Default: preserve a safe summary + optional debug.
    base_detail: dict[str, Any] = {
        "code": "INTERNAL_ERROR",
        "message": f"{operation} failed.",
        "operation": operation,
    }
    dbg = _maybe_debug(exc)
    if dbg:
        base_detail["debug"] = dbg
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=base_detail,
    )
