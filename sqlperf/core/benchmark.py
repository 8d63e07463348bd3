"""
Benchmark

Entry point for running experiments: a set of queries, run for a number of
iterations under every combination of a set of variations.

Usage:
    bench = Benchmark(engine)
    status = bench.run_experiment(
        [Query.from_sql(engine, "q1", "SELECT ...")],
        iterations=2,
        variations=[
            Variation(
                "parallelism",
                [2, 4],
                lambda conf, n: conf.with_default_parallelism(n),
            )
        ],
    )
    runs = status.wait_for_finish(timeout=600)
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from sqlperf.config import settings
from sqlperf.connectors.base import QueryEngine
from sqlperf.core.experiment import ExperimentStatus
from sqlperf.core.experiment_registry import ExperimentRegistry, registry as default_registry
from sqlperf.core.query import Query
from sqlperf.core.results_store import ResultsStore
from sqlperf.core.variations import Variation, standard_run, validate_variations
from sqlperf.models import EngineConfiguration

logger = logging.getLogger(__name__)


class Benchmark:
    """
    Runs experiments against one query engine.

    Args:
        engine: Engine the queries run on.
        store: Results sink; defaults to a ResultsStore built from settings.
        registry: Where started experiments are registered for the status
            API; defaults to the process-wide registry.
    """

    def __init__(
        self,
        engine: QueryEngine,
        *,
        store: Optional[ResultsStore] = None,
        registry: Optional[ExperimentRegistry] = None,
    ) -> None:
        self.engine = engine
        self.store = store if store is not None else ResultsStore()
        self.registry = registry if registry is not None else default_registry

    def current_configuration(self) -> EngineConfiguration:
        return self.engine.current_configuration()

    def query(
        self,
        name: str,
        sql_text: str,
        description: str = "",
        collect_results: bool = True,
    ) -> Query:
        """Shorthand for `Query.from_sql` on this benchmark's engine."""
        return Query.from_sql(
            self.engine, name, sql_text, description, collect_results=collect_results
        )

    def run_experiment(
        self,
        queries: Sequence[Query],
        include_breakdown: bool = False,
        iterations: Optional[int] = None,
        variations: Optional[Sequence[Variation[Any]]] = None,
        tags: Optional[Mapping[str, str]] = None,
    ) -> ExperimentStatus:
        """
        Start an experiment and return immediately.

        Args:
            queries: Queries to run, in order.
            include_breakdown: Record per-operator timings (much slower).
            iterations: Number of iterations (default from settings).
            variations: Configuration axes; none means a single standard run.
            tags: Extra tags for every run. On a key clash with a variation
                name, the caller's tag wins.

        Returns:
            An ExperimentStatus for tracking and waiting on the experiment.
        """
        if iterations is None:
            iterations = settings.DEFAULT_ITERATIONS
        if iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {iterations}")

        queries = list(queries)
        names = [q.name for q in queries]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate query names: {', '.join(duplicates)}")

        variations = list(variations) if variations else standard_run()
        validate_variations(variations)

        status = ExperimentStatus(
            engine=self.engine,
            queries=queries,
            variations=variations,
            iterations=iterations,
            include_breakdown=include_breakdown,
            tags=tags,
            store=self.store,
            tail_lines=settings.STATUS_TAIL_LINES,
        )
        self.registry.register(status)
        logger.info(
            "Starting experiment %s: %d queries, %d iterations, variations=%s",
            status.timestamp,
            len(queries),
            iterations,
            [v.name for v in variations],
        )
        return status.start()
