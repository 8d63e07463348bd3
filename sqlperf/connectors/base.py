"""
Abstract query engine interface.

The harness never parses, plans, or executes queries itself. It drives an
engine through the classes below and only times the calls:

- QueryEngine: entry point (SQL -> Dataset) and global configuration store
- Dataset: a lazily-evaluated query with a QueryExecution and row access
- QueryExecution: lazily-forced plan phases (logical, analyzed, optimized,
  physical)
- PlanNode: one physical operator, executable in isolation

Each phase property is expected to force its own computation on first access
and to memoize it, so that timing the properties in order yields the
incremental cost of each phase.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator, Sequence

from sqlperf.models import EngineConfiguration


class PlanNode(ABC):
    """One node of a physical execution plan."""

    @property
    @abstractmethod
    def node_name(self) -> str:
        """Operator name (e.g. 'HashJoin')."""
        ...

    @property
    def children(self) -> Sequence[PlanNode]:
        return ()

    @abstractmethod
    def simple_string(self) -> str:
        """One-line description of this operator."""
        ...

    @abstractmethod
    def execute(self) -> Iterable[Any]:
        """Execute this operator (and its inputs), producing its output rows."""
        ...

    def iter_nodes(self) -> Iterator[PlanNode]:
        """Pre-order walk of this subtree."""
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    def tree_string(self, depth: int = 0) -> str:
        lines = [f"{'  ' * depth}{self.simple_string()}"]
        for child in self.children:
            lines.append(child.tree_string(depth + 1))
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.tree_string()


class QueryExecution(ABC):
    """Lazily-evaluated phases of one query."""

    @property
    @abstractmethod
    def logical(self) -> Any:
        """Parsed (unresolved) logical plan."""
        ...

    @property
    @abstractmethod
    def analyzed(self) -> Any:
        """Resolved logical plan."""
        ...

    @property
    @abstractmethod
    def optimized_plan(self) -> Any:
        """Optimized logical plan."""
        ...

    @property
    @abstractmethod
    def executed_plan(self) -> PlanNode:
        """Physical plan, ready to execute."""
        ...

    @abstractmethod
    def referenced_tables(self) -> list[str]:
        """Names of the relations the query reads (database qualifier dropped)."""
        ...

    def __str__(self) -> str:
        return f"== Physical Plan ==\n{self.executed_plan.tree_string()}"


class Dataset(ABC):
    """A lazily-evaluated query result."""

    @property
    @abstractmethod
    def query_execution(self) -> QueryExecution:
        ...

    @abstractmethod
    def collect(self) -> list[Any]:
        """Materialize and return every output row."""
        ...

    @abstractmethod
    def iter_rows(self) -> Iterator[Any]:
        """Stream output rows without collecting them."""
        ...


class QueryEngine(ABC):
    """
    A query-processing engine with a global, mutable configuration.

    Configuration changes are applied with `apply_configuration`; the harness
    calls it strictly sequentially, never from two threads at once.
    """

    @abstractmethod
    def sql(self, text: str) -> Dataset:
        """Return a lazy Dataset for a SQL statement."""
        ...

    @abstractmethod
    def current_configuration(self) -> EngineConfiguration:
        """Snapshot the engine's active configuration."""
        ...

    @abstractmethod
    def apply_configuration(self, configuration: EngineConfiguration) -> None:
        """Make `configuration` the engine's active configuration."""
        ...

    def set_job_description(self, description: str) -> None:
        """Label subsequent work in the engine's own monitoring (optional)."""
        return None
