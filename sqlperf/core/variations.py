"""
Experiment variations and combination expansion.

A Variation is one configuration axis (e.g. shuffle partitions, or whether
tables are cached) with an ordered list of options. Its setup function takes
the configuration built so far plus the selected option and returns the new
configuration:

    Variation(
        "shufflePartitions",
        ["200", "2000"],
        lambda conf, n: conf.with_engine_option("sql.shuffle.partitions", n),
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Sequence, TypeVar

from sqlperf.models import EngineConfiguration

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _unchanged(configuration: EngineConfiguration, _option: Any) -> EngineConfiguration:
    return configuration


@dataclass(frozen=True)
class Variation(Generic[T]):
    """A named configuration axis with ordered options."""

    name: str
    options: Sequence[T]
    setup: Callable[[EngineConfiguration, T], EngineConfiguration] = field(
        default=_unchanged, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Variation name must not be empty")
        # Freeze the option order; it defines combination indexing.
        object.__setattr__(self, "options", tuple(self.options))

    def __len__(self) -> int:
        return len(self.options)

    def apply(self, configuration: EngineConfiguration, index: int) -> EngineConfiguration:
        result = self.setup(configuration, self.options[index])
        if not isinstance(result, EngineConfiguration):
            raise TypeError(
                f"Setup for variation '{self.name}' returned "
                f"{type(result).__name__}, expected EngineConfiguration"
            )
        return result


def standard_run() -> list[Variation[str]]:
    """The single-option stand-in used when no variations are given."""
    return [Variation("StandardRun", ["true"])]


def combinations(variations: Sequence[Variation[Any]]) -> list[tuple[int, ...]]:
    """
    Cartesian product of option indexes.

    The leftmost variation varies slowest. An empty variation list yields one
    empty combination; a variation with no options yields none.
    """
    product: list[tuple[int, ...]] = [()]
    for variation in variations:
        product = [prefix + (i,) for prefix in product for i in range(len(variation))]
    return product


def validate_variations(variations: Sequence[Variation[Any]]) -> None:
    seen: set[str] = set()
    for variation in variations:
        if variation.name in seen:
            raise ValueError(f"Duplicate variation name: {variation.name}")
        seen.add(variation.name)
        if not variation.options:
            logger.warning(
                "Variation '%s' has no options; the experiment will run nothing",
                variation.name,
            )
