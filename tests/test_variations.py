#!/usr/bin/env python3
"""
Unit tests for Variation and combination expansion.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from sqlperf.core.variations import (
    Variation,
    combinations,
    standard_run,
    validate_variations,
)
from sqlperf.models import EngineConfiguration


def _parallelism(conf: EngineConfiguration, n: int) -> EngineConfiguration:
    return conf.with_default_parallelism(n)


class TestCombinations:
    """Cartesian product of option indexes."""

    def test_size_is_product_of_option_counts(self):
        variations = [
            Variation("a", [1, 2, 3]),
            Variation("b", ["x", "y"]),
            Variation("c", [True, False]),
        ]
        combos = combinations(variations)
        assert len(combos) == 3 * 2 * 2
        assert len(set(combos)) == len(combos)

    def test_leftmost_variation_varies_slowest(self):
        combos = combinations([Variation("a", [1, 2]), Variation("b", ["x", "y", "z"])])
        assert combos == [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2)]

    def test_every_index_within_bounds(self):
        variations = [Variation("a", range(4)), Variation("b", range(3))]
        for combo in combinations(variations):
            assert len(combo) == 2
            for variation, index in zip(variations, combo):
                assert 0 <= index < len(variation)

    def test_no_variations_yields_single_empty_combination(self):
        assert combinations([]) == [()]

    def test_variation_with_no_options_yields_nothing(self):
        assert combinations([Variation("a", [1, 2]), Variation("empty", [])]) == []

    def test_standard_run_has_one_combination(self):
        variations = standard_run()
        assert [v.name for v in variations] == ["StandardRun"]
        assert combinations(variations) == [(0,)]


class TestVariation:
    """Variation construction and setup application."""

    def test_options_are_frozen(self):
        options = [2, 4]
        variation = Variation("parallelism", options, _parallelism)
        options.append(8)
        assert variation.options == (2, 4)
        assert len(variation) == 2

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            Variation("", [1])

    def test_apply_returns_new_configuration(self):
        base = EngineConfiguration(default_parallelism=8)
        variation = Variation("parallelism", [2, 4], _parallelism)

        assert variation.apply(base, 1).default_parallelism == 4
        assert base.default_parallelism == 8

    def test_default_setup_leaves_configuration_unchanged(self):
        base = EngineConfiguration(engine_conf={"k": "v"})
        assert Variation("label", ["a"]).apply(base, 0) == base

    def test_apply_rejects_wrong_return_type(self):
        variation = Variation("bad", [1], lambda conf, option: None)
        with pytest.raises(TypeError, match="bad"):
            variation.apply(EngineConfiguration(), 0)

    def test_setups_fold_in_order(self):
        variations = [
            Variation(
                "partitions",
                ["200", "2000"],
                lambda conf, n: conf.with_engine_option("sql.shuffle.partitions", n),
            ),
            Variation("parallelism", [2, 4], _parallelism),
        ]
        conf = EngineConfiguration()
        for variation, index in zip(variations, (1, 0)):
            conf = variation.apply(conf, index)

        assert conf.engine_conf == {"sql.shuffle.partitions": "2000"}
        assert conf.default_parallelism == 2


class TestValidateVariations:
    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError, match="Duplicate variation name: a"):
            validate_variations([Variation("a", [1]), Variation("a", [2])])

    def test_empty_options_warns(self, caplog):
        with caplog.at_level("WARNING"):
            validate_variations([Variation("empty", [])])
        assert "has no options" in caplog.text
