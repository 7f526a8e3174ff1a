"""Tests for numeric helpers."""

import pytest

from pulsewatch.core.statistics import (
    clamp,
    mean,
    percentile,
    population_std_deviation,
    round_half_up,
    round_half_up_to,
)

TEN_VALUES = [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]


@pytest.mark.unit
class TestPercentile:
    """Nearest-rank percentile."""

    def test_median_of_ten(self):
        assert percentile(TEN_VALUES, 50) == 50

    def test_p95_of_ten_uses_ceiling_rank(self):
        # ceil(0.95 * 10) - 1 = 9
        assert percentile(TEN_VALUES, 95) == 100

    def test_p99_of_ten(self):
        assert percentile(TEN_VALUES, 99) == 100

    def test_p0_clamps_to_first(self):
        assert percentile(TEN_VALUES, 0) == 10

    def test_empty_sequence(self):
        assert percentile([], 50) == 0.0

    def test_single_value(self):
        assert percentile([42.0], 95) == 42.0


@pytest.mark.unit
class TestAggregates:

    def test_mean(self):
        assert mean(TEN_VALUES) == 55
        assert mean([]) == 0.0

    def test_population_std_deviation(self):
        assert population_std_deviation([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)
        assert population_std_deviation([5, 5, 5]) == 0.0
        assert population_std_deviation([]) == 0.0

    def test_round_half_up(self):
        assert round_half_up(72.5) == 73
        assert round_half_up(2.5) == 3
        assert round_half_up(72.49) == 72
        assert round_half_up(0) == 0

    def test_round_half_up_to(self):
        assert round_half_up_to(31.25, 1) == 31.3
        assert round_half_up_to(31.24, 1) == 31.2
        assert round_half_up_to(2.25, 1) == 2.3
        assert round_half_up_to(100.0, 1) == 100.0

    def test_clamp(self):
        assert clamp(120) == 100
        assert clamp(-3) == 0
        assert clamp(55.5) == 55.5
