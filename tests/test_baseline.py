"""Tests for the baseline calculator."""

from datetime import timedelta

import pytest

from pulsewatch.core.baseline import BaselineCalculator
from pulsewatch.repositories.baselines import BaselineRepository


@pytest.mark.unit
class TestBaselineCalculator:

    async def test_too_few_samples_writes_nothing(self, db_session, endpoint, add_probes):
        await add_probes(endpoint.id, ["success"] * 9)

        baseline = await BaselineCalculator(db_session).calculate_baseline(endpoint.id)

        assert baseline is None
        assert await BaselineRepository(db_session).get(endpoint.id) is None

    async def test_ten_samples_produce_baseline(self, db_session, endpoint, add_probes):
        latencies = [100, 10, 90, 20, 80, 30, 70, 40, 60, 50]
        await add_probes(endpoint.id, ["success"] * 10, latencies=latencies)

        baseline = await BaselineCalculator(db_session).calculate_baseline(endpoint.id)

        assert baseline is not None
        assert baseline.sample_count == 10
        assert baseline.avg_latency_ms == pytest.approx(55.0)
        assert baseline.p50_latency_ms == 50
        assert baseline.p95_latency_ms == 100
        assert baseline.p99_latency_ms == 100
        assert baseline.std_deviation == pytest.approx(28.7228, rel=1e-4)

    async def test_failures_are_excluded(self, db_session, endpoint, add_probes):
        await add_probes(endpoint.id, ["success"] * 9 + ["error", "timeout", "error"])

        assert await BaselineCalculator(db_session).calculate_baseline(endpoint.id) is None

    async def test_probes_outside_window_are_excluded(self, db_session, endpoint, add_probes):
        await add_probes(endpoint.id, ["success"] * 10, newest_age=timedelta(hours=3))

        calculator = BaselineCalculator(db_session)

        assert await calculator.calculate_baseline(endpoint.id, window_hours=2) is None
        assert await calculator.calculate_baseline(endpoint.id, window_hours=4) is not None

    async def test_recalculation_replaces_existing_row(self, db_session, endpoint, add_probes):
        await add_probes(endpoint.id, ["success"] * 10, latency_ms=100.0)
        calculator = BaselineCalculator(db_session)
        first = await calculator.calculate_baseline(endpoint.id)
        first_id = first.id

        await add_probes(endpoint.id, ["success"] * 10, latency_ms=300.0)
        second = await calculator.calculate_baseline(endpoint.id)

        assert second.id == first_id
        assert second.sample_count == 20
        assert second.avg_latency_ms == pytest.approx(200.0)

    async def test_recalculate_all_counts(self, db_session, make_endpoint, add_probes):
        warm = await make_endpoint(name="Warm")
        cold = await make_endpoint(name="Cold")
        await make_endpoint(name="Paused", is_active=False)
        await add_probes(warm.id, ["success"] * 12)
        await add_probes(cold.id, ["success"] * 3)

        counts = await BaselineCalculator(db_session).recalculate_all()

        assert counts == {"updated": 1, "skipped": 1}
