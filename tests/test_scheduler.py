"""Tests for the APScheduler-driven monitoring scheduler."""

from datetime import timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock

from pulsewatch.config import Config
from pulsewatch.core.metrics import MetricsCollector
from pulsewatch.core.scheduler import (
    BASELINE_JOB,
    CLEANUP_JOB,
    PROBE_ROUND_JOB,
    SCORING_JOB,
    MonitoringScheduler,
    get_scheduler,
    set_scheduler,
)
from pulsewatch.repositories.baselines import BaselineRepository
from pulsewatch.repositories.probe_results import ProbeResultRepository


@pytest.fixture
def probe_scheduler():
    mock = MagicMock()
    mock.prober.start = AsyncMock()
    mock.prober.close = AsyncMock()
    mock.run_round = AsyncMock(return_value={"probed": 3, "errors": 0})
    return mock


@pytest.mark.unit
class TestMonitoringScheduler:

    async def test_start_registers_jobs(self, session_factory, probe_scheduler):
        config = Config()
        scheduler = MonitoringScheduler(config, session_factory, probe_scheduler)

        await scheduler.start()
        try:
            status = scheduler.get_jobs_status()
            assert set(status) == {PROBE_ROUND_JOB, BASELINE_JOB, SCORING_JOB, CLEANUP_JOB}
            assert all(job["next_run_time"] is not None for job in status.values())

            job = scheduler.scheduler.get_job(PROBE_ROUND_JOB)
            assert job.max_instances == 1
            assert job.coalesce is True
            assert job.trigger.interval == timedelta(seconds=config.monitoring.probe_tick_seconds)
        finally:
            await scheduler.stop()

        probe_scheduler.prober.start.assert_awaited_once()
        probe_scheduler.prober.close.assert_awaited_once()
        assert not scheduler.scheduler.running

    async def test_probe_round_job_records_metrics(self, session_factory, probe_scheduler):
        metrics = MetricsCollector()
        scheduler = MonitoringScheduler(Config(), session_factory, probe_scheduler, metrics)

        assert await scheduler.run_probe_round() == {"probed": 3, "errors": 0}
        assert metrics.registry.get_sample_value(
            "pulsewatch_scheduler_jobs_total", {"job_type": PROBE_ROUND_JOB, "status": "success"}
        ) == 1.0

    def test_last_round_reads_probe_scheduler(self, session_factory, probe_scheduler):
        probe_scheduler.last_round = {"probed": 2, "errors": 1}
        scheduler = MonitoringScheduler(Config(), session_factory, probe_scheduler)

        assert scheduler.last_round == {"probed": 2, "errors": 1}

    async def test_failing_job_is_logged_not_raised(self, session_factory, probe_scheduler):
        probe_scheduler.run_round.side_effect = RuntimeError("database unavailable")
        metrics = MetricsCollector()
        scheduler = MonitoringScheduler(Config(), session_factory, probe_scheduler, metrics)

        assert await scheduler.run_probe_round() is None
        assert metrics.registry.get_sample_value(
            "pulsewatch_scheduler_jobs_total", {"job_type": PROBE_ROUND_JOB, "status": "error"}
        ) == 1.0

    async def test_baseline_job(self, session_factory, db_session, probe_scheduler, endpoint, add_probes):
        await add_probes(endpoint.id, ["success"] * 10)
        scheduler = MonitoringScheduler(Config(), session_factory, probe_scheduler)

        assert await scheduler.run_baseline_recalculation() == {"updated": 1, "skipped": 0}
        assert await BaselineRepository(db_session).get(endpoint.id) is not None

    async def test_scoring_job_updates_gauge(self, session_factory, probe_scheduler, endpoint):
        metrics = MetricsCollector()
        scheduler = MonitoringScheduler(Config(), session_factory, probe_scheduler, metrics)

        assert await scheduler.run_reliability_scoring() == 1
        assert metrics.registry.get_sample_value(
            "pulsewatch_reliability_score", {"endpoint_id": endpoint.id}
        ) == 70.0

    async def test_cleanup_job_purges_old_probes(
        self, session_factory, db_session, probe_scheduler, endpoint, add_probes
    ):
        await add_probes(endpoint.id, ["success"] * 3, newest_age=timedelta(days=31))
        await add_probes(endpoint.id, ["success"] * 2)
        scheduler = MonitoringScheduler(Config(), session_factory, probe_scheduler)

        assert await scheduler.run_probe_cleanup() == 3
        remaining = await ProbeResultRepository(db_session).query_recent(endpoint.id, 10)
        assert len(remaining) == 2


@pytest.mark.unit
def test_global_scheduler_registry(session_factory, probe_scheduler):
    scheduler = MonitoringScheduler(Config(), session_factory, probe_scheduler)

    set_scheduler(scheduler)
    try:
        assert get_scheduler() is scheduler
    finally:
        set_scheduler(None)
    assert get_scheduler() is None
