"""Pytest configuration and fixtures."""

from datetime import timedelta
from typing import AsyncGenerator, Optional, Sequence

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.config import DatabaseConfig
from pulsewatch.core.cache import HealthCache
from pulsewatch.database.session import create_engine, create_session_factory, create_tables
from pulsewatch.models.baseline import Baseline
from pulsewatch.models.endpoint import Endpoint, new_id
from pulsewatch.models.enums import IncidentSeverity, IncidentStatus, IncidentType
from pulsewatch.models.incident import Incident, IncidentTimelineEntry
from pulsewatch.models.probe_result import ProbeResult
from pulsewatch.utils.timeutils import utcnow


@pytest.fixture
async def db_engine(tmp_path):
    """Engine backed by a temporary SQLite file with all tables created."""
    engine = create_engine(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"))
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for the code under test; fixtures write through their own sessions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache():
    return HealthCache()


@pytest.fixture
def make_endpoint(session_factory):
    """Factory persisting an endpoint and returning it detached."""

    async def _make(**overrides) -> Endpoint:
        values = {
            "id": new_id(),
            "name": "Payments API",
            "url": "https://payments.example.com/health",
            "method": "GET",
            "timeout_seconds": 10,
            "expected_status_codes": [200, 201, 204],
            "is_active": True,
        }
        values.update(overrides)
        endpoint = Endpoint(**values)
        async with session_factory() as session:
            session.add(endpoint)
            await session.commit()
        return endpoint

    return _make


@pytest.fixture
async def endpoint(make_endpoint) -> Endpoint:
    return await make_endpoint()


@pytest.fixture
def add_probes(session_factory):
    """
    Factory inserting probe results for an endpoint.

    ``statuses`` are given oldest first; probes are spaced ``spacing``
    apart and the newest one is ``newest_age`` old.
    """

    async def _add(
        endpoint_id: str,
        statuses: Sequence[str],
        latency_ms: float = 100.0,
        latencies: Optional[Sequence[float]] = None,
        spacing: timedelta = timedelta(seconds=30),
        newest_age: timedelta = timedelta(seconds=1),
        region: str = "global",
    ):
        now = utcnow()
        count = len(statuses)
        probes = []
        for index, status in enumerate(statuses):
            timestamp = now - newest_age - spacing * (count - 1 - index)
            latency = None
            if status == "success":
                latency = latencies[index] if latencies is not None else latency_ms
            probes.append(ProbeResult(
                id=new_id(),
                endpoint_id=endpoint_id,
                timestamp=timestamp,
                status=status,
                latency_ms=latency,
                status_code=200 if status == "success" else (500 if status == "error" else None),
                error_message=None if status == "success" else f"{status} probe",
                region=region,
            ))
        async with session_factory() as session:
            session.add_all(probes)
            await session.commit()
        return probes

    return _add


@pytest.fixture
def add_baseline(session_factory):
    """Factory storing a baseline for an endpoint."""

    async def _add(endpoint_id: str, avg_latency_ms: float = 100.0, p95_latency_ms: float = 150.0):
        baseline = Baseline(
            id=new_id(),
            endpoint_id=endpoint_id,
            avg_latency_ms=avg_latency_ms,
            p50_latency_ms=avg_latency_ms,
            p95_latency_ms=p95_latency_ms,
            p99_latency_ms=p95_latency_ms,
            std_deviation=10.0,
            sample_count=100,
            calculated_at=utcnow(),
        )
        async with session_factory() as session:
            session.add(baseline)
            await session.commit()
        return baseline

    return _add


@pytest.fixture
def add_incident(session_factory):
    """Factory storing an incident with its detection timeline entry; returns its id."""

    async def _add(
        endpoint_id: str,
        status: str = IncidentStatus.ACTIVE.value,
        severity: str = IncidentSeverity.MINOR.value,
        incident_type: str = IncidentType.LATENCY_SPIKE.value,
        started_at=None,
        resolved_at=None,
    ) -> str:
        started_at = started_at or utcnow()
        incident_id = new_id()
        async with session_factory() as session:
            session.add(Incident(
                id=incident_id,
                endpoint_id=endpoint_id,
                type=incident_type,
                severity=severity,
                status=status,
                started_at=started_at,
                resolved_at=resolved_at,
                title="Payments API latency spike detected",
                description="Latency increased",
                created_at=started_at,
                updated_at=started_at,
            ))
            session.add(IncidentTimelineEntry(
                id=new_id(),
                incident_id=incident_id,
                status=IncidentStatus.ACTIVE.value,
                message="Incident detected automatically",
                timestamp=started_at,
            ))
            await session.commit()
        return incident_id

    return _add
