"""Reliability scoring from uptime, latency, error rate and incident history."""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.core.statistics import clamp, round_half_up
from pulsewatch.models.endpoint import new_id
from pulsewatch.models.enums import Trend
from pulsewatch.models.reliability_score import ReliabilityScoreSnapshot
from pulsewatch.repositories.baselines import BaselineRepository
from pulsewatch.repositories.endpoints import EndpointRepository
from pulsewatch.repositories.incidents import IncidentRepository
from pulsewatch.repositories.probe_results import ProbeResultRepository
from pulsewatch.repositories.reliability_scores import ReliabilityScoreRepository
from pulsewatch.schemas.reliability import ReliabilityScore, ScoreComponents
from pulsewatch.utils.logger import get_logger
from pulsewatch.utils.timeutils import utcnow

logger = get_logger(__name__)

DEFAULT_BASELINE_LATENCY_MS = 500.0
TREND_DELTA = 5

WEIGHTS = {
    "uptime": 0.4,
    "latency": 0.3,
    "error_rate": 0.2,
    "incident_history": 0.1,
}

# (upper bound inclusive, score), evaluated in order
LATENCY_RATIO_BANDS = [(1.0, 100), (1.2, 90), (1.5, 75), (2.0, 50), (3.0, 25)]
ERROR_RATE_BANDS = [(0.01, 90), (0.05, 75), (0.1, 50), (0.25, 25)]
INCIDENT_WEIGHT_BANDS = [(1, 80), (3, 60), (5, 40)]


def _band(value: float, bands, fallback: float) -> float:
    for upper, score in bands:
        if value <= upper:
            return score
    return fallback


def uptime_score(total: int, successes: int) -> float:
    if total == 0:
        return 100.0
    return clamp(successes / total * 100)


def latency_score(avg_latency_ms: float, baseline_latency_ms: float) -> float:
    if avg_latency_ms <= 0 or baseline_latency_ms <= 0:
        return 0.0
    return _band(avg_latency_ms / baseline_latency_ms, LATENCY_RATIO_BANDS, 0)


def error_rate_score(error_rate: float) -> float:
    if error_rate == 0:
        return 100.0
    return _band(error_rate, ERROR_RATE_BANDS, 0)


def incident_history_score(last_7_days: int, last_30_days: int) -> float:
    weight = 2 * last_7_days + 0.5 * (last_30_days - last_7_days)
    if weight == 0:
        return 100.0
    return _band(weight, INCIDENT_WEIGHT_BANDS, 20)


def overall_score(components: ScoreComponents) -> int:
    return round_half_up(
        WEIGHTS["uptime"] * components.uptime
        + WEIGHTS["latency"] * components.latency
        + WEIGHTS["error_rate"] * components.error_rate
        + WEIGHTS["incident_history"] * components.incident_history
    )


def determine_trend(current: int, previous: Optional[int]) -> Trend:
    """Compare against the score from a day ago; no history means stable."""
    if previous is None:
        return Trend.STABLE
    diff = current - previous
    if diff >= TREND_DELTA:
        return Trend.IMPROVING
    if diff <= -TREND_DELTA:
        return Trend.DECLINING
    return Trend.STABLE


class ReliabilityScorer:
    """
    Combines four signals into a 0-100 reliability score.

    Weights are uptime 40%, latency 30%, error rate 20% and incident history
    10%. Each calculation is stored as a new snapshot so that trends can be
    computed against the snapshot from 24 hours earlier.

    Example:
        ```python
        scorer = ReliabilityScorer(db)
        score = await scorer.calculate_reliability_score(endpoint.id)
        print(f"{score.score} ({score.trend.value})")
        ```
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.probe_results = ProbeResultRepository(db)
        self.baselines = BaselineRepository(db)
        self.incidents = IncidentRepository(db)
        self.snapshots = ReliabilityScoreRepository(db)

    async def calculate_reliability_score(
        self,
        endpoint_id: str,
        now: Optional[datetime] = None
    ) -> ReliabilityScore:
        """
        Compute, persist and return the endpoint's reliability score.

        Args:
            endpoint_id: Endpoint to score
            now: Evaluation time, defaults to the current UTC time

        Returns:
            ReliabilityScore: Overall score, components and trend
        """
        now = now or utcnow()
        stats = await self.probe_results.window_stats(endpoint_id, now - timedelta(hours=24))

        baseline = await self.baselines.get(endpoint_id)
        baseline_latency = baseline.avg_latency_ms if baseline else DEFAULT_BASELINE_LATENCY_MS

        last_7 = await self.incidents.count_started_since(endpoint_id, now - timedelta(days=7))
        last_30 = await self.incidents.count_started_since(endpoint_id, now - timedelta(days=30))

        error_rate = stats.errors / stats.total if stats.total else 0.0
        components = ScoreComponents(
            uptime=uptime_score(stats.total, stats.successes),
            latency=latency_score(stats.avg_latency_ms or 0.0, baseline_latency),
            error_rate=error_rate_score(error_rate),
            incident_history=incident_history_score(last_7, last_30),
        )
        score = overall_score(components)

        previous = await self.snapshots.latest_at_or_before(endpoint_id, now - timedelta(hours=24))
        trend = determine_trend(score, previous.score if previous is not None else None)

        await self.snapshots.append(ReliabilityScoreSnapshot(
            id=new_id(),
            endpoint_id=endpoint_id,
            score=score,
            uptime_score=components.uptime,
            latency_score=components.latency,
            error_rate_score=components.error_rate,
            incident_score=components.incident_history,
            trend=trend.value,
            calculated_at=now,
        ))
        await self.db.commit()

        logger.debug(
            "Reliability score calculated",
            extra={"endpoint_id": endpoint_id, "score": score, "trend": trend.value}
        )

        return ReliabilityScore(
            endpoint_id=endpoint_id,
            score=score,
            components=components,
            trend=trend,
            calculated_at=now,
        )

    async def calculate_all(self) -> List[ReliabilityScore]:
        """Score every active endpoint; failures are logged and skipped."""
        endpoints = await EndpointRepository(self.db).list_active()
        endpoint_ids = [endpoint.id for endpoint in endpoints]
        scores: List[ReliabilityScore] = []

        for endpoint_id in endpoint_ids:
            try:
                scores.append(await self.calculate_reliability_score(endpoint_id))
            except Exception as e:
                await self.db.rollback()
                logger.exception(
                    "Reliability scoring failed",
                    extra={"endpoint_id": endpoint_id, "error": str(e)}
                )

        logger.info(
            "Reliability scoring finished",
            extra={"scored": len(scores), "endpoints": len(endpoint_ids)}
        )
        return scores
