"""Multi-factor confidence scoring for retrieved answers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

SIMILARITY_WEIGHT = 0.4
SOURCE_COUNT_WEIGHT = 0.2
RECENCY_WEIGHT = 0.2
DIVERSITY_WEIGHT = 0.2

HIGH_THRESHOLD = 0.7
MEDIUM_THRESHOLD = 0.4


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(slots=True)
class ConfidenceFactors:
    similarity: float = 0.0
    source_count: float = 0.0
    recency: float = 0.0
    diversity: float = 0.0


@dataclass(slots=True)
class ConfidenceResult:
    score: float
    level: ConfidenceLevel
    factors: ConfidenceFactors


class ConfidenceCalculator:
    """Blends retrieval similarity with source count, recency and diversity.

    score = 0.4 * mean similarity
          + 0.2 * source count (0.2 per source, saturating at 5)
          + 0.2 * recency (stepped by average source age in days)
          + 0.2 * domain diversity (0.5 for one source, up to 1.0)
    """

    def calculate(
        self,
        similarity_scores: list[float],
        source_timestamps: list[datetime],
        source_domains: list[str],
        *,
        now: datetime | None = None,
    ) -> ConfidenceResult:
        if not similarity_scores:
            return ConfidenceResult(0.0, ConfidenceLevel.LOW, ConfidenceFactors())

        factors = ConfidenceFactors(
            similarity=_clamp(sum(similarity_scores) / len(similarity_scores)),
            source_count=min(1.0, len(similarity_scores) * 0.2),
            recency=_recency_score(source_timestamps, now or datetime.now(timezone.utc)),
            diversity=_diversity_score(source_domains),
        )
        score = _clamp(
            factors.similarity * SIMILARITY_WEIGHT
            + factors.source_count * SOURCE_COUNT_WEIGHT
            + factors.recency * RECENCY_WEIGHT
            + factors.diversity * DIVERSITY_WEIGHT
        )
        return ConfidenceResult(score, _level(score), factors)


def _recency_score(timestamps: list[datetime], now: datetime) -> float:
    if not timestamps:
        return 0.0
    ages = [(now - ts).total_seconds() / 86_400 for ts in timestamps]
    avg_age = sum(ages) / len(ages)
    if avg_age < 1:
        return 1.0
    if avg_age < 7:
        return 0.8
    if avg_age < 30:
        return 0.5
    if avg_age < 90:
        return 0.3
    return 0.1


def _diversity_score(domains: list[str]) -> float:
    if not domains:
        return 0.0
    if len(domains) == 1:
        return 0.5
    return 0.5 + (len(set(domains)) / len(domains)) * 0.5


def _level(score: float) -> ConfidenceLevel:
    if score >= HIGH_THRESHOLD:
        return ConfidenceLevel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))
