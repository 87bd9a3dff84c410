"""
Pattern Detector

Scans the observation window along four independent axes and reports the
regularities it finds, each with a confidence:

    TEMPORAL     - best hour of day (>= 3 sessions), best day of week
    PERFORMANCE  - strongest pillar, weakest pillar when it is below 70
    MOOD         - mood <-> performance correlation (Pearson r > 0.6)
    ENERGY       - high-energy vs low-energy performance gap (> 20 points)

These are heuristics over THIS user's sessions, not a trained model. The
confidences are fixed per pattern kind (except the mood correlation, which
reports the coefficient itself, capped at 0.95).

Determinism: the detector never reads the clock. Groups are built in
chronological first-seen order and ties go to the first-seen group (the
last-seen one when picking the weakest pillar), so the
same window always produces the same patterns in the same order.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from statistics import mean
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from scipy.stats import t as t_dist

from insight_engine.core.config import settings
from insight_engine.services.behavior_ledger import Observation, Pillar

logger = logging.getLogger(__name__)


class PatternAxis(str, Enum):
    TEMPORAL = "temporal"
    PERFORMANCE = "performance"
    MOOD = "mood"
    ENERGY = "energy"


@dataclass
class Pattern:
    """A statistically detected regularity in the observation window."""
    id: str                                   # Stable per kind, e.g. "temporal_peak"
    axis: PatternAxis
    confidence: float                         # 0-1
    description: str
    insights: List[str] = field(default_factory=list)
    recommendations_text: List[str] = field(default_factory=list)
    pillar: Optional[Pillar] = None           # Set on performance-axis patterns
    data: Dict[str, Any] = field(default_factory=dict)  # Evidence behind the pattern

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "axis": self.axis.value,
            "confidence": round(self.confidence, 3),
            "description": self.description,
            "insights": list(self.insights),
            "recommendations": list(self.recommendations_text),
            "pillar": self.pillar.value if self.pillar else None,
            "data": dict(self.data),
        }


# Pattern ids
TEMPORAL_PEAK = "temporal_peak"
WEEKLY_PEAK = "weekly_peak"
PILLAR_STRENGTH = "pillar_strength"
PILLAR_OPPORTUNITY = "pillar_opportunity"
MOOD_PERFORMANCE = "mood_performance_correlation"
ENERGY_PERFORMANCE = "energy_performance_link"

# Fixed confidences per pattern kind
TEMPORAL_PEAK_CONFIDENCE = 0.85
WEEKLY_PEAK_CONFIDENCE = 0.78
PILLAR_STRENGTH_CONFIDENCE = 0.82
PILLAR_OPPORTUNITY_CONFIDENCE = 0.75
ENERGY_PERFORMANCE_CONFIDENCE = 0.88
MOOD_CONFIDENCE_CAP = 0.95

# Thresholds
TEMPORAL_PEAK_MIN_SAMPLES = 3       # Sessions needed before an hour can be the peak
OPPORTUNITY_THRESHOLD = 70.0        # Weakest pillar is only flagged below this mean
MIN_CORRELATION_SAMPLES = 10        # Paired samples needed for the mood correlation
MOOD_CORRELATION_THRESHOLD = 0.6
ENERGY_GAP_THRESHOLD = 20.0         # high_mean - low_mean must exceed this
LOW_ENERGY_MAX = 3                  # energy <= 3 is low
HIGH_ENERGY_MIN = 7                 # energy > 7 is high; everything between is medium

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


# =============================================================================
# STATISTICS
# =============================================================================

def calculate_pearson_correlation(x: List[float], y: List[float], min_samples: int = 5) -> Tuple[float, float]:
    """
    Calculate Pearson correlation coefficient and p-value.

    Args:
        x: First variable values
        y: Second variable values
        min_samples: Minimum number of samples required (default 5)

    Returns:
        (correlation_coefficient, p_value). (0.0, 1.0) when the series are
        too short, of unequal length, or either has zero variance.
    """
    if len(x) != len(y) or len(x) < min_samples:
        return 0.0, 1.0

    n = len(x)
    mean_x = mean(x)
    mean_y = mean(y)

    numerator = sum((x[i] - mean_x) * (y[i] - mean_y) for i in range(n))
    sum_sq_x = sum((x[i] - mean_x) ** 2 for i in range(n))
    sum_sq_y = sum((y[i] - mean_y) ** 2 for i in range(n))

    if sum_sq_x == 0 or sum_sq_y == 0:
        return 0.0, 1.0

    r = numerator / math.sqrt(sum_sq_x * sum_sq_y)
    # Floating point can push a perfect correlation a hair past 1
    r = max(-1.0, min(1.0, r))

    # Two-tailed p-value from the t-distribution
    if abs(r) == 1.0 or n <= 2:
        p_value = 0.0 if abs(r) == 1.0 else 1.0
    else:
        t_statistic = r * math.sqrt((n - 2) / (1 - r ** 2))
        p_value = float(2 * t_dist.sf(abs(t_statistic), n - 2))

    return r, p_value


def _group_performance(observations: Iterable[Observation], key) -> Dict[Any, List[float]]:
    """Performance values grouped by key, groups in first-seen order."""
    groups: Dict[Any, List[float]] = {}
    for obs in observations:
        groups.setdefault(key(obs), []).append(obs.performance)
    return groups


def _guarded_mean(values: Sequence[float]) -> float:
    """Mean with the denominator floored at 1, so an empty group averages 0."""
    return sum(values) / max(len(values), 1)


# =============================================================================
# PATTERN DETECTOR
# =============================================================================

class PatternDetector:
    """
    Run every axis over a window of observations.

    Below min_observations the result is an empty list: not enough data yet is
    a normal state for a new user, not an error.
    """

    def __init__(self, min_observations: Optional[int] = None):
        self.min_observations = min_observations or settings.MIN_OBSERVATIONS_FOR_PATTERNS

    def detect(self, observations: Sequence[Observation]) -> List[Pattern]:
        """
        Detect patterns in a chronologically ordered window.

        Returns:
            Patterns sorted by descending confidence (stable for equal confidence)
        """
        if len(observations) < self.min_observations:
            logger.debug(
                f"Pattern detection skipped: {len(observations)} observations "
                f"(need {self.min_observations})"
            )
            return []

        patterns: List[Pattern] = []
        patterns.extend(self._detect_temporal(observations))
        patterns.extend(self._detect_performance(observations))
        patterns.extend(self._detect_mood(observations))
        patterns.extend(self._detect_energy(observations))

        patterns.sort(key=lambda p: p.confidence, reverse=True)

        logger.debug(
            f"Pattern detection over {len(observations)} observations: "
            f"{[p.id for p in patterns]}"
        )
        return patterns

    # ------------------------------------------------------------------
    # Axis 1: Temporal
    # ------------------------------------------------------------------

    def _detect_temporal(self, observations: Sequence[Observation]) -> List[Pattern]:
        patterns = []

        # Hour of day: only hours with enough sessions can be the peak
        by_hour = _group_performance(observations, lambda o: int(o.context.hour_of_day))
        best_hour, best_hour_avg, best_hour_count = None, 0.0, 0
        for hour, performances in by_hour.items():
            if len(performances) < TEMPORAL_PEAK_MIN_SAMPLES:
                continue
            avg = mean(performances)
            if best_hour is None or avg > best_hour_avg:
                best_hour, best_hour_avg, best_hour_count = hour, avg, len(performances)

        if best_hour is not None:
            patterns.append(Pattern(
                id=TEMPORAL_PEAK,
                axis=PatternAxis.TEMPORAL,
                confidence=TEMPORAL_PEAK_CONFIDENCE,
                description=f"Peak performance consistently occurs around {best_hour}:00",
                insights=[
                    f"Your performance peaks at {best_hour}:00",
                    f"{round(best_hour_avg)}% average performance during this time",
                    f"Consistent pattern observed over {best_hour_count} sessions",
                ],
                recommendations_text=[
                    f"Schedule your most important tasks around {best_hour}:00",
                    "Block this time for deep work and challenging activities",
                    "Avoid distractions during your peak performance window",
                ],
                data={
                    "hour": best_hour,
                    "mean_performance": round(best_hour_avg, 2),
                    "sample_size": best_hour_count,
                },
            ))

        # Day of week: no minimum-sample gate
        by_day = _group_performance(observations, lambda o: int(o.context.day_of_week))
        best_day, best_day_avg, best_day_count = None, 0.0, 0
        for day, performances in by_day.items():
            avg = mean(performances)
            if best_day is None or avg > best_day_avg:
                best_day, best_day_avg, best_day_count = day, avg, len(performances)

        if best_day is not None:
            day_name = DAY_NAMES[best_day]
            patterns.append(Pattern(
                id=WEEKLY_PEAK,
                axis=PatternAxis.TEMPORAL,
                confidence=WEEKLY_PEAK_CONFIDENCE,
                description=f"{day_name} shows consistently higher performance",
                insights=[
                    f"{day_name} is your strongest day of the week",
                    f"{round(best_day_avg)}% average performance",
                    "Plan important activities on this day",
                ],
                recommendations_text=[
                    f"Schedule challenging goals on {day_name}",
                    "Use this day for breakthrough sessions",
                    "Maintain consistent sleep before this day",
                ],
                data={
                    "day_of_week": best_day,
                    "day_name": day_name,
                    "mean_performance": round(best_day_avg, 2),
                    "sample_size": best_day_count,
                },
            ))

        return patterns

    # ------------------------------------------------------------------
    # Axis 2: Per-pillar performance
    # ------------------------------------------------------------------

    def _detect_performance(self, observations: Sequence[Observation]) -> List[Pattern]:
        patterns = []
        by_pillar = _group_performance(observations, lambda o: o.pillar)

        strongest, highest_avg = None, 0.0
        weakest, lowest_avg = None, 0.0
        for pillar, performances in by_pillar.items():
            avg = mean(performances)
            if strongest is None or avg > highest_avg:
                strongest, highest_avg = pillar, avg
            # <= so tied pillars never report the same pillar as both extremes
            if weakest is None or avg <= lowest_avg:
                weakest, lowest_avg = pillar, avg

        if strongest is not None:
            name = strongest.value
            patterns.append(Pattern(
                id=PILLAR_STRENGTH,
                axis=PatternAxis.PERFORMANCE,
                confidence=PILLAR_STRENGTH_CONFIDENCE,
                description=f"{name} pillar shows exceptional performance",
                insights=[
                    f"{name} is your strongest pillar at {round(highest_avg)}% performance",
                    "Consistent high scores across multiple sessions",
                    "Natural affinity and developed skill in this area",
                ],
                recommendations_text=[
                    f"Use {name} success strategies for other pillars",
                    "Leverage this strength to build momentum",
                    "Consider becoming a mentor in this area",
                ],
                pillar=strongest,
                data={
                    "mean_performance": round(highest_avg, 2),
                    "sample_size": len(by_pillar[strongest]),
                },
            ))

        if weakest is not None and lowest_avg < OPPORTUNITY_THRESHOLD:
            name = weakest.value
            patterns.append(Pattern(
                id=PILLAR_OPPORTUNITY,
                axis=PatternAxis.PERFORMANCE,
                confidence=PILLAR_OPPORTUNITY_CONFIDENCE,
                description=f"{name} pillar needs focused attention",
                insights=[
                    f"{name} shows lower performance at {round(lowest_avg)}%",
                    "Opportunity for significant improvement",
                    "Addressing this could boost your overall wellness score",
                ],
                recommendations_text=[
                    f"Allocate 20% more time to {name} activities",
                    "Break down challenges into smaller, manageable steps",
                    "Seek guidance or resources specific to this pillar",
                ],
                pillar=weakest,
                data={
                    "mean_performance": round(lowest_avg, 2),
                    "sample_size": len(by_pillar[weakest]),
                    "threshold": OPPORTUNITY_THRESHOLD,
                },
            ))

        return patterns

    # ------------------------------------------------------------------
    # Axis 3: Mood <-> performance
    # ------------------------------------------------------------------

    def _detect_mood(self, observations: Sequence[Observation]) -> List[Pattern]:
        if len(observations) < MIN_CORRELATION_SAMPLES:
            return []

        moods = [float(o.mood) for o in observations]
        performances = [float(o.performance) for o in observations]
        r, p_value = calculate_pearson_correlation(moods, performances, min_samples=MIN_CORRELATION_SAMPLES)

        if r <= MOOD_CORRELATION_THRESHOLD:
            return []

        return [Pattern(
            id=MOOD_PERFORMANCE,
            axis=PatternAxis.MOOD,
            confidence=min(r, MOOD_CONFIDENCE_CAP),
            description="Strong correlation between mood and performance detected",
            insights=[
                f"{round(r * 100)}% correlation between mood and performance",
                "Better mood consistently leads to better results",
                "Mood management is key to optimization",
            ],
            recommendations_text=[
                "Prioritize mood-boosting activities before important sessions",
                "Track mood patterns to predict performance windows",
                "Develop mood regulation techniques for consistency",
            ],
            data={
                "correlation": round(r, 4),
                "p_value": round(p_value, 6),
                "sample_size": len(moods),
            },
        )]

    # ------------------------------------------------------------------
    # Axis 4: Energy tiers
    # ------------------------------------------------------------------

    def _detect_energy(self, observations: Sequence[Observation]) -> List[Pattern]:
        low = [o.performance for o in observations if o.energy <= LOW_ENERGY_MAX]
        medium = [o.performance for o in observations if LOW_ENERGY_MAX < o.energy <= HIGH_ENERGY_MIN]
        high = [o.performance for o in observations if o.energy > HIGH_ENERGY_MIN]

        low_mean = _guarded_mean(low)
        medium_mean = _guarded_mean(medium)
        high_mean = _guarded_mean(high)
        gap = high_mean - low_mean

        if gap <= ENERGY_GAP_THRESHOLD:
            return []

        return [Pattern(
            id=ENERGY_PERFORMANCE,
            axis=PatternAxis.ENERGY,
            confidence=ENERGY_PERFORMANCE_CONFIDENCE,
            description="Energy levels significantly impact performance",
            insights=[
                f"{round(gap)}% performance difference between high and low energy",
                "Energy management is crucial for optimization",
                "High energy sessions show consistently better results",
            ],
            recommendations_text=[
                "Track and optimize factors that affect your energy",
                "Schedule important activities during high-energy periods",
                "Develop energy restoration techniques",
                "Consider power naps and energy-boosting nutrition",
            ],
            data={
                "low_mean": round(low_mean, 2),
                "medium_mean": round(medium_mean, 2),
                "high_mean": round(high_mean, 2),
                "gap": round(gap, 2),
                "tier_sizes": {"low": len(low), "medium": len(medium), "high": len(high)},
            },
        )]


# =============================================================================
# PATTERN CONSUMERS
# =============================================================================

def personalized_recommendations(patterns: Sequence[Pattern], limit: int = 5) -> List[str]:
    """Recommendation texts across patterns, de-duplicated, first `limit` kept."""
    seen = set()
    texts = []
    for pattern in patterns:
        for text in pattern.recommendations_text:
            if text not in seen:
                seen.add(text)
                texts.append(text)
    return texts[:limit]


def predicted_optimal_time(patterns: Sequence[Pattern]) -> Optional[Tuple[int, float]]:
    """(hour, confidence) of the peak-performance hour, if one was detected."""
    for pattern in patterns:
        if pattern.id == TEMPORAL_PEAK:
            return int(pattern.data["hour"]), pattern.confidence
    return None
