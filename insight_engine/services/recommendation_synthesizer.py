"""
Recommendation Synthesizer

Turns detector patterns and scorer findings into ranked, actionable
Recommendation records.

Three passes:
    HEALTH   (from_assessment):     one recommendation per low sub-score trigger
    PATTERN  (from_patterns):       one recommendation per detected pattern, capped
    DEFAULT  (default_pillar_pass): one optimization per pillar, seeded impact

Recommendations are transient. They are rebuilt on every request and never
mutated; identity is pillar + kind + generation timestamp, so two passes run
at the same instant with the same inputs produce the same ids.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from insight_engine.core.config import settings
from insight_engine.services.behavior_ledger import Pillar
from insight_engine.services.pattern_detector import (
    ENERGY_PERFORMANCE,
    MOOD_PERFORMANCE,
    PILLAR_OPPORTUNITY,
    PILLAR_STRENGTH,
    TEMPORAL_PEAK,
    WEEKLY_PEAK,
    Pattern,
)
from insight_engine.services.wellness_scorer import HealthAssessment, round_half_up

logger = logging.getLogger(__name__)


class RecommendationType(str, Enum):
    OPTIMIZATION = "optimization"
    TIMING = "timing"
    FOCUS = "focus"
    BALANCE = "balance"
    HABIT = "habit"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class RecommendationPillar(str, Enum):
    """Pillars a recommendation can target: the five observation pillars plus overall."""
    BODY = "body"
    MIND = "mind"
    HEART = "heart"
    SPIRIT = "spirit"
    DIET = "diet"
    OVERALL = "overall"

    @classmethod
    def from_pillar(cls, pillar: Optional[Pillar]) -> "RecommendationPillar":
        if pillar is None:
            return cls.OVERALL
        return cls(pillar.value)


@dataclass(frozen=True)
class Recommendation:
    id: str
    type: RecommendationType
    priority: Priority
    pillar: RecommendationPillar
    title: str
    description: str
    action_plan: List[str] = field(default_factory=list)  # Ordered steps
    expected_impact: int = 0                               # Percent
    confidence: float = 0.0                                # 0-1
    timeframe: str = ""
    category: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "priority": self.priority.value,
            "pillar": self.pillar.value,
            "title": self.title,
            "description": self.description,
            "action_plan": list(self.action_plan),
            "expected_impact": self.expected_impact,
            "confidence": self.confidence,
            "timeframe": self.timeframe,
            "category": self.category,
        }


def recommendation_id(pillar: RecommendationPillar, kind: str, generated_at: datetime) -> str:
    return f"{pillar.value}_{kind}_{int(generated_at.timestamp() * 1000)}"


def rank(recommendations: Sequence[Recommendation]) -> List[Recommendation]:
    """Critical first, then high, medium, low; within a priority, most confident first."""
    return sorted(recommendations, key=lambda r: (r.priority.rank, -r.confidence))


# =============================================================================
# HEALTH PASS
# =============================================================================

SLEEP_SCORE_HIGH_THRESHOLD = 50.0    # Below → high priority
SLEEP_SCORE_THRESHOLD = 70.0         # Below → medium priority
STRESS_LEVEL_THRESHOLD = 7
HEART_RATE_CRITICAL = 100.0          # Above → critical
HEART_RATE_LOW = 50.0                # Below → medium
NUTRITION_MEDIUM_THRESHOLD = 60.0
NUTRITION_THRESHOLD = 80.0

HEALTH_INSIGHT_CONFIDENCE = 0.8

HEART_RATE_ACTIONS = [
    "Monitor heart rate trends over time",
    "Consider cardiovascular fitness assessment",
    "Consult healthcare provider if persistent",
]


# =============================================================================
# PATTERN PASS
# =============================================================================

PATTERN_TYPES = {
    TEMPORAL_PEAK: RecommendationType.TIMING,
    WEEKLY_PEAK: RecommendationType.TIMING,
    PILLAR_STRENGTH: RecommendationType.HABIT,
    PILLAR_OPPORTUNITY: RecommendationType.FOCUS,
    MOOD_PERFORMANCE: RecommendationType.BALANCE,
    ENERGY_PERFORMANCE: RecommendationType.BALANCE,
}

PATTERN_TITLES = {
    TEMPORAL_PEAK: "Schedule Around Your Peak Hour",
    WEEKLY_PEAK: "Anchor Your Week on Your Best Day",
    PILLAR_STRENGTH: "Build on Your Strongest Pillar",
    PILLAR_OPPORTUNITY: "Focus on Your Growth Pillar",
    MOOD_PERFORMANCE: "Prime Your Mood Before Sessions",
    ENERGY_PERFORMANCE: "Train When Your Energy Is High",
}

TIMEFRAMES = {
    RecommendationType.TIMING: "1-2 weeks",
    RecommendationType.HABIT: "3-4 weeks",
    RecommendationType.FOCUS: "2-4 weeks",
    RecommendationType.BALANCE: "1-3 weeks",
    RecommendationType.OPTIMIZATION: "2-3 weeks",
}

MAX_PATTERN_IMPACT = 30


def pattern_priority(pattern: Pattern) -> Priority:
    if pattern.id == PILLAR_OPPORTUNITY:
        return Priority.HIGH
    if pattern.confidence >= 0.85:
        return Priority.HIGH
    if pattern.confidence >= 0.75:
        return Priority.MEDIUM
    return Priority.LOW


def pattern_impact(confidence: float) -> int:
    """Expected impact in percent: linear in confidence, 0.85 → 26."""
    return max(1, min(MAX_PATTERN_IMPACT, round_half_up(confidence * MAX_PATTERN_IMPACT)))


# =============================================================================
# DEFAULT PASS
# =============================================================================

DEFAULT_PILLAR_ORDER = [Pillar.BODY, Pillar.MIND, Pillar.HEART, Pillar.SPIRIT, Pillar.DIET]
DEFAULT_IMPACT_RANGE = (10, 30)      # [low, high)
DEFAULT_CONFIDENCE = 0.85
DEFAULT_TIMEFRAME = "2-3 weeks"


class RecommendationSynthesizer:
    """
    Build recommendations from patterns, assessments, or nothing at all.

    The only source of randomness is the injected rng, used by the default
    pass alone. Seed it (RECOMMENDATION_SEED) for reproducible output.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        max_pattern_recommendations: Optional[int] = None,
        max_default_recommendations: Optional[int] = None,
    ):
        self.rng = rng or random.Random(settings.RECOMMENDATION_SEED)
        self.max_pattern_recommendations = (
            max_pattern_recommendations or settings.MAX_PATTERN_RECOMMENDATIONS
        )
        self.max_default_recommendations = (
            max_default_recommendations or settings.MAX_DEFAULT_RECOMMENDATIONS
        )

    def synthesize(
        self,
        patterns: Sequence[Pattern],
        assessment: Optional[HealthAssessment],
        generated_at: datetime,
    ) -> List[Recommendation]:
        """Pattern pass plus health pass, ranked."""
        recommendations = self.from_patterns(patterns, generated_at)
        if assessment is not None:
            recommendations.extend(self.from_assessment(assessment, generated_at))
        return rank(recommendations)

    # ------------------------------------------------------------------
    # Health pass
    # ------------------------------------------------------------------

    def from_assessment(self, assessment: HealthAssessment, generated_at: datetime) -> List[Recommendation]:
        """One recommendation per triggering sub-score, in sleep/stress/heart/nutrition order."""
        recommendations = []

        sleep_score = assessment.sleep.sleep_score
        if sleep_score < SLEEP_SCORE_THRESHOLD:
            priority = Priority.HIGH if sleep_score < SLEEP_SCORE_HIGH_THRESHOLD else Priority.MEDIUM
            recommendations.append(Recommendation(
                id=recommendation_id(RecommendationPillar.OVERALL, "sleep", generated_at),
                type=RecommendationType.HABIT,
                priority=priority,
                pillar=RecommendationPillar.OVERALL,
                title="Sleep Quality Needs Attention",
                description=(
                    f"Your sleep score of {round(sleep_score)}/100 indicates room for improvement "
                    f"in sleep quality and recovery."
                ),
                action_plan=list(assessment.sleep.recommendations) or [
                    "Keep a consistent sleep and wake time",
                ],
                expected_impact=20 if priority == Priority.HIGH else 15,
                confidence=HEALTH_INSIGHT_CONFIDENCE,
                timeframe="1-2 weeks",
                category="Sleep",
            ))

        stress = assessment.stress
        if stress.stress_level >= STRESS_LEVEL_THRESHOLD:
            recommendations.append(Recommendation(
                id=recommendation_id(RecommendationPillar.MIND, "stress", generated_at),
                type=RecommendationType.BALANCE,
                priority=Priority.CRITICAL,
                pillar=RecommendationPillar.MIND,
                title="Elevated Stress Levels Detected",
                description=(
                    f"High stress level ({stress.stress_level}/10) with low HRV ({stress.hrv:g}ms) "
                    f"suggests need for immediate stress management."
                ),
                action_plan=list(stress.interventions),
                expected_impact=25,
                confidence=HEALTH_INSIGHT_CONFIDENCE,
                timeframe="Immediate",
                category="Stress",
            ))

        heart_rate = assessment.biometrics.heart_rate
        if heart_rate > HEART_RATE_CRITICAL or heart_rate < HEART_RATE_LOW:
            recommendations.append(Recommendation(
                id=recommendation_id(RecommendationPillar.BODY, "heart_rate", generated_at),
                type=RecommendationType.FOCUS,
                priority=Priority.CRITICAL if heart_rate > HEART_RATE_CRITICAL else Priority.MEDIUM,
                pillar=RecommendationPillar.BODY,
                title="Heart Rate Outside Optimal Range",
                description=(
                    f"Resting heart rate of {heart_rate:g} bpm may indicate fitness or health considerations."
                ),
                action_plan=list(HEART_RATE_ACTIONS),
                expected_impact=10,
                confidence=HEALTH_INSIGHT_CONFIDENCE,
                timeframe="Ongoing",
                category="Fitness",
            ))

        nutrition_score = assessment.nutrition.nutrition_score
        if nutrition_score < NUTRITION_THRESHOLD:
            priority = Priority.MEDIUM if nutrition_score < NUTRITION_MEDIUM_THRESHOLD else Priority.LOW
            recommendations.append(Recommendation(
                id=recommendation_id(RecommendationPillar.DIET, "nutrition", generated_at),
                type=RecommendationType.OPTIMIZATION,
                priority=priority,
                pillar=RecommendationPillar.DIET,
                title="Nutrition Optimization Opportunity",
                description=(
                    f"Nutrition score of {round(nutrition_score)}/100 suggests potential for dietary improvements."
                ),
                action_plan=list(assessment.nutrition.recommendations),
                expected_impact=15 if priority == Priority.MEDIUM else 10,
                confidence=HEALTH_INSIGHT_CONFIDENCE,
                timeframe="2-3 weeks",
                category="Nutrition",
            ))

        return recommendations

    # ------------------------------------------------------------------
    # Pattern pass
    # ------------------------------------------------------------------

    def from_patterns(self, patterns: Sequence[Pattern], generated_at: datetime) -> List[Recommendation]:
        recommendations = []
        for pattern in patterns[:self.max_pattern_recommendations]:
            rec_type = PATTERN_TYPES.get(pattern.id)
            if rec_type is None:
                logger.debug(f"No recommendation mapping for pattern {pattern.id}")
                continue

            pillar = RecommendationPillar.from_pillar(pattern.pillar)
            recommendations.append(Recommendation(
                id=recommendation_id(pillar, pattern.id, generated_at),
                type=rec_type,
                priority=pattern_priority(pattern),
                pillar=pillar,
                title=PATTERN_TITLES[pattern.id],
                description=pattern.description,
                action_plan=list(pattern.recommendations_text),
                expected_impact=pattern_impact(pattern.confidence),
                confidence=pattern.confidence,
                timeframe=TIMEFRAMES[rec_type],
                category=pattern.axis.value.capitalize(),
            ))
        return recommendations

    # ------------------------------------------------------------------
    # Default pass
    # ------------------------------------------------------------------

    def default_pillar_pass(self, generated_at: datetime) -> List[Recommendation]:
        """One optimization recommendation per pillar. Impact drawn from the injected rng."""
        low, high = DEFAULT_IMPACT_RANGE
        recommendations = []
        for pillar in DEFAULT_PILLAR_ORDER:
            target = RecommendationPillar.from_pillar(pillar)
            recommendations.append(Recommendation(
                id=recommendation_id(target, RecommendationType.OPTIMIZATION.value, generated_at),
                type=RecommendationType.OPTIMIZATION,
                priority=Priority.HIGH,
                pillar=target,
                title=f"Enhance {pillar.value.upper()} Performance",
                description=(
                    f"Your {pillar.value} pillar shows potential for growth through targeted optimization techniques."
                ),
                action_plan=[
                    f"Focus on daily {pillar.value} exercises",
                    "Track progress consistently",
                    "Adjust based on results",
                    "Maintain consistency",
                ],
                expected_impact=self.rng.randrange(low, high),
                confidence=DEFAULT_CONFIDENCE,
                timeframe=DEFAULT_TIMEFRAME,
                category=f"{pillar.value.capitalize()} Enhancement",
            ))
        return recommendations[:self.max_default_recommendations]
