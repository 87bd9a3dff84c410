"""
Tests for the Recommendation Synthesizer.

Health-pass triggers, pattern mapping, the seeded default pass and ranking.
"""
import random
from dataclasses import FrozenInstanceError

import pytest

from insight_engine.schemas import HealthMetricsInput, HealthSnapshots, NutritionInput, SleepInput
from insight_engine.services.behavior_ledger import Pillar
from insight_engine.services.pattern_detector import (
    ENERGY_PERFORMANCE,
    MOOD_PERFORMANCE,
    PILLAR_OPPORTUNITY,
    PILLAR_STRENGTH,
    TEMPORAL_PEAK,
    WEEKLY_PEAK,
    Pattern,
    PatternAxis,
)
from insight_engine.services.recommendation_synthesizer import (
    Priority,
    Recommendation,
    RecommendationPillar,
    RecommendationSynthesizer,
    RecommendationType,
    pattern_impact,
    rank,
    recommendation_id,
)
from insight_engine.services.wellness_scorer import WellnessScorer
from tests.conftest import FIXED_NOW


@pytest.fixture
def synthesizer(rng):
    return RecommendationSynthesizer(rng=rng, max_pattern_recommendations=5, max_default_recommendations=5)


def _assess(**snapshots):
    return WellnessScorer().assess(HealthSnapshots(**snapshots), FIXED_NOW)


def _rec(priority, confidence=0.5, title="rec"):
    return Recommendation(
        id=title,
        type=RecommendationType.FOCUS,
        priority=priority,
        pillar=RecommendationPillar.OVERALL,
        title=title,
        description="",
        confidence=confidence,
    )


def _pattern(pattern_id, axis, confidence, pillar=None):
    return Pattern(
        id=pattern_id,
        axis=axis,
        confidence=confidence,
        description=f"{pattern_id} description",
        recommendations_text=[f"{pattern_id} step"],
        pillar=pillar,
    )


class TestRanking:
    """rank(): priority first, then confidence, stable otherwise."""

    def test_priority_order(self):
        ranked = rank([_rec(Priority.LOW), _rec(Priority.CRITICAL), _rec(Priority.MEDIUM), _rec(Priority.HIGH)])
        assert [r.priority for r in ranked] == [Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW]

    def test_confidence_breaks_ties(self):
        ranked = rank([_rec(Priority.HIGH, 0.6, "a"), _rec(Priority.HIGH, 0.9, "b")])
        assert [r.title for r in ranked] == ["b", "a"]

    def test_equal_keys_keep_input_order(self):
        ranked = rank([_rec(Priority.MEDIUM, 0.7, "first"), _rec(Priority.MEDIUM, 0.7, "second")])
        assert [r.title for r in ranked] == ["first", "second"]


class TestHealthPass:
    """One recommendation per triggering condition."""

    def test_healthy_defaults_trigger_nothing(self, synthesizer):
        assert synthesizer.from_assessment(_assess(), FIXED_NOW) == []

    def test_every_trigger(self, synthesizer):
        assessment = _assess(
            metrics=HealthMetricsInput(heart_rate=110, hrv=15),
            sleep=SleepInput(duration_hours=5, deep_minutes=20, rem_minutes=30),
            nutrition=NutritionInput(nutrition_score=40),
        )
        recs = synthesizer.from_assessment(assessment, FIXED_NOW)

        summary = [(r.pillar, r.type, r.priority) for r in recs]
        assert summary == [
            (RecommendationPillar.OVERALL, RecommendationType.HABIT, Priority.HIGH),
            (RecommendationPillar.MIND, RecommendationType.BALANCE, Priority.CRITICAL),
            (RecommendationPillar.BODY, RecommendationType.FOCUS, Priority.CRITICAL),
            (RecommendationPillar.DIET, RecommendationType.OPTIMIZATION, Priority.MEDIUM),
        ]
        assert len({r.id for r in recs}) == 4

    def test_mild_sleep_and_nutrition(self, synthesizer):
        assessment = _assess(
            sleep=SleepInput(duration_hours=6.5, deep_minutes=30),   # 65
            nutrition=NutritionInput(nutrition_score=70),
        )
        recs = synthesizer.from_assessment(assessment, FIXED_NOW)
        assert [(r.category, r.priority) for r in recs] == [
            ("Sleep", Priority.MEDIUM),
            ("Nutrition", Priority.LOW),
        ]

    @pytest.mark.parametrize("heart_rate, expected", [
        (101, Priority.CRITICAL),
        (100, None),
        (95, None),
        (50, None),
        (45, Priority.MEDIUM),
    ])
    def test_heart_rate_band(self, synthesizer, heart_rate, expected):
        recs = synthesizer.from_assessment(_assess(metrics=HealthMetricsInput(heart_rate=heart_rate)), FIXED_NOW)
        heart = [r for r in recs if r.pillar == RecommendationPillar.BODY]
        if expected is None:
            assert heart == []
        else:
            assert [r.priority for r in heart] == [expected]

    def test_stress_plan_uses_interventions(self, synthesizer):
        assessment = _assess(metrics=HealthMetricsInput(hrv=12))
        stress = next(r for r in synthesizer.from_assessment(assessment, FIXED_NOW) if r.pillar == RecommendationPillar.MIND)
        assert stress.action_plan == assessment.stress.interventions


class TestPatternPass:
    """One recommendation per pattern, capped."""

    def test_type_mapping_and_cap(self, synthesizer):
        patterns = [
            _pattern(MOOD_PERFORMANCE, PatternAxis.MOOD, 0.95),
            _pattern(ENERGY_PERFORMANCE, PatternAxis.ENERGY, 0.88),
            _pattern(TEMPORAL_PEAK, PatternAxis.TEMPORAL, 0.85),
            _pattern(PILLAR_STRENGTH, PatternAxis.PERFORMANCE, 0.82, Pillar.BODY),
            _pattern(WEEKLY_PEAK, PatternAxis.TEMPORAL, 0.78),
            _pattern(PILLAR_OPPORTUNITY, PatternAxis.PERFORMANCE, 0.75, Pillar.MIND),
        ]
        recs = synthesizer.from_patterns(patterns, FIXED_NOW)

        assert len(recs) == 5
        assert [r.type for r in recs] == [
            RecommendationType.BALANCE,
            RecommendationType.BALANCE,
            RecommendationType.TIMING,
            RecommendationType.HABIT,
            RecommendationType.TIMING,
        ]
        assert [r.priority for r in recs] == [
            Priority.HIGH, Priority.HIGH, Priority.HIGH, Priority.MEDIUM, Priority.MEDIUM,
        ]
        assert recs[3].pillar == RecommendationPillar.BODY
        assert recs[0].pillar == RecommendationPillar.OVERALL

    def test_opportunity_is_always_high(self, synthesizer):
        recs = synthesizer.from_patterns(
            [_pattern(PILLAR_OPPORTUNITY, PatternAxis.PERFORMANCE, 0.75, Pillar.DIET)], FIXED_NOW,
        )
        assert recs[0].type == RecommendationType.FOCUS
        assert recs[0].priority == Priority.HIGH
        assert recs[0].pillar == RecommendationPillar.DIET

    def test_low_confidence_is_low_priority(self, synthesizer):
        recs = synthesizer.from_patterns([_pattern(WEEKLY_PEAK, PatternAxis.TEMPORAL, 0.6)], FIXED_NOW)
        assert recs[0].priority == Priority.LOW

    def test_confidence_and_plan_come_from_pattern(self, synthesizer):
        pattern = _pattern(TEMPORAL_PEAK, PatternAxis.TEMPORAL, 0.85)
        rec = synthesizer.from_patterns([pattern], FIXED_NOW)[0]
        assert rec.confidence == 0.85
        assert rec.action_plan == pattern.recommendations_text
        assert rec.expected_impact == pattern_impact(0.85)

    def test_impact_is_pure_and_monotonic(self):
        assert pattern_impact(0.5) == 15
        assert pattern_impact(0.6) <= pattern_impact(0.75) <= pattern_impact(0.95)
        assert pattern_impact(0.88) == pattern_impact(0.88)


class TestDefaultPass:
    """Seeded per-pillar defaults."""

    def test_one_per_pillar(self, synthesizer):
        recs = synthesizer.default_pillar_pass(FIXED_NOW)

        assert [r.pillar.value for r in recs] == ["body", "mind", "heart", "spirit", "diet"]
        for rec in recs:
            assert rec.type == RecommendationType.OPTIMIZATION
            assert rec.priority == Priority.HIGH
            assert rec.confidence == 0.85
            assert rec.timeframe == "2-3 weeks"
            assert 10 <= rec.expected_impact < 30
        assert recs[0].category == "Body Enhancement"
        assert recs[0].title == "Enhance BODY Performance"

    def test_same_seed_same_output(self):
        first = RecommendationSynthesizer(rng=random.Random(7)).default_pillar_pass(FIXED_NOW)
        second = RecommendationSynthesizer(rng=random.Random(7)).default_pillar_pass(FIXED_NOW)
        assert first == second

    def test_cap(self, rng):
        recs = RecommendationSynthesizer(rng=rng, max_default_recommendations=3).default_pillar_pass(FIXED_NOW)
        assert len(recs) == 3

    def test_ids_derive_from_pillar_kind_and_time(self, synthesizer):
        recs = synthesizer.default_pillar_pass(FIXED_NOW)
        assert recs[0].id == "body_optimization_1717416000000"
        assert recs[0].id == recommendation_id(RecommendationPillar.BODY, "optimization", FIXED_NOW)


class TestSynthesize:
    """Pattern and health passes combined."""

    def test_combined_and_ranked(self, synthesizer):
        patterns = [_pattern(WEEKLY_PEAK, PatternAxis.TEMPORAL, 0.78)]
        assessment = _assess(metrics=HealthMetricsInput(hrv=12))
        recs = synthesizer.synthesize(patterns, assessment, FIXED_NOW)

        assert recs[0].priority == Priority.CRITICAL
        assert recs[-1].type == RecommendationType.TIMING

    def test_recommendations_are_immutable(self, synthesizer):
        rec = synthesizer.default_pillar_pass(FIXED_NOW)[0]
        with pytest.raises(FrozenInstanceError):
            rec.priority = Priority.LOW
