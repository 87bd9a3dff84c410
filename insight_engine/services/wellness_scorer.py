"""
Wellness Scorer

Composite 0-100 wellness score from four independently supplied snapshots.

Architecture:
    HealthMetricsInput / SleepInput / NutritionInput   (provider or caller)
             ↓
    analyze_* → BiometricSnapshot, SleepAnalysis, StressMetrics, NutritionInsights
             ↓
    Overall = weighted sub-score aggregation

Weights:
    - Sleep score (0.30)
    - Stress, inverted: 100 - stress_level × 10, floored at 0 (0.25)
    - Nutrition score, supplied directly (0.25)
    - Biometrics: 100 minus penalties for heart rate, blood pressure, SpO2 (0.20)

The scorer never fails on partial input. Any missing field is replaced by a
neutral default (a healthy resting adult, an ordinary night's sleep) so an
assessment with no wearable connected still produces a score instead of an
error. Range checks on the inputs are the caller's job.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from insight_engine.schemas import HealthMetricsInput, HealthSnapshots, NutritionInput, SleepInput

logger = logging.getLogger(__name__)


@dataclass
class BiometricSnapshot:
    heart_rate: float
    systolic: float
    diastolic: float
    blood_oxygen: float        # SpO2 %
    body_temperature: float    # Fahrenheit
    respiratory_rate: float
    timestamp: datetime
    biometrics_score: float    # 0-100


@dataclass
class SleepStages:
    """Minutes spent in each stage."""
    deep: float
    light: float
    rem: float
    awake: float


@dataclass
class SleepAnalysis:
    duration_hours: float
    quality: float
    stages: SleepStages
    bedtime: Optional[datetime]
    wake_time: Optional[datetime]
    sleep_score: float         # 0-100
    recommendations: List[str] = field(default_factory=list)

    @property
    def deep_pct(self) -> float:
        return _stage_pct(self.stages.deep, self.duration_hours)

    @property
    def rem_pct(self) -> float:
        return _stage_pct(self.stages.rem, self.duration_hours)


@dataclass
class StressMetrics:
    hrv: float
    stress_level: int          # 1-10
    cortisol: float            # Estimated, µg/dL
    recovery_time: float       # Hours
    stress_factors: List[str] = field(default_factory=list)
    interventions: List[str] = field(default_factory=list)


@dataclass
class NutritionInsights:
    macros: Dict[str, Optional[float]]
    micronutrients: Dict[str, float]
    hydration: Optional[float]  # Litres
    nutrition_score: float      # 0-100
    deficiencies: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class WellnessScore:
    """Breakdown of each sub-score's contribution to the overall score."""
    overall: int               # 0-100 composite
    sleep_score: float
    stress_score: float        # Inverted stress level
    nutrition_score: float
    biometrics_score: float
    weights_used: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "sleep_score": self.sleep_score,
            "stress_score": self.stress_score,
            "nutrition_score": self.nutrition_score,
            "biometrics_score": self.biometrics_score,
            "weights_used": dict(self.weights_used),
        }


@dataclass
class HealthAssessment:
    """One full assessment. `insights` is filled by the Recommendation Synthesizer."""
    overall_score: int
    readiness_score: float
    score: WellnessScore
    biometrics: BiometricSnapshot
    sleep: SleepAnalysis
    stress: StressMetrics
    nutrition: NutritionInsights
    assessed_at: datetime
    insights: List[Any] = field(default_factory=list)


WELLNESS_WEIGHTS = {
    "sleep": 0.30,
    "stress": 0.25,
    "nutrition": 0.25,
    "biometrics": 0.20,
}

# Neutral defaults for missing fields
DEFAULT_HEART_RATE = 72.0
DEFAULT_SYSTOLIC = 120.0
DEFAULT_DIASTOLIC = 80.0
DEFAULT_BLOOD_OXYGEN = 98.0
DEFAULT_BODY_TEMPERATURE = 98.6
DEFAULT_RESPIRATORY_RATE = 16.0
DEFAULT_HRV = 30.0
DEFAULT_NUTRITION_SCORE = 80.0
DEFAULT_SLEEP = SleepInput(
    duration_hours=7.5,
    deep_minutes=72.0,
    light_minutes=288.0,
    rem_minutes=78.0,
    awake_minutes=12.0,
)

# Share of a night estimated per stage when the wearable only reports duration
ESTIMATED_STAGE_SHARE = {"deep": 0.15, "light": 0.55, "rem": 0.25, "awake": 0.05}

# Biometric bands and penalties
HEART_RATE_RANGE = (50.0, 85.0)
HEART_RATE_PENALTY = 20.0
SYSTOLIC_LIMIT = 140.0
SYSTOLIC_PENALTY = 30.0
BLOOD_OXYGEN_FLOOR = 95.0
BLOOD_OXYGEN_PENALTY = 25.0

# Reference daily intake; below this a reported micronutrient is flagged
MICRONUTRIENT_REFERENCE = {
    "Vitamin D": (600.0, "Vitamin D (optimize sun exposure or supplementation)"),
    "Vitamin B12": (2.4, "B-vitamins (focus on whole grains and leafy greens)"),
    "Iron": (18.0, "Iron (add legumes, leafy greens or lean red meat)"),
    "Magnesium": (400.0, "Magnesium (consider supplementation for better sleep)"),
    "Omega-3": (1.6, "Omega-3 fatty acids (increase fish or supplement intake)"),
}

NUTRITION_RECOMMENDATIONS = [
    "Increase protein intake to 1.6g per kg body weight for optimal recovery",
    "Time carbohydrate intake around workouts for better performance",
    "Include anti-inflammatory foods: berries, leafy greens, fatty fish",
    "Maintain hydration at 35ml per kg body weight daily",
    "Consider intermittent fasting aligned with circadian rhythms",
]


def _stage_pct(stage_minutes: float, duration_hours: float) -> float:
    # Rounded so estimated stages land exactly on their band edges
    return round(stage_minutes / max(duration_hours * 60.0, 1.0) * 100.0, 6)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Nearest integer, .5 rounds up (round() would round to even)."""
    return int(math.floor(value + 0.5))


class WellnessScorer:
    """
    Compute a wellness assessment from health snapshots.

    Pure: the only time-dependent input is `now`, which the caller passes in.
    """

    def __init__(self, weights: Optional[Dict[str, float]] = None):
        self.weights = weights or WELLNESS_WEIGHTS.copy()

    def assess(self, snapshots: Optional[HealthSnapshots], now: datetime) -> HealthAssessment:
        """
        Run all four analyses and the composite score.

        Args:
            snapshots: Provider/caller inputs; None or partial is fine
            now: Assessment time (drives the circadian cortisol estimate)

        Returns:
            HealthAssessment without insights
        """
        snapshots = snapshots or HealthSnapshots()

        biometrics = self.analyze_biometrics(snapshots.metrics, now)
        sleep = self.analyze_sleep(snapshots.sleep)
        stress = self.analyze_stress(snapshots.metrics, now.hour)
        nutrition = self.analyze_nutrition(snapshots.nutrition)

        score = self.score(biometrics, sleep, stress, nutrition)
        readiness = self.calculate_readiness(snapshots.metrics)

        logger.debug(
            f"Wellness assessment: overall={score.overall}, sleep={sleep.sleep_score}, "
            f"stress_level={stress.stress_level}, nutrition={nutrition.nutrition_score}, "
            f"biometrics={biometrics.biometrics_score}, readiness={readiness}"
        )

        return HealthAssessment(
            overall_score=score.overall,
            readiness_score=readiness,
            score=score,
            biometrics=biometrics,
            sleep=sleep,
            stress=stress,
            nutrition=nutrition,
            assessed_at=now,
        )

    # ------------------------------------------------------------------
    # Composite
    # ------------------------------------------------------------------

    def score(
        self,
        biometrics: BiometricSnapshot,
        sleep: SleepAnalysis,
        stress: StressMetrics,
        nutrition: NutritionInsights,
    ) -> WellnessScore:
        """Weighted sum of the four sub-scores, clamped and rounded half-up."""
        stress_score = max(0.0, 100.0 - stress.stress_level * 10.0)

        overall = (
            sleep.sleep_score * self.weights["sleep"]
            + stress_score * self.weights["stress"]
            + nutrition.nutrition_score * self.weights["nutrition"]
            + biometrics.biometrics_score * self.weights["biometrics"]
        )

        return WellnessScore(
            overall=round_half_up(_clamp(overall)),
            sleep_score=sleep.sleep_score,
            stress_score=stress_score,
            nutrition_score=nutrition.nutrition_score,
            biometrics_score=biometrics.biometrics_score,
            weights_used=dict(self.weights),
        )

    # ------------------------------------------------------------------
    # Biometrics
    # ------------------------------------------------------------------

    def analyze_biometrics(self, metrics: Optional[HealthMetricsInput], now: datetime) -> BiometricSnapshot:
        metrics = metrics or HealthMetricsInput()

        snapshot = BiometricSnapshot(
            heart_rate=metrics.heart_rate if metrics.heart_rate is not None else DEFAULT_HEART_RATE,
            systolic=metrics.systolic if metrics.systolic is not None else DEFAULT_SYSTOLIC,
            diastolic=metrics.diastolic if metrics.diastolic is not None else DEFAULT_DIASTOLIC,
            blood_oxygen=metrics.blood_oxygen if metrics.blood_oxygen is not None else DEFAULT_BLOOD_OXYGEN,
            body_temperature=(
                metrics.body_temperature if metrics.body_temperature is not None else DEFAULT_BODY_TEMPERATURE
            ),
            respiratory_rate=(
                metrics.respiratory_rate if metrics.respiratory_rate is not None else DEFAULT_RESPIRATORY_RATE
            ),
            timestamp=now,
            biometrics_score=0.0,
        )
        snapshot.biometrics_score = self.calculate_biometrics_score(snapshot)
        return snapshot

    @staticmethod
    def calculate_biometrics_score(snapshot: BiometricSnapshot) -> float:
        score = 100.0
        low, high = HEART_RATE_RANGE
        if snapshot.heart_rate < low or snapshot.heart_rate > high:
            score -= HEART_RATE_PENALTY
        if snapshot.systolic > SYSTOLIC_LIMIT:
            score -= SYSTOLIC_PENALTY
        if snapshot.blood_oxygen < BLOOD_OXYGEN_FLOOR:
            score -= BLOOD_OXYGEN_PENALTY
        return _clamp(score)

    # ------------------------------------------------------------------
    # Sleep
    # ------------------------------------------------------------------

    def analyze_sleep(self, sleep: Optional[SleepInput]) -> SleepAnalysis:
        sleep = sleep or DEFAULT_SLEEP

        duration = sleep.duration_hours if sleep.duration_hours is not None else DEFAULT_SLEEP.duration_hours
        duration = max(0.0, duration)
        duration_minutes = duration * 60.0

        def stage(value: Optional[float], name: str) -> float:
            if value is not None:
                return max(0.0, value)
            return duration_minutes * ESTIMATED_STAGE_SHARE[name]

        stages = SleepStages(
            deep=stage(sleep.deep_minutes, "deep"),
            light=stage(sleep.light_minutes, "light"),
            rem=stage(sleep.rem_minutes, "rem"),
            awake=stage(sleep.awake_minutes, "awake"),
        )
        quality = sleep.quality if sleep.quality is not None else self.estimate_sleep_quality(duration)

        return SleepAnalysis(
            duration_hours=duration,
            quality=quality,
            stages=stages,
            bedtime=sleep.bedtime,
            wake_time=sleep.wake_time,
            sleep_score=self.calculate_sleep_score(duration, stages),
            recommendations=self.sleep_recommendations(duration, stages, sleep.bedtime),
        )

    @staticmethod
    def calculate_sleep_score(duration_hours: float, stages: SleepStages) -> float:
        """
        Sleep score 0-100.

        Duration: < 6h → -30, 6-7h → -15, > 9h → -10 (7h and 9h are not penalized).
        Deep sleep: < 15% → -20, > 25% → +10.
        REM sleep: < 20% → -15, > 30% → +5.
        """
        score = 100.0

        if duration_hours < 6:
            score -= 30
        elif duration_hours < 7:
            score -= 15
        elif duration_hours > 9:
            score -= 10

        deep_pct = _stage_pct(stages.deep, duration_hours)
        if deep_pct < 15:
            score -= 20
        elif deep_pct > 25:
            score += 10

        rem_pct = _stage_pct(stages.rem, duration_hours)
        if rem_pct < 20:
            score -= 15
        elif rem_pct > 30:
            score += 5

        return _clamp(score)

    @staticmethod
    def estimate_sleep_quality(duration_hours: float, interruptions: int = 1) -> float:
        """Quality estimate when the wearable reports none: duration and interruptions only."""
        quality = 100.0
        if duration_hours < 6:
            quality -= (6 - duration_hours) * 10
        elif duration_hours > 9:
            quality -= (duration_hours - 9) * 5
        quality -= max(0, (interruptions - 1) * 5)
        return _clamp(quality)

    @staticmethod
    def sleep_recommendations(
        duration_hours: float, stages: SleepStages, bedtime: Optional[datetime]
    ) -> List[str]:
        recommendations = []

        if duration_hours < 7:
            recommendations.append("Aim for 7-9 hours of sleep for optimal recovery")

        if _stage_pct(stages.deep, duration_hours) < 15:
            recommendations.append("Improve deep sleep with cool room temperature (65-68°F)")
            recommendations.append("Avoid screens 2 hours before bed for better deep sleep")

        if _stage_pct(stages.rem, duration_hours) < 20:
            recommendations.append("REM sleep enhancement: maintain consistent sleep schedule")
            recommendations.append("Consider magnesium supplementation for REM optimization")

        if bedtime is not None and (bedtime.hour >= 23 or bedtime.hour < 4):
            recommendations.append("Earlier bedtime (before 11 PM) aligns with circadian rhythms")

        return recommendations

    # ------------------------------------------------------------------
    # Stress
    # ------------------------------------------------------------------

    def analyze_stress(self, metrics: Optional[HealthMetricsInput], hour: int) -> StressMetrics:
        hrv = metrics.hrv if metrics is not None and metrics.hrv is not None else DEFAULT_HRV
        stress_level = self.stress_level_from_hrv(hrv)

        return StressMetrics(
            hrv=hrv,
            stress_level=stress_level,
            cortisol=self.estimate_cortisol(stress_level, hour),
            recovery_time=self.calculate_recovery_time(stress_level, hrv),
            stress_factors=self.identify_stress_factors(stress_level),
            interventions=self.recommend_stress_interventions(stress_level),
        )

    @staticmethod
    def stress_level_from_hrv(hrv: float) -> int:
        """HRV > 40 → 2, > 25 → 4, < 20 → 8, otherwise moderate 5."""
        if hrv > 40:
            return 2
        if hrv > 25:
            return 4
        if hrv < 20:
            return 8
        return 5

    @staticmethod
    def estimate_cortisol(stress_level: int, hour: int) -> float:
        # Cortisol peaks in the morning and bottoms out at night
        level = 15.0
        if 6 <= hour <= 9:
            level *= 1.5
        elif hour >= 22 or hour <= 2:
            level *= 0.3

        level *= 1 + (stress_level - 5) * 0.2
        return round(_clamp(level, 5.0, 30.0), 2)

    @staticmethod
    def calculate_recovery_time(stress_level: int, hrv: float) -> float:
        hrv_adjustment = -2 if hrv > 30 else 4 if hrv < 20 else 0
        return float(_clamp(stress_level * 2 + hrv_adjustment, 2, 24))

    @staticmethod
    def identify_stress_factors(stress_level: int) -> List[str]:
        if stress_level >= 7:
            return [
                "High physiological stress detected",
                "Potential sleep debt accumulation",
                "Autonomic nervous system imbalance",
            ]
        if stress_level >= 5:
            return [
                "Moderate stress response active",
                "Possible lifestyle or environmental stressors",
            ]
        return []

    @staticmethod
    def recommend_stress_interventions(stress_level: int) -> List[str]:
        if stress_level >= 7:
            return [
                "Immediate: 4-7-8 breathing technique (3 cycles)",
                "Short-term: 20-minute meditation or yoga session",
                "Long-term: Consider stress management counseling",
            ]
        if stress_level >= 5:
            return [
                "Practice mindfulness for 10 minutes",
                "Take a 15-minute nature walk",
                "Engage in preferred relaxation activity",
            ]
        return [
            "Maintain current stress management practices",
            "Continue regular exercise routine",
        ]

    # ------------------------------------------------------------------
    # Nutrition
    # ------------------------------------------------------------------

    def analyze_nutrition(self, nutrition: Optional[NutritionInput]) -> NutritionInsights:
        nutrition = nutrition or NutritionInput()

        supplied = nutrition.nutrition_score
        nutrition_score = _clamp(supplied) if supplied is not None else DEFAULT_NUTRITION_SCORE

        return NutritionInsights(
            macros={
                "protein": nutrition.protein_g,
                "carbs": nutrition.carbs_g,
                "fats": nutrition.fats_g,
            },
            micronutrients=dict(nutrition.micronutrients),
            hydration=nutrition.hydration_liters,
            nutrition_score=nutrition_score,
            deficiencies=self.identify_deficiencies(nutrition.micronutrients),
            recommendations=list(NUTRITION_RECOMMENDATIONS),
        )

    @staticmethod
    def identify_deficiencies(micronutrients: Dict[str, float]) -> List[str]:
        """Reported micronutrients below the reference intake. Unreported ones are unknown, not deficient."""
        deficiencies = []
        for nutrient, (reference, message) in MICRONUTRIENT_REFERENCE.items():
            amount = micronutrients.get(nutrient)
            if amount is not None and amount < reference:
                deficiencies.append(message)
        return deficiencies

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_readiness(metrics: Optional[HealthMetricsInput]) -> float:
        """
        Readiness 0-100 from whatever wearable signals are present.

        HRV < 20 → -15, > 40 → +5. Resting HR > 80 → -10, < 60 → +5.
        Sleep < 6h → -20, < 7h → -10, > 9h → -5.
        Active minutes < 20 → -10, > 60 → +5.
        Missing signals contribute nothing.
        """
        score = 100.0
        if metrics is None:
            return score

        if metrics.hrv is not None:
            if metrics.hrv < 20:
                score -= 15
            elif metrics.hrv > 40:
                score += 5

        if metrics.resting_heart_rate is not None:
            if metrics.resting_heart_rate > 80:
                score -= 10
            elif metrics.resting_heart_rate < 60:
                score += 5

        if metrics.sleep_hours is not None:
            if metrics.sleep_hours < 6:
                score -= 20
            elif metrics.sleep_hours < 7:
                score -= 10
            elif metrics.sleep_hours > 9:
                score -= 5

        if metrics.active_minutes is not None:
            if metrics.active_minutes < 20:
                score -= 10
            elif metrics.active_minutes > 60:
                score += 5

        return _clamp(score)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
