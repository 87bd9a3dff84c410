"""
Insight Engine (facade)

Single entry point the host application talks to. Orchestrates one pass:

    Observation Store → Behavior Ledger → Pattern Detector ─┐
                                                            ├→ Recommendation Synthesizer → caller
    Health snapshots  → Wellness Scorer ────────────────────┘

Every collaborator is injected; nothing here is a module-level singleton.

Each public call performs at most one load-modify-save cycle against the
store. Store failures propagate as StoreUnavailableError, unmodified.
"""

import logging
import random
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from statistics import mean
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as SchemaValidationError

from insight_engine.core.config import settings
from insight_engine.core.exceptions import ValidationError
from insight_engine.core.store import (
    HEALTH_HISTORY_KEY,
    HEALTH_SNAPSHOT_KEY,
    OBSERVATION_HISTORY_KEY,
    InMemoryObservationStore,
    ObservationStore,
)
from insight_engine.schemas import (
    AssessmentRecord,
    HealthHistoryDocument,
    HealthSnapshotDocument,
    HealthSnapshots,
    ObservationSchema,
)
from insight_engine.services.behavior_ledger import BehaviorLedger, Observation
from insight_engine.services.health_metrics_provider import HealthMetricsProvider, collect_snapshots
from insight_engine.services.pattern_detector import (
    Pattern,
    PatternDetector,
    personalized_recommendations,
    predicted_optimal_time,
)
from insight_engine.services.recommendation_synthesizer import (
    Recommendation,
    RecommendationSynthesizer,
    rank,
)
from insight_engine.services.wellness_scorer import (
    HealthAssessment,
    WellnessScore,
    WellnessScorer,
    utc_now,
)

logger = logging.getLogger(__name__)

SnapshotsLike = Union[HealthSnapshots, Mapping[str, Any], None]


@dataclass
class InsightReport:
    patterns: List[Pattern]
    score: WellnessScore
    recommendations: List[Recommendation]
    generated_at: datetime
    observation_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patterns": [p.to_dict() for p in self.patterns],
            "score": self.score.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "generated_at": self.generated_at.isoformat(),
            "observation_count": self.observation_count,
        }


@dataclass
class HealthTrends:
    """Per-assessment and per-day series over a trailing window, oldest first."""
    days: int
    sleep_trend: List[float] = field(default_factory=list)
    stress_trend: List[int] = field(default_factory=list)
    energy_trend: List[float] = field(default_factory=list)   # Daily mean observation energy
    overall_trend: List[int] = field(default_factory=list)


def _coerce_snapshots(snapshots: SnapshotsLike) -> HealthSnapshots:
    if snapshots is None:
        return HealthSnapshots()
    if isinstance(snapshots, HealthSnapshots):
        return snapshots
    try:
        return HealthSnapshots.model_validate(snapshots)
    except SchemaValidationError as e:
        raise ValidationError(f"Invalid health snapshot: {e}", field="snapshots") from e


def _coerce_observation(observation: Union[Observation, Mapping[str, Any]]) -> Observation:
    if isinstance(observation, Observation):
        return observation
    try:
        return Observation.from_schema(ObservationSchema.model_validate(observation))
    except SchemaValidationError as e:
        raise ValidationError(f"Invalid observation: {e}", field="observation") from e


class InsightEngine:
    """
    Personalization insight facade.

    Args:
        store: Observation Store backend (in-memory when omitted)
        ledger: Pre-built ledger; when omitted it is loaded from the store on first use
        detector / scorer / synthesizer: Analysis stages
        health_provider: Source of snapshots for generate_health_assessment()
        clock: Returns the current aware datetime
        rng: Randomness for the default recommendation pass
    """

    def __init__(
        self,
        store: Optional[ObservationStore] = None,
        ledger: Optional[BehaviorLedger] = None,
        detector: Optional[PatternDetector] = None,
        scorer: Optional[WellnessScorer] = None,
        synthesizer: Optional[RecommendationSynthesizer] = None,
        health_provider: Optional[HealthMetricsProvider] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store if store is not None else InMemoryObservationStore()
        self._ledger = ledger
        self.detector = detector or PatternDetector()
        self.scorer = scorer or WellnessScorer()
        self.synthesizer = synthesizer or RecommendationSynthesizer(rng=rng)
        self.health_provider = health_provider
        self.clock = clock or utc_now

    # ------------------------------------------------------------------
    # Ledger lifecycle
    # ------------------------------------------------------------------

    @property
    def ledger(self) -> BehaviorLedger:
        """The observation window, loaded from the store on first access."""
        if self._ledger is None:
            document = self.store.load(OBSERVATION_HISTORY_KEY)
            self._ledger = BehaviorLedger.from_document(document)
            logger.debug(f"Loaded {len(self._ledger)} observations from store")
        return self._ledger

    def _save_ledger(self) -> None:
        self.store.save(OBSERVATION_HISTORY_KEY, self.ledger.to_document())

    def record_observation(self, observation: Union[Observation, Mapping[str, Any]]) -> None:
        """Validate, record and persist one observation. Invalid input leaves the store untouched."""
        observation = _coerce_observation(observation)
        self.ledger.record(observation)
        self._save_ledger()

    def clear_history(self) -> None:
        """Drop every observation, in memory and in the store."""
        self.ledger.clear()
        self._save_ledger()
        logger.info("Observation history cleared")

    def _detect(self) -> Tuple[List[Pattern], int]:
        observations = self.ledger.all()
        if len(observations) < self.detector.min_observations:
            return [], len(observations)
        return self.detector.detect(observations), len(observations)

    # ------------------------------------------------------------------
    # Insight pass
    # ------------------------------------------------------------------

    def generate_insights(self, snapshots: SnapshotsLike = None) -> InsightReport:
        """
        Run detector, scorer and synthesizer in one pass.

        Missing snapshots score against neutral defaults. Too few observations
        means no patterns, not an error.
        """
        now = self.clock()
        health = _coerce_snapshots(snapshots)

        self.ledger.prune()
        patterns, observation_count = self._detect()
        assessment = self.scorer.assess(health, now)
        recommendations = self.synthesizer.synthesize(patterns, assessment, now)

        logger.info(
            f"Insight pass: observations={observation_count}, patterns={len(patterns)}, "
            f"recommendations={len(recommendations)}, score={assessment.overall_score}"
        )

        return InsightReport(
            patterns=patterns,
            score=assessment.score,
            recommendations=recommendations,
            generated_at=now,
            observation_count=observation_count,
        )

    def personalized_recommendations(self, limit: int = 5) -> List[str]:
        patterns, _ = self._detect()
        return personalized_recommendations(patterns, limit=limit)

    def predicted_optimal_time(self) -> Optional[Tuple[int, float]]:
        patterns, _ = self._detect()
        return predicted_optimal_time(patterns)

    def default_recommendations(self) -> List[Recommendation]:
        return self.synthesizer.default_pillar_pass(self.clock())

    # ------------------------------------------------------------------
    # Health pass
    # ------------------------------------------------------------------

    def generate_health_assessment(self, snapshots: SnapshotsLike = None) -> HealthAssessment:
        """
        Assess the supplied snapshots, or the provider's when none are given.

        The latest snapshot is cached in the store and a compact record is
        appended to the assessment history.
        """
        now = self.clock()
        if snapshots is None and self.health_provider is not None:
            health = collect_snapshots(self.health_provider)
        else:
            health = _coerce_snapshots(snapshots)

        assessment = self.scorer.assess(health, now)
        assessment.insights = rank(self.synthesizer.from_assessment(assessment, now))

        self.store.save(
            HEALTH_SNAPSHOT_KEY,
            HealthSnapshotDocument(assessed_at=now, snapshots=health).model_dump(mode="json"),
        )
        self._append_history(assessment)

        logger.info(
            f"Health assessment: score={assessment.overall_score}, "
            f"readiness={assessment.readiness_score}, insights={len(assessment.insights)}"
        )
        return assessment

    def _load_history(self) -> HealthHistoryDocument:
        document = self.store.load(HEALTH_HISTORY_KEY)
        if document is None:
            return HealthHistoryDocument()
        try:
            return HealthHistoryDocument.model_validate(document)
        except SchemaValidationError as e:
            raise ValidationError(f"Stored health history is corrupt: {e}", field="health_history") from e

    def _append_history(self, assessment: HealthAssessment) -> None:
        history = self._load_history()
        history.records.append(AssessmentRecord(
            assessed_at=assessment.assessed_at,
            overall_score=assessment.overall_score,
            readiness_score=assessment.readiness_score,
            sleep_score=assessment.sleep.sleep_score,
            stress_level=assessment.stress.stress_level,
            nutrition_score=assessment.nutrition.nutrition_score,
            biometrics_score=assessment.biometrics.biometrics_score,
        ))
        # Oldest records are dropped first
        history.records = history.records[-settings.HEALTH_HISTORY_LIMIT:]
        self.store.save(HEALTH_HISTORY_KEY, history.model_dump(mode="json"))

    def health_trends(self, days: int = 30) -> HealthTrends:
        """Assessment-history trends plus daily mean energy over the last `days` days."""
        if days < 1:
            raise ValidationError(f"days must be >= 1, got {days}", field="days")

        cutoff = self.clock() - timedelta(days=days)
        records = sorted(
            (r for r in self._load_history().records if r.assessed_at >= cutoff),
            key=lambda r: r.assessed_at,
        )

        energy_by_day: Dict[Any, List[float]] = defaultdict(list)
        for observation in self.ledger.all():
            if observation.timestamp >= cutoff:
                energy_by_day[observation.timestamp.date()].append(observation.energy)

        return HealthTrends(
            days=days,
            sleep_trend=[r.sleep_score for r in records],
            stress_trend=[r.stress_level for r in records],
            energy_trend=[round(mean(energy_by_day[d]), 2) for d in sorted(energy_by_day)],
            overall_trend=[r.overall_score for r in records],
        )
