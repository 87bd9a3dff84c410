"""
Behavior Ledger

Rolling window of behavioral observations, bounded by age.

Every recorded session (pillar, duration, performance, mood, energy and the
timing context it happened in) lands here. The window is anchored on the
NEWEST observation seen, not on the wall clock: after any insert, nothing older
than RETENTION_DAYS before the newest timestamp is kept. That keeps the ledger
deterministic for a given sequence of inserts.

Observations are validated on the way in. Out-of-range values are rejected,
never clamped: a performance of 140 is a bug upstream, not a great session.
"""

import bisect
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as SchemaValidationError

from insight_engine.core.config import settings
from insight_engine.core.exceptions import ValidationError
from insight_engine.schemas import LedgerDocument, ObservationContextSchema, ObservationSchema

logger = logging.getLogger(__name__)


class Pillar(str, Enum):
    """The five wellness categories every session is tagged with."""
    BODY = "body"
    MIND = "mind"
    HEART = "heart"
    SPIRIT = "spirit"
    DIET = "diet"

    @classmethod
    def parse(cls, value: Union[str, "Pillar"]) -> "Pillar":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown pillar: {value!r}", field="pillar")


# Declared ranges (inclusive)
PERFORMANCE_RANGE = (0.0, 100.0)
MOOD_RANGE = (1.0, 10.0)
ENERGY_RANGE = (1.0, 10.0)
HOUR_RANGE = (0, 23)
DAY_RANGE = (0, 6)


@dataclass(frozen=True)
class ObservationContext:
    """When (and optionally where) a session happened."""
    hour_of_day: int          # 0-23
    day_of_week: int          # 0-6, 0 = Sunday
    weather: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class Observation:
    """One behavioral sample. Immutable once created."""
    timestamp: datetime
    pillar: Pillar
    duration: float           # minutes
    performance: float        # 0-100
    mood: float               # 1-10
    energy: float             # 1-10
    context: ObservationContext

    def __post_init__(self):
        object.__setattr__(self, "pillar", Pillar.parse(self.pillar))
        if not isinstance(self.timestamp, datetime):
            raise ValidationError(f"timestamp must be a datetime, got {self.timestamp!r}", field="timestamp")
        # Naive timestamps are taken as UTC so ordering never mixes kinds
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))

    def to_schema(self) -> ObservationSchema:
        return ObservationSchema(
            timestamp=self.timestamp,
            pillar=self.pillar.value,
            duration=self.duration,
            performance=self.performance,
            mood=self.mood,
            energy=self.energy,
            context=ObservationContextSchema.model_validate(self.context),
        )

    @classmethod
    def from_schema(cls, schema: ObservationSchema) -> "Observation":
        return cls(
            timestamp=schema.timestamp,
            pillar=schema.pillar,
            duration=schema.duration,
            performance=schema.performance,
            mood=schema.mood,
            energy=schema.energy,
            context=ObservationContext(
                hour_of_day=schema.context.hour_of_day,
                day_of_week=schema.context.day_of_week,
                weather=schema.context.weather,
                location=schema.context.location,
            ),
        )


def _check_range(value: Any, bounds: Tuple[float, float], field: str) -> None:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    if value != value or not (low <= value <= high):  # NaN fails the first test
        raise ValidationError(f"{field} must be between {low:g} and {high:g}, got {value!r}", field=field)


def validate_observation(observation: Observation) -> None:
    """Raise ValidationError if any field is outside its declared range."""
    _check_range(observation.performance, PERFORMANCE_RANGE, "performance")
    _check_range(observation.mood, MOOD_RANGE, "mood")
    _check_range(observation.energy, ENERGY_RANGE, "energy")

    if isinstance(observation.duration, bool) or not isinstance(observation.duration, (int, float)) \
            or observation.duration != observation.duration or observation.duration < 0:
        raise ValidationError(f"duration must be >= 0 minutes, got {observation.duration!r}", field="duration")

    # Context indexes straight into hour/day groupings and day names
    _check_range(observation.context.hour_of_day, HOUR_RANGE, "hour_of_day")
    _check_range(observation.context.day_of_week, DAY_RANGE, "day_of_week")
    if int(observation.context.hour_of_day) != observation.context.hour_of_day:
        raise ValidationError("hour_of_day must be a whole hour", field="hour_of_day")
    if int(observation.context.day_of_week) != observation.context.day_of_week:
        raise ValidationError("day_of_week must be a whole day index", field="day_of_week")


class BehaviorLedger:
    """
    Chronologically ordered observation window.

    record() validates, inserts in timestamp order and prunes. all() returns an
    immutable snapshot, so detection passes never see a window mutate under them.
    """

    def __init__(self, retention_days: Optional[int] = None):
        self.retention_days = retention_days or settings.LEDGER_RETENTION_DAYS
        self._observations: List[Observation] = []
        self._newest: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Core contract
    # ------------------------------------------------------------------

    def record(self, observation: Observation) -> None:
        """Append an observation, then drop anything older than the window."""
        validate_observation(observation)

        bisect.insort_right(self._observations, observation, key=lambda o: o.timestamp)
        if self._newest is None or observation.timestamp > self._newest:
            self._newest = observation.timestamp

        self.prune()

    def all(self) -> Tuple[Observation, ...]:
        return tuple(self._observations)

    def size(self) -> int:
        return len(self._observations)

    def __len__(self) -> int:
        return len(self._observations)

    def clear(self) -> None:
        self._observations = []
        self._newest = None

    @property
    def newest_timestamp(self) -> Optional[datetime]:
        return self._newest

    @property
    def cutoff(self) -> Optional[datetime]:
        """Oldest timestamp still inside the window."""
        if self._newest is None:
            return None
        return self._newest - timedelta(days=self.retention_days)

    def prune(self) -> int:
        """Drop observations older than the cutoff. Returns how many were dropped."""
        cutoff = self.cutoff
        if cutoff is None:
            return 0

        # Sorted by timestamp, so the expired entries are a prefix
        keep_from = bisect.bisect_left(self._observations, cutoff, key=lambda o: o.timestamp)
        if keep_from:
            del self._observations[:keep_from]
            logger.debug(f"Ledger pruned {keep_from} observations older than {cutoff.isoformat()}")
        return keep_from

    # ------------------------------------------------------------------
    # Persistence shape
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        document = LedgerDocument(
            retention_days=self.retention_days,
            observations=[o.to_schema() for o in self._observations],
        )
        return document.model_dump(mode="json")

    @classmethod
    def from_document(
        cls,
        document: Optional[Union[Dict[str, Any], LedgerDocument]],
        retention_days: Optional[int] = None,
    ) -> "BehaviorLedger":
        """
        Rebuild a ledger from its stored document.

        A missing document is an empty ledger. A malformed one (wrong shapes,
        out-of-range values) is ledger corruption and raises ValidationError.
        """
        ledger = cls(retention_days=retention_days)
        if document is None:
            return ledger

        try:
            parsed = (
                document if isinstance(document, LedgerDocument)
                else LedgerDocument.model_validate(document)
            )
        except SchemaValidationError as e:
            raise ValidationError(f"Stored observation history is corrupt: {e}", field="ledger") from e

        for schema in parsed.observations:
            ledger.record(Observation.from_schema(schema))

        return ledger
