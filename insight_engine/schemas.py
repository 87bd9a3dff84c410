from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List, Dict


# ---------------------------------------------------------------------------
# Persisted observation history (store key: observation_history)
# ---------------------------------------------------------------------------

class ObservationContextSchema(BaseModel):
    hour_of_day: int
    day_of_week: int  # 0 = Sunday
    weather: Optional[str] = None
    location: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ObservationSchema(BaseModel):
    """One behavioral sample as written to the store."""
    timestamp: datetime
    pillar: str
    duration: float  # Minutes
    performance: float  # 0-100
    mood: float  # 1-10
    energy: float  # 1-10
    context: ObservationContextSchema

    model_config = ConfigDict(from_attributes=True)


class LedgerDocument(BaseModel):
    """The full observation window, oldest first."""
    version: int = 1
    retention_days: int = 90
    observations: List[ObservationSchema] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Health snapshot inputs (from the Health Metrics Provider or the caller)
# ---------------------------------------------------------------------------

class HealthMetricsInput(BaseModel):
    """Latest wearable metrics. Every field is optional; the scorer fills gaps."""
    heart_rate: Optional[float] = None
    resting_heart_rate: Optional[float] = None
    hrv: Optional[float] = None  # Heart Rate Variability (ms)
    steps: Optional[int] = None
    active_minutes: Optional[float] = None
    calories: Optional[float] = None
    sleep_hours: Optional[float] = None
    systolic: Optional[float] = None
    diastolic: Optional[float] = None
    blood_oxygen: Optional[float] = None  # SpO2 %
    body_temperature: Optional[float] = None  # Fahrenheit
    respiratory_rate: Optional[float] = None

    model_config = ConfigDict(extra="ignore")


class SleepInput(BaseModel):
    """Last night's sleep. Stage values are minutes."""
    duration_hours: Optional[float] = None
    quality: Optional[float] = None
    deep_minutes: Optional[float] = None
    light_minutes: Optional[float] = None
    rem_minutes: Optional[float] = None
    awake_minutes: Optional[float] = None
    bedtime: Optional[datetime] = None
    wake_time: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class NutritionInput(BaseModel):
    protein_g: Optional[float] = None
    carbs_g: Optional[float] = None
    fats_g: Optional[float] = None
    micronutrients: Dict[str, float] = Field(default_factory=dict)
    hydration_liters: Optional[float] = None
    nutrition_score: Optional[float] = None

    model_config = ConfigDict(extra="ignore")


class HealthSnapshots(BaseModel):
    """Everything the Wellness Scorer consumes for one assessment."""
    metrics: Optional[HealthMetricsInput] = None
    sleep: Optional[SleepInput] = None
    nutrition: Optional[NutritionInput] = None


# ---------------------------------------------------------------------------
# Persisted health state (store keys: health_snapshot_latest, health_history)
# ---------------------------------------------------------------------------

class HealthSnapshotDocument(BaseModel):
    assessed_at: datetime
    snapshots: HealthSnapshots


class AssessmentRecord(BaseModel):
    """Compact per-assessment summary used for trends."""
    assessed_at: datetime
    overall_score: int
    readiness_score: float
    sleep_score: float
    stress_level: int
    nutrition_score: float
    biometrics_score: float


class HealthHistoryDocument(BaseModel):
    version: int = 1
    records: List[AssessmentRecord] = Field(default_factory=list)
