"""Personalization insight engine: behavior patterns, wellness scoring and recommendations."""
from insight_engine.core.exceptions import InsightEngineError, StoreUnavailableError, ValidationError
from insight_engine.services.behavior_ledger import Observation, ObservationContext, Pillar
from insight_engine.services.insight_engine import InsightEngine, InsightReport

__version__ = "1.0.0"

__all__ = [
    "InsightEngine",
    "InsightReport",
    "Observation",
    "ObservationContext",
    "Pillar",
    "InsightEngineError",
    "StoreUnavailableError",
    "ValidationError",
]
