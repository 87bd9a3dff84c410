"""
Health Metrics Provider boundary.

The engine never talks to a wearable directly. The host application hands it
an object satisfying HealthMetricsProvider; any method may return None when
the device has nothing to report, and the scorer fills neutral defaults.
"""
from typing import Any, Dict, Optional, Protocol, Union

from pydantic import ValidationError as SchemaValidationError

from insight_engine.core.exceptions import ValidationError
from insight_engine.schemas import HealthMetricsInput, HealthSnapshots, NutritionInput, SleepInput


class HealthMetricsProvider(Protocol):
    def get_latest_health_metrics(self) -> Optional[HealthMetricsInput]:
        ...

    def get_sleep_data(self) -> Optional[SleepInput]:
        ...

    def get_nutrition_data(self) -> Optional[NutritionInput]:
        ...


class StaticHealthMetricsProvider:
    """Serves fixed snapshots. Used when no wearable is connected, and in tests."""

    def __init__(
        self,
        metrics: Optional[Union[HealthMetricsInput, Dict[str, Any]]] = None,
        sleep: Optional[Union[SleepInput, Dict[str, Any]]] = None,
        nutrition: Optional[Union[NutritionInput, Dict[str, Any]]] = None,
    ):
        try:
            self.metrics = HealthMetricsInput.model_validate(metrics) if metrics is not None else None
            self.sleep = SleepInput.model_validate(sleep) if sleep is not None else None
            self.nutrition = NutritionInput.model_validate(nutrition) if nutrition is not None else None
        except SchemaValidationError as e:
            raise ValidationError(f"Invalid health snapshot: {e}", field="snapshots") from e

    def get_latest_health_metrics(self) -> Optional[HealthMetricsInput]:
        return self.metrics

    def get_sleep_data(self) -> Optional[SleepInput]:
        return self.sleep

    def get_nutrition_data(self) -> Optional[NutritionInput]:
        return self.nutrition


def collect_snapshots(provider: HealthMetricsProvider) -> HealthSnapshots:
    """Pull all three snapshots from a provider."""
    return HealthSnapshots(
        metrics=provider.get_latest_health_metrics(),
        sleep=provider.get_sleep_data(),
        nutrition=provider.get_nutrition_data(),
    )
