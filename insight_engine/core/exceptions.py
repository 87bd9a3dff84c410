"""
Custom exception classes and error handling.

Provides a consistent error structure across the engine: every error carries a
human-readable detail and a machine-readable error code the host application
can branch on.
"""
from typing import Optional


class InsightEngineError(Exception):
    """Base engine exception with consistent structure."""

    def __init__(self, detail: str, error_code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.error_code = error_code or "INSIGHT_ENGINE_ERROR"


class ValidationError(InsightEngineError):
    """Input rejected: out-of-range observation, malformed snapshot or corrupt ledger."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(detail=detail, error_code=error_code)
        self.field = field


class StoreUnavailableError(InsightEngineError):
    """The Observation Store backend could not be reached."""

    def __init__(self, detail: str, backend: Optional[str] = None):
        super().__init__(detail=detail, error_code="STORE_UNAVAILABLE")
        self.backend = backend
