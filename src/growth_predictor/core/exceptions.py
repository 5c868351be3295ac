"""
Custom exception types for Growth Predictor.

Every exception carries a machine-readable code so callers can
handle specific failure modes programmatically.

Malformed telemetry is repaired at the contract boundary and never
raised; these exceptions cover caller mistakes only.
"""


class GrowthPredictorError(Exception):
    """Base exception for all Growth Predictor errors."""

    def __init__(self, message: str, code: str = "GROWTH_PREDICTOR_ERROR"):
        self.code = code
        super().__init__(message)


class DataValidationError(GrowthPredictorError):
    """Raised when a tabular input is missing required columns."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message, code="DATA_VALIDATION_ERROR")


class ConfigurationError(GrowthPredictorError):
    """Raised for unknown objectives, curve modes or pacing policies."""

    def __init__(self, message: str, setting: str = ""):
        self.setting = setting
        super().__init__(message, code="CONFIGURATION_ERROR")


class InvalidStatusTransitionError(GrowthPredictorError):
    """Raised when a recommendation is moved along an illegal lifecycle edge."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        msg = f"Cannot move recommendation from '{current}' to '{requested}'"
        super().__init__(msg, code="INVALID_STATUS_TRANSITION")


class IngestionError(GrowthPredictorError):
    """Raised when an input file cannot be read or parsed."""

    def __init__(self, message: str, source: str = ""):
        self.source = source
        super().__init__(message, code="INGESTION_ERROR")
