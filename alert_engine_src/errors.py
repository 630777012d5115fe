"""Error taxonomy for the alert engine."""


class AlertEngineError(Exception):
    """Base class for all alert engine errors."""


class ValidationError(AlertEngineError):
    """Malformed input to a caller-facing operation (e.g. unknown alert type)."""


class NotFoundError(AlertEngineError):
    """Unknown alert, recipient or patient."""


class ConflictError(AlertEngineError):
    """Duplicate open alert, or resolution of an already-resolved alert."""

    def __init__(self, message: str, alert_id: str | None = None):
        super().__init__(message)
        self.alert_id = alert_id


class TransientProviderError(AlertEngineError):
    """Clinical data fetch timed out or the provider was unavailable."""


class DataIntegrityError(AlertEngineError):
    """Malformed rule definition or a rule referencing an unknown alert type."""
