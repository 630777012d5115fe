"""Alert & Monitoring Engine.

Evaluates patient clinical data against rule thresholds, deduplicates the
resulting alerts, resolves their recipients and manages their lifecycle.
"""

from .engine import AlertEngine
from .errors import (
    AlertEngineError,
    ConflictError,
    DataIntegrityError,
    NotFoundError,
    TransientProviderError,
    ValidationError,
)

__all__ = [
    "AlertEngine",
    "AlertEngineError",
    "ConflictError",
    "DataIntegrityError",
    "NotFoundError",
    "TransientProviderError",
    "ValidationError",
]
