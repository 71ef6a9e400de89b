"""Client side of the external churn / next-purchase prediction service."""

from .client import (
    PredictionClient,
    PredictionRejectedError,
    PredictionRequest,
    PredictionResult,
    PredictionServiceError,
    PredictionServiceUnavailable,
    PredictionTransportError,
)

__all__ = [
    "PredictionClient",
    "PredictionRejectedError",
    "PredictionRequest",
    "PredictionResult",
    "PredictionServiceError",
    "PredictionServiceUnavailable",
    "PredictionTransportError",
]
