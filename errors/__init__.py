"""Custom exception hierarchy for the article evaluator."""

from errors.exceptions import (
    ConfigurationError,
    EmptyResponseError,
    EvaluationError,
    MalformedResultError,
    NetworkError,
    QueueStateError,
    ScoringError,
)

__all__ = [
    "ConfigurationError",
    "EmptyResponseError",
    "EvaluationError",
    "MalformedResultError",
    "NetworkError",
    "QueueStateError",
    "ScoringError",
]
