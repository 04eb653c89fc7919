"""Custom exception hierarchy for the accuracy engine."""


class AccuracyEngineError(Exception):
    """Base exception for all accuracy engine errors."""


class InvalidQuery(AccuracyEngineError):
    """Query is empty or malformed; rejected before any scoring."""


class InvalidFeedback(AccuracyEngineError):
    """Feedback event failed validation."""


class InvalidConfig(AccuracyEngineError, ValueError):
    """Weights or thresholds are out of range."""


class UpstreamUnavailable(AccuracyEngineError):
    """Chunk store, config store, feedback sink or log unreachable."""


class ConfigConflict(AccuracyEngineError):
    """Optimistic promotion failed: the expected ACTIVE version moved."""


class InvalidTransition(AccuracyEngineError):
    """Requested status change is not allowed by the config state machine."""


class ConfigNotFound(AccuracyEngineError):
    """No config record exists for the requested version."""


class RequestTimeout(AccuracyEngineError):
    """Per-request deadline elapsed on the production path."""


class ConfigurationError(AccuracyEngineError):
    """Error in system configuration."""
