class SignaturesQueueError(Exception):
    """Base exception for signatures_queue errors."""


class QueueError(SignaturesQueueError):
    """Any failure raised by a queue backend."""


class DbWriteError(SignaturesQueueError):
    """Any failure while persisting a record."""


class RecordValidationError(SignaturesQueueError):
    """Queue payload does not match a known record shape."""


class ConfigError(SignaturesQueueError, ValueError):
    """Invalid configuration value."""
