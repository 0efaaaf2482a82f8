"""Exception hierarchy shared by the pipeline components."""
from __future__ import annotations


class EurowatchError(RuntimeError):
    """Base class for all errors raised by the pipeline."""


class ConfigurationError(EurowatchError):
    """Raised when required configuration (e.g. the API key) is missing."""


class NoNewSittingError(EurowatchError):
    """Raised when discovery did not find a sitting that still needs ingesting."""


class FetchError(EurowatchError):
    """Raised when a sitting document cannot be downloaded."""


class ParseError(EurowatchError):
    """Raised when a sitting document is structurally unrecognisable."""


class ClassificationError(EurowatchError):
    """Raised when a single topic could not be classified."""

    def __init__(self, topic: str, message: str) -> None:
        super().__init__(message)
        self.topic = topic


class SchemaValidationError(ClassificationError):
    """Raised when the model output violates the controlled vocabulary or schema."""


class StoreBusyError(EurowatchError):
    """Raised when the database writer could not be acquired after all retries."""


__all__ = [
    "ClassificationError",
    "ConfigurationError",
    "EurowatchError",
    "FetchError",
    "NoNewSittingError",
    "ParseError",
    "SchemaValidationError",
    "StoreBusyError",
]
