"""Core domain types and errors."""
from __future__ import annotations

from .errors import (
    ClassificationError,
    ConfigurationError,
    EurowatchError,
    FetchError,
    NoNewSittingError,
    ParseError,
    SchemaValidationError,
    StoreBusyError,
)
from .types import (
    AgendaTopic,
    ClassificationFailure,
    GroupKind,
    MEPRecord,
    MEPTerm,
    ParsedSitting,
    ParsedSpeech,
    Section,
    SittingDocument,
    TopicClassification,
    TopicCount,
    sitting_id_for,
    speech_id_for,
)

__all__ = [
    "AgendaTopic",
    "ClassificationError",
    "ClassificationFailure",
    "ConfigurationError",
    "EurowatchError",
    "FetchError",
    "GroupKind",
    "MEPRecord",
    "MEPTerm",
    "NoNewSittingError",
    "ParseError",
    "ParsedSitting",
    "ParsedSpeech",
    "SchemaValidationError",
    "Section",
    "SittingDocument",
    "StoreBusyError",
    "TopicClassification",
    "TopicCount",
    "sitting_id_for",
    "speech_id_for",
]
