"""Topic classification onto the controlled vocabulary."""
from __future__ import annotations

from .gemini import ClassificationReport, GeminiTopicClassifier, TopicState
from .rate_limit import MinuteRateLimiter
from .vocabulary import (
    CONTROLLED_VOCABULARY,
    SYSTEM_PROMPT,
    build_system_prompt,
    build_user_message,
    canonical_label,
    extract_json_object,
)

__all__ = [
    "CONTROLLED_VOCABULARY",
    "ClassificationReport",
    "GeminiTopicClassifier",
    "MinuteRateLimiter",
    "SYSTEM_PROMPT",
    "TopicState",
    "build_system_prompt",
    "build_user_message",
    "canonical_label",
    "extract_json_object",
]
