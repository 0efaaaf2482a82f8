"""Ingestion pipeline for European Parliament plenary sittings."""
from __future__ import annotations

from .classification import CONTROLLED_VOCABULARY, ClassificationReport, GeminiTopicClassifier, MinuteRateLimiter
from .clients import EuroparlClient, MEPDirectoryClient
from .config import AppConfig, EuroparlConfig, GeminiConfig, LinkerConfig, StorageConfig, load_config
from .core import ParsedSitting, ParsedSpeech, TopicClassification
from .database import Storage, StorageTransaction, create_storage
from .linking import MEPLinker, normalize_person_name
from .normalization import GroupNormalization, normalize
from .parsing import parse_sitting
from .pipeline import IngestPipeline, MEPSync, PipelineEvent, PipelineSummary, TopicReclassifier
from .runtime import PipelineResources, create_pipeline

__all__ = [
    "AppConfig",
    "CONTROLLED_VOCABULARY",
    "ClassificationReport",
    "EuroparlClient",
    "EuroparlConfig",
    "GeminiConfig",
    "GeminiTopicClassifier",
    "GroupNormalization",
    "IngestPipeline",
    "LinkerConfig",
    "MEPDirectoryClient",
    "MEPLinker",
    "MEPSync",
    "MinuteRateLimiter",
    "ParsedSitting",
    "ParsedSpeech",
    "PipelineEvent",
    "PipelineResources",
    "PipelineSummary",
    "Storage",
    "StorageConfig",
    "StorageTransaction",
    "TopicClassification",
    "TopicReclassifier",
    "create_pipeline",
    "create_storage",
    "load_config",
    "normalize",
    "normalize_person_name",
    "parse_sitting",
]
