"""Pipeline orchestration."""
from __future__ import annotations

from .ingest import IngestPipeline, PipelineEvent, PipelineSummary, ProgressCallback
from .mep_sync import MEPSync, sync_terms
from .reclassify import ReclassifySummary, TopicReclassifier

__all__ = [
    "IngestPipeline",
    "MEPSync",
    "PipelineEvent",
    "PipelineSummary",
    "ProgressCallback",
    "ReclassifySummary",
    "TopicReclassifier",
    "sync_terms",
]
