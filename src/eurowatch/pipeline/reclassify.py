"""Re-classification of topics that are already in the store."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from threading import Event
from typing import Any, Dict, List, Optional
import logging

from ..classification import GeminiTopicClassifier
from ..core.types import ClassificationFailure, TopicClassification
from ..database import Storage, StorageTransaction

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReclassifySummary:
    topics_count: int
    classified_count: int
    updated_speeches: int
    classification_cost: float
    dry_run: bool
    classifications: List[TopicClassification] = field(default_factory=list)
    failures: List[ClassificationFailure] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "topics_count": self.topics_count,
            "classified_count": self.classified_count,
            "updated_speeches": self.updated_speeches,
            "classification_cost": round(self.classification_cost, 8),
            "dry_run": self.dry_run,
            "classifications": [
                {
                    "topic": item.topic_text,
                    "main_topic": item.main_topic,
                    "specific_focus": item.specific_focus,
                    "confidence": item.confidence,
                }
                for item in self.classifications
            ],
            "failures": [{"topic": failure.topic_text, "error": failure.error} for failure in self.failures],
        }


class TopicReclassifier:
    """Classifies distinct stored topics again, e.g. after a vocabulary upgrade."""

    def __init__(self, *, storage: Storage, classifier: GeminiTopicClassifier) -> None:
        self._storage = storage
        self._classifier = classifier

    def run(
        self,
        *,
        date_filter: Optional[date] = None,
        limit: Optional[int] = None,
        dry_run: bool = False,
        cancel_event: Optional[Event] = None,
    ) -> ReclassifySummary:
        topics = [entry.topic for entry in self._storage.distinct_topics(date_filter=date_filter, limit=limit)]
        LOGGER.info(
            "Re-classifying %d topics%s%s",
            len(topics),
            f" of {date_filter.isoformat()}" if date_filter else "",
            " (dry run)" if dry_run else "",
        )
        report = self._classifier.classify(topics, cancel_event=cancel_event)

        updated = 0
        if not dry_run:
            for classification in report.successes:
                updated += self._storage.write(lambda tx, item=classification: self._apply(tx, item))
        return ReclassifySummary(
            topics_count=len(topics),
            classified_count=len(report.successes),
            updated_speeches=updated,
            classification_cost=report.cost,
            dry_run=dry_run,
            classifications=list(report.successes),
            failures=list(report.failures),
        )

    @staticmethod
    def _apply(tx: StorageTransaction, classification: TopicClassification) -> int:
        stored = tx.upsert_topic_classification(classification)
        return tx.apply_classification_to_speeches(stored.topic_text, stored)


__all__ = ["ReclassifySummary", "TopicReclassifier"]
