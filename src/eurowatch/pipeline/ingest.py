"""High level orchestration of the sitting ingestion pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from threading import Event
from typing import Any, Callable, Dict, List, Literal, Optional
import logging

from ..classification import ClassificationReport, GeminiTopicClassifier
from ..clients import EuroparlClient
from ..core.errors import NoNewSittingError
from ..core.types import ClassificationFailure, ParsedSitting, SittingDocument
from ..database import Storage, StorageTransaction
from ..linking import MEPLinker
from ..parsing import parse_sitting

LOGGER = logging.getLogger(__name__)

PipelineEventKind = Literal[
    "start",
    "discovered",
    "fetched",
    "parsed",
    "classified",
    "stored",
    "finished",
    "cancelled",
    "error",
]


@dataclass(slots=True)
class PipelineEvent:
    """Fine grained progress notification emitted by :class:`IngestPipeline`."""

    kind: PipelineEventKind
    activity_date: date | None = None
    message: str | None = None
    speech_count: int | None = None
    topic_count: int | None = None


ProgressCallback = Callable[[PipelineEvent], None]


@dataclass(slots=True)
class PipelineSummary:
    """Structured result of one pipeline invocation."""

    success: bool
    reason: str | None = None
    date: date | None = None
    sitting_id: str | None = None
    speeches_count: int = 0
    topics_count: int = 0
    classified_count: int = 0
    linked_count: int = 0
    classification_cost: float = 0.0
    classification_failures: List[ClassificationFailure] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "reason": self.reason,
            "date": self.date.isoformat() if self.date else None,
            "sitting_id": self.sitting_id,
            "speeches_count": self.speeches_count,
            "topics_count": self.topics_count,
            "classified_count": self.classified_count,
            "linked_count": self.linked_count,
            "classification_cost": round(self.classification_cost, 8),
            "classification_failures": [
                {"topic": failure.topic_text, "error": failure.error} for failure in self.classification_failures
            ],
        }


@dataclass(slots=True)
class _StoreOutcome:
    applied_topics: int
    linked: int


class IngestPipeline:
    """Discovery, fetch, parse, classify and store for one sitting."""

    def __init__(
        self,
        *,
        fetcher: EuroparlClient,
        storage: Storage,
        classifier: Optional[GeminiTopicClassifier] = None,
        linker: Optional[MEPLinker] = None,
        parser: Callable[[bytes, date], ParsedSitting] = parse_sitting,
    ) -> None:
        self._fetcher = fetcher
        self._storage = storage
        self._classifier = classifier
        self._linker = linker
        self._parser = parser

    def run(
        self,
        *,
        target_date: Optional[date] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[Event] = None,
    ) -> PipelineSummary:
        """Run the pipeline end-to-end.

        Fetch, parse and store errors propagate and leave the store untouched;
        topics that cannot be classified are reported in the summary only.
        """

        cancelled = False
        had_error = False
        day: date | None = target_date
        self._notify(progress_callback, PipelineEvent(kind="start", message="Pipeline run started"))
        try:
            if day is None:
                try:
                    day = self._discover()
                except NoNewSittingError as exc:
                    LOGGER.info("%s", exc)
                    return PipelineSummary(success=False, reason="no new sittings")
            LOGGER.info("Ingesting sitting of %s", day.isoformat())
            self._notify(
                progress_callback,
                PipelineEvent(kind="discovered", activity_date=day, message=f"Sitting date {day.isoformat()}"),
            )
            if self._is_cancelled(cancel_event):
                cancelled = True
                return PipelineSummary(success=False, reason="cancelled", date=day)

            document = self._fetcher.fetch_sitting_document(day)
            self._notify(
                progress_callback,
                PipelineEvent(kind="fetched", activity_date=day, message=f"Fetched {len(document.content)} bytes"),
            )
            if self._is_cancelled(cancel_event):
                cancelled = True
                return PipelineSummary(success=False, reason="cancelled", date=day)

            sitting = self._parser(document.content, day)
            topics = sitting.distinct_topics()
            self._notify(
                progress_callback,
                PipelineEvent(
                    kind="parsed",
                    activity_date=day,
                    message=f"Parsed {len(sitting.speeches)} speeches",
                    speech_count=len(sitting.speeches),
                    topic_count=len(topics),
                ),
            )
            if self._is_cancelled(cancel_event):
                cancelled = True
                return PipelineSummary(success=False, reason="cancelled", date=day)

            report = self._classify(topics, cancel_event)
            self._notify(
                progress_callback,
                PipelineEvent(
                    kind="classified",
                    activity_date=day,
                    message=f"Classified {len(report.successes)} of {len(topics)} topics",
                    topic_count=len(topics),
                ),
            )
            if self._is_cancelled(cancel_event):
                cancelled = True
                return PipelineSummary(success=False, reason="cancelled", date=day)

            outcome = self._storage.write(lambda tx: self._store(tx, sitting, document, report))
            self._notify(
                progress_callback,
                PipelineEvent(
                    kind="stored",
                    activity_date=day,
                    message=f"Persisted {len(sitting.speeches)} speeches",
                    speech_count=len(sitting.speeches),
                ),
            )
            summary = PipelineSummary(
                success=True,
                date=day,
                sitting_id=sitting.sitting_id,
                speeches_count=len(sitting.speeches),
                topics_count=len(topics),
                classified_count=outcome.applied_topics,
                linked_count=outcome.linked,
                classification_cost=report.cost,
                classification_failures=list(report.failures),
            )
            LOGGER.info("Pipeline summary: %s", summary.as_dict())
            return summary
        except Exception as exc:
            had_error = True
            LOGGER.exception("Ingest pipeline failed: %s", exc)
            self._notify(progress_callback, PipelineEvent(kind="error", activity_date=day, message=str(exc)))
            raise
        finally:
            if cancelled:
                LOGGER.info("Pipeline run cancelled")
                self._notify(
                    progress_callback,
                    PipelineEvent(kind="cancelled", activity_date=day, message="Pipeline run cancelled"),
                )
            elif not had_error:
                self._notify(
                    progress_callback,
                    PipelineEvent(kind="finished", activity_date=day, message="Pipeline run finished"),
                )

    def _discover(self) -> date:
        day = self._fetcher.discover_next_sitting_date(self._storage)
        if day is None:
            raise NoNewSittingError("No new sittings to ingest")
        return day

    def _classify(self, topics: List[str], cancel_event: Optional[Event]) -> ClassificationReport:
        if self._classifier is None:
            LOGGER.warning("No classifier configured - %d topics stay unclassified", len(topics))
            return ClassificationReport()
        if not topics:
            return ClassificationReport()
        return self._classifier.classify(topics, cancel_event=cancel_event)

    def _store(
        self,
        tx: StorageTransaction,
        sitting: ParsedSitting,
        document: SittingDocument,
        report: ClassificationReport,
    ) -> _StoreOutcome:
        tx.upsert_sitting(sitting, raw_document=document.content, source_url=document.url)
        tx.bulk_insert_speeches(sitting.sitting_id, sitting.speeches)
        applied = 0
        for classification in report.successes:
            stored = tx.upsert_topic_classification(classification)
            tx.apply_classification_to_speeches(stored.topic_text, stored)
            applied += 1
        reused = tx.apply_known_classifications(sitting.sitting_id)
        if reused:
            LOGGER.info("Applied %d previously stored classifications to %s", reused, sitting.sitting_id)
        linked = 0
        if self._linker is not None:
            linked = self._linker.link_sitting(tx, sitting.sitting_id, sitting.activity_date)
        return _StoreOutcome(applied_topics=applied, linked=linked)

    @staticmethod
    def _is_cancelled(cancel_event: Optional[Event]) -> bool:
        return bool(cancel_event and cancel_event.is_set())

    @staticmethod
    def _notify(callback: Optional[ProgressCallback], event: PipelineEvent) -> None:
        if callback:
            callback(event)


__all__ = ["IngestPipeline", "PipelineEvent", "PipelineSummary", "ProgressCallback"]
