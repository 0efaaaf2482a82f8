"""Persistence helpers built on SQLAlchemy."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterator, Optional, Sequence, TypeVar
import logging
import time

from sqlalchemy import create_engine, delete, event, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from ..classification.vocabulary import canonical_label
from ..core.errors import SchemaValidationError, StoreBusyError
from ..core.types import (
    MEPRecord,
    MEPTerm,
    ParsedSitting,
    ParsedSpeech,
    TopicClassification,
    TopicCount,
)
from ..normalization.groups import normalize
from .migrations import apply_column_migrations
from .models import (
    Base,
    IndividualSpeechModel,
    MEPModel,
    MEPTermModel,
    SittingModel,
    TopicClassificationModel,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

BUSY_BASE_DELAY = 1.6
BUSY_MAX_DELAY = 10.0


@dataclass(slots=True)
class SittingOverview:
    """Lightweight representation of a persisted sitting."""

    identifier: str
    activity_date: date
    label: str
    source_url: Optional[str]
    ingested_at: int
    has_raw_document: bool
    speech_count: int


@dataclass(slots=True)
class StoredSpeech:
    """A persisted speech row including its classification columns."""

    id: str
    sitting_id: str
    speech_order: int
    speaker_name: Optional[str]
    speaker_role: Optional[str]
    political_group_raw: Optional[str]
    political_group_std: Optional[str]
    political_group_kind: Optional[str]
    language: Optional[str]
    topic: Optional[str]
    speech_content: str
    mep_id: Optional[int]
    macro_topic: Optional[str]
    macro_specific_focus: Optional[str]
    macro_confidence: Optional[float]
    macro_classified_by: Optional[str]
    macro_classified_at: Optional[int]
    macro_classification_cost: Optional[float]


def busy_delay(attempt: int) -> float:
    """Delay before retry ``attempt`` (0-based): 1.6 s doubling, capped at 10 s."""

    return min(BUSY_BASE_DELAY * (2**attempt), BUSY_MAX_DELAY)


def _is_busy_error(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return "locked" in message or "busy" in message


def _stored_speech(row: IndividualSpeechModel) -> StoredSpeech:
    return StoredSpeech(
        id=row.id,
        sitting_id=row.sitting_id,
        speech_order=row.speech_order,
        speaker_name=row.speaker_name,
        speaker_role=row.speaker_role,
        political_group_raw=row.political_group_raw,
        political_group_std=row.political_group_std,
        political_group_kind=row.political_group_kind,
        language=row.language,
        topic=row.topic,
        speech_content=row.speech_content,
        mep_id=row.mep_id,
        macro_topic=row.macro_topic,
        macro_specific_focus=row.macro_specific_focus,
        macro_confidence=row.macro_confidence,
        macro_classified_by=row.macro_classified_by,
        macro_classified_at=row.macro_classified_at,
        macro_classification_cost=row.macro_classification_cost,
    )


def _classification_from_row(row: TopicClassificationModel) -> TopicClassification:
    return TopicClassification(
        topic_text=row.topic_text,
        main_topic=row.main_topic,
        specific_focus=row.specific_focus,
        confidence=row.confidence,
        classified_by=row.classified_by,
        classified_at=row.classified_at,
        cost=row.cost or 0.0,
        rationale=row.rationale,
    )


def _mep_record(row: MEPModel) -> MEPRecord:
    return MEPRecord(
        id=row.id,
        label=row.label,
        normalized_name=row.normalized_name,
        family_name=row.family_name,
        normalized_family_name=row.normalized_family_name,
        political_group=row.political_group,
        country=row.country,
        terms=tuple(
            MEPTerm(start=term.start_date, end=term.end_date, term_number=term.term_number)
            for term in row.terms
        ),
    )


class StorageTransaction:
    """Write operations bound to one open session.

    Instances are handed to the callable passed to :meth:`Storage.write`; all
    calls made through one instance commit or roll back together.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # --- sittings and speeches ---------------------------------------------
    def upsert_sitting(
        self,
        sitting: ParsedSitting,
        *,
        raw_document: bytes | str | None = None,
        source_url: Optional[str] = None,
        ingested_at: Optional[int] = None,
    ) -> SittingModel:
        if isinstance(raw_document, bytes):
            raw_document = raw_document.decode("utf-8", errors="replace")
        timestamp = int(time.time()) if ingested_at is None else ingested_at

        model = self._session.get(SittingModel, sitting.sitting_id)
        if model is None:
            model = SittingModel(
                id=sitting.sitting_id,
                activity_date=sitting.activity_date,
                label=sitting.label,
                raw_document=raw_document,
                source_url=source_url,
                ingested_at=timestamp,
            )
            self._session.add(model)
        else:
            model.activity_date = sitting.activity_date
            model.label = sitting.label
            model.raw_document = raw_document
            model.source_url = source_url
            model.ingested_at = timestamp
        self._session.flush()
        return model

    def bulk_insert_speeches(self, sitting_id: str, speeches: Sequence[ParsedSpeech]) -> int:
        """Replace the speeches of ``sitting_id`` with ``speeches``.

        ``speech_order`` must run contiguously from zero; the group columns are
        derived from ``political_group_raw`` through :func:`normalize`.
        """

        if self._session.get(SittingModel, sitting_id) is None:
            raise ValueError(f"Sitting {sitting_id} must exist before adding speeches")
        orders = [speech.speech_order for speech in speeches]
        if orders != list(range(len(speeches))):
            raise ValueError(f"Speech order of {sitting_id} is not a contiguous 0..N-1 sequence")

        self._session.execute(
            delete(IndividualSpeechModel).where(IndividualSpeechModel.sitting_id == sitting_id)
        )
        for speech in speeches:
            if speech.sitting_id != sitting_id:
                raise ValueError(f"Speech {speech.speech_id} does not belong to {sitting_id}")
            group = normalize(speech.political_group_raw)
            topic = speech.topic.strip() if speech.topic else None
            self._session.add(
                IndividualSpeechModel(
                    id=speech.speech_id,
                    sitting_id=sitting_id,
                    speech_order=speech.speech_order,
                    speaker_name=speech.speaker_name,
                    speaker_role=speech.speaker_role,
                    political_group_raw=speech.political_group_raw,
                    political_group_std=group.std,
                    political_group_kind=group.kind,
                    language=speech.language,
                    topic=topic or None,
                    speech_content=speech.speech_content,
                )
            )
        self._session.flush()
        return len(speeches)

    def speeches_for_sitting(self, sitting_id: str) -> list[IndividualSpeechModel]:
        stmt = (
            select(IndividualSpeechModel)
            .where(IndividualSpeechModel.sitting_id == sitting_id)
            .order_by(IndividualSpeechModel.speech_order)
        )
        return list(self._session.scalars(stmt))

    # --- topic classification ------------------------------------------------
    def upsert_topic_classification(self, classification: TopicClassification) -> TopicClassification:
        """Insert or replace the row of the trimmed topic; ``cost`` accumulates.

        Returns the stored classification (with the cumulative cost).
        """

        topic_text = classification.topic_text.strip()
        if not topic_text:
            raise ValueError("Topic text must not be empty")
        label = canonical_label(classification.main_topic)
        if label is None:
            raise SchemaValidationError(
                topic_text, f"{classification.main_topic!r} is not part of the controlled vocabulary"
            )

        model = self._session.get(TopicClassificationModel, topic_text)
        if model is None:
            model = TopicClassificationModel(topic_text=topic_text, cost=0.0)
            self._session.add(model)
        model.main_topic = label
        model.specific_focus = classification.specific_focus
        model.confidence = classification.confidence
        model.rationale = classification.rationale
        model.classified_by = classification.classified_by
        model.classified_at = classification.classified_at
        model.cost = (model.cost or 0.0) + (classification.cost or 0.0)
        self._session.flush()
        return _classification_from_row(model)

    def apply_classification_to_speeches(self, topic_text: str, classification: TopicClassification) -> int:
        """Copy ``classification`` onto every speech whose trimmed topic is ``topic_text``."""

        stmt = (
            update(IndividualSpeechModel)
            .where(func.trim(IndividualSpeechModel.topic) == topic_text.strip())
            .values(
                macro_topic=classification.main_topic,
                macro_specific_focus=classification.specific_focus,
                macro_confidence=classification.confidence,
                macro_classified_by=classification.classified_by,
                macro_classified_at=classification.classified_at,
                macro_classification_cost=classification.cost,
            )
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount or 0

    def apply_known_classifications(self, sitting_id: str) -> int:
        """Apply stored classifications to unclassified topics of ``sitting_id``.

        Returns the number of topics applied.
        """

        trimmed = func.trim(IndividualSpeechModel.topic)
        stmt = (
            select(TopicClassificationModel)
            .where(
                TopicClassificationModel.topic_text.in_(
                    select(trimmed).where(
                        IndividualSpeechModel.sitting_id == sitting_id,
                        IndividualSpeechModel.macro_topic.is_(None),
                        IndividualSpeechModel.topic.is_not(None),
                    )
                )
            )
            .order_by(TopicClassificationModel.topic_text)
        )
        applied = 0
        for row in self._session.scalars(stmt).all():
            self.apply_classification_to_speeches(row.topic_text, _classification_from_row(row))
            applied += 1
        return applied

    # --- MEPs --------------------------------------------------------------
    def link_mep(self, speech_id: str, mep_id: Optional[int]) -> None:
        speech = self._session.get(IndividualSpeechModel, speech_id)
        if speech is None:
            raise ValueError(f"Speech {speech_id} not found")
        speech.mep_id = mep_id

    def meps_active_on(self, day: date) -> list[MEPRecord]:
        stmt = (
            select(MEPModel)
            .join(MEPTermModel, MEPTermModel.mep_id == MEPModel.id)
            .where(
                MEPTermModel.start_date <= day,
                (MEPTermModel.end_date.is_(None)) | (MEPTermModel.end_date >= day),
            )
            .options(selectinload(MEPModel.terms))
            .order_by(MEPModel.id)
            .distinct()
        )
        return [_mep_record(row) for row in self._session.scalars(stmt).unique()]

    def upsert_mep(self, record: MEPRecord) -> None:
        model = self._session.get(MEPModel, record.id)
        if model is None:
            model = MEPModel(id=record.id)
            self._session.add(model)
        model.label = record.label
        model.normalized_name = record.normalized_name
        model.family_name = record.family_name
        model.normalized_family_name = record.normalized_family_name
        model.political_group = record.political_group
        model.country = record.country

        for term in record.terms:
            existing = next(
                (
                    candidate
                    for candidate in model.terms
                    if candidate.term_number == term.term_number and candidate.start_date == term.start
                ),
                None,
            )
            if existing is None:
                model.terms.append(
                    MEPTermModel(term_number=term.term_number, start_date=term.start, end_date=term.end)
                )
            else:
                existing.end_date = term.end
        self._session.flush()


class Storage:
    """Wrapper around SQLAlchemy to store sittings, speeches and classifications."""

    def __init__(
        self,
        engine: Engine,
        *,
        busy_retries: int = 6,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._busy_retries = max(0, busy_retries)
        self._sleep = sleep

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ensure_schema(self) -> None:
        Base.metadata.create_all(self._engine)
        apply_column_migrations(self._engine)

    def write(self, work: Callable[[StorageTransaction], T]) -> T:
        """Run ``work`` in one transaction, retrying the whole unit while the database is busy."""

        attempt = 0
        while True:
            try:
                with self.session() as session:
                    return work(StorageTransaction(session))
            except OperationalError as exc:
                if not _is_busy_error(exc):
                    raise
                if attempt >= self._busy_retries:
                    raise StoreBusyError(
                        f"Database still busy after {self._busy_retries} retries"
                    ) from exc
                delay = busy_delay(attempt)
                attempt += 1
                LOGGER.warning(
                    "Database busy, retrying in %.1fs (%d/%d)", delay, attempt, self._busy_retries
                )
                self._sleep(delay)

    # --- reads -------------------------------------------------------------
    def known_sitting_dates(self) -> set[date]:
        with self.session() as session:
            return set(session.scalars(select(SittingModel.activity_date)))

    def distinct_topics(self, date_filter: Optional[date] = None, limit: Optional[int] = None) -> list[TopicCount]:
        """Distinct trimmed topics with their speech counts, most used first."""

        trimmed = func.trim(IndividualSpeechModel.topic)
        speech_count = func.count(IndividualSpeechModel.id)
        stmt = select(trimmed.label("topic"), speech_count.label("speech_count")).where(
            IndividualSpeechModel.topic.is_not(None), trimmed != ""
        )
        if date_filter is not None:
            stmt = stmt.join(SittingModel, SittingModel.id == IndividualSpeechModel.sitting_id).where(
                SittingModel.activity_date == date_filter
            )
        stmt = stmt.group_by(trimmed).order_by(speech_count.desc(), trimmed)
        if limit:
            stmt = stmt.limit(limit)
        with self.session() as session:
            return [TopicCount(topic=row.topic, speech_count=row.speech_count) for row in session.execute(stmt)]

    def get_sitting(self, sitting_id: str) -> Optional[SittingOverview]:
        with self.session() as session:
            model = session.get(SittingModel, sitting_id)
            if model is None:
                return None
            count = session.scalar(
                select(func.count(IndividualSpeechModel.id)).where(IndividualSpeechModel.sitting_id == sitting_id)
            )
            return SittingOverview(
                identifier=model.id,
                activity_date=model.activity_date,
                label=model.label,
                source_url=model.source_url,
                ingested_at=model.ingested_at,
                has_raw_document=model.raw_document is not None,
                speech_count=count or 0,
            )

    def list_speeches(self, sitting_id: str) -> list[StoredSpeech]:
        with self.session() as session:
            return [_stored_speech(row) for row in StorageTransaction(session).speeches_for_sitting(sitting_id)]

    def get_topic_classification(self, topic_text: str) -> Optional[TopicClassification]:
        with self.session() as session:
            row = session.get(TopicClassificationModel, topic_text.strip())
            return _classification_from_row(row) if row is not None else None

    def count_topic_classifications(self) -> int:
        with self.session() as session:
            return session.scalar(select(func.count()).select_from(TopicClassificationModel)) or 0

    def meps_active_on(self, day: date) -> list[MEPRecord]:
        with self.session() as session:
            return StorageTransaction(session).meps_active_on(day)

    def prune_raw_documents(self, before: date) -> int:
        """Drop the stored report of sittings older than ``before``."""

        def _prune(tx: StorageTransaction) -> int:
            stmt = (
                update(SittingModel)
                .where(SittingModel.activity_date < before, SittingModel.raw_document.is_not(None))
                .values(raw_document=None)
                .execution_options(synchronize_session=False)
            )
            return tx.session.execute(stmt).rowcount or 0

        pruned = self.write(_prune)
        LOGGER.info("Pruned raw documents of %d sittings before %s", pruned, before.isoformat())
        return pruned

    def dispose(self) -> None:
        """Dispose the underlying SQLAlchemy engine."""

        self._engine.dispose()

    close = dispose


def _configure_sqlite(engine: Engine, busy_timeout: float) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout * 1000)}")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_storage(
    database_url: str,
    *,
    echo: bool = False,
    busy_timeout: float = 10.0,
    busy_retries: int = 6,
    sleep: Callable[[float], None] = time.sleep,
) -> Storage:
    engine = create_engine(database_url, echo=echo, future=True)
    if engine.dialect.name == "sqlite":
        _configure_sqlite(engine, busy_timeout)
    storage = Storage(engine, busy_retries=busy_retries, sleep=sleep)
    storage.ensure_schema()
    return storage


__all__ = [
    "SittingOverview",
    "Storage",
    "StorageTransaction",
    "StoredSpeech",
    "busy_delay",
    "create_storage",
]
