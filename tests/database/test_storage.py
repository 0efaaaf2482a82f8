from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError

from eurowatch.core.errors import SchemaValidationError, StoreBusyError
from eurowatch.core.types import MEPRecord, MEPTerm, ParsedSitting, ParsedSpeech, TopicClassification
from eurowatch.database import busy_delay, create_storage


def _storage(tmp_path, name="storage.db", **kwargs):
    return create_storage(f"sqlite:///{(tmp_path / name).as_posix()}", **kwargs)


def _sitting(day: date, topics) -> ParsedSitting:
    sitting = ParsedSitting(sitting_id=f"sitting-{day.isoformat()}", activity_date=day, label=f"Sitting {day}")
    for order, (speaker, group, topic) in enumerate(topics):
        sitting.speeches.append(
            ParsedSpeech(
                sitting_id=sitting.sitting_id,
                speech_order=order,
                speaker_name=speaker,
                speech_content=f"Speech {order}",
                political_group_raw=group,
                topic=topic,
            )
        )
    return sitting


def _classification(topic: str, label: str = "Health", cost: float = 0.001) -> TopicClassification:
    return TopicClassification(
        topic_text=topic,
        main_topic=label,
        specific_focus="Vaccines",
        confidence=0.8,
        classified_by="gemini-2.5-flash-lite",
        classified_at=1_700_000_000,
        cost=cost,
    )


def _store(storage, sitting: ParsedSitting, raw: bytes = b"<html></html>") -> None:
    def work(tx):
        tx.upsert_sitting(sitting, raw_document=raw, source_url="https://example.invalid/doc")
        tx.bulk_insert_speeches(sitting.sitting_id, sitting.speeches)

    storage.write(work)


def test_busy_delay_doubles_and_caps():
    assert [busy_delay(attempt) for attempt in range(6)] == pytest.approx([1.6, 3.2, 6.4, 10.0, 10.0, 10.0])


def test_speeches_are_stored_with_normalised_groups(tmp_path):
    storage = _storage(tmp_path)
    sitting = _sitting(
        date(2024, 10, 7),
        [
            ("President", "President", "Opening of the sitting"),
            ("Maria Rossi", "on behalf of the PPE Group", " Situation in Georgia "),
            ("Anna Schmidt", "Member of the Commission", "Situation in Georgia"),
            ("Someone", None, None),
        ],
    )

    _store(storage, sitting)

    speeches = storage.list_speeches(sitting.sitting_id)
    assert [speech.id for speech in speeches] == [f"{sitting.sitting_id}:{order:05d}" for order in range(4)]
    assert [(speech.political_group_std, speech.political_group_kind) for speech in speeches] == [
        (None, "presidency"),
        ("PPE", "political"),
        (None, "institution"),
        (None, "unknown"),
    ]
    assert speeches[1].topic == "Situation in Georgia"
    assert speeches[3].topic is None

    overview = storage.get_sitting(sitting.sitting_id)
    assert overview.speech_count == 4
    assert overview.has_raw_document is True
    assert overview.source_url == "https://example.invalid/doc"
    assert storage.known_sitting_dates() == {date(2024, 10, 7)}


def test_reingesting_replaces_speeches(tmp_path):
    storage = _storage(tmp_path)
    day = date(2024, 10, 7)
    _store(storage, _sitting(day, [("A", None, "X"), ("B", None, "X"), ("C", None, "Y")]))
    _store(storage, _sitting(day, [("D", None, "Z")]))

    speeches = storage.list_speeches("sitting-2024-10-07")
    assert [speech.speaker_name for speech in speeches] == ["D"]
    assert storage.get_sitting("sitting-2024-10-07").speech_count == 1


def test_non_contiguous_order_rolls_back_whole_write(tmp_path):
    storage = _storage(tmp_path)
    sitting = _sitting(date(2024, 10, 7), [("A", None, "X"), ("B", None, "X")])
    sitting.speeches[1].speech_order = 5

    with pytest.raises(ValueError):
        _store(storage, sitting)

    assert storage.get_sitting(sitting.sitting_id) is None
    assert storage.known_sitting_dates() == set()


def test_speeches_require_existing_sitting(tmp_path):
    storage = _storage(tmp_path)
    sitting = _sitting(date(2024, 10, 7), [("A", None, "X")])

    with pytest.raises(ValueError):
        storage.write(lambda tx: tx.bulk_insert_speeches(sitting.sitting_id, sitting.speeches))


def test_classification_is_applied_uniformly_and_cost_accumulates(tmp_path):
    storage = _storage(tmp_path)
    _store(
        storage,
        _sitting(date(2024, 10, 7), [("A", None, "Vaccines"), ("B", None, "Vaccines "), ("C", None, "Roads")]),
    )

    def classify(tx):
        stored = tx.upsert_topic_classification(_classification(" Vaccines", "health", cost=0.001))
        return tx.apply_classification_to_speeches(stored.topic_text, stored)

    assert storage.write(classify) == 2
    storage.write(lambda tx: tx.upsert_topic_classification(_classification("Vaccines", cost=0.002)))

    stored = storage.get_topic_classification("Vaccines")
    assert stored.main_topic == "Health"
    assert stored.cost == pytest.approx(0.003)
    assert storage.count_topic_classifications() == 1

    speeches = storage.list_speeches("sitting-2024-10-07")
    assert [speech.macro_topic for speech in speeches] == ["Health", "Health", None]
    assert speeches[0].macro_specific_focus == "Vaccines"
    assert speeches[0].macro_classification_cost == pytest.approx(0.001)


def test_invalid_label_is_rejected(tmp_path):
    storage = _storage(tmp_path)

    with pytest.raises(SchemaValidationError):
        storage.write(lambda tx: tx.upsert_topic_classification(_classification("Vaccines", "Space tourism")))

    assert storage.count_topic_classifications() == 0


def test_known_classifications_are_reused_for_new_sittings(tmp_path):
    storage = _storage(tmp_path)
    storage.write(lambda tx: tx.upsert_topic_classification(_classification("Vaccines")))
    sitting = _sitting(date(2024, 10, 8), [("A", None, "Vaccines"), ("B", None, "Roads")])

    def work(tx):
        tx.upsert_sitting(sitting, raw_document="<html></html>")
        tx.bulk_insert_speeches(sitting.sitting_id, sitting.speeches)
        return tx.apply_known_classifications(sitting.sitting_id)

    assert storage.write(work) == 1
    assert [speech.macro_topic for speech in storage.list_speeches(sitting.sitting_id)] == ["Health", None]


def test_distinct_topics_are_counted_and_filtered(tmp_path):
    storage = _storage(tmp_path)
    _store(storage, _sitting(date(2024, 10, 7), [("A", None, "Roads"), ("B", None, "Vaccines"), ("C", None, "Vaccines")]))
    _store(storage, _sitting(date(2024, 10, 8), [("A", None, "Budget"), ("B", None, " Roads")]))

    overall = storage.distinct_topics()
    assert [(entry.topic, entry.speech_count) for entry in overall] == [
        ("Roads", 2),
        ("Vaccines", 2),
        ("Budget", 1),
    ]
    assert [entry.topic for entry in storage.distinct_topics(date_filter=date(2024, 10, 8))] == ["Budget", "Roads"]
    assert len(storage.distinct_topics(limit=1)) == 1


def test_prune_raw_documents(tmp_path):
    storage = _storage(tmp_path)
    _store(storage, _sitting(date(2024, 10, 7), [("A", None, "X")]))
    _store(storage, _sitting(date(2024, 10, 9), [("A", None, "X")]))

    assert storage.prune_raw_documents(date(2024, 10, 8)) == 1
    assert storage.get_sitting("sitting-2024-10-07").has_raw_document is False
    assert storage.get_sitting("sitting-2024-10-09").has_raw_document is True


def test_meps_active_on_respects_term_ranges(tmp_path):
    storage = _storage(tmp_path)
    records = [
        MEPRecord(
            id=1,
            label="Anna Schmidt",
            normalized_name="anna schmidt",
            terms=(MEPTerm(date(2019, 7, 2), date(2024, 7, 15), 9),),
        ),
        MEPRecord(id=2, label="Jean Martin", normalized_name="jean martin", terms=(MEPTerm(date(2024, 7, 16), None, 10),)),
    ]

    def work(tx):
        for record in records:
            tx.upsert_mep(record)

    storage.write(work)
    storage.write(work)

    assert [mep.id for mep in storage.meps_active_on(date(2024, 10, 7))] == [2]
    assert [mep.id for mep in storage.meps_active_on(date(2020, 1, 1))] == [1]
    assert storage.meps_active_on(date(2010, 1, 1)) == []
    assert len(storage.meps_active_on(date(2020, 1, 1))[0].terms) == 1


def test_busy_writes_are_retried_then_fail(tmp_path):
    delays = []
    storage = _storage(tmp_path, sleep=delays.append)
    calls = []

    def locked(tx):
        calls.append(1)
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    with pytest.raises(StoreBusyError):
        storage.write(locked)

    assert len(calls) == 7
    assert delays == pytest.approx([1.6, 3.2, 6.4, 10.0, 10.0, 10.0])


def test_busy_write_succeeds_after_retry(tmp_path):
    delays = []
    storage = _storage(tmp_path, sleep=delays.append)
    failures = [OperationalError("INSERT", {}, Exception("database is busy"))]

    def flaky(tx):
        if failures:
            raise failures.pop()
        return "done"

    assert storage.write(flaky) == "done"
    assert delays == pytest.approx([1.6])


def test_other_operational_errors_are_not_retried(tmp_path):
    delays = []
    storage = _storage(tmp_path, sleep=delays.append)

    def broken(tx):
        raise OperationalError("SELECT", {}, Exception("no such table: nowhere"))

    with pytest.raises(OperationalError):
        storage.write(broken)
    assert delays == []


def test_missing_columns_are_added_to_existing_databases(tmp_path):
    path = tmp_path / "legacy.db"
    engine = create_engine(f"sqlite:///{path.as_posix()}")
    with engine.begin() as connection:
        connection.execute(
            text("CREATE TABLE topic_classifications (topic_text TEXT PRIMARY KEY, main_topic VARCHAR(128), "
                 "specific_focus VARCHAR(256), confidence FLOAT, classified_by VARCHAR(128), classified_at INTEGER)")
        )
    engine.dispose()

    storage = create_storage(f"sqlite:///{path.as_posix()}")

    columns = {column["name"] for column in inspect(storage.engine).get_columns("topic_classifications")}
    assert {"rationale", "cost"} <= columns
    storage.write(lambda tx: tx.upsert_topic_classification(_classification("Vaccines")))
    assert storage.get_topic_classification("Vaccines").cost == pytest.approx(0.001)
