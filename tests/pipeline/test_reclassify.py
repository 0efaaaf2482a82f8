from __future__ import annotations

import asyncio
import json
from datetime import date
from types import SimpleNamespace

import pytest

from eurowatch.classification import GeminiTopicClassifier, MinuteRateLimiter
from eurowatch.core.types import ParsedSitting, ParsedSpeech
from eurowatch.database import create_storage
from eurowatch.pipeline import TopicReclassifier


class FakeModels:
    def __init__(self, labels):
        self._labels = labels
        self.calls = []

    async def generate_content(self, *, model, contents, config):
        topic = contents.removeprefix("Topic: ")
        self.calls.append(topic)
        await asyncio.sleep(0)
        return SimpleNamespace(
            text=json.dumps({"main_topic": self._labels[topic], "specific_focus": None, "confidence": 0.6}),
            usage_metadata=SimpleNamespace(prompt_token_count=500, candidates_token_count=50),
        )


async def _no_wait(seconds):
    return None


def _classifier(labels):
    models = FakeModels(labels)
    classifier = GeminiTopicClassifier(
        client=SimpleNamespace(aio=SimpleNamespace(models=models)),
        rate_limiter=MinuteRateLimiter(6000, clock=lambda: 0.0, sleep=_no_wait),
        sleep=_no_wait,
    )
    return classifier, models


@pytest.fixture()
def storage(tmp_path):
    storage = create_storage(f"sqlite:///{(tmp_path / 'reclassify.db').as_posix()}")
    sittings = {
        date(2024, 10, 7): ["Roads", "Vaccines", "Vaccines"],
        date(2024, 10, 8): ["Budget", "Roads", "Roads"],
    }
    for day, topics in sittings.items():
        sitting = ParsedSitting(sitting_id=f"sitting-{day.isoformat()}", activity_date=day, label="Sitting")
        for order, topic in enumerate(topics):
            sitting.speeches.append(
                ParsedSpeech(
                    sitting_id=sitting.sitting_id,
                    speech_order=order,
                    speaker_name="Speaker",
                    speech_content="Text",
                    topic=topic,
                )
            )

        def work(tx, sitting=sitting):
            tx.upsert_sitting(sitting)
            tx.bulk_insert_speeches(sitting.sitting_id, sitting.speeches)

        storage.write(work)
    return storage


LABELS = {
    "Roads": "Transport & mobility",
    "Vaccines": "Health",
    "Budget": "EU budget & MFF",
}


def test_reclassify_updates_every_speech_of_a_topic(storage):
    classifier, models = _classifier(LABELS)

    summary = TopicReclassifier(storage=storage, classifier=classifier).run()

    assert summary.topics_count == 3
    assert summary.classified_count == 3
    assert summary.updated_speeches == 6
    assert models.calls.count("Roads") == 1
    assert storage.count_topic_classifications() == 3
    macro = {speech.topic: speech.macro_topic for speech in storage.list_speeches("sitting-2024-10-08")}
    assert macro == {"Budget": "EU budget & MFF", "Roads": "Transport & mobility"}


def test_dry_run_writes_nothing(storage):
    classifier, _ = _classifier(LABELS)

    summary = TopicReclassifier(storage=storage, classifier=classifier).run(dry_run=True)

    assert summary.dry_run is True
    assert summary.classified_count == 3
    assert summary.updated_speeches == 0
    assert storage.count_topic_classifications() == 0
    assert summary.as_dict()["classifications"][0]["main_topic"] in LABELS.values()


def test_date_filter_and_limit_select_topics(storage):
    classifier, models = _classifier(LABELS)

    summary = TopicReclassifier(storage=storage, classifier=classifier).run(
        date_filter=date(2024, 10, 8), limit=1
    )

    assert models.calls == ["Roads"]
    assert summary.topics_count == 1
    assert summary.updated_speeches == 3
