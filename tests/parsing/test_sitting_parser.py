from __future__ import annotations

from datetime import date

import pytest

from eurowatch.core.errors import ParseError
from eurowatch.parsing import clean_topic_title, parse_sitting, strip_honorifics


def _header(text: str) -> str:
    return (
        "<table><tr><td class='doc_title'><img src='/doceo/img/arrow_title_doc.gif'/> "
        f"{text}</td></tr></table>"
    )


SITTING = (
    "<html><head><meta charset='utf-8'/><title>Verbatim report of proceedings - Monday, 7 October 2024</title></head><body>"
    + _header("1. Opening of the sitting")
    + "<p class='contents'><span class='bold'>President.</span> – The sitting is opened.</p>"
    + "<p>(The sitting opened at 17:00)</p>"
    + _header("2. Situation in Georgia (debate)")
    + "<p><span class='bold'>Maria Rossi,</span> <span class='italic'>on behalf of the PPE Group</span>."
    " – (IT) Mr President, colleagues.</p>"
    + "<p>We must act now.</p>"
    + "<p><span class='bold'>Jean Martin (Renew).</span> – Thank you.</p>"
    + "<p><span class='bold'>Anna Schmidt,</span> <span class='italic'>Member of the Commission</span>."
    " – The Commission agrees.</p>"
    + _header("3. Voting time")
    + "<p><span class='bold'>President.</span> – We proceed to the vote.</p>"
    + _header("3.1. Situation in Georgia (RC-B10-0123/2024) (vote)")
    + "<p>Motion adopted.</p>"
    + "</body></html>"
).encode("utf8")


def test_clean_topic_title_strips_ordinal_and_parentheticals():
    assert clean_topic_title("8.1. Situation in Georgia (RC-B10-0123/2024) (vote)") == (
        "Situation in Georgia",
        "8.1",
    )
    assert clean_topic_title("Voting time") == ("Voting time", None)


def test_strip_honorifics():
    assert strip_honorifics("Mr Jean Martin") == "Jean Martin"
    assert strip_honorifics("Dr. Prof. Anna Schmidt") == "Anna Schmidt"


def test_parse_sitting_extracts_speeches_in_order():
    sitting = parse_sitting(SITTING, date(2024, 10, 7))

    assert sitting.sitting_id == "sitting-2024-10-07"
    assert sitting.label == "Verbatim report of proceedings - Monday, 7 October 2024"
    assert [speech.speech_order for speech in sitting.speeches] == list(range(6))
    assert [speech.speaker_name for speech in sitting.speeches] == [
        "President",
        "Maria Rossi",
        "Jean Martin",
        "Anna Schmidt",
        "President",
        None,
    ]

    rossi = sitting.speeches[1]
    assert rossi.political_group_raw == "on behalf of the PPE Group"
    assert rossi.language == "IT"
    assert rossi.speech_content == "Mr President, colleagues.\nWe must act now."
    assert rossi.topic == "Situation in Georgia"
    assert rossi.speech_id == "sitting-2024-10-07:00001"

    assert sitting.speeches[0].political_group_raw == "President"
    assert sitting.speeches[2].political_group_raw == "Renew"
    assert sitting.speeches[3].speaker_role == "Member of the Commission"
    assert sitting.speeches[5].speech_content == "Motion adopted."


def test_parse_sitting_builds_sections_and_topics():
    sitting = parse_sitting(SITTING, date(2024, 10, 7))

    assert [(section.title, section.kind) for section in sitting.sections] == [
        ("Opening of the sitting", "opening"),
        ("Situation in Georgia", "debate"),
        ("Voting time", "votes"),
    ]
    assert [topic.title for topic in sitting.topics] == [
        "Opening of the sitting",
        "Situation in Georgia",
        "Voting time",
        "Situation in Georgia",
    ]
    assert sitting.topics[3].ordinal == "3.1"
    assert sitting.topics[3].section_index == 2
    assert sitting.distinct_topics() == ["Opening of the sitting", "Situation in Georgia", "Voting time"]


def test_stage_directions_are_not_speeches():
    sitting = parse_sitting(SITTING, date(2024, 10, 7))

    assert all("sitting opened at" not in speech.speech_content for speech in sitting.speeches)


def test_plain_text_documents_use_line_fallback():
    content = (
        "<html><body><pre>Maria Rossi (PPE). – Mr President, this matters.\n"
        "And it matters a lot.\n"
        "Jean Martin, Member of the Commission. – We agree.</pre></body></html>"
    )

    sitting = parse_sitting(content, date(2024, 10, 8))

    assert sitting.label == "Parliamentary Sitting - 2024-10-08"
    assert [speech.speaker_name for speech in sitting.speeches] == ["Maria Rossi", "Jean Martin"]
    assert sitting.speeches[0].political_group_raw == "PPE"
    assert sitting.speeches[0].speech_content == "Mr President, this matters.\nAnd it matters a lot."
    assert sitting.speeches[1].speaker_role == "Member of the Commission"


def test_empty_document_raises():
    with pytest.raises(ParseError):
        parse_sitting(b"   ", date(2024, 10, 7))


def test_document_without_speeches_raises():
    with pytest.raises(ParseError):
        parse_sitting(b"<html><body><p>Nothing to see here</p></body></html>", date(2024, 10, 7))
