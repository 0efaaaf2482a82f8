"""Typed domain objects shared by the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Optional, Tuple

GroupKind = Literal["political", "institution", "presidency", "unknown"]
SectionKind = Literal["opening", "votes", "debate", "procedural", "closing", "other"]


def sitting_id_for(activity_date: date) -> str:
    """Return the canonical sitting identifier (``sitting-YYYY-MM-DD``)."""

    return f"sitting-{activity_date.isoformat()}"


def speech_id_for(sitting_id: str, speech_order: int) -> str:
    """Return the stable surrogate key of a speech within its sitting."""

    return f"{sitting_id}:{speech_order:05d}"


@dataclass(slots=True)
class SittingDocument:
    """Raw verbatim report of one plenary day."""

    activity_date: date
    url: str
    content: bytes


@dataclass(slots=True)
class Section:
    """Top-level structural block of a sitting (opening, votes, a debate ...)."""

    index: int
    title: str
    kind: SectionKind
    ordinal: Optional[str] = None


@dataclass(slots=True)
class AgendaTopic:
    """An agenda header; ``section_index`` points into ``ParsedSitting.sections``."""

    index: int
    title: str
    section_index: int
    ordinal: Optional[str] = None
    doc_identifier: Optional[str] = None


@dataclass(slots=True)
class ParsedSpeech:
    """One contiguous utterance extracted from a sitting document."""

    sitting_id: str
    speech_order: int
    speaker_name: Optional[str]
    speech_content: str
    political_group_raw: Optional[str] = None
    speaker_role: Optional[str] = None
    language: Optional[str] = None
    topic: Optional[str] = None
    topic_index: Optional[int] = None

    @property
    def speech_id(self) -> str:
        return speech_id_for(self.sitting_id, self.speech_order)


@dataclass(slots=True)
class ParsedSitting:
    """Parser output: an arena tree of sections, topics and speeches."""

    sitting_id: str
    activity_date: date
    label: str
    sections: list[Section] = field(default_factory=list)
    topics: list[AgendaTopic] = field(default_factory=list)
    speeches: list[ParsedSpeech] = field(default_factory=list)

    def distinct_topics(self) -> list[str]:
        """Distinct trimmed topic strings referenced by speeches, in first-seen order."""

        seen: dict[str, None] = {}
        for speech in self.speeches:
            if speech.topic and speech.topic.strip():
                seen.setdefault(speech.topic.strip(), None)
        return list(seen)


@dataclass(slots=True)
class TopicClassification:
    """Mapping of one distinct topic string onto the controlled vocabulary."""

    topic_text: str
    main_topic: str
    specific_focus: Optional[str]
    confidence: Optional[float]
    classified_by: str
    classified_at: int
    cost: float = 0.0
    rationale: Optional[str] = None


@dataclass(slots=True)
class ClassificationFailure:
    """A topic that could not be classified in the current run."""

    topic_text: str
    error: str


@dataclass(slots=True)
class TopicCount:
    """A distinct topic together with the number of speeches using it."""

    topic: str
    speech_count: int


@dataclass(slots=True, frozen=True)
class MEPTerm:
    """A date range during which an MEP held a seat (``end`` is inclusive)."""

    start: date
    end: Optional[date] = None
    term_number: Optional[int] = None

    def covers(self, day: date) -> bool:
        return self.start <= day and (self.end is None or day <= self.end)


@dataclass(slots=True)
class MEPRecord:
    """A Member of the European Parliament as known to the store."""

    id: int
    label: str
    normalized_name: str
    family_name: Optional[str] = None
    normalized_family_name: Optional[str] = None
    political_group: Optional[str] = None
    country: Optional[str] = None
    terms: Tuple[MEPTerm, ...] = ()

    def active_on(self, day: date) -> bool:
        return any(term.covers(day) for term in self.terms)


__all__ = [
    "AgendaTopic",
    "ClassificationFailure",
    "GroupKind",
    "MEPRecord",
    "MEPTerm",
    "ParsedSitting",
    "ParsedSpeech",
    "Section",
    "SectionKind",
    "SittingDocument",
    "TopicClassification",
    "TopicCount",
    "sitting_id_for",
    "speech_id_for",
]
