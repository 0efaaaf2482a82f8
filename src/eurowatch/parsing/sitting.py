"""Parse Europarl verbatim reports (CRE) into sections, topics and speeches.

The English report of a sitting is a sequence of agenda headers
(``td.doc_title`` cells marked with ``arrow_title_doc.gif``) followed by
paragraphs. A speech starts at a paragraph that opens with a bold speaker
attribution followed by a dash::

    <p><span class="bold">Maria Rossi,</span>
       <span class="italic">on behalf of the PPE Group</span>. – (IT) Mr President, ...</p>

Every following paragraph belongs to that speech until the next attribution
or header. Documents without that markup are parsed line by line.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple
import logging
import re

from bs4 import BeautifulSoup
from bs4.element import Tag

from ..core.errors import ParseError
from ..core.types import AgendaTopic, ParsedSitting, ParsedSpeech, Section, SectionKind, sitting_id_for

LOGGER = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_ORDINAL = re.compile(r"^(?P<ordinal>\d+(?:\.\d+)*)\s*\.\s*")
_TRAILING_PARENTHETICAL = re.compile(r"\s*\([^()]*\)\s*$")
_DOC_LINK = re.compile(r"/doceo/document/(?P<identifier>[^/_]+(?:-[^/_]+)*)_EN\.html", re.IGNORECASE)
_DASH = re.compile(r"\s*[–—]\s*")
_PARENTHETICAL_GROUP = re.compile(r"^(?P<name>.+?)\s*\((?P<group>[^()]+)\)\s*$")
_LEADING_GROUP = re.compile(r"^\((?P<group>[^()]+)\)\s*[,.]?\s*(?P<rest>.*)$")
_LANGUAGE = re.compile(r"^\((?P<language>[A-Za-z]{2})\)\s*")
_STAGE_DIRECTION = re.compile(r"^\(.*\)\.?$", re.DOTALL)
_CHAIR_NOTICE = re.compile(r"^IN THE CHAIR\b", re.IGNORECASE)
_HONORIFICS = re.compile(
    r"^(?:(?:mr|mrs|ms|miss|dr|prof|professor|sir|dame|lord|lady|baroness|baron|madam|monsieur|madame|herr|frau)\.?\s+)+",
    re.IGNORECASE,
)
_CHAIR_TITLE = re.compile(r"^(?:the\s+)?(?:acting\s+)?(?:vice-)?president(?:-in-office)?$", re.IGNORECASE)

# Plain-text attributions in decreasing specificity.
_LINE_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"^(?P<name>[^(,]+?)\s*\((?P<group>[^)]+)\),\s*(?P<role>.+?)\.\s*[–—]\s*(?P<body>.+)$"),
    re.compile(r"^(?P<name>[^(,]+?)\s*\((?P<group>[^)]+)\)\.\s*[–—]\s*(?P<body>.+)$"),
    re.compile(r"^(?P<name>[^,(]+),\s*(?P<role>.+?)\.\s*[–—]\s*(?P<body>.+)$"),
    re.compile(r"^(?P<name>[^.(]{2,80})\.\s*[–—]\s*(?P<body>.+)$"),
)

_MAX_ATTRIBUTION_LENGTH = 300

_SECTION_KEYWORDS: Tuple[Tuple[SectionKind, Tuple[str, ...]], ...] = (
    ("opening", ("opening of the sitting", "resumption of the session", "opening of the session")),
    ("closing", ("closure of the sitting", "adjournment of the session", "closing of the sitting")),
    ("votes", ("voting time", "explanations of vote", "vote")),
    (
        "procedural",
        (
            "approval of the minutes",
            "minutes of the previous sitting",
            "agenda",
            "order of business",
            "documents received",
            "composition of",
            "membership of",
            "announcement",
            "corrigendum",
            "signature of acts",
            "delegated acts",
            "implementing measures",
            "transfers of appropriations",
            "petitions",
            "action taken",
            "calendar of part-sessions",
            "decisions concerning",
            "verification of credentials",
        ),
    ),
)


@dataclass(slots=True)
class _Attribution:
    speaker_name: Optional[str]
    political_group_raw: Optional[str]
    speaker_role: Optional[str]
    language: Optional[str]
    body: str


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text.replace("\xa0", " ")).strip()


def _has_class(tag: Tag, fragment: str) -> bool:
    return any(fragment in value for value in tag.get("class") or [])


def _is_topic_header(tag: Tag) -> bool:
    if tag.name != "td" or not _has_class(tag, "doc_title"):
        return False
    return tag.find("img", src=re.compile("arrow_title_doc", re.IGNORECASE)) is not None


def _is_block(tag: Tag) -> bool:
    return tag.name == "p" or _is_topic_header(tag)


def _is_bold(tag: Tag) -> bool:
    return tag.name in {"b", "strong"} or _has_class(tag, "bold")


def clean_topic_title(raw: str) -> Tuple[str, Optional[str]]:
    """Return ``(title, ordinal)`` for a raw header text.

    >>> clean_topic_title("8.1. Situation in Georgia (RC-B10-0123/2024) (vote)")
    ('Situation in Georgia', '8.1')
    """

    text = _collapse(raw)
    ordinal: Optional[str] = None
    match = _ORDINAL.match(text)
    if match:
        ordinal = match.group("ordinal")
        text = text[match.end() :]
    previous = None
    while previous != text:
        previous = text
        text = _TRAILING_PARENTHETICAL.sub("", text).strip()
    return text, ordinal


def strip_honorifics(name: str) -> str:
    return _HONORIFICS.sub("", name).strip()


def _section_kind(raw_header: str) -> SectionKind:
    lowered = raw_header.lower()
    for kind, keywords in _SECTION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return kind
    if "debate" in lowered:
        return "debate"
    return "other"


def _split_name(raw_name: str) -> Tuple[Optional[str], Optional[str]]:
    name = raw_name.strip().rstrip(" ,.:;")
    group: Optional[str] = None
    match = _PARENTHETICAL_GROUP.match(name)
    if match:
        name = match.group("name").strip()
        group = match.group("group").strip()
    name = strip_honorifics(name)
    return (name or None), group


def _split_body(body: str) -> Tuple[Optional[str], str]:
    match = _LANGUAGE.match(body)
    if match:
        return match.group("language").upper(), body[match.end() :].strip()
    return None, body.strip()


def _attribution_from_parts(
    raw_name: str, annotation: str, body: str, group_hint: Optional[str] = None
) -> _Attribution:
    speaker_name, group = _split_name(raw_name)
    annotation = annotation.strip().strip(" ,.:;").strip()
    if annotation:
        match = _LEADING_GROUP.match(annotation)
        if match:
            group = group or match.group("group").strip()
            annotation = match.group("rest").strip(" ,.")
    group = group or group_hint
    role = annotation or None
    if group is None:
        if role:
            group = role
        elif speaker_name and _CHAIR_TITLE.match(speaker_name):
            group = speaker_name
    language, content = _split_body(body)
    return _Attribution(
        speaker_name=speaker_name,
        political_group_raw=group,
        speaker_role=role,
        language=language,
        body=content,
    )


def _parse_attribution(paragraph: Tag, text: str) -> Optional[_Attribution]:
    bold = paragraph.find(_is_bold)
    if bold is None:
        return None
    bold_text = _collapse(bold.get_text())
    name_part = _DASH.split(bold_text, maxsplit=1)[0].strip()
    if not name_part or name_part.startswith("(") or not text.startswith(name_part):
        return None
    dash = _DASH.search(text)
    if dash is None or dash.start() > _MAX_ATTRIBUTION_LENGTH or dash.start() < len(name_part.rstrip(" ,.:")):
        return None
    header = text[: dash.start()]
    annotation = header[len(name_part) :]
    return _attribution_from_parts(name_part, annotation, text[dash.end() :])


def _parse_line(line: str) -> Optional[_Attribution]:
    for pattern in _LINE_PATTERNS:
        match = pattern.match(line)
        if not match:
            continue
        groups = match.groupdict()
        raw_name = groups["name"]
        if len(raw_name) > 80:
            continue
        return _attribution_from_parts(
            raw_name,
            groups.get("role") or "",
            groups["body"],
            group_hint=(groups.get("group") or "").strip() or None,
        )
    return None


class _SpeechBuilder:
    """Accumulates paragraphs into speeches with contiguous ordering."""

    def __init__(self, sitting_id: str) -> None:
        self.sitting_id = sitting_id
        self.speeches: List[ParsedSpeech] = []
        self._current: Optional[ParsedSpeech] = None
        self._paragraphs: List[str] = []

    @property
    def active(self) -> bool:
        return self._current is not None

    def start(self, attribution: _Attribution, topic: Optional[AgendaTopic]) -> None:
        self.finish()
        self._current = ParsedSpeech(
            sitting_id=self.sitting_id,
            speech_order=len(self.speeches),
            speaker_name=attribution.speaker_name,
            speech_content="",
            political_group_raw=attribution.political_group_raw,
            speaker_role=attribution.speaker_role,
            language=attribution.language,
            topic=topic.title if topic else None,
            topic_index=topic.index if topic else None,
        )
        if attribution.body:
            self._paragraphs.append(attribution.body)

    def append(self, text: str, topic: Optional[AgendaTopic]) -> None:
        if self._current is None:
            self.start(_Attribution(None, None, None, None, ""), topic)
        self._paragraphs.append(text)

    def finish(self) -> None:
        if self._current is None:
            return
        content = "\n".join(_collapse(paragraph) for paragraph in self._paragraphs if paragraph.strip())
        if content:
            self._current.speech_content = content
            self._current.speech_order = len(self.speeches)
            self.speeches.append(self._current)
        self._current = None
        self._paragraphs = []


def _document_label(soup: BeautifulSoup, activity_date: date) -> str:
    if soup.title is not None:
        title = _collapse(soup.title.get_text())
        if title:
            return title
    return f"Parliamentary Sitting - {activity_date.isoformat()}"


def _parse_structured(soup: BeautifulSoup, sitting: ParsedSitting) -> None:
    builder = _SpeechBuilder(sitting.sitting_id)
    current_topic: Optional[AgendaTopic] = None
    section_by_ordinal: dict[str, int] = {}

    for block in soup.find_all(_is_block):
        if block.name == "p" and block.find_parent(_is_topic_header) is not None:
            continue

        if block.name == "td":
            raw_header = _collapse(block.get_text())
            title, ordinal = clean_topic_title(raw_header)
            if not title:
                continue
            builder.finish()
            top = ordinal.split(".")[0] if ordinal else None
            if top is not None and top in section_by_ordinal:
                section_index = section_by_ordinal[top]
            elif top is None and sitting.sections:
                section_index = sitting.sections[-1].index
            else:
                section_index = len(sitting.sections)
                sitting.sections.append(
                    Section(index=section_index, title=title, kind=_section_kind(raw_header), ordinal=top)
                )
                if top is not None:
                    section_by_ordinal[top] = section_index
            doc_identifier = None
            for link in block.find_all("a", href=True):
                match = _DOC_LINK.search(link["href"])
                if match:
                    doc_identifier = match.group("identifier")
                    break
            current_topic = AgendaTopic(
                index=len(sitting.topics),
                title=title,
                section_index=section_index,
                ordinal=ordinal,
                doc_identifier=doc_identifier,
            )
            sitting.topics.append(current_topic)
            continue

        text = _collapse(block.get_text())
        if not text or _STAGE_DIRECTION.match(text) or _CHAIR_NOTICE.match(text):
            continue
        attribution = _parse_attribution(block, text)
        if attribution is not None:
            builder.start(attribution, current_topic)
        elif current_topic is not None:
            builder.append(text, current_topic)

    builder.finish()
    sitting.speeches.extend(builder.speeches)


def _parse_lines(text: str, sitting: ParsedSitting) -> None:
    builder = _SpeechBuilder(sitting.sitting_id)
    for raw_line in text.splitlines():
        line = _collapse(raw_line)
        if not line or _STAGE_DIRECTION.match(line):
            continue
        attribution = _parse_line(line)
        if attribution is not None:
            builder.start(attribution, None)
        elif builder.active:
            builder.append(line, None)
    builder.finish()
    sitting.speeches.extend(builder.speeches)


def parse_sitting(content: bytes | str, activity_date: date) -> ParsedSitting:
    """Parse the verbatim report of ``activity_date``.

    Raises :class:`ParseError` when the document is empty or no speech can be
    recovered from it.
    """

    if not content or not content.strip():
        raise ParseError(f"Document for {activity_date.isoformat()} is empty")
    try:
        soup = BeautifulSoup(content, "html.parser")
    except (TypeError, ValueError, UnicodeDecodeError) as exc:
        raise ParseError(f"Document for {activity_date.isoformat()} cannot be decoded") from exc

    sitting_id = sitting_id_for(activity_date)
    sitting = ParsedSitting(
        sitting_id=sitting_id,
        activity_date=activity_date,
        label=_document_label(soup, activity_date),
    )
    _parse_structured(soup, sitting)

    if not sitting.speeches:
        LOGGER.info("No structured speeches in %s, falling back to line parsing", sitting_id)
        body = soup.body or soup
        _parse_lines(body.get_text("\n"), sitting)

    if not sitting.speeches:
        raise ParseError(f"No speeches found in document for {activity_date.isoformat()}")

    LOGGER.info(
        "Parsed %s: %d sections, %d topics, %d speeches",
        sitting_id,
        len(sitting.sections),
        len(sitting.topics),
        len(sitting.speeches),
    )
    return sitting


__all__ = ["clean_topic_title", "parse_sitting", "strip_honorifics"]
