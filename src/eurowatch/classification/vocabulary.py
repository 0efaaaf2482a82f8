"""Controlled vocabulary and prompt material for topic classification."""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple
import json
import re

CONTROLLED_VOCABULARY: Tuple[str, ...] = (
    "Procedural & Parliamentary business",
    "Institutional affairs & governance",
    "EU budget & MFF",
    "Economy & industrial policy",
    "Single market, competition & consumer protection",
    "Trade & globalization",
    "Taxation & anti-money laundering",
    "Monetary & financial stability",
    "Digital policy & data protection",
    "Media, information & disinformation",
    "Energy & energy security",
    "Climate, environment & biodiversity",
    "Agriculture & fisheries",
    "Transport & mobility",
    "Health",
    "Research, innovation & space",
    "Education, culture & sport",
    "Social policy & employment",
    "Rule of law & fundamental rights",
    "Justice, security & policing",
    "Migration & asylum",
    "Security & defence",
    "Enlargement & neighbourhood policy",
    "Development & humanitarian aid",
    "Foreign policy — Europe & Eastern Neighbourhood",
    "Foreign policy — Middle East & North Africa",
    "Foreign policy — Sub-Saharan Africa",
    "Foreign policy — Americas",
    "Foreign policy — Asia-Pacific",
)

# A plain hyphen only separates when spaced, so "Asia-Pacific" keeps its hyphen.
_LABEL_SEPARATOR = re.compile(r"\s*[–—−]\s*|\s+-{1,2}\s+")
_WHITESPACE = re.compile(r"\s+")


def _label_key(value: str) -> str:
    text = _WHITESPACE.sub(" ", value).strip()
    return _LABEL_SEPARATOR.sub(" — ", text).casefold()


_LABEL_LOOKUP: Dict[str, str] = {_label_key(label): label for label in CONTROLLED_VOCABULARY}


def canonical_label(value: Optional[str]) -> Optional[str]:
    """Return the vocabulary label matching ``value`` or ``None``.

    Case, surrounding whitespace and the dash used between "Foreign policy" and
    the region are not significant.
    """

    if not value or not isinstance(value, str):
        return None
    return _LABEL_LOOKUP.get(_label_key(value))


OUTPUT_SCHEMA = {
    "topic_input": "string",
    "main_topic": "one of the controlled vocabulary labels",
    "specific_focus": "string or null",
    "confidence": "number between 0 and 1",
    "rationale_short": "string, at most 15 words",
}

_EXAMPLES: Tuple[Tuple[str, Dict[str, Any]], ...] = (
    (
        "Agenda of the next sitting",
        {"main_topic": "Procedural & Parliamentary business", "specific_focus": None, "confidence": 0.95},
    ),
    (
        "Address by Volodymyr Zelenskyy, President of Ukraine",
        {
            "main_topic": "Foreign policy — Europe & Eastern Neighbourhood",
            "specific_focus": "Ukraine",
            "confidence": 0.95,
        },
    ),
    (
        "2023 and 2024 reports on Albania",
        {"main_topic": "Enlargement & neighbourhood policy", "specific_focus": "Albania", "confidence": 0.9},
    ),
    (
        "Improving working conditions in platform work",
        {"main_topic": "Social policy & employment", "specific_focus": "platform work", "confidence": 0.9},
    ),
)


def build_system_prompt(vocabulary: Sequence[str] = CONTROLLED_VOCABULARY) -> str:
    """Return the system instruction sent with every classification request."""

    labels = "\n".join(f"- {label}" for label in vocabulary)
    schema = json.dumps(OUTPUT_SCHEMA, ensure_ascii=False)
    examples = "\n".join(
        f"Topic: {topic}\n{json.dumps({'topic_input': topic, **answer}, ensure_ascii=False)}"
        for topic, answer in _EXAMPLES
    )
    return (
        "You map an EU Parliament HTML agenda header (topic) to exactly ONE main topic from a fixed list.\n"
        f"Return strict JSON with this shape: {schema}\n\n"
        "Rules:\n"
        "- Base the classification solely on the literal text of the header.\n"
        "- Prefer the substantive policy domain over the procedure.\n"
        '- Procedural items (agenda, votes, order of business, resumption) map to "Procedural & Parliamentary business".\n'
        "- Never invent labels; main_topic must be copied verbatim from the list.\n"
        "- Use specific_focus for a country, entity, programme or narrow sub-area; it never changes the domain.\n\n"
        f"Controlled vocabulary:\n{labels}\n\n"
        f"Examples:\n{examples}\n\n"
        "Normalization: strip whitespace; ignore legislative IDs and citations in parentheses.\n"
        "Deterministic output. No extra text."
    )


SYSTEM_PROMPT = build_system_prompt()


def build_user_message(topic: str) -> str:
    return f"Topic: {topic.strip()}"


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse ``text`` as a JSON object, falling back to its first balanced ``{...}`` block."""

    if not text:
        return None
    stripped = text.strip()
    try:
        value = json.loads(stripped)
    except json.JSONDecodeError:
        value = None
    if isinstance(value, dict):
        return value
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]

    start = stripped.find("{")
    while start != -1:
        end = _balanced_end(stripped, start)
        if end is None:
            return None
        try:
            value = json.loads(stripped[start : end + 1])
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        start = stripped.find("{", start + 1)
    return None


def _balanced_end(text: str, start: int) -> Optional[int]:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


__all__ = [
    "CONTROLLED_VOCABULARY",
    "OUTPUT_SCHEMA",
    "SYSTEM_PROMPT",
    "build_system_prompt",
    "build_user_message",
    "canonical_label",
    "extract_json_object",
]
