"""Resolve speakers to MEP records by name and sitting date."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional, Sequence
import logging
import re
import unicodedata

from ..core.types import MEPRecord

LOGGER = logging.getLogger(__name__)

_HONORIFIC_TOKENS = frozenset(
    {"mr", "mrs", "ms", "miss", "dr", "prof", "professor", "sir", "dame", "lord", "lady", "baroness", "baron", "madam"}
)
_PUNCTUATION = re.compile(r"[^\w\s]")

MatchKind = Literal["exact", "surname", "ambiguous", "none"]


def normalize_person_name(name: Optional[str]) -> str:
    """Lowercase, strip diacritics and punctuation, drop honorifics, collapse whitespace.

    >>> normalize_person_name("Mr  José-Manuel GARCÍA")
    'jose manuel garcia'
    """

    if not name:
        return ""
    text = unicodedata.normalize("NFKD", name)
    text = "".join(char for char in text if not unicodedata.combining(char))
    text = _PUNCTUATION.sub(" ", text.lower()).replace("_", " ")
    tokens = text.split()
    while tokens and tokens[0] in _HONORIFIC_TOKENS:
        tokens.pop(0)
    return " ".join(tokens)


@dataclass(slots=True)
class MatchResult:
    mep_id: Optional[int]
    kind: MatchKind
    candidates: int = 0


class MEPLinker:
    """Unique-match linker; never guesses between several candidates."""

    def __init__(self, *, surname_fallback: bool = True) -> None:
        self.surname_fallback = surname_fallback

    def match(self, speaker_name: Optional[str], day: date, meps: Sequence[MEPRecord]) -> MatchResult:
        key = normalize_person_name(speaker_name)
        if not key:
            return MatchResult(None, "none")
        active = [mep for mep in meps if mep.active_on(day)]

        reversed_key = " ".join(reversed(key.split()))
        exact = [mep for mep in active if mep.normalized_name in (key, reversed_key)]
        if len(exact) == 1:
            return MatchResult(exact[0].id, "exact", 1)
        if len(exact) > 1:
            return MatchResult(None, "ambiguous", len(exact))

        if not self.surname_fallback:
            return MatchResult(None, "none")
        surname = key.split()[-1]
        by_surname = [mep for mep in active if _surname_matches(mep, key, surname)]
        if len(by_surname) == 1:
            return MatchResult(by_surname[0].id, "surname", 1)
        if len(by_surname) > 1:
            return MatchResult(None, "ambiguous", len(by_surname))
        return MatchResult(None, "none")

    def link_sitting(self, tx, sitting_id: str, day: date) -> int:
        """Link every speech of ``sitting_id`` inside the open transaction ``tx``.

        Returns the number of linked speeches.
        """

        meps = tx.meps_active_on(day)
        if not meps:
            LOGGER.info("No MEPs known for %s, skipping linking", day.isoformat())
            return 0
        linked = 0
        ambiguous = 0
        for speech in tx.speeches_for_sitting(sitting_id):
            result = self.match(speech.speaker_name, day, meps)
            if result.kind == "ambiguous":
                ambiguous += 1
            tx.link_mep(speech.id, result.mep_id)
            if result.mep_id is not None:
                linked += 1
        LOGGER.info("Linked %d speeches of %s to MEPs (%d ambiguous)", linked, sitting_id, ambiguous)
        return linked


def _surname_matches(mep: MEPRecord, key: str, surname: str) -> bool:
    family = mep.normalized_family_name
    if family:
        return family == surname or key.endswith(f" {family}") or key == family
    tokens = mep.normalized_name.split()
    return bool(tokens) and tokens[-1] == surname


__all__ = ["MEPLinker", "MatchResult", "normalize_person_name"]
