"""Normalisation of raw political-group labels to canonical identifiers.

The verbatim reports spell group affiliation in many ways: parenthetical
codes (``(PPE)``), "on behalf of the S&D Group" phrases in two dozen
languages, historical group names and full English names. :func:`normalize`
maps all of those onto a small canonical set and tags the label with a kind so
that institutional speakers (Commission, Council, rapporteurs) and the chair
are never mistaken for a political group.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import re
import unicodedata

from ..core.types import GroupKind

CANONICAL_GROUPS: Tuple[str, ...] = (
    "PPE",
    "S&D",
    "ECR",
    "ID",
    "Verts/ALE",
    "Renew",
    "The Left",
    "NI",
    "PfE",
    "ESN",
    "EFDD",
)

# Keys are compared upper-cased with all whitespace removed.
_GROUP_ALIASES: Dict[str, str] = {
    # European People's Party
    "EPP": "PPE",
    "EVP": "PPE",
    "PPE-DE": "PPE",
    "EPP-ED": "PPE",
    "EVP-ED": "PPE",
    "EUROPEANPEOPLE'SPARTY": "PPE",
    "EUROPEANPEOPLESPARTY": "PPE",
    # Socialists & Democrats
    "S-D": "S&D",
    "S+D": "S&D",
    "PSE": "S&D",
    "PES": "S&D",
    "SPE": "S&D",
    "SOCIALISTSANDDEMOCRATS": "S&D",
    "SOCIALISTS&DEMOCRATS": "S&D",
    # Renew Europe and its predecessors
    "RENEWEUROPE": "Renew",
    "ALDE": "Renew",
    "ELDR": "Renew",
    "ALDE/ADLE": "Renew",
    "ADLE": "Renew",
    # Greens/European Free Alliance
    "GREENS/EFA": "Verts/ALE",
    "GREENS": "Verts/ALE",
    "EFA": "Verts/ALE",
    "VERTS": "Verts/ALE",
    "GRÜNE/EFA": "Verts/ALE",
    "GRUNE/EFA": "Verts/ALE",
    "LOSVERDES/ALE": "Verts/ALE",
    # The Left
    "GUE/NGL": "The Left",
    "GUE": "The Left",
    "NGL": "The Left",
    "EUL/NGL": "The Left",
    "LEFT": "The Left",
    "THELEFTINTHEEUROPEANPARLIAMENT": "The Left",
    # Conservatives and reformists
    "EUROPEANCONSERVATIVESANDREFORMISTS": "ECR",
    # Identity and Democracy and predecessors
    "ENF": "ID",
    "IDENTITYANDDEMOCRACY": "ID",
    # Patriots, Sovereign Nations, freedom and direct democracy
    "PATRIOTSFOREUROPE": "PfE",
    "PATRIOTS": "PfE",
    "PFE": "PfE",
    "EUROPEOFSOVEREIGNNATIONS": "ESN",
    "EFD": "EFDD",
    "EFDD": "EFDD",
    # Non-attached and dissolved groups without a successor
    "NON-ATTACHED": "NI",
    "NONATTACHED": "NI",
    "NON-INSCRITS": "NI",
    "NON-INSCRITS(NI)": "NI",
    "FRAKTIONSLOS": "NI",
    "UEN": "NI",
    "IND/DEM": "NI",
    "EDD": "NI",
    "ITS": "NI",
    # National delegation used in "on behalf of" phrases
    "BRITISHCONSERVATIVEDELEGATION": "ECR",
}

_ALIAS_TABLE: Dict[str, str] = {
    **{re.sub(r"\s+", "", group).upper(): group for group in CANONICAL_GROUPS},
    **_GROUP_ALIASES,
}

_CHAIR_TITLES = re.compile(
    r"^(?:the\s+)?(?:"
    r"president|vice-president|acting\s+president|"
    r"presidente|vicepresidente|vice-presidente|"
    r"präsident(?:in)?|vizepräsident(?:in)?|"
    r"présidente?|vice-présidente?|"
    r"voorzitter|ondervoorzitter|przewodnicz[aą]c[aey]|"
    r"puhemies|ordförande|formand|elnök"
    r")(?:\s+of\s+(?:the\s+)?(?:european\s+)?parliament)?$",
    re.IGNORECASE,
)

_INSTITUTIONAL_MARKERS: Tuple[str, ...] = (
    # Commission, Council, High Representative
    "commission",
    "commissioner",
    "council",
    "high representative",
    "president of the eurogroup",
    "executive vice-president",
    "vp/hr",
    "kommission",
    "rat der",
    "commissione",
    "comisión",
    "comissão",
    "commissaire",
    "conseil",
    "consiglio",
    "consejo",
    "hohen vertreterin",
    "hoher vertreter",
    "haut représentant",
    "haute représentante",
    "alto representante",
    # Parliamentary roles
    "rapporteur",
    "rapporteure",
    "berichterstatter",
    "berichterstatterin",
    "relatore",
    "relatrice",
    "ponente",
    "sprawozdawca",
    "draftsman",
    "draftsperson",
    "committee on",
    "special committee",
    "chair of the delegation",
    "chairman of the delegation",
    "deputising for",
    "deputizing for",
    "author of the motion",
    "blue-card",
    "blue card",
    "question time",
    "sakharov prize",
)

_ON_BEHALF_PATTERNS: Tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"on behalf of (?:the )?(?P<group>.+?)(?:\s+group)?$",
        r"au nom du groupe (?P<group>.+)$",
        r"au nom de (?:la |l')?(?P<group>.+)$",
        r"a nome del gruppo (?P<group>.+)$",
        r"a nome della (?P<group>.+)$",
        r"en nombre del grupo (?P<group>.+)$",
        r"em nome do grupo (?P<group>.+)$",
        r"im namen der fraktion (?P<group>.+)$",
        r"im namen der (?P<group>.+?)(?:-fraktion)?$",
        r"namens de fractie (?P<group>.+)$",
        r"namens de groep (?P<group>.+)$",
        r"namens de (?P<group>.+?)(?:-fractie)?$",
        r"w imieniu grupy (?P<group>.+)$",
        r"za skupinu (?P<group>.+)$",
        r"în numele grupului (?P<group>.+)$",
        r"εξ ονόματος της ομάδας (?P<group>.+)$",
        r"thar ceann an ghrúpa (?P<group>.+)$",
        r"u ime kluba zastupnika (?P<group>.+?)(?:-a)?$",
        r"u ime kluba (?P<group>.+?)(?:-a)?$",
        r"f'isem il-grupp (?P<group>.+)$",
        r"för (?P<group>.+?)(?:-gruppen)?$",
        r"for (?P<group>.+?)(?:-gruppen)?$",
    )
)

_PARENTHETICAL = re.compile(r"\(([^()]+)\)")
_GROUP_SUFFIX = re.compile(r"(?:\s*-?\s*(?:group|groupe|gruppe|gruppo|grupo|fraktion|fractie))$", re.IGNORECASE)
_DASHES = str.maketrans({"–": "-", "—": "-", "−": "-", "‑": "-", " ": " ", "​": " "})
_WORD_LIMIT = 8
_TITLE_CASE_TOKENS = frozenset({"Renew", "Greens", "Verts", "Patriots", "PfE"})


@dataclass(slots=True, frozen=True)
class GroupNormalization:
    """Result of :func:`normalize`; ``std`` is ``None`` unless ``kind == "political"``."""

    std: Optional[str]
    kind: GroupKind


UNKNOWN = GroupNormalization(None, "unknown")


def _clean(raw: str) -> str:
    text = unicodedata.normalize("NFKC", raw).translate(_DASHES)
    text = re.sub(r"\s+", " ", text).strip()
    return text.rstrip(".,;:").strip()


def _alias_key(text: str) -> str:
    return re.sub(r"\s+", "", text).upper()


def lookup_alias(candidate: str) -> Optional[str]:
    """Return the canonical group for ``candidate`` or ``None``."""

    text = _clean(candidate)
    if not text:
        return None
    for variant in (text, _GROUP_SUFFIX.sub("", text)):
        variant = re.sub(r"^the\s+", "", variant, flags=re.IGNORECASE).strip()
        canonical = _ALIAS_TABLE.get(_alias_key(variant))
        if canonical:
            return canonical
    return None


def _scan_tokens(text: str) -> Optional[str]:
    """Whole-word search for a group code inside a short annotation."""

    if len(text.split()) > _WORD_LIMIT:
        return None
    tokens = re.split(r"[\s,;()]+", text)
    for token in tokens:
        # Plain words such as "its" or "left" only count when written as a code.
        if not (token.isupper() or token in _TITLE_CASE_TOKENS):
            continue
        canonical = lookup_alias(token)
        if canonical:
            return canonical
    return None


def normalize(raw: Optional[str]) -> GroupNormalization:
    """Map ``raw`` to ``(canonical identifier, kind)``.

    >>> normalize("on behalf of the PPE Group")
    GroupNormalization(std='PPE', kind='political')
    >>> normalize("Member of the Commission")
    GroupNormalization(std=None, kind='institution')
    """

    if raw is None:
        return UNKNOWN
    text = _clean(raw)
    if not text:
        return UNKNOWN

    direct = lookup_alias(text)
    if direct:
        return GroupNormalization(direct, "political")

    if _CHAIR_TITLES.match(text):
        return GroupNormalization(None, "presidency")

    lowered = text.lower()
    if any(marker in lowered for marker in _INSTITUTIONAL_MARKERS):
        return GroupNormalization(None, "institution")

    for match in _PARENTHETICAL.finditer(text):
        canonical = lookup_alias(match.group(1))
        if canonical:
            return GroupNormalization(canonical, "political")

    for pattern in _ON_BEHALF_PATTERNS:
        match = pattern.search(text)
        if match:
            canonical = lookup_alias(match.group("group")) or _scan_tokens(match.group("group"))
            if canonical:
                return GroupNormalization(canonical, "political")

    canonical = _scan_tokens(text)
    if canonical:
        return GroupNormalization(canonical, "political")
    return UNKNOWN


__all__ = ["CANONICAL_GROUPS", "GroupNormalization", "UNKNOWN", "lookup_alias", "normalize"]
