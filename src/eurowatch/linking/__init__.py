"""Linking of speakers to MEP records."""
from __future__ import annotations

from .meps import MatchResult, MEPLinker, normalize_person_name

__all__ = ["MEPLinker", "MatchResult", "normalize_person_name"]
