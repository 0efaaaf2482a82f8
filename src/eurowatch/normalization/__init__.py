"""Political group normalisation."""
from __future__ import annotations

from .groups import CANONICAL_GROUPS, UNKNOWN, GroupNormalization, lookup_alias, normalize

__all__ = ["CANONICAL_GROUPS", "GroupNormalization", "UNKNOWN", "lookup_alias", "normalize"]
