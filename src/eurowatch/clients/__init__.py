"""Clients for the upstream European Parliament services."""
from __future__ import annotations

from .europarl import EuroparlClient, parliamentary_term_for, term_end, term_start
from .meps import MEPDirectoryClient, MEPEntry

__all__ = [
    "EuroparlClient",
    "MEPDirectoryClient",
    "MEPEntry",
    "parliamentary_term_for",
    "term_end",
    "term_start",
]
