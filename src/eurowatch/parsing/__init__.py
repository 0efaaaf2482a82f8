"""Parsing helpers for verbatim reports."""
from __future__ import annotations

from .sitting import clean_topic_title, parse_sitting, strip_honorifics

__all__ = ["clean_topic_title", "parse_sitting", "strip_honorifics"]
