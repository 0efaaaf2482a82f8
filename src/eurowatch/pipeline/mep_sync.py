"""Synchronise the local MEP directory from the EP Open Data API."""
from __future__ import annotations

from typing import List
import logging

from ..clients import MEPDirectoryClient, MEPEntry, term_end, term_start
from ..core.types import MEPRecord, MEPTerm
from ..database import Storage, StorageTransaction
from ..linking import normalize_person_name
from ..normalization import normalize

LOGGER = logging.getLogger(__name__)


class MEPSync:
    """Stores every MEP of a parliamentary term together with the term's date range."""

    def __init__(self, *, client: MEPDirectoryClient, storage: Storage) -> None:
        self._client = client
        self._storage = storage

    def run(self, term: int) -> int:
        start = term_start(term)
        if start is None:
            raise ValueError(f"Unknown parliamentary term {term}")
        membership = MEPTerm(start=start, end=term_end(term), term_number=term)
        records = [self._to_record(entry, membership) for entry in self._client.iter_meps(term)]

        def _store(tx: StorageTransaction) -> int:
            for record in records:
                tx.upsert_mep(record)
            return len(records)

        stored = self._storage.write(_store)
        LOGGER.info("Stored %d MEPs of term %d", stored, term)
        return stored

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _to_record(entry: MEPEntry, membership: MEPTerm) -> MEPRecord:
        group = normalize(entry.political_group).std if entry.political_group else None
        family_key = normalize_person_name(entry.family_name) or None
        return MEPRecord(
            id=entry.identifier,
            label=entry.label,
            normalized_name=normalize_person_name(entry.label),
            family_name=entry.family_name,
            normalized_family_name=family_key,
            political_group=group or entry.political_group,
            country=entry.country,
            terms=(membership,),
        )


def sync_terms(sync: MEPSync, terms: List[int]) -> int:
    return sum(sync.run(term) for term in terms)


__all__ = ["MEPSync", "sync_terms"]
