"""HTTP client for the verbatim reports published on europarl.europa.eu."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Callable, Iterable, Iterator, Optional, Protocol, Tuple
import logging
import re
import time

import httpx

from ..core.errors import FetchError
from ..core.types import SittingDocument

LOGGER = logging.getLogger(__name__)

# First sitting day of each parliamentary term, newest first.
_TERM_STARTS: Tuple[Tuple[int, date], ...] = (
    (10, date(2024, 7, 16)),
    (9, date(2019, 7, 2)),
    (8, date(2014, 7, 1)),
    (7, date(2009, 7, 14)),
    (6, date(2004, 7, 20)),
    (5, date(1999, 7, 20)),
    (4, date(1994, 7, 19)),
    (3, date(1989, 7, 25)),
    (2, date(1984, 7, 24)),
    (1, date(1979, 7, 17)),
)

_SITTING_MARKERS = re.compile(rb"arrow_title_doc\.gif|<table|<td", re.IGNORECASE)


def parliamentary_term_for(day: date) -> int:
    """Return the parliamentary term (1-10) a sitting day belongs to."""

    for term, start in _TERM_STARTS:
        if day >= start:
            return term
    return 1


def term_start(term: int) -> Optional[date]:
    for number, start in _TERM_STARTS:
        if number == term:
            return start
    return None


def term_end(term: int) -> Optional[date]:
    """Last day of ``term`` or ``None`` for the running term."""

    following = term_start(term + 1)
    if following is None:
        return None
    return following - timedelta(days=1)


class KnownDates(Protocol):
    def known_sitting_dates(self) -> set[date]:
        ...


class EuroparlClient:
    """Fetches sitting documents and discovers sitting days not yet ingested."""

    def __init__(
        self,
        base_url: str = "https://www.europarl.europa.eu",
        *,
        user_agent: str = "Mozilla/5.0 (compatible; EUROWATCH/1.0)",
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_cap: float = 8.0,
        min_document_bytes: int = 500,
        discovery_max_days: int = 365,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._max_retries = max(1, max_retries)
        self._backoff_cap = backoff_cap
        self._min_document_bytes = min_document_bytes
        self._discovery_max_days = discovery_max_days
        self._sleep = sleep
        self._today = today
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )

    # --- public API -----------------------------------------------------
    def document_url(self, day: date) -> str:
        term = parliamentary_term_for(day)
        return f"{self._base_url}/doceo/document/CRE-{term}-{day.isoformat()}_EN.html"

    def fetch_sitting_document(self, day: date) -> SittingDocument:
        """Download the English verbatim report of ``day``.

        Server errors, 429 and transport failures are retried with bounded
        exponential backoff; any other 4xx fails immediately. A body shorter
        than ``min_document_bytes`` means there was no sitting that day.
        """

        url = self.document_url(day)
        content = self._get(url, attempts=self._max_retries)
        if len(content) < self._min_document_bytes:
            raise FetchError(
                f"Document for {day.isoformat()} is too short ({len(content)} bytes); no sitting published"
            )
        LOGGER.info("Fetched %s (%d bytes)", url, len(content))
        return SittingDocument(activity_date=day, url=url, content=content)

    def iter_candidate_dates(self, *, start: Optional[date] = None) -> Iterator[date]:
        """Yield days from ``start`` (default: today) backwards within the discovery window."""

        current = start or self._today()
        for offset in range(self._discovery_max_days):
            yield current - timedelta(days=offset)

    def discover_next_sitting_date(self, store: KnownDates | Iterable[date]) -> Optional[date]:
        """Return the most recent sitting day that the store does not know yet.

        ``store`` is anything with ``known_sitting_dates()`` or a plain
        iterable of dates. Days are probed backwards from today; the first
        one that has a published report wins.
        """

        if hasattr(store, "known_sitting_dates"):
            known = set(store.known_sitting_dates())
        else:
            known = set(store)
        today = self._today()
        for day in self.iter_candidate_dates(start=today):
            if day > today or day in known:
                continue
            if self._probe(day):
                LOGGER.info("Discovered unseen sitting on %s", day.isoformat())
                return day
        LOGGER.info("No unseen sitting within the last %d days", self._discovery_max_days)
        return None

    def close(self) -> None:
        """Close the underlying HTTP client."""

        self._client.close()

    def __enter__(self) -> "EuroparlClient":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()

    # --- helpers --------------------------------------------------------
    def _backoff(self, attempt: int) -> float:
        return min(float(2 ** (attempt - 1)), self._backoff_cap)

    def _get(self, url: str, *, attempts: int) -> bytes:
        last_exc: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                response = self._client.get(url)
                response.raise_for_status()
                return response.content
            except httpx.HTTPStatusError as exc:
                last_exc = exc
                status = exc.response.status_code
                LOGGER.warning("Europarl returned status %s for %s (attempt %d/%d)", status, url, attempt, attempts)
                if status < 500 and status != 429:
                    raise FetchError(f"Europarl rejected {url} with status {status}") from exc
            except httpx.HTTPError as exc:
                last_exc = exc
                LOGGER.warning("HTTP error while requesting %s (attempt %d/%d): %s", url, attempt, attempts, exc)
            if attempt < attempts:
                self._sleep(self._backoff(attempt))
        raise FetchError(f"Failed to fetch {url} after {attempts} attempts") from last_exc

    def _probe(self, day: date) -> bool:
        url = self.document_url(day)
        try:
            content = self._get(url, attempts=1)
        except FetchError as exc:
            LOGGER.debug("No sitting on %s: %s", day.isoformat(), exc)
            return False
        return len(content) >= self._min_document_bytes and bool(_SITTING_MARKERS.search(content))


__all__ = [
    "EuroparlClient",
    "parliamentary_term_for",
    "term_end",
    "term_start",
]
