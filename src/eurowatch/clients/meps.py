"""HTTP client for the MEP directory of the European Parliament Open Data API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional
import logging
import time

import httpx

from ..core.errors import FetchError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class MEPEntry:
    """One MEP as listed by the Open Data API for a parliamentary term."""

    identifier: int
    label: str
    given_name: Optional[str]
    family_name: Optional[str]
    political_group: Optional[str]
    country: Optional[str]
    term: int


class MEPDirectoryClient:
    """Pages through ``/meps?parliamentary-term=N``."""

    def __init__(
        self,
        base_url: str = "https://data.europarl.europa.eu/api/v2",
        *,
        user_agent: str = "Mozilla/5.0 (compatible; EUROWATCH/1.0)",
        timeout: float = 30.0,
        max_retries: int = 3,
        page_size: int = 500,
        backoff_cap: float = 8.0,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._max_retries = max(1, max_retries)
        self._page_size = page_size
        self._backoff_cap = backoff_cap
        self._sleep = sleep
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/ld+json", "User-Agent": user_agent},
        )

    # --- public API -----------------------------------------------------
    def iter_meps(self, term: int) -> Iterator[MEPEntry]:
        """Iterate over every MEP who sat during ``term``."""

        offset = 0
        while True:
            params = {
                "parliamentary-term": str(term),
                "language": "EN",
                "format": "application/ld+json",
                "limit": str(self._page_size),
                "offset": str(offset),
            }
            payload = self._request("/meps", params=params)
            items = payload.get("data") or []
            for item in items:
                entry = self._parse_entry(item, term)
                if entry is not None:
                    yield entry
            if len(items) < self._page_size:
                break
            offset += self._page_size

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MEPDirectoryClient":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()

    # --- helpers --------------------------------------------------------
    def _backoff(self, attempt: int) -> float:
        return min(float(2 ** (attempt - 1)), self._backoff_cap)

    def _request(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        last_exc: Optional[Exception] = None
        for attempt in range(1, self._max_retries + 1):
            try:
                response = self._client.get(url, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                last_exc = exc
                status = exc.response.status_code
                LOGGER.warning("Open Data API returned status %s for %s", status, url)
                if status < 500 and status != 429:
                    break
            except (httpx.HTTPError, ValueError) as exc:
                last_exc = exc
                LOGGER.warning("Error while requesting %s: %s", url, exc)
            if attempt < self._max_retries:
                self._sleep(self._backoff(attempt))
        raise FetchError(f"Failed to request {url}") from last_exc

    @staticmethod
    def _parse_entry(item: Dict[str, Any], term: int) -> Optional[MEPEntry]:
        raw_identifier = item.get("identifier") or item.get("id")
        if raw_identifier is None:
            return None
        try:
            identifier = int(str(raw_identifier).rsplit("/", 1)[-1])
        except ValueError:
            LOGGER.debug("Skipping MEP entry with identifier %r", raw_identifier)
            return None

        given_name = item.get("givenName")
        family_name = item.get("familyName")
        label = item.get("label") or " ".join(part for part in (given_name, family_name) if part)
        if not label:
            return None

        def _tail(value: Any) -> Optional[str]:
            # Values come as "org/ep-PPE" style references or plain strings.
            if not value:
                return None
            text = str(value)
            text = text.rsplit("/", 1)[-1]
            return text.removeprefix("ep-") or None

        return MEPEntry(
            identifier=identifier,
            label=str(label),
            given_name=given_name,
            family_name=family_name,
            political_group=_tail(item.get("api:political-group")),
            country=_tail(item.get("api:country-of-representation")),
            term=term,
        )


__all__ = ["MEPDirectoryClient", "MEPEntry"]
