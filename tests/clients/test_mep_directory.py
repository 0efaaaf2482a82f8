from __future__ import annotations

import httpx
import pytest

from eurowatch.clients import MEPDirectoryClient
from eurowatch.core.errors import FetchError


def _person(identifier: int, given: str, family: str, group: str = "org/ep-PPE", country: str = "DE") -> dict:
    return {
        "id": f"person/{identifier}",
        "identifier": str(identifier),
        "label": f"{given} {family}",
        "givenName": given,
        "familyName": family,
        "api:political-group": group,
        "api:country-of-representation": f"http://publications.europa.eu/resource/authority/country/{country}",
    }


def test_iter_meps_pages_until_short_page():
    pages = [
        [_person(1, "Anna", "Schmidt"), _person(2, "Jean", "Martin", group="org/ep-RENEW")],
        [_person(3, "Maria", "Rossi", group="S&D", country="IT")],
    ]
    seen_params = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_params.append(dict(request.url.params))
        return httpx.Response(200, json={"data": pages.pop(0)})

    client = MEPDirectoryClient("https://example.invalid/api/v2", page_size=2, transport=httpx.MockTransport(handler))

    entries = list(client.iter_meps(10))

    assert [entry.identifier for entry in entries] == [1, 2, 3]
    assert entries[0].label == "Anna Schmidt"
    assert entries[0].political_group == "PPE"
    assert entries[1].political_group == "RENEW"
    assert entries[2].political_group == "S&D"
    assert entries[2].country == "IT"
    assert all(entry.term == 10 for entry in entries)
    assert seen_params[0]["parliamentary-term"] == "10"
    assert seen_params[0]["offset"] == "0"
    assert seen_params[1]["offset"] == "2"


def test_entries_without_identifier_are_skipped():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"label": "Nobody"}, _person(7, "Ola", "Nordmann")]})

    client = MEPDirectoryClient("https://example.invalid", transport=httpx.MockTransport(handler))

    assert [entry.identifier for entry in client.iter_meps(9)] == [7]


def test_client_error_raises_fetch_error():
    client = MEPDirectoryClient(
        "https://example.invalid",
        transport=httpx.MockTransport(lambda request: httpx.Response(400)),
    )

    with pytest.raises(FetchError):
        list(client.iter_meps(10))


def test_server_errors_are_retried_with_backoff():
    statuses = [503, 503, 200]
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, json={"data": [_person(4, "Eva", "Novak")]})

    client = MEPDirectoryClient(
        "https://example.invalid",
        max_retries=3,
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )

    assert [entry.identifier for entry in client.iter_meps(10)] == [4]
    assert sleeps == [1.0, 2.0]


def test_exhausted_retries_do_not_sleep_after_the_last_attempt():
    sleeps = []
    client = MEPDirectoryClient(
        "https://example.invalid",
        max_retries=4,
        backoff_cap=2.0,
        transport=httpx.MockTransport(lambda request: httpx.Response(502)),
        sleep=sleeps.append,
    )

    with pytest.raises(FetchError):
        list(client.iter_meps(10))

    assert sleeps == [1.0, 2.0, 2.0]
