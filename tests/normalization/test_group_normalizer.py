from __future__ import annotations

import pytest

import eurowatch.normalization.groups as groups
from eurowatch.normalization import CANONICAL_GROUPS, lookup_alias, normalize


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("PPE", "PPE"),
        ("EPP", "PPE"),
        ("PPE-DE", "PPE"),
        ("S&D", "S&D"),
        ("PSE", "S&D"),
        ("Renew Europe Group", "Renew"),
        ("ALDE", "Renew"),
        ("Verts/ALE", "Verts/ALE"),
        ("GUE/NGL", "The Left"),
        ("ENF", "ID"),
        ("Patriots for Europe", "PfE"),
        ("NI", "NI"),
    ],
)
def test_aliases_resolve_to_canonical_groups(raw, expected):
    result = normalize(raw)

    assert result.std == expected
    assert result.kind == "political"
    assert result.std in CANONICAL_GROUPS


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("on behalf of the PPE Group", "PPE"),
        ("on behalf of the S&D Group", "S&D"),
        ("au nom du groupe Renew", "Renew"),
        ("im Namen der PPE-Fraktion", "PPE"),
        ("(ECR)", "ECR"),
        ("Maria Rossi (Verts/ALE)", "Verts/ALE"),
    ],
)
def test_phrases_and_parentheticals_are_recognised(raw, expected):
    assert normalize(raw).std == expected


@pytest.mark.parametrize(
    "raw",
    ["Member of the Commission", "President-in-Office of the Council", "rapporteur", "Commissioner"],
)
def test_institutional_speakers_are_not_political(raw):
    result = normalize(raw)

    assert result.kind == "institution"
    assert result.std is None


@pytest.mark.parametrize("raw", ["President", "Vice-President", "The President", "Präsidentin"])
def test_chair_is_presidency(raw):
    result = normalize(raw)

    assert result.kind == "presidency"
    assert result.std is None


@pytest.mark.parametrize("raw", [None, "", "   ", "in writing", "speaking about its budget"])
def test_unrecognised_labels_are_unknown(raw):
    result = normalize(raw)

    assert result.std is None
    assert result.kind == "unknown"


def test_lookup_alias_strips_group_suffix_and_article():
    assert lookup_alias("the Greens/EFA Group") == "Verts/ALE"
    assert lookup_alias("nonsense") is None


def test_every_alias_maps_to_a_canonical_group():
    stray = {alias: target for alias, target in groups._ALIAS_TABLE.items() if target not in CANONICAL_GROUPS}

    assert stray == {}
