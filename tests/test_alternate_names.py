"""Tests for the alternate names grammar."""
import pytest
from geomerge.core.alternate_names import (
    is_unwanted_alternate_name,
    parse_alternate_names,
    parse_key,
    populate_alternate_names,
    split_names,
    tokenize,
)
from geomerge.core.models import AlternateName, FeatureKind, GeoFeature, Source


def test_parse_plain_blob():
    pairs = parse_alternate_names('_name===Springfield,"fr_name"===Springfield (fr)')
    assert pairs == [(None, "Springfield"), ("fr", "Springfield (fr)")]


def test_parse_quoted_blob():
    blob = '"{""name:fr===Springfield (fr)"",""alt_name===Springfield Town""}"'
    pairs = parse_alternate_names(blob)
    assert pairs == [("fr", "Springfield (fr)"), (None, "Springfield Town")]


def test_parse_pieces():
    assert parse_alternate_names("name:en===Paris___name:de===Paris") == [("en", "Paris"), ("de", "Paris")]


@pytest.mark.parametrize("blob", [
    '"note===ignored"',
    "name:source===survey",
    "NOTE:name===ignored",
    "name:pronunciation===ˈspɹɪŋfiːld",
    "wikidata===Q28515",
])
def test_blacklisted_tags_are_dropped(blob):
    assert parse_alternate_names(blob) == []


def test_malformed_segments_do_not_abort_the_blob():
    pairs = parse_alternate_names("===orphan___ref===A1___name:it===Springfield (it)")
    assert pairs == [("it", "Springfield (it)")]


def test_parse_key():
    assert parse_key("name") == ("name", None)
    assert parse_key("alt_name") == ("alt_name", None)
    assert parse_key("name:fr") == ("name:fr", "fr")
    assert parse_key("alt_name:de") == ("alt_name:de", "de")
    assert parse_key("fr_name") == ("fr_name", "fr")
    assert parse_key("ref") is None


def test_tokenize_empty():
    assert tokenize("") == []
    assert tokenize(None) == []


def test_is_unwanted_alternate_name():
    assert is_unwanted_alternate_name(None)
    assert is_unwanted_alternate_name("  ")
    assert is_unwanted_alternate_name("old_name:Fixme")
    assert not is_unwanted_alternate_name("old_name")


def test_split_names():
    assert split_names("Foo; Bar|Baz,Qux:Quux") == ["Foo", "Bar", "Baz", "Qux", "Quux"]
    assert split_names(" ; ") == []


def test_populate_alternate_names():
    feature = GeoFeature(1, FeatureKind.PLACE, "Springfield", country_code="US")
    populate_alternate_names(feature, "alt_name===Springfield Town;Springfield City___name:fr===Springfield (fr)")
    assert [(an.name, an.language) for an in feature.alternate_names] == [
        ("Springfield Town", None),
        ("Springfield City", None),
        ("Springfield (fr)", "fr"),
    ]
    assert all(an.source == Source.MAP_EXTRACT for an in feature.alternate_names)
    assert all(an.country_code == "US" for an in feature.alternate_names)


def test_populate_alternate_names_skips_duplicates():
    feature = GeoFeature(1, FeatureKind.PLACE, "Springfield")
    feature.add_alternate_name(AlternateName("Springfield (fr)", "fr"))
    populate_alternate_names(feature, "name:fr===Springfield (fr)___alt_name:fr===Springfield (fr)___name:it===Springfield (fr)")
    assert [(an.name, an.language) for an in feature.alternate_names] == [
        ("Springfield (fr)", "fr"),
        ("Springfield (fr)", "it"),
    ]


def test_populate_alternate_names_long_language_is_dropped():
    feature = GeoFeature(1, FeatureKind.PLACE, "Springfield")
    populate_alternate_names(feature, "name:zh-Hans-CN===Springfield (zh)")
    assert feature.alternate_names == [AlternateName("Springfield (zh)", None)]


def test_populate_alternate_names_long_name_is_skipped():
    feature = GeoFeature(1, FeatureKind.PLACE, "Springfield")
    populate_alternate_names(feature, "alt_name===" + "x" * 201)
    assert feature.alternate_names == []


def test_populate_alternate_names_decompounds_german_streets():
    feature = GeoFeature(1, FeatureKind.POI, "Goethestraße", country_code="DE")
    populate_alternate_names(feature, "name:de===Schiller Straße", linear=True)
    names = [(an.name, an.language) for an in feature.alternate_names]
    assert ("Schiller Straße", "de") in names
    assert ("Schillerstraße", "de") in names
    assert ("Goethe Straße", "de") in names


def test_populate_alternate_names_no_decompound_when_not_linear():
    feature = GeoFeature(1, FeatureKind.PLACE, "Goethestraße", country_code="DE")
    populate_alternate_names(feature, "name:de===Schiller Straße", linear=False)
    assert [an.name for an in feature.alternate_names] == ["Schiller Straße"]
