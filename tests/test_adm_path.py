"""Tests for is-in-adm parsing and administrative name slots."""
import pytest
from geomerge.core.adm_levels import AdmLevelPolicy
from geomerge.core.adm_path import parse_is_in_adm, populate_adm_names, populate_adm_names_from_adm
from geomerge.core.models import AdmDescriptor, AdmRecord, FeatureKind, GeoFeature


def test_parse_is_in_adm():
    descriptors = parse_is_in_adm("A___1___10___B___2___20")
    assert descriptors == [AdmDescriptor("A", 1, 10), AdmDescriptor("B", 2, 20)]


def test_parse_is_in_adm_sorts_by_level():
    descriptors = parse_is_in_adm("Paris___8___3___France___2___1___Île-de-France___4___2")
    assert [d.level for d in descriptors] == [2, 4, 8]
    assert [d.name for d in descriptors] == ["France", "Île-de-France", "Paris"]


def test_parse_is_in_adm_skips_non_numeric_level():
    descriptors = parse_is_in_adm("A___x___10___B___2___20")
    assert descriptors == [AdmDescriptor("B", 2, 20)]


def test_parse_is_in_adm_skips_superscript_level():
    descriptors = parse_is_in_adm("A___\u00b2___10___B___2___20")
    assert descriptors == [AdmDescriptor("B", 2, 20)]


def test_parse_is_in_adm_superscript_id_is_zero():
    descriptors = parse_is_in_adm("A___1___\u00b2")
    assert descriptors == [AdmDescriptor("A", 1, 0)]


def test_parse_is_in_adm_non_numeric_id_is_zero():
    descriptors = parse_is_in_adm("A___1___abc___B___2")
    assert descriptors == [AdmDescriptor("A", 1, 0), AdmDescriptor("B", 2, 0)]


def test_parse_is_in_adm_empty_name():
    descriptors = parse_is_in_adm("___3___5")
    assert descriptors == [AdmDescriptor(None, 3, 5)]


@pytest.mark.parametrize("blob", [None, "", "   "])
def test_parse_is_in_adm_empty(blob):
    assert parse_is_in_adm(blob) == []


def test_populate_adm_names_with_policy():
    """Country level and levels at or under the feature level are skipped."""
    feature = GeoFeature(1, FeatureKind.PLACE, "Paris 1er", country_code="FR")
    descriptors = [
        AdmDescriptor("France", 2, 1),
        AdmDescriptor("Île-de-France", 4, 2),
        AdmDescriptor("Paris", 6, 3),
        AdmDescriptor("PARIS", 7, 4),
        AdmDescriptor("Paris 1er", 9, 5),
    ]
    populate_adm_names(feature, 8, descriptors, AdmLevelPolicy())
    assert feature.adm_names == ["Île-de-France", "Paris", None, None, None]


def test_populate_adm_names_unknown_level_uses_all():
    feature = GeoFeature(1, FeatureKind.PLACE, "Somewhere")
    descriptors = [AdmDescriptor(f"Level {i}", i, i) for i in range(2, 10)]
    populate_adm_names(feature, 0, descriptors)
    assert feature.adm_names == ["Level 2", "Level 3", "Level 4", "Level 5", "Level 6"]


def test_populate_adm_names_skips_missing_names():
    feature = GeoFeature(1, FeatureKind.PLACE, "Somewhere")
    populate_adm_names(feature, 0, [AdmDescriptor(None, 3), AdmDescriptor("Kent", 6)])
    assert feature.adm_name(1) == "Kent"


def test_populate_adm_names_from_adm():
    feature = GeoFeature(1, FeatureKind.PLACE, "Dachau", country_code="DE")
    adm = AdmRecord(50, "München", "DE", 5, ["Bayern", "Bayern", "Oberbayern", None, "München"])
    populate_adm_names_from_adm(feature, adm)
    assert feature.adm_names == ["Bayern", "Oberbayern", "München", None, None]
