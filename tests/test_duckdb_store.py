"""Tests for the DuckDB store, search service and id generator."""
import pytest
from shapely.geometry import Point, box
from geomerge.core.duckdb_store import DuckDBIdGenerator
from geomerge.core.errors import PersistenceConflict
from geomerge.core.models import AdmRecord, AlternateName, FeatureKind, GeoFeature, Source


def springfield(feature_id=1, **kwargs):
    kwargs.setdefault("country_code", "US")
    kwargs.setdefault("location", Point(-89.65, 39.78))
    return GeoFeature(feature_id, FeatureKind.PLACE, kwargs.pop("name", "Springfield"), **kwargs)


def test_pending_features_are_visible(temp_db):
    feature = springfield()
    temp_db.save(feature)
    assert temp_db.get_by_feature_id(FeatureKind.PLACE, 1) is feature
    assert temp_db.get_by_feature_id(FeatureKind.SUB_PLACE, 1) is None
    assert temp_db.count() == 0


def test_flush_and_reload(temp_db):
    adm = AdmRecord(42, "Illinois", "US", 1, ["Illinois", None, None, None, None])
    temp_db.save_adm(adm)
    feature = springfield(
        population=114394,
        elevation=180,
        gtopo30=182,
        timezone="America/Chicago",
        source=Source.BOTH,
        map_extract_id=123,
        adm=adm,
        adm_names=["Illinois", "Sangamon County", None, None, None],
        zip_codes=["62701", "62703"],
        zip_code="62701",
        municipality=True,
        shape=box(-90.0, 39.0, -89.0, 40.0),
    )
    feature.add_alternate_name(AlternateName("Springfield (fr)", "fr", Source.MAP_EXTRACT, "US"))
    temp_db.save(feature)
    temp_db.flush()

    loaded = temp_db.get_by_feature_id(FeatureKind.PLACE, 1)
    assert loaded is not feature
    assert loaded.name == "Springfield"
    assert loaded.location.equals(Point(-89.65, 39.78))
    assert loaded.shape.equals(box(-90.0, 39.0, -89.0, 40.0))
    assert loaded.population == 114394
    assert loaded.gtopo30 == 182
    assert loaded.source == Source.BOTH
    assert loaded.map_extract_id == 123
    assert loaded.adm == adm
    assert loaded.adm_names == ["Illinois", "Sangamon County", None, None, None]
    assert loaded.zip_codes == ["62701", "62703"]
    assert loaded.municipality is True
    assert loaded.alternate_names == [AlternateName("Springfield (fr)", "fr", Source.MAP_EXTRACT, "US")]
    assert temp_db.count(FeatureKind.PLACE) == 1


def test_remove(temp_db):
    temp_db.save(springfield())
    temp_db.flush()
    temp_db.remove(springfield())
    assert temp_db.get_by_feature_id(FeatureKind.PLACE, 1) is None
    temp_db.flush()
    assert temp_db.count() == 0


def test_invalid_name_is_a_conflict(temp_db):
    with pytest.raises(PersistenceConflict):
        temp_db.save(springfield(name="x" * 201))
    with pytest.raises(PersistenceConflict):
        temp_db.save(springfield(name=""))


def test_search_sees_pending_features(temp_db):
    temp_db.save(springfield())
    results = temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE], "US")
    assert [r.feature_id for r in results] == [1]
    assert results[0].placetype == FeatureKind.PLACE
    assert results[0].score == 100
    assert results[0].lon == -89.65
    assert temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.SUB_PLACE], "US") == []
    assert temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE], "CA") == []
    assert temp_db.search("Springfield", Point(-72.59, 42.10), [FeatureKind.PLACE], "US") == []


def test_pending_version_replaces_flushed_row(temp_db):
    temp_db.save(springfield())
    temp_db.flush()
    temp_db.save(springfield(name="Springfield Township", location=Point(-89.60, 39.70)))

    results = temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE], "US", limit=10)

    assert [r.name for r in results] == ["Springfield Township"]
    assert results[0].lon == -89.60


def test_search_skips_removed_features(temp_db):
    temp_db.save(springfield(1))
    temp_db.save(springfield(2))
    temp_db.flush()
    temp_db.remove(springfield(1))
    temp_db.save(springfield(3))
    temp_db.remove(springfield(3))

    results = temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE], "US", limit=10)

    assert [r.feature_id for r in results] == [2]


def test_merged_flags_are_indexed_on_optimize(temp_db):
    temp_db.save(springfield())
    temp_db.flush()
    temp_db.save(springfield(map_extract_id=100, municipality=True))
    temp_db.flush()

    results = temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE], "US")
    assert not results[0].merged
    assert not results[0].municipality
    assert temp_db.get_by_feature_id(FeatureKind.PLACE, 1).map_extract_id == 100

    temp_db.optimize()
    results = temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE], "US")
    assert results[0].map_extract_id == 100
    assert results[0].municipality

    # A pending write reports the indexed flags of its record
    temp_db.save(temp_db.get_by_feature_id(FeatureKind.PLACE, 1))
    assert temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE], "US")[0].merged


def test_flush_keeps_indexed_flags(temp_db):
    temp_db.save(springfield(map_extract_id=100))
    temp_db.flush()
    temp_db.optimize()
    place = temp_db.get_by_feature_id(FeatureKind.PLACE, 1)
    place.population = 1000
    temp_db.save(place)
    temp_db.flush()

    results = temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE], "US")
    assert results[0].merged
    assert temp_db.get_by_feature_id(FeatureKind.PLACE, 1).population == 1000


def test_search_ranking_and_filters(temp_db):
    temp_db.save(springfield(1, location=Point(-89.60, 39.70)))
    temp_db.save(springfield(2, location=Point(-89.65, 39.78), map_extract_id=7))
    temp_db.save(springfield(3, name="Springfeld", location=Point(-89.65, 39.78)))
    temp_db.save(springfield(4, country_code="CA", location=Point(-89.65, 39.78)))
    temp_db.save(springfield(5, location=Point(-72.59, 42.10)))
    temp_db.save(GeoFeature(6, FeatureKind.SUB_PLACE, "Springfield", "US", Point(-89.65, 39.78)))
    temp_db.flush()
    temp_db.optimize()

    results = temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE], "US", limit=10)

    assert [r.feature_id for r in results] == [2, 1, 3]
    assert results[0].merged
    assert results[2].score < 100

    results = temp_db.search("Springfield", Point(-89.65, 39.78), [FeatureKind.PLACE, FeatureKind.SUB_PLACE], "US", limit=1)
    assert results[0].feature_id in (2, 6)


def test_search_alternate_names(temp_db):
    feature = GeoFeature(1, FeatureKind.PLACE, "München", "DE", Point(11.57, 48.13))
    feature.add_alternate_name(AlternateName("Munich", "en"))
    temp_db.save(feature)
    temp_db.flush()
    results = temp_db.search("Munich", Point(11.57, 48.13), [FeatureKind.PLACE], "DE")
    assert results[0].feature_id == 1
    assert results[0].alternate_names == ["Munich"]


def test_adm_records(temp_db):
    temp_db.save_adm(AdmRecord(42, "Bayern", "DE", 1, ["Bayern", None, None, None, None]))
    temp_db.save_adm(AdmRecord(43, "Sachsen", "DE", 1))
    assert temp_db.get_adm(42).name == "Bayern"
    assert temp_db.get_adm(99) is None

    results = temp_db.search("Bayern", None, [FeatureKind.ADM], "DE")
    assert [(r.placetype, r.feature_id) for r in results] == [(FeatureKind.ADM, 42)]


def test_id_generator(temp_db):
    temp_db.save(springfield(5))
    temp_db.save(springfield(10))
    temp_db.flush()
    temp_db.save_adm(AdmRecord(7, "Illinois", "US"))

    generator = DuckDBIdGenerator(temp_db)
    generator.sync()
    assert generator.next_id() == 11
    assert generator.next_id() == 12


def test_optimize(temp_db):
    temp_db.save(springfield())
    temp_db.flush()
    temp_db.optimize()
    assert temp_db.count() == 1
    assert temp_db.conn.execute("SELECT indexed_municipality FROM features").fetchone()[0] is False
