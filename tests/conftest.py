"""Pytest configuration and fixtures."""
import pytest
import tempfile
import shutil
from pathlib import Path
from shapely import wkb
from shapely.geometry import Point
from geomerge.core.adm_levels import AdmLevelPolicy
from geomerge.core.duckdb_store import DuckDBStore
from geomerge.core.engine import ReconciliationEngine
from geomerge.core.errors import ExternalServiceError, PersistenceConflict
from geomerge.core.fuzzy import is_same_name
from geomerge.core.labels import DefaultLabelGenerator
from geomerge.core.models import FeatureKind
from geomerge.core.resolver import CandidateResolver


def hex_ewkb(geometry) -> str:
    return wkb.dumps(geometry, hex=True, srid=4326)


class FakeSearch:
    """Search service returning scripted candidates in the given order."""

    def __init__(self, results=None, fail=False):
        self.results = list(results or [])
        self.fail = fail
        self.calls = []

    def search(self, name, location, placetypes, country_code, limit=1):
        placetypes = tuple(placetypes)
        self.calls.append((name, placetypes, country_code, limit))
        if self.fail:
            raise ExternalServiceError("search service down")
        matches = []
        for candidate in self.results:
            if candidate.placetype not in placetypes:
                continue
            # Administrative records are looked up by name
            if candidate.placetype == FeatureKind.ADM and not is_same_name(name, candidate.name):
                continue
            matches.append(candidate)
        return matches[:limit]


class FakeStore:
    """In-memory feature store."""

    def __init__(self):
        self.features = {}
        self.adms = {}
        self.removed = []
        self.flushes = 0
        self.optimized = False
        self.rejected_names = set()

    def get_by_feature_id(self, kind, feature_id):
        feature = self.features.get(feature_id)
        if feature is None or feature.kind != kind:
            return None
        return feature

    def get_adm(self, feature_id):
        return self.adms.get(feature_id)

    def save(self, feature):
        if feature.name in self.rejected_names:
            raise PersistenceConflict(f"constraint violation for {feature.name}")
        self.features[feature.feature_id] = feature

    def remove(self, feature):
        self.features.pop(feature.feature_id, None)
        self.removed.append(feature.feature_id)

    def flush(self):
        self.flushes += 1

    def optimize(self):
        self.optimized = True

    def of_kind(self, kind):
        return [f for f in self.features.values() if f.kind == kind]


class FakeIdGenerator:

    def __init__(self, start=1000):
        self.current = start
        self.synced = False

    def sync(self):
        self.synced = True

    def next_id(self):
        self.current += 1
        return self.current


class StubMunicipalityDetector:

    def __init__(self, result=True):
        self.result = result
        self.calls = []

    def is_municipality(self, country_code, tag, source_kind, provenance):
        self.calls.append((country_code, tag, source_kind, provenance))
        return self.result


@pytest.fixture
def temp_db():
    """Create temporary DuckDB database."""
    temp_dir = tempfile.mkdtemp()
    db_path = Path(temp_dir) / "test.duckdb"
    db_store = DuckDBStore(db_path)
    yield db_store
    db_store.close()
    shutil.rmtree(temp_dir)


@pytest.fixture
def policy():
    return AdmLevelPolicy()


@pytest.fixture
def fake_search():
    return FakeSearch()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def id_generator():
    return FakeIdGenerator()


@pytest.fixture
def detector():
    return StubMunicipalityDetector(result=True)


@pytest.fixture
def engine(fake_store, fake_search, id_generator, detector, policy):
    """Engine over in-memory capabilities, resolver asking for 5 results."""
    resolver = CandidateResolver(fake_search, limit=5)
    return ReconciliationEngine(
        store=fake_store,
        search_service=fake_search,
        id_generator=id_generator,
        municipality_detector=detector,
        label_generator=DefaultLabelGenerator(),
        policy=policy,
        resolver=resolver,
        batch_size=100,
    )


@pytest.fixture
def make_row():
    """Build a tab separated map-extract row."""
    def _make_row(
        name="Springfield",
        country_code="US",
        lon=-89.65,
        lat=39.78,
        place_tag="city",
        map_extract_id="123",
        geometry_source="N",
        admin_centre_node_id="",
        postal_code="",
        subdivision_postal_code="",
        admin_level="",
        population="",
        location=None,
        admin_centre_location="",
        shape=None,
        is_in="",
        is_in_adm="",
        alternate_names="",
    ):
        if location is None:
            location = hex_ewkb(Point(lon, lat))
        fields = [
            geometry_source,
            map_extract_id,
            admin_centre_node_id,
            name,
            country_code,
            postal_code,
            subdivision_postal_code,
            admin_level,
            population,
            location,
            admin_centre_location,
            hex_ewkb(shape) if shape is not None else "",
            place_tag,
            is_in,
            is_in_adm,
            alternate_names,
        ]
        return "\t".join(fields) + "\n"
    return _make_row
